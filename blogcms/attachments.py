# blogcms/attachments.py
import time
import hashlib
import logging
import posixpath
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import aiohttp

from blogcms.config import AttachmentConfig, config
from blogcms.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = frozenset({'image/jpeg', 'image/png', 'image/webp'})


@dataclass
class Attachment:
    """An uploaded image held in memory until it is pushed to the store."""
    data: bytes
    filename: str
    content_type: str


def validate_image(attachment: Attachment) -> None:
    if attachment.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError("Only JPEG, PNG and WEBP images are allowed")


def derive_attachment_key(url: str) -> Optional[str]:
    """Store key of an uploaded image: ``<folder>/<filename without extension>``.

    >>> derive_attachment_key("https://res.example.com/demo/image/upload/v17/blog_images/abc.jpg")
    'blog_images/abc'
    """
    segments = [s for s in urlparse(url).path.split('/') if s]
    if len(segments) < 2:
        return None
    folder, filename = segments[-2], segments[-1]
    return f"{folder}/{posixpath.splitext(filename)[0]}"


class AttachmentStore:
    """Cloudinary-compatible image store client.

    Uploads return the durable ``secure_url``; deletes address a blob by its
    public id (see ``derive_attachment_key``).
    """

    def __init__(self, settings: Optional[AttachmentConfig] = None):
        self.settings = settings or config.attachments
        self._session: Optional[aiohttp.ClientSession] = None

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp ClientSession."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            logger.info("Created new aiohttp ClientSession for attachment store")
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
            logger.info("Closed aiohttp ClientSession for attachment store")

    def _endpoint(self, action: str) -> str:
        return f"{self.settings.base_url}/{self.settings.cloud_name}/image/{action}"

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        """Add timestamp, api_key and the SHA-1 request signature."""
        params = dict(params, timestamp=str(int(time.time())))
        payload = '&'.join(f"{k}={params[k]}" for k in sorted(params))
        params['signature'] = hashlib.sha1((payload + self.settings.api_secret).encode()).hexdigest()
        params['api_key'] = self.settings.api_key
        return params

    async def upload(self, attachment: Attachment) -> str:
        """Store the image and return its URL."""
        form = aiohttp.FormData()
        for key, value in self._signed({'folder': self.settings.folder}).items():
            form.add_field(key, value)
        form.add_field(
            'file', attachment.data,
            filename=attachment.filename,
            content_type=attachment.content_type,
        )

        try:
            session = await self.get_session()
            async with session.post(self._endpoint('upload'), data=form) as resp:
                if resp.status >= 300:
                    body = await resp.text()
                    logger.error(f"Attachment upload rejected ({resp.status}): {body}")
                    raise UpstreamError("Image upload failed")
                data = await resp.json()
        except aiohttp.ClientError as e:
            logger.error(f"Error connecting to attachment store: {e}")
            raise UpstreamError("Image upload failed") from e

        url = data.get('secure_url') or data.get('url')
        if not url:
            raise UpstreamError("Image upload failed")
        logger.info(f"Uploaded attachment '{attachment.filename}' to {url}")
        return url

    async def delete(self, key: str) -> bool:
        """Remove a stored image. Returns False if the store did not know the key."""
        try:
            session = await self.get_session()
            async with session.post(self._endpoint('destroy'), data=self._signed({'public_id': key})) as resp:
                if resp.status >= 300:
                    raise UpstreamError(f"Image delete failed with status {resp.status}")
                data = await resp.json()
        except aiohttp.ClientError as e:
            raise UpstreamError("Image delete failed") from e

        if data.get('result') != 'ok':
            logger.warning(f"Attachment store did not delete '{key}': {data.get('result')}")
            return False
        logger.info(f"Deleted attachment '{key}'")
        return True


# Singleton instance
attachment_store = AttachmentStore()
