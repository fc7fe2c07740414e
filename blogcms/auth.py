# blogcms/auth.py
import aiohttp
import logging
from typing import Optional
from fastapi import Request, HTTPException
from blogcms.config import config

logger = logging.getLogger(__name__)


class AuthClient:
    _session: Optional[aiohttp.ClientSession] = None

    @classmethod
    async def get_session(cls) -> aiohttp.ClientSession:
        """Get or create singleton aiohttp ClientSession."""
        if cls._session is None or cls._session.closed:
            cls._session = aiohttp.ClientSession()
            logger.info("Created new aiohttp ClientSession for auth verification")
        return cls._session

    @classmethod
    async def close(cls):
        """Close the singleton aiohttp ClientSession."""
        if cls._session and not cls._session.closed:
            await cls._session.close()
            logger.info("Closed aiohttp ClientSession for auth verification")


async def require_user(request: Request) -> str:
    """Verify the bearer token via auth-service and return the caller's owner id."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        raise HTTPException(status_code=401, detail='Authorization header missing or invalid')
    token = auth_header.split(' ', 1)[1]

    verify_url = f"{config.AUTH_SERVICE_URL}/verify"
    try:
        session = await AuthClient.get_session()
        async with session.get(verify_url, headers={'Authorization': f'Bearer {token}'}) as resp:
            data = await resp.json(content_type=None)
            if resp.status != 200 or data.get('status') != 'success':
                raise HTTPException(status_code=401, detail='Invalid or expired token')
            user_id = data.get('data', {}).get('user_id')
            if user_id is None:
                raise HTTPException(status_code=401, detail='Invalid token payload')
            return str(user_id)
    except (aiohttp.ClientError, ValueError):
        # Unreachable service, or a non-JSON body such as a gateway error page
        raise HTTPException(status_code=502, detail='Auth service not reachable')
