# blogcms/registries.py
"""Owner-scoped business operations for categories and posts.

Every mutating operation validates input and checks uniqueness/ownership
before touching the store, so a rejected request leaves no partial state.
Uniqueness is also enforced by UNIQUE constraints in the store; the
pre-check exists so that a duplicate is reported before an image upload.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from blogcms.attachments import Attachment, AttachmentStore, derive_attachment_key, validate_image
from blogcms.database import store_errors, utcnow
from blogcms.errors import ConflictError, NotFoundError, ValidationError
from blogcms.repositories import CategoryRepository, PostRepository
from blogcms.search import SearchQuery, SearchResult

logger = logging.getLogger(__name__)

POST_REQUIRED_FIELDS = ('title', 'categoryId', 'postedBy', 'blogContent', 'keywords', 'description')
CATEGORY_FIELDS = ('name', 'title', 'keywords', 'description')


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class CategoryRegistry:
    def __init__(self, repository: CategoryRepository):
        self.repository = repository

    @store_errors("creating category")
    async def create(
        self,
        owner_id: str,
        name: Optional[str],
        title: Optional[str],
        keywords: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict:
        if is_blank(name) or is_blank(title):
            raise ValidationError("Name and Title are required")

        name = name.strip()
        if await self.repository.get_by_name(owner_id, name):
            raise ConflictError("Category name already exists")

        category = await self.repository.create({
            "ownerId": owner_id,
            "name": name,
            "title": title,
            "keywords": keywords,
            "description": description,
        })
        logger.info(f"Category '{name}' created for owner {owner_id}")
        return category

    @store_errors("updating category")
    async def update(self, owner_id: str, category_id: str, fields: Mapping[str, Any]) -> Dict:
        """Apply only the fields present in ``fields``.

        Renames are not pre-checked for uniqueness; a collision is still
        rejected by the store constraint and reported as ConflictError.
        """
        changes = {key: fields[key] for key in CATEGORY_FIELDS if key in fields}
        for required in ('name', 'title'):
            if required in changes and is_blank(changes[required]):
                raise ValidationError(f"{required.capitalize()} cannot be empty")
        if 'name' in changes:
            changes['name'] = changes['name'].strip()

        category = await self.repository.update(category_id, owner_id, changes)
        if category is None:
            raise NotFoundError("Category not found or unauthorized")
        return category

    @store_errors("deleting category")
    async def delete(self, owner_id: str, category_id: str) -> None:
        if not await self.repository.delete(category_id, owner_id):
            raise NotFoundError("Category not found or unauthorized")
        logger.info(f"Category {category_id} deleted by owner {owner_id}")

    @store_errors("listing categories")
    async def list_categories(self, owner_id: str) -> List[Dict]:
        return await self.repository.list_names(owner_id)

    @store_errors("searching categories")
    async def search(self, owner_id: str, search_text: str, query: SearchQuery) -> SearchResult:
        return await self.repository.search(search_text, query, owner_id=owner_id)


class PostRegistry:
    def __init__(
        self,
        repository: PostRepository,
        attachments: AttachmentStore,
        delete_replaced_images: bool = False,
    ):
        self.repository = repository
        self.attachments = attachments
        self.delete_replaced_images = delete_replaced_images

    @store_errors("creating post")
    async def create(
        self, owner_id: str, fields: Mapping[str, Any], attachment: Optional[Attachment] = None
    ) -> Dict:
        if any(is_blank(fields.get(key)) for key in POST_REQUIRED_FIELDS):
            raise ValidationError("All fields are required")

        title = fields['title'].strip()
        if await self.repository.title_exists(owner_id, title):
            raise ConflictError("Blog with this title already exists")

        image = None
        if attachment is not None:
            validate_image(attachment)
            image = await self.attachments.upload(attachment)

        post = await self.repository.create({
            "ownerId": owner_id,
            "title": title,
            "categoryId": fields['categoryId'],
            "postedBy": fields['postedBy'],
            "postedOn": utcnow(),
            "blogContent": fields['blogContent'],
            "keywords": fields['keywords'],
            "description": fields['description'],
            "image": image,
        })
        logger.info(f"Post '{title}' created for owner {owner_id}")
        return post

    @store_errors("updating post")
    async def update(
        self,
        owner_id: str,
        post_id: str,
        fields: Mapping[str, Any],
        attachment: Optional[Attachment] = None,
    ) -> Dict:
        post = await self.repository.get_by_id(post_id, owner_id)
        if post is None:
            raise NotFoundError("Blog not found or unauthorized")

        # Empty values count as absent, same as omitted form fields.
        changes = {
            key: fields[key] for key in POST_REQUIRED_FIELDS
            if key in fields and not is_blank(fields[key])
        }
        if 'title' in changes:
            title = changes['title'].strip()
            if title == post['title']:
                del changes['title']
            elif await self.repository.title_exists(owner_id, title, exclude_id=post_id):
                raise ConflictError("Blog with this title already exists")
            else:
                changes['title'] = title

        if attachment is not None:
            validate_image(attachment)
            changes['image'] = await self.attachments.upload(attachment)

        updated = await self.repository.update(post_id, owner_id, changes)
        if updated is None:
            raise NotFoundError("Blog not found or unauthorized")

        if attachment is not None and post['image']:
            await self.retire_replaced_image(post['image'])
        return updated

    @store_errors("deleting post")
    async def delete(self, owner_id: str, post_id: str) -> None:
        post = await self.repository.get_by_id(post_id, owner_id)
        if post is None:
            raise NotFoundError("Blog not found or unauthorized")

        if not await self.repository.delete(post_id, owner_id):
            raise NotFoundError("Blog not found or unauthorized")

        if post['image']:
            await self._remove_image(post['image'])
        logger.info(f"Post {post_id} deleted by owner {owner_id}")

    @store_errors("searching posts")
    async def search(self, owner_id: str, search_text: str, query: SearchQuery) -> SearchResult:
        return await self.repository.search(search_text, query, owner_id=owner_id)

    @store_errors("searching public posts")
    async def public_search(self, search_text: str, query: SearchQuery) -> SearchResult:
        return await self.repository.search(search_text, query)

    @store_errors("fetching public post")
    async def public_view(self, post_id: str) -> Dict:
        post = await self.repository.get_by_id(post_id)
        if post is None:
            raise NotFoundError("Blog not found")
        return post

    async def retire_replaced_image(self, old_url: str) -> None:
        """Decide what happens to an image that an update has replaced.

        By default the old blob is kept in the store; with
        ``delete_replaced_images`` it is removed best-effort.
        """
        if not self.delete_replaced_images:
            logger.info(f"Keeping replaced attachment {old_url}")
            return
        await self._remove_image(old_url)

    async def _remove_image(self, url: str) -> None:
        """Best-effort attachment delete: failures are logged, never raised."""
        key = derive_attachment_key(url)
        if key is None:
            logger.warning(f"Cannot derive attachment key from '{url}', skipping delete")
            return
        try:
            await self.attachments.delete(key)
        except Exception as e:
            logger.warning(f"Failed to delete attachment '{key}': {e}")
