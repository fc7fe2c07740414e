# blogcms/repositories/post_repository.py
import logging
from typing import Optional, Dict, Any

from blogcms.database import ContentDatabase, UniqueConstraintError, utcnow
from blogcms.errors import ConflictError
from blogcms.repositories.base import (
    BaseRepository,
    build_set_clause,
    new_record_id,
    serialize_timestamp,
)
from blogcms.search import SearchEngine, SearchQuery, SearchResult

logger = logging.getLogger(__name__)

POST_SELECT = """
    p.id, p.owner_id, p.title, p.category_id, p.posted_by, p.posted_on, p.blog_content,
    p.keywords, p.description, p.image, p.created_at, p.updated_at,
    c.name AS category_name
"""

# LEFT JOIN: a post whose category was deleted is still listed, with a null category name.
POST_FROM = "FROM posts p LEFT JOIN categories c ON p.category_id = c.id"

UPDATABLE_COLUMNS = {
    'title': 'title',
    'categoryId': 'category_id',
    'postedBy': 'posted_by',
    'blogContent': 'blog_content',
    'keywords': 'keywords',
    'description': 'description',
    'image': 'image',
}

SORTABLE_FIELDS = {
    'title': 'p.title',
    'postedBy': 'p.posted_by',
    'postedOn': 'p.posted_on',
    'createdAt': 'p.created_at',
    'updatedAt': 'p.updated_at',
}


def row_to_post(row: Dict) -> Dict:
    return {
        "id": row["id"],
        "title": row["title"],
        "categoryId": row["category_id"],
        "category": {
            "id": row["category_id"],
            "name": row.get("category_name"),
        },
        "postedBy": row["posted_by"],
        "postedOn": serialize_timestamp(row["posted_on"]),
        "blogContent": row["blog_content"],
        "keywords": row["keywords"],
        "description": row["description"],
        "image": row["image"],
        "ownerId": row["owner_id"],
        "createdAt": serialize_timestamp(row["created_at"]),
        "updatedAt": serialize_timestamp(row["updated_at"]),
    }


class PostRepository(BaseRepository[Dict]):
    """Repository for Post entity operations."""

    def __init__(self, db: ContentDatabase):
        self.db = db
        self.engine = SearchEngine(
            db=db,
            select_sql=POST_SELECT,
            from_sql=POST_FROM,
            search_column="p.title",
            id_column="p.id",
            owner_column="p.owner_id",
            sortable=SORTABLE_FIELDS,
            row_mapper=row_to_post,
        )

    async def get_by_id(self, post_id: str, owner_id: Optional[str] = None) -> Optional[Dict]:
        """Fetch single post by ID with its category name."""
        query = f"SELECT {POST_SELECT} {POST_FROM} WHERE p.id = $1"
        if owner_id is None:
            row = await self.db.fetchrow(query, post_id)
        else:
            row = await self.db.fetchrow(query + " AND p.owner_id = $2", post_id, owner_id)
        return row_to_post(row) if row else None

    async def title_exists(self, owner_id: str, title: str, exclude_id: Optional[str] = None) -> bool:
        """Whether the owner already has a post with exactly this title."""
        if exclude_id is None:
            found = await self.db.fetchval(
                "SELECT id FROM posts WHERE owner_id = $1 AND title = $2", owner_id, title
            )
        else:
            found = await self.db.fetchval(
                "SELECT id FROM posts WHERE owner_id = $1 AND title = $2 AND id <> $3",
                owner_id, title, exclude_id
            )
        return found is not None

    async def create(self, data: Dict[str, Any]) -> Dict:
        """Create a new post and return it with category info."""
        post_id = new_record_id()
        now = utcnow()
        try:
            await self.db.execute(
                "INSERT INTO posts (id, owner_id, title, category_id, posted_by, posted_on, blog_content, "
                "keywords, description, image, created_at, updated_at) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)",
                post_id, data["ownerId"], data["title"], data["categoryId"], data["postedBy"],
                data.get("postedOn") or now, data["blogContent"], data["keywords"],
                data["description"], data.get("image"), now, now
            )
        except UniqueConstraintError:
            logger.warning(f"Post '{data['title']}' already exists for owner {data['ownerId']}")
            raise ConflictError("Blog with this title already exists")
        return await self.get_by_id(post_id)

    async def update(
        self, post_id: str, owner_id: str, data: Dict[str, Any]
    ) -> Optional[Dict]:
        """Atomic update with owner check; None if no owned post matches."""
        fields, params = build_set_clause(data, UPDATABLE_COLUMNS)
        fields.append(f"updated_at = ${len(params) + 1}")
        params.append(utcnow())
        params.extend([post_id, owner_id])

        query = (
            f"UPDATE posts SET {', '.join(fields)} "
            f"WHERE id = ${len(params) - 1} AND owner_id = ${len(params)}"
        )
        try:
            updated = await self.db.execute(query, *params)
        except UniqueConstraintError:
            raise ConflictError("Blog with this title already exists")
        if not updated:
            return None
        return await self.get_by_id(post_id)

    async def delete(self, post_id: str, owner_id: str) -> bool:
        """Atomic delete with owner check."""
        deleted = await self.db.execute(
            "DELETE FROM posts WHERE id = $1 AND owner_id = $2", post_id, owner_id
        )
        return deleted > 0

    async def search(
        self, search_text: str, query: SearchQuery, owner_id: Optional[str] = None
    ) -> SearchResult:
        return await self.engine.run(search_text, query, owner=owner_id)

    async def count(self) -> int:
        """Get total number of posts."""
        count = await self.db.fetchval("SELECT COUNT(*) FROM posts")
        return count or 0
