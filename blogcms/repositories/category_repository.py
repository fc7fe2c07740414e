# blogcms/repositories/category_repository.py
import logging
from typing import Optional, List, Dict, Any

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

CATEGORY_COLUMNS = "id, owner_id, name, title, keywords, description, created_at, updated_at"

# Fields a partial update may touch, mapped to their columns.
UPDATABLE_COLUMNS = {
    'name': 'name',
    'title': 'title',
    'keywords': 'keywords',
    'description': 'description',
}

SORTABLE_FIELDS = {
    'name': 'name',
    'title': 'title',
    'createdAt': 'created_at',
    'updatedAt': 'updated_at',
}


def row_to_category(row: Dict) -> Dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "title": row["title"],
        "keywords": row["keywords"],
        "description": row["description"],
        "ownerId": row["owner_id"],
        "createdAt": serialize_timestamp(row["created_at"]),
        "updatedAt": serialize_timestamp(row["updated_at"]),
    }


class CategoryRepository(BaseRepository[Dict]):
    """Repository for Category entity operations."""

    def __init__(self, db: ContentDatabase):
        self.db = db
        self.engine = SearchEngine(
            db=db,
            select_sql=CATEGORY_COLUMNS,
            from_sql="FROM categories",
            search_column="name",
            id_column="id",
            owner_column="owner_id",
            sortable=SORTABLE_FIELDS,
            row_mapper=row_to_category,
        )

    async def get_by_id(self, category_id: str, owner_id: Optional[str] = None) -> Optional[Dict]:
        """Fetch single category by ID."""
        if owner_id is None:
            row = await self.db.fetchrow(
                f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE id = $1", category_id
            )
        else:
            row = await self.db.fetchrow(
                f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE id = $1 AND owner_id = $2",
                category_id, owner_id
            )
        return row_to_category(row) if row else None

    async def get_by_name(self, owner_id: str, name: str) -> Optional[Dict]:
        """Fetch an owner's category by its exact name."""
        row = await self.db.fetchrow(
            f"SELECT {CATEGORY_COLUMNS} FROM categories WHERE owner_id = $1 AND name = $2",
            owner_id, name
        )
        return row_to_category(row) if row else None

    async def list_names(self, owner_id: str) -> List[Dict]:
        """All of an owner's categories as id + name, ascending by name."""
        rows = await self.db.fetch(
            "SELECT id, name FROM categories WHERE owner_id = $1 ORDER BY name ASC, id ASC",
            owner_id
        )
        return [{"id": row["id"], "name": row["name"]} for row in rows]

    async def create(self, data: Dict[str, Any]) -> Dict:
        """Create a new category."""
        category_id = new_record_id()
        now = utcnow()
        try:
            await self.db.execute(
                "INSERT INTO categories (id, owner_id, name, title, keywords, description, created_at, updated_at) "
                "VALUES ($1, $2, $3, $4, $5, $6, $7, $8)",
                category_id, data["ownerId"], data["name"], data["title"],
                data.get("keywords"), data.get("description"), now, now
            )
        except UniqueConstraintError:
            logger.warning(f"Category '{data['name']}' already exists for owner {data['ownerId']}")
            raise ConflictError("Category name already exists")
        return await self.get_by_id(category_id)

    async def update(
        self, category_id: str, owner_id: str, data: Dict[str, Any]
    ) -> Optional[Dict]:
        """Apply the fields present in ``data``; None if no owned category matches."""
        fields, params = build_set_clause(data, UPDATABLE_COLUMNS)
        fields.append(f"updated_at = ${len(params) + 1}")
        params.append(utcnow())
        params.extend([category_id, owner_id])

        query = (
            f"UPDATE categories SET {', '.join(fields)} "
            f"WHERE id = ${len(params) - 1} AND owner_id = ${len(params)}"
        )
        try:
            updated = await self.db.execute(query, *params)
        except UniqueConstraintError:
            raise ConflictError("Category name already exists")
        if not updated:
            return None
        return await self.get_by_id(category_id)

    async def delete(self, category_id: str, owner_id: str) -> bool:
        """Delete a category. Posts referencing it are left as they are."""
        deleted = await self.db.execute(
            "DELETE FROM categories WHERE id = $1 AND owner_id = $2", category_id, owner_id
        )
        return deleted > 0

    async def search(
        self, search_text: str, query: SearchQuery, owner_id: Optional[str] = None
    ) -> SearchResult:
        return await self.engine.run(search_text, query, owner=owner_id)

    async def count(self) -> int:
        """Get total number of categories."""
        count = await self.db.fetchval("SELECT COUNT(*) FROM categories")
        return count or 0
