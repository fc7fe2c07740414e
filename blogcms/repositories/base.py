# blogcms/repositories/base.py
import uuid
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Generic, Mapping, Tuple, TypeVar

from blogcms.search import SearchQuery, SearchResult

T = TypeVar("T")


def new_record_id() -> str:
    return uuid.uuid4().hex


def serialize_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat() if hasattr(value, 'isoformat') else str(value)


def build_set_clause(
    data: Mapping[str, Any], columns: Mapping[str, str], first_param: int = 1
) -> Tuple[List[str], List[Any]]:
    """Translate the camelCase fields present in ``data`` into ``column = $n`` pairs."""
    fields = []
    params = []
    for key, column in columns.items():
        if key in data:
            params.append(data[key])
            fields.append(f"{column} = ${first_param + len(params) - 1}")
    return fields, params


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository defining the owner-scoped CRUD interface."""

    @abstractmethod
    async def get_by_id(self, entity_id: str, owner_id: Optional[str] = None) -> Optional[T]:
        """Retrieve a single entity by its ID, optionally restricted to one owner."""
        pass

    @abstractmethod
    async def create(self, data: Dict[str, Any]) -> T:
        """Create a new entity and return it."""
        pass

    @abstractmethod
    async def update(
        self, entity_id: str, owner_id: str, data: Dict[str, Any]
    ) -> Optional[T]:
        """Update an owned entity and return the updated version."""
        pass

    @abstractmethod
    async def delete(self, entity_id: str, owner_id: str) -> bool:
        """Delete an owned entity. Returns True if a row was removed."""
        pass

    @abstractmethod
    async def search(
        self, search_text: str, query: SearchQuery, owner_id: Optional[str] = None
    ) -> SearchResult:
        """Filter, sort and paginate entities."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Count all stored entities."""
        pass
