# blogcms/search.py
"""Filtered, sorted, paginated search shared by the category and post repositories.

A search is an optional owner scope plus a case-insensitive, unanchored
substring match on one designated text column. Results are ordered by an
allow-listed sort field with the record id as tie-breaker, so stepping
``start`` by ``recordSize`` walks the full result set without gaps or
duplicates. ``totalRecords`` always counts every match before pagination.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from blogcms.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_START = 0
DEFAULT_RECORD_SIZE = 10
DEFAULT_ORDER_TYPE = 1
DEFAULT_ORDER_PARAM = 'createdAt'

SORT_DIRECTIONS = {1: 'ASC', -1: 'DESC'}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the search text is matched literally."""
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


@dataclass
class SearchQuery:
    start: int = DEFAULT_START
    record_size: int = DEFAULT_RECORD_SIZE
    order_type: int = DEFAULT_ORDER_TYPE
    order_param: str = DEFAULT_ORDER_PARAM

    def pagination(self, total_records: int) -> Dict[str, Any]:
        return {
            'totalRecords': total_records,
            'start': self.start,
            'recordSize': self.record_size,
            'orderType': self.order_type,
            'orderParam': self.order_param,
        }


@dataclass
class SearchResult:
    records: List[Dict]
    total_records: int
    query: SearchQuery

    @property
    def pagination(self) -> Dict[str, Any]:
        return self.query.pagination(self.total_records)


@dataclass
class SearchEngine:
    """Builds and runs the count and page queries for one entity.

    ``from_sql`` is the FROM clause (joins included), ``sortable`` maps the
    public camelCase sort field to a column expression.
    """

    db: Any
    select_sql: str
    from_sql: str
    search_column: str
    id_column: str
    owner_column: str
    sortable: Mapping[str, str]
    row_mapper: Callable[[Dict], Dict] = field(default=dict)

    def order_clause(self, query: SearchQuery) -> str:
        if query.order_param not in self.sortable:
            raise ValidationError(
                f"Invalid orderParam '{query.order_param}'. Allowed: {', '.join(sorted(self.sortable))}"
            )
        direction = SORT_DIRECTIONS.get(query.order_type)
        if direction is None:
            raise ValidationError("orderType must be 1 (ascending) or -1 (descending)")
        return f"{self.sortable[query.order_param]} {direction}, {self.id_column} {direction}"

    async def run(self, search_text: Optional[str], query: SearchQuery, owner: Optional[str] = None) -> SearchResult:
        if query.start < 0 or query.record_size < 1:
            raise ValidationError("start must be >= 0 and recordSize must be >= 1")
        order_by = self.order_clause(query)

        clauses = []
        params: List[Any] = []
        if owner is not None:
            params.append(owner)
            clauses.append(f"{self.owner_column} = ${len(params)}")
        params.append(f"%{escape_like((search_text or '').lower())}%")
        clauses.append(f"LOWER({self.search_column}) LIKE ${len(params)} ESCAPE '\\'")
        where_sql = ' AND '.join(clauses)

        total_records = await self.db.fetchval(
            f"SELECT COUNT(*) {self.from_sql} WHERE {where_sql}", *params
        )

        page_sql = (
            f"SELECT {self.select_sql} {self.from_sql} WHERE {where_sql} "
            f"ORDER BY {order_by} LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}"
        )
        rows = await self.db.fetch(page_sql, *params, query.record_size, query.start)
        logger.debug(
            f"Search on {self.search_column} matched {total_records} records "
            f"(start={query.start}, recordSize={query.record_size})"
        )
        return SearchResult(
            records=[self.row_mapper(row) for row in rows],
            total_records=total_records or 0,
            query=query,
        )
