# blogcms/database.py
import os
import re
import logging
import functools
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite
import asyncpg

from blogcms.config import DatabaseConfig, config
from blogcms.errors import UpstreamError

logger = logging.getLogger(__name__)

_PG_PARAM = re.compile(r'\$(\d+)')

POSTGRES_SCHEMA = (
    '''
    CREATE TABLE IF NOT EXISTS categories (
        id VARCHAR(32) PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        title TEXT NOT NULL,
        keywords TEXT,
        description TEXT,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        CONSTRAINT uq_categories_owner_name UNIQUE (owner_id, name)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS posts (
        id VARCHAR(32) PRIMARY KEY,
        owner_id TEXT NOT NULL,
        title TEXT NOT NULL,
        category_id TEXT NOT NULL,
        posted_by TEXT NOT NULL,
        posted_on TIMESTAMPTZ NOT NULL,
        blog_content TEXT NOT NULL,
        keywords TEXT NOT NULL,
        description TEXT NOT NULL,
        image TEXT,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        CONSTRAINT uq_posts_owner_title UNIQUE (owner_id, title)
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at DESC)',
    'CREATE INDEX IF NOT EXISTS idx_posts_category_id ON posts(category_id)',
)

# category_id is a soft reference: no FOREIGN KEY, deleting a category leaves posts untouched.
SQLITE_SCHEMA = (
    '''
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        name TEXT NOT NULL,
        title TEXT NOT NULL,
        keywords TEXT,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (owner_id, name)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS posts (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        title TEXT NOT NULL,
        category_id TEXT NOT NULL,
        posted_by TEXT NOT NULL,
        posted_on TEXT NOT NULL,
        blog_content TEXT NOT NULL,
        keywords TEXT NOT NULL,
        description TEXT NOT NULL,
        image TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (owner_id, title)
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_posts_created_at ON posts(created_at DESC)',
    'CREATE INDEX IF NOT EXISTS idx_posts_category_id ON posts(category_id)',
)


STORE_ERRORS = (aiosqlite.Error, asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class UniqueConstraintError(Exception):
    """Raised when a write violates one of the per-owner UNIQUE constraints."""


def store_errors(action: str):
    """Report driver failures raised inside the decorated operation as UpstreamError."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except STORE_ERRORS as e:
                logger.error(f"Database error while {action}: {e}", exc_info=True)
                raise UpstreamError("Database error") from e
        return wrapper
    return decorator


def unicode_lower(value: Optional[str]) -> Optional[str]:
    """Unicode-aware LOWER() for SQLite connections; the built-in one folds ASCII only."""
    return value.lower() if isinstance(value, str) else value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 so that SQLite TEXT columns sort chronologically."""
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f+00:00')


class ContentDatabase:
    """Document store access for categories and posts.

    Queries are written with PostgreSQL ``$n`` placeholders; for SQLite they
    are rewritten to numbered ``?n`` parameters and datetimes are stored as
    ISO-8601 text.
    """

    def __init__(self, settings: Optional[DatabaseConfig] = None):
        self.settings = settings or config.database
        self.use_postgres = self.settings.use_postgres
        self.database_path = self.settings.database_path
        self.pool: Optional[asyncpg.Pool] = None
        self._initialized = False

    async def initialize(self):
        """Initialize database connection pool and schema."""
        if self._initialized:
            return

        if self.use_postgres:
            db_config = self.settings.postgres_kwargs()
            try:
                self.pool = await asyncpg.create_pool(
                    min_size=5,
                    max_size=20,
                    **db_config
                )
                logger.info(f"PostgreSQL connection pool created: {db_config['host']}:{db_config['port']}")
                await self._initialize_postgres_schema()
            except Exception as e:
                logger.error(f"PostgreSQL pool creation failed: {e}", exc_info=True)
                raise
        else:
            await self._initialize_sqlite_schema()

        self._initialized = True

    async def _initialize_postgres_schema(self):
        async with self.pool.acquire() as conn:
            for statement in POSTGRES_SCHEMA:
                await conn.execute(statement)
        logger.info("PostgreSQL content database schema initialized")

    async def _initialize_sqlite_schema(self):
        directory = os.path.dirname(self.database_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiosqlite.connect(self.database_path) as conn:
            for statement in SQLITE_SCHEMA:
                await conn.execute(statement)
            await conn.commit()
        logger.info("SQLite content database schema initialized")

    @asynccontextmanager
    async def _sqlite_connection(self):
        async with aiosqlite.connect(self.database_path) as conn:
            await conn.create_function("LOWER", 1, unicode_lower, deterministic=True)
            yield conn

    @staticmethod
    def _sqlite_query(query: str) -> str:
        return _PG_PARAM.sub(r'?\1', query)

    @staticmethod
    def _sqlite_params(params) -> tuple:
        return tuple(format_timestamp(p) if isinstance(p, datetime) else p for p in params)

    async def fetch(self, query: str, *params: Any) -> List[Dict]:
        if self.use_postgres:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
                return [dict(row) for row in rows]
        async with self._sqlite_connection() as conn:
            conn.row_factory = aiosqlite.Row
            cursor = await conn.execute(self._sqlite_query(query), self._sqlite_params(params))
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def fetchrow(self, query: str, *params: Any) -> Optional[Dict]:
        rows = await self.fetch(query, *params)
        return rows[0] if rows else None

    async def fetchval(self, query: str, *params: Any) -> Any:
        if self.use_postgres:
            async with self.pool.acquire() as conn:
                return await conn.fetchval(query, *params)
        async with self._sqlite_connection() as conn:
            cursor = await conn.execute(self._sqlite_query(query), self._sqlite_params(params))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def execute(self, query: str, *params: Any) -> int:
        """Run a write statement and return the number of affected rows.

        Raises UniqueConstraintError when a per-owner UNIQUE constraint is hit.
        """
        if self.use_postgres:
            async with self.pool.acquire() as conn:
                try:
                    result = await conn.execute(query, *params)
                except asyncpg.UniqueViolationError as e:
                    raise UniqueConstraintError(str(e)) from e
                # Parse "INSERT 0 1" / "UPDATE 1" / "DELETE 1"
                try:
                    return int(result.split()[-1])
                except (AttributeError, ValueError, IndexError):
                    return 0
        async with self._sqlite_connection() as conn:
            try:
                cursor = await conn.execute(self._sqlite_query(query), self._sqlite_params(params))
            except aiosqlite.IntegrityError as e:
                if 'UNIQUE' in str(e):
                    raise UniqueConstraintError(str(e)) from e
                raise
            await conn.commit()
            return cursor.rowcount

    async def health_check(self) -> bool:
        """Check database connection health."""
        try:
            await self.fetchval("SELECT 1")
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        if self.use_postgres and self.pool:
            await self.pool.close()
            logger.info("PostgreSQL connection pool closed")


# Singleton instance
db = ContentDatabase()
