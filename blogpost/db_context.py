from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import wraps
from typing import Any

import asyncpg

from blogpost.log import get_logger

logger = get_logger("db")

# Context variable to store the current database connection (only one per context)
_current_connection: ContextVar[asyncpg.Connection | None] = ContextVar(
    "current_connection", default=None
)
_db_pools: dict[str, asyncpg.Pool] = {}


@dataclass
class QueryLog:
    """Represents an executed statement"""

    query: str
    params: list[Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class QueryTracker:
    """Collects the statements executed while it is active"""

    def __init__(self):
        self.queries: list[QueryLog] = []

    def log_query(self, query: str, params: list[Any]):
        self.queries.append(QueryLog(query=query, params=list(params)))

    def get_queries(self) -> list[QueryLog]:
        """Get all logged queries"""
        return self.queries.copy()

    def count(self) -> int:
        return len(self.queries)

    def clear(self):
        self.queries.clear()


_query_tracker: ContextVar[QueryTracker | None] = ContextVar(
    "query_tracker", default=None
)


class DatabaseManager:
    """Manages database pools and connections"""

    @classmethod
    async def add_pool(cls, name: str, pool: asyncpg.Pool):
        """Add a database pool with a name"""
        _db_pools[name] = pool
        logger.debug("Registered database pool '%s'", name)

    @classmethod
    async def get_pool(cls, name: str = "default") -> asyncpg.Pool:
        """Get a database pool by name"""
        if name not in _db_pools:
            raise ValueError(f"Database pool '{name}' not found")
        return _db_pools[name]

    @classmethod
    async def close_pools(cls):
        """Close and forget every registered pool"""
        while _db_pools:
            name, pool = _db_pools.popitem()
            await pool.close()
            logger.debug("Closed database pool '%s'", name)

    @classmethod
    def get_current_connection(cls) -> asyncpg.Connection | None:
        """Get the current active connection from context"""
        return _current_connection.get()

    @classmethod
    def get_query_tracker(cls) -> QueryTracker | None:
        return _query_tracker.get()

    @classmethod
    def log_query(cls, query: str, params: list[Any]):
        """Log a statement and record it on the current query tracker if any"""
        logger.debug("SQL: %s | params=%r", query, params)
        tracker = _query_tracker.get()
        if tracker:
            tracker.log_query(query, params)

    @classmethod
    @asynccontextmanager
    async def transaction(cls, db_name: str = "default"):
        """Context manager for database transactions.

        Behavior:
        - If called within an existing transaction/connection, it opens a nested transaction
          (a savepoint) on the same connection.
        - Otherwise it acquires a connection from the named asyncpg pool and starts a transaction.
          The connection is released back to the pool when the context exits, whether normally,
          with an exception or by cancellation; in the last two cases the transaction is rolled back.

        Args:
            db_name: Name of the database pool to use
        """
        current_conn = _current_connection.get()

        if current_conn:
            async with current_conn.transaction():
                yield current_conn
        else:
            pool = await cls.get_pool(db_name)
            async with pool.acquire() as conn, conn.transaction():
                conn_token = _current_connection.set(conn)
                try:
                    yield conn
                finally:
                    _current_connection.reset(conn_token)

    @classmethod
    @asynccontextmanager
    async def track_queries(cls):
        """Context manager capturing every statement executed inside it.

        async with DatabaseManager.transaction():
            async with DatabaseManager.track_queries() as tracker:
                await context.save_changes()
                statements = tracker.get_queries()
        """
        current_tracker = _query_tracker.get()
        if current_tracker:
            yield current_tracker
            return

        tracker = QueryTracker()
        token = _query_tracker.set(tracker)
        try:
            yield tracker
        finally:
            _query_tracker.reset(token)


def transactional(db_name: str = "default"):
    """Decorator to run a coroutine function within a database transaction.

    Args:
        db_name: Name of the database pool to use

    Example:
        @transactional("default")
        async def rename_blog(blog_id, name):
            ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with DatabaseManager.transaction(db_name):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
