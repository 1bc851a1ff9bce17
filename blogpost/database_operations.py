from typing import Any

import asyncpg

from blogpost.db_context import DatabaseManager


class DatabaseOperations:
    """Composition class for database operations"""

    @staticmethod
    def get_connection() -> asyncpg.Connection:
        """Get the current database connection from context"""
        conn = DatabaseManager.get_current_connection()
        if not conn:
            raise ValueError(
                "No active transaction found. Database operations must run within a transaction context."
            )
        return conn

    async def fetch_all(self, query: str, params: list[Any]) -> list[asyncpg.Record]:
        """Execute query and fetch all rows"""
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        return await conn.fetch(query, *params)

    async def fetch_one(self, query: str, params: list[Any]) -> asyncpg.Record | None:
        """Execute a query and fetch one row"""
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        return await conn.fetchrow(query, *params)

    async def fetch_value(self, query: str, params: list[Any]) -> Any:
        """Execute query and fetch single value"""
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        return await conn.fetchval(query, *params)

    async def execute_query(self, query: str, params: list[Any]) -> int:
        """Execute a statement and return the number of affected rows"""
        conn = self.get_connection()
        DatabaseManager.log_query(query, params)
        status = await conn.execute(query, *params)
        # asyncpg returns a command tag such as "DELETE 3" or "INSERT 0 1"
        last = status.split()[-1]
        return int(last) if last.isdigit() else 0
