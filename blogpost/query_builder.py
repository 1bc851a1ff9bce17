"""
Simple immutable QueryBuilder for SELECT and DELETE statements.
The goal is to produce SQL and parameters without execution.
"""

from typing import Any


class QueryBuilder:
    """
    Simple query builder over a single table.

    Usage:
        builder = QueryBuilder("blogs")
        query, params = builder.select("*").where("blog_id", blog_id).build()
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self.select_fields = "*"
        self.where_conditions: list[str] = []
        self.params: list[Any] = []
        self.order_by_parts: list[str] = []
        self.limit_count: int | None = None
        self.offset_count: int | None = None

    def _clone(self) -> "QueryBuilder":
        """Create a copy of the current QueryBuilder instance"""
        new_builder = QueryBuilder(self.table_name)
        new_builder.select_fields = self.select_fields
        new_builder.where_conditions = self.where_conditions.copy()
        new_builder.params = self.params.copy()
        new_builder.order_by_parts = self.order_by_parts.copy()
        new_builder.limit_count = self.limit_count
        new_builder.offset_count = self.offset_count
        return new_builder

    def _add_condition(self, field: str, value: Any, operator: str) -> "QueryBuilder":
        new_builder = self._clone()

        # Handle None values with IS NULL / IS NOT NULL
        if value is None and operator == "=":
            condition = f"{field} IS NULL"
        elif value is None and operator in ("!=", "<>"):
            condition = f"{field} IS NOT NULL"
        else:
            new_builder.params.append(value)
            condition = f"{field} {operator} ${len(new_builder.params)}"

        new_builder.where_conditions.append(condition)
        return new_builder

    def select(self, *fields: str) -> "QueryBuilder":
        """Set the SELECT fields; defaults to * when none are given."""
        new_builder = self._clone()
        new_builder.select_fields = ", ".join(fields) if fields else "*"
        return new_builder

    def where(self, field: str, *args: Any) -> "QueryBuilder":
        """Add a WHERE condition joined with AND.

        Supports both of the following call styles:
        - where(field, value) -> operator defaults to '='
        - where(field, operator, value) -> explicit operator in the second place
        """
        if len(args) == 2:
            operator, value = args
            return self._add_condition(field, value, operator)
        if len(args) == 1:
            return self._add_condition(field, args[0], "=")
        raise TypeError("where() expects (field, value) or (field, operator, value)")

    def where_in(self, field: str, values: list[Any]) -> "QueryBuilder":
        """Add a WHERE IN condition; an empty list matches nothing."""
        new_builder = self._clone()
        if not values:
            new_builder.where_conditions.append("FALSE")
            return new_builder

        start_index = len(new_builder.params) + 1
        placeholders = ", ".join(f"${i + start_index}" for i in range(len(values)))
        new_builder.where_conditions.append(f"{field} IN ({placeholders})")
        new_builder.params.extend(values)
        return new_builder

    def order_by(self, field: str) -> "QueryBuilder":
        """Add ORDER BY ascending for a field. Chain to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(field)
        return new_builder

    def order_by_desc(self, field: str) -> "QueryBuilder":
        """Add ORDER BY ... DESC for a field. Chain to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field} DESC")
        return new_builder

    def limit(self, count: int) -> "QueryBuilder":
        new_builder = self._clone()
        new_builder.limit_count = count
        return new_builder

    def offset(self, count: int) -> "QueryBuilder":
        new_builder = self._clone()
        new_builder.offset_count = count
        return new_builder

    def paginate(self, page: int, per_page: int = 10) -> "QueryBuilder":
        """
        Set pagination parameters using a page-based interface

        Args:
            page: Page number (1-based)
            per_page: Number of records per page (default: 10)

        Returns:
            QueryBuilder with LIMIT and OFFSET set for the specified page
        """
        if page < 1:
            raise ValueError("Page number must be 1 or greater")
        if per_page < 1:
            raise ValueError("Per page count must be 1 or greater")

        return self.limit(per_page).offset((page - 1) * per_page)

    def _where_clause(self) -> str:
        if not self.where_conditions:
            return ""
        return f" WHERE {' AND '.join(self.where_conditions)}"

    def build(self) -> tuple[str, list[Any]]:
        """Build the final SELECT query and parameters"""
        query = f"SELECT {self.select_fields} FROM {self.table_name}{self._where_clause()}"

        if self.order_by_parts:
            query += f" ORDER BY {', '.join(self.order_by_parts)}"
        if self.limit_count is not None:
            query += f" LIMIT {self.limit_count}"
        if self.offset_count is not None:
            query += f" OFFSET {self.offset_count}"

        return query, self.params.copy()

    def build_delete(self) -> tuple[str, list[Any]]:
        """Build a DELETE statement from the WHERE conditions"""
        if not self.where_conditions:
            raise ValueError("Cannot delete without WHERE conditions")
        return f"DELETE FROM {self.table_name}{self._where_clause()}", self.params.copy()

    def to_sql(self) -> str:
        """Return only the SQL query string without parameters"""
        query, _ = self.build()
        return query

    def __str__(self) -> str:
        query, params = self.build()
        return f"Query: {query}\nParams: {params}"
