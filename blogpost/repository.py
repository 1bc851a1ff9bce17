"""Read-side repository over one entity mapping"""

from typing import Any

from pydantic import BaseModel

from blogpost.database_operations import DatabaseOperations
from blogpost.entities import SortOrder
from blogpost.mapping import EntityMapping, MappingModel
from blogpost.query_builder import QueryBuilder


class Repository[T: BaseModel]:
    """Fluent, immutable query interface returning mapped entities.

    Attribute names are resolved to their mapped columns and filter values go
    through the column's value converter, so callers never see storage names
    or storage encodings:

        active = await context.blogs.where("is_active", True).order_by("name").get()

    Every query runs on the connection of the current DatabaseManager.transaction().
    """

    def __init__(
        self,
        mapping: EntityMapping[T],
        model: MappingModel,
        query_builder: QueryBuilder | None = None,
        includes: tuple[str, ...] = (),
    ):
        self.mapping = mapping
        self.model = model
        self._query_builder = query_builder or QueryBuilder(mapping.table_name)
        self._includes = includes

        # Composition: Inject dependencies
        self.db_ops = DatabaseOperations()

    def _clone(
        self,
        query_builder: QueryBuilder | None = None,
        includes: tuple[str, ...] | None = None,
    ) -> "Repository[T]":
        return Repository(
            self.mapping,
            self.model,
            query_builder or self._query_builder,
            self._includes if includes is None else includes,
        )

    def _column(self, attribute: str) -> str:
        return self.mapping.column_for(attribute).column

    def _storage_value(self, attribute: str, value: Any) -> Any:
        return self.mapping.column_for(attribute).to_storage(value)

    # Fluent query methods that return a new repository instance
    def where(self, attribute: str, *args: Any) -> "Repository[T]":
        """Add a WHERE condition.

        Supports both: where(attribute, value) and where(attribute, operator, value)
        """
        if len(args) == 2:
            operator, value = args
            converted: tuple[Any, ...] = (operator, self._storage_value(attribute, value))
        elif len(args) == 1:
            converted = (self._storage_value(attribute, args[0]),)
        else:
            raise TypeError("where() expects (attribute, value) or (attribute, operator, value)")
        return self._clone(self._query_builder.where(self._column(attribute), *converted))

    def where_in(self, attribute: str, values: list[Any]) -> "Repository[T]":
        """Add a WHERE IN condition"""
        converted = [self._storage_value(attribute, value) for value in values]
        return self._clone(self._query_builder.where_in(self._column(attribute), converted))

    def order_by(self, attribute: str, direction: SortOrder = SortOrder.ASC) -> "Repository[T]":
        """Add ORDER BY for an attribute. Can be chained for multiple attributes."""
        column = self._column(attribute)
        if SortOrder(direction) is SortOrder.DESC:
            return self._clone(self._query_builder.order_by_desc(column))
        return self._clone(self._query_builder.order_by(column))

    def limit(self, count: int) -> "Repository[T]":
        return self._clone(self._query_builder.limit(count))

    def offset(self, count: int) -> "Repository[T]":
        return self._clone(self._query_builder.offset(count))

    def paginate(self, page: int, per_page: int = 10) -> "Repository[T]":
        return self._clone(self._query_builder.paginate(page, per_page))

    def include(self, navigation: str) -> "Repository[T]":
        """Load an owned collection (e.g. Blog.posts) together with the results"""
        if navigation not in self.mapping.navigation_names:
            raise KeyError(
                f"Unknown navigation '{navigation}' on entity '{self.mapping.entity_name}'"
            )
        return self._clone(includes=(*self._includes, navigation))

    # Execution methods for fluent queries
    async def get(self) -> list[T]:
        """Execute the query and return all matching entities"""
        query, params = self._query_builder.build()
        rows = await self.db_ops.fetch_all(query, params)
        entities = [self.mapping.from_row(row) for row in rows]
        await self._load_includes(entities)
        return entities

    async def first(self) -> T | None:
        """Execute the query and return the first matching entity"""
        query, params = self._query_builder.limit(1).build()
        row = await self.db_ops.fetch_one(query, params)
        if row is None:
            return None
        entity = self.mapping.from_row(row)
        await self._load_includes([entity])
        return entity

    async def count(self) -> int:
        query, params = self._query_builder.select("COUNT(*)").build()
        result = await self.db_ops.fetch_value(query, params)
        return result or 0

    async def exists(self) -> bool:
        return await self.count() > 0

    async def find_by_id(self, entity_id: int) -> T | None:
        """Find an entity by its primary key; None when there is no such row"""
        primary_attribute, _ = self.mapping.primary_key
        return await self.where(primary_attribute, entity_id).first()

    async def _load_includes(self, entities: list[T]) -> None:
        if not entities or not self._includes:
            return

        primary_attribute, _ = self.mapping.primary_key
        keys = [getattr(entity, primary_attribute) for entity in entities]
        for collection in self.mapping.collections:
            if collection.navigation not in self._includes:
                continue
            dependents = (
                Repository(self.model.mapping_for(collection.dependent), self.model)
                .where_in(collection.foreign_key, keys)
                .order_by(self.model.mapping_for(collection.dependent).primary_key[0])
            )
            grouped: dict[Any, list[BaseModel]] = {key: [] for key in keys}
            for dependent in await dependents.get():
                grouped[getattr(dependent, collection.foreign_key)].append(dependent)
            for entity, key in zip(entities, keys, strict=True):
                setattr(entity, collection.navigation, grouped[key])

    def to_sql(self) -> str:
        """Return the SQL query string for debugging"""
        return self._query_builder.to_sql()

    def build(self) -> tuple[str, list[Any]]:
        return self._query_builder.build()
