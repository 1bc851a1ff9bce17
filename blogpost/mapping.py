"""
Mapping primitives translating entities to and from relational rows.

Entities carry no storage knowledge; table names, column names, keys and
value conversions are declared here and checked once when the model is built.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from blogpost.errors import ConfigurationError

ON_DELETE_ACTIONS = ("CASCADE", "RESTRICT", "SET NULL", "NO ACTION")


@dataclass(frozen=True)
class ValueConverter[TModel, TProvider]:
    """Pair of pure functions converting between model and provider values."""

    to_provider: Callable[[TModel], TProvider]
    from_provider: Callable[[TProvider], TModel]


class Column[T]:
    """Type-safe column definition for an entity attribute.

    Usage:
        name = Column[str]("name", "VARCHAR(50)", max_length=50)
        is_active = Column[bool]("is_active", "TEXT", converter=IS_ACTIVE_CONVERTER)
    """

    def __init__(
        self,
        column_name: str,
        sql_type: str,
        *,
        primary_key: bool = False,
        identity: bool = False,
        nullable: bool = False,
        max_length: int | None = None,
        converter: ValueConverter[T, Any] | None = None,
    ):
        """
        Args:
            column_name: The actual database column name
            sql_type: Column type used when rendering DDL
            primary_key: Whether the column is the table's primary key
            identity: Whether storage assigns the value on insert
            nullable: Whether the column accepts NULL
            max_length: Storage-level maximum length for character columns
            converter: Optional two-way conversion applied on write and read
        """
        self._column_name = column_name
        self.sql_type = sql_type
        self.primary_key = primary_key
        self.identity = identity
        self.nullable = nullable
        self.max_length = max_length
        self.converter = converter

    @property
    def column(self) -> str:
        """Return the underlying database column name."""
        return self._column_name

    def to_storage(self, value: T | None) -> Any:
        if value is None or self.converter is None:
            return value
        return self.converter.to_provider(value)

    def from_storage(self, value: Any) -> T | None:
        if value is None or self.converter is None:
            return value
        return self.converter.from_provider(value)

    def __str__(self) -> str:
        """Return the column name when used in queries"""
        return self._column_name

    def __repr__(self) -> str:
        return f"Column({self._column_name})"


@dataclass(frozen=True)
class ForeignKey:
    """A required (or optional) reference from a dependent attribute to a principal's key."""

    attribute: str
    principal: type[BaseModel]
    on_delete: str = "CASCADE"
    required: bool = True


@dataclass(frozen=True)
class OwnedCollection:
    """The principal-side navigation of a dependent's foreign key.

    It describes the same relationship as the dependent's ForeignKey and never
    introduces a column of its own.
    """

    navigation: str
    dependent: type[BaseModel]
    foreign_key: str


class EntityMapping[T: BaseModel]:
    """Correspondence between one entity class and one table."""

    def __init__(
        self,
        entity_class: type[T],
        table_name: str,
        columns: Mapping[str, Column],
        foreign_keys: Iterable[ForeignKey] = (),
        collections: Iterable[OwnedCollection] = (),
    ):
        if entity_class is None:
            raise ConfigurationError("entity_class is required")
        if not table_name:
            raise ConfigurationError(f"table_name is required for {entity_class.__name__}")

        self.entity_class = entity_class
        self.table_name = table_name
        self.columns: dict[str, Column] = dict(columns)
        self.foreign_keys: tuple[ForeignKey, ...] = tuple(foreign_keys)
        self.collections: tuple[OwnedCollection, ...] = tuple(collections)

    @property
    def entity_name(self) -> str:
        return self.entity_class.__name__

    @property
    def primary_key(self) -> tuple[str, Column]:
        """Return the (attribute, column) pair of the primary key."""
        keys = [(attr, column) for attr, column in self.columns.items() if column.primary_key]
        if len(keys) != 1:
            raise ConfigurationError(
                f"Entity '{self.entity_name}' must declare exactly one primary key, found {len(keys)}"
            )
        return keys[0]

    @property
    def navigation_names(self) -> frozenset[str]:
        return frozenset(collection.navigation for collection in self.collections)

    def column_for(self, attribute: str) -> Column:
        try:
            return self.columns[attribute]
        except KeyError as exc:
            raise KeyError(
                f"Unknown attribute '{attribute}' on entity '{self.entity_name}'"
            ) from exc

    def foreign_key_for(self, attribute: str) -> ForeignKey | None:
        for foreign_key in self.foreign_keys:
            if foreign_key.attribute == attribute:
                return foreign_key
        return None

    def to_row(self, entity: T, *, include_identity: bool = False) -> dict[str, Any]:
        """Convert entity attributes into provider values keyed by column name.

        Identity columns are left out unless include_identity is set, so storage
        assigns them on insert.
        """
        row: dict[str, Any] = {}
        for attribute, column in self.columns.items():
            if column.identity and not include_identity:
                continue
            row[column.column] = column.to_storage(getattr(entity, attribute, None))
        return row

    def from_row(self, row: Mapping[str, Any]) -> T:
        """Convert a storage row back into an entity using the inverse conversions.

        Stored rows are not re-validated; constraints apply when changes are committed.
        """
        data = {
            attribute: column.from_storage(row[column.column])
            for attribute, column in self.columns.items()
            if column.column in row
        }
        return self.entity_class.model_construct(**data)

    def __repr__(self) -> str:
        return f"EntityMapping({self.entity_name} -> {self.table_name})"


class MappingModel:
    """A validated, immutable set of entity mappings."""

    def __init__(self, mappings: Iterable[EntityMapping]):
        self._mappings: dict[type[BaseModel], EntityMapping] = {
            mapping.entity_class: mapping for mapping in mappings
        }

    def mapping_for(self, entity: BaseModel | type[BaseModel]) -> EntityMapping:
        entity_class = entity if isinstance(entity, type) else type(entity)
        try:
            return self._mappings[entity_class]
        except KeyError as exc:
            raise ConfigurationError(
                f"No mapping registered for entity '{entity_class.__name__}'"
            ) from exc

    def mappings(self) -> list[EntityMapping]:
        return list(self._mappings.values())

    def insertion_order(self) -> list[EntityMapping]:
        """Return mappings with every principal ahead of its dependents."""
        ordered: list[EntityMapping] = []
        visiting: set[type[BaseModel]] = set()

        def visit(mapping: EntityMapping) -> None:
            if mapping in ordered:
                return
            if mapping.entity_class in visiting:
                raise ConfigurationError(
                    f"Cyclic foreign keys involving '{mapping.entity_name}'"
                )
            visiting.add(mapping.entity_class)
            for foreign_key in mapping.foreign_keys:
                principal = self._mappings[foreign_key.principal]
                if principal is not mapping:
                    visit(principal)
            visiting.discard(mapping.entity_class)
            ordered.append(mapping)

        for mapping in self._mappings.values():
            visit(mapping)
        return ordered

    def __iter__(self):
        return iter(self._mappings.values())


class ModelBuilder:
    """Collects entity mappings and validates them as a whole.

    Usage:
        model = ModelBuilder().entity(BLOG_MAPPING).entity(POST_MAPPING).build()
    """

    def __init__(self):
        self._mappings: list[EntityMapping] = []

    def entity(self, mapping: EntityMapping) -> "ModelBuilder":
        if any(existing.entity_class is mapping.entity_class for existing in self._mappings):
            raise ConfigurationError(f"Entity '{mapping.entity_name}' is mapped twice")
        self._mappings.append(mapping)
        return self

    def build(self) -> MappingModel:
        """Check every declaration and return the model.

        Raises:
            ConfigurationError: On the first incomplete or contradictory declaration
        """
        tables: dict[str, str] = {}
        for mapping in self._mappings:
            owner = tables.setdefault(mapping.table_name, mapping.entity_name)
            if owner != mapping.entity_name:
                raise ConfigurationError(
                    f"Table '{mapping.table_name}' is mapped by both '{owner}' and '{mapping.entity_name}'"
                )
            self._check_columns(mapping)

        model = MappingModel(self._mappings)
        for mapping in self._mappings:
            self._check_foreign_keys(mapping, model)
        for mapping in self._mappings:
            self._check_collections(mapping, model)
        model.insertion_order()
        return model

    @staticmethod
    def _check_columns(mapping: EntityMapping) -> None:
        fields = mapping.entity_class.model_fields
        primary_attribute, _ = mapping.primary_key
        if mapping.columns[primary_attribute].nullable:
            raise ConfigurationError(
                f"Primary key '{mapping.entity_name}.{primary_attribute}' cannot be nullable"
            )

        seen: dict[str, str] = {}
        for attribute, column in mapping.columns.items():
            if attribute not in fields:
                raise ConfigurationError(
                    f"Column '{column.column}' maps unknown attribute "
                    f"'{mapping.entity_name}.{attribute}'"
                )
            previous = seen.setdefault(column.column, attribute)
            if previous != attribute:
                raise ConfigurationError(
                    f"Attributes '{previous}' and '{attribute}' of '{mapping.entity_name}' "
                    f"both map to column '{mapping.table_name}.{column.column}'"
                )
            declared = _declared_max_length(mapping.entity_class, attribute)
            if column.max_length is not None and declared is not None and column.max_length != declared:
                raise ConfigurationError(
                    f"Column '{mapping.table_name}.{column.column}' max_length {column.max_length} "
                    f"differs from '{mapping.entity_name}.{attribute}' max_length {declared}"
                )

        for navigation in mapping.navigation_names:
            if navigation not in fields:
                raise ConfigurationError(
                    f"Navigation '{mapping.entity_name}.{navigation}' is not declared on the entity"
                )
            if navigation in mapping.columns:
                raise ConfigurationError(
                    f"Navigation '{mapping.entity_name}.{navigation}' cannot also be a column"
                )

    @staticmethod
    def _check_foreign_keys(mapping: EntityMapping, model: MappingModel) -> None:
        seen: set[str] = set()
        for foreign_key in mapping.foreign_keys:
            if foreign_key.attribute not in mapping.columns:
                raise ConfigurationError(
                    f"Foreign key '{mapping.entity_name}.{foreign_key.attribute}' has no column"
                )
            if foreign_key.attribute in seen:
                raise ConfigurationError(
                    f"Relationship on '{mapping.entity_name}.{foreign_key.attribute}' is declared twice"
                )
            seen.add(foreign_key.attribute)
            if foreign_key.on_delete not in ON_DELETE_ACTIONS:
                raise ConfigurationError(
                    f"Unknown on_delete action '{foreign_key.on_delete}' for "
                    f"'{mapping.entity_name}.{foreign_key.attribute}'"
                )
            if foreign_key.required and mapping.columns[foreign_key.attribute].nullable:
                raise ConfigurationError(
                    f"Required foreign key '{mapping.entity_name}.{foreign_key.attribute}' "
                    "cannot be nullable"
                )
            model.mapping_for(foreign_key.principal)

    @staticmethod
    def _check_collections(mapping: EntityMapping, model: MappingModel) -> None:
        for collection in mapping.collections:
            dependent = model.mapping_for(collection.dependent)
            foreign_key = dependent.foreign_key_for(collection.foreign_key)
            if foreign_key is None or foreign_key.principal is not mapping.entity_class:
                raise ConfigurationError(
                    f"Collection '{mapping.entity_name}.{collection.navigation}' needs a foreign key "
                    f"'{dependent.entity_name}.{collection.foreign_key}' to '{mapping.entity_name}'"
                )


def _declared_max_length(entity_class: type[BaseModel], attribute: str) -> int | None:
    for constraint in entity_class.model_fields[attribute].metadata:
        max_length = getattr(constraint, "max_length", None)
        if max_length is not None:
            return max_length
    return None
