"""
Unit of work over the blog model.

BlogsContext stages added, modified and removed entities and commits them
together. Nothing reaches storage unless every staged addition and
modification satisfies its declared field constraints.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import asyncpg
from pydantic import BaseModel

from blogpost.configuration import build_blog_model
from blogpost.database_operations import DatabaseOperations
from blogpost.db_context import DatabaseManager
from blogpost.entities import Blog, Post
from blogpost.errors import EntityValidationError, ReferentialIntegrityError
from blogpost.log import get_logger
from blogpost.mapping import EntityMapping, MappingModel
from blogpost.query_builder import QueryBuilder
from blogpost.repository import Repository
from blogpost.validation import validate_entities

logger = get_logger("context")


class EntityState(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass
class EntityEntry:
    """A staged entity and what the next save_changes() does with it."""

    entity: BaseModel
    mapping: EntityMapping
    state: EntityState
    # Set for dependents staged through a principal's owned collection
    owner: BaseModel | None = None
    owner_foreign_key: str | None = None
    skip: frozenset[str] = field(default_factory=frozenset)


class BlogsContext:
    """Per-unit-of-work persistence context.

    Usage:
        async with DatabaseManager.transaction():
            context = BlogsContext()
            blog = Blog(name="Engineering Blog", is_active=True)
            context.add(blog)
            await context.save_changes()
            found = await context.blogs.find_by_id(blog.id)

    An instance holds mutable staging state and must not be shared between
    concurrent tasks; create one per request.
    """

    def __init__(self, model: MappingModel | None = None, db_name: str = "default"):
        self.model = model or build_blog_model()
        self.db_name = db_name
        self._entries: list[EntityEntry] = []
        self.db_ops = DatabaseOperations()

    @property
    def blogs(self) -> Repository[Blog]:
        return Repository(self.model.mapping_for(Blog), self.model)

    @property
    def posts(self) -> Repository[Post]:
        return Repository(self.model.mapping_for(Post), self.model)

    def repository[T: BaseModel](self, entity_class: type[T]) -> Repository[T]:
        return Repository(self.model.mapping_for(entity_class), self.model)

    # Staging -------------------------------------------------------------
    def _find_entry(self, entity: BaseModel) -> EntityEntry | None:
        for entry in self._entries:
            if entry.entity is entity:
                return entry
        return None

    def add(self, entity: BaseModel) -> None:
        """Stage an entity, and the members of its owned collections, for insertion"""
        mapping = self.model.mapping_for(entity)
        staged: list[EntityEntry] = []
        if self._find_entry(entity) is None:
            self._require_no_identity(entity, mapping)
            staged.append(
                EntityEntry(entity, mapping, EntityState.ADDED, skip=mapping.navigation_names)
            )

        for collection in mapping.collections:
            dependent_mapping = self.model.mapping_for(collection.dependent)
            for dependent in getattr(entity, collection.navigation):
                if self._find_entry(dependent) is not None:
                    continue
                self._require_no_identity(dependent, dependent_mapping)
                # The parent key is taken from the owner once the owner is inserted
                staged.append(
                    EntityEntry(
                        dependent,
                        dependent_mapping,
                        EntityState.ADDED,
                        owner=entity,
                        owner_foreign_key=collection.foreign_key,
                        skip=dependent_mapping.navigation_names | {collection.foreign_key},
                    )
                )
        self._entries.extend(staged)

    def update(self, entity: BaseModel) -> None:
        """Stage a persisted entity so its current values are written"""
        mapping = self.model.mapping_for(entity)
        entry = self._find_entry(entity)
        if entry is not None:
            if entry.state is EntityState.DELETED:
                entry.state = EntityState.MODIFIED
            return
        self._require_identity(entity, mapping, "update")
        self._entries.append(
            EntityEntry(entity, mapping, EntityState.MODIFIED, skip=mapping.navigation_names)
        )

    def remove(self, entity: BaseModel) -> None:
        """Stage a persisted entity for deletion; a staged addition is just dropped"""
        mapping = self.model.mapping_for(entity)
        entry = self._find_entry(entity)
        if entry is not None and entry.state is EntityState.ADDED:
            # Owned members staged with it go too; they have no parent to take a key from
            self._entries = [
                staged
                for staged in self._entries
                if staged is not entry and staged.owner is not entity
            ]
            return
        self._require_identity(entity, mapping, "remove")
        if entry is not None:
            entry.state = EntityState.DELETED
        else:
            self._entries.append(EntityEntry(entity, mapping, EntityState.DELETED))

    @staticmethod
    def _require_no_identity(entity: BaseModel, mapping: EntityMapping) -> None:
        primary_attribute, _ = mapping.primary_key
        if getattr(entity, primary_attribute, None) is not None:
            raise ValueError(
                f"Cannot add {mapping.entity_name} with an already assigned {primary_attribute}"
            )

    @staticmethod
    def _require_identity(entity: BaseModel, mapping: EntityMapping, operation: str) -> None:
        primary_attribute, _ = mapping.primary_key
        if getattr(entity, primary_attribute, None) is None:
            raise ValueError(
                f"Cannot {operation} {mapping.entity_name} without an assigned {primary_attribute}"
            )

    def entries(self, *states: EntityState) -> list[EntityEntry]:
        if not states:
            return list(self._entries)
        return [entry for entry in self._entries if entry.state in states]

    def has_changes(self) -> bool:
        return bool(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    # Commit gate ---------------------------------------------------------
    def validate_pending(self) -> None:
        """Validate every staged addition and modification.

        Deletions are not validated. The check does not modify any entity.

        Raises:
            EntityValidationError: Naming each failing entity type with all of its messages
        """
        validate_entities(
            (entry.entity, self._effective_skip(entry))
            for entry in self.entries(EntityState.ADDED, EntityState.MODIFIED)
        )

    def _effective_skip(self, entry: EntityEntry) -> frozenset[str]:
        """The owner's key stands in for the foreign key only while the owner is staged for insert"""
        if entry.owner is None or entry.owner_foreign_key is None:
            return entry.skip
        owner_entry = self._find_entry(entry.owner)
        if owner_entry is not None and owner_entry.state is EntityState.ADDED:
            return entry.skip
        return entry.skip - {entry.owner_foreign_key}

    async def save_changes(self) -> int:
        """Validate, then write every staged change in one transaction.

        Returns:
            Number of rows inserted, updated or deleted

        Raises:
            EntityValidationError: If any staged entity violates its constraints; nothing is written
            ReferentialIntegrityError: If a staged entity references a missing parent
        """
        try:
            self.validate_pending()
        except EntityValidationError:
            logger.warning("Rejected unit of work with %d staged entities", len(self._entries))
            raise

        if not self._entries:
            return 0

        # (entity, attribute, previous value) for every key set during this attempt
        assigned: list[tuple[BaseModel, str, Any]] = []
        try:
            async with DatabaseManager.transaction(self.db_name):
                affected = await self._write(assigned)
        except asyncpg.ForeignKeyViolationError as exc:
            self._reset_identities(assigned)
            logger.warning("Referential integrity violation: %s", exc)
            raise ReferentialIntegrityError(str(exc)) from exc
        except BaseException:
            # Rolled back (including cancellation): identities handed out are void
            self._reset_identities(assigned)
            raise

        logger.info(
            "Committed unit of work: %d added, %d modified, %d deleted",
            len(self.entries(EntityState.ADDED)),
            len(self.entries(EntityState.MODIFIED)),
            len(self.entries(EntityState.DELETED)),
        )
        self._entries.clear()
        return affected

    async def _write(self, assigned: list[tuple[BaseModel, str, Any]]) -> int:
        affected = 0
        order = self.model.insertion_order()

        for mapping in order:
            for entry in self.entries(EntityState.ADDED):
                if entry.mapping is mapping:
                    await self._insert(entry, assigned)
                    affected += 1

        for entry in self.entries(EntityState.MODIFIED):
            affected += await self._update(entry)

        # Dependents first; the database cascades the rest
        for mapping in reversed(order):
            for entry in self.entries(EntityState.DELETED):
                if entry.mapping is mapping:
                    affected += await self._delete(entry)

        return affected

    async def _insert(self, entry: EntityEntry, assigned: list[tuple[BaseModel, str, Any]]) -> None:
        mapping = entry.mapping
        owner_id = None
        if entry.owner is not None and entry.owner_foreign_key is not None:
            owner_key, _ = self.model.mapping_for(entry.owner).primary_key
            owner_id = getattr(entry.owner, owner_key, None)
        if owner_id is not None:
            assigned.append(
                (entry.entity, entry.owner_foreign_key, getattr(entry.entity, entry.owner_foreign_key, None))
            )
            setattr(entry.entity, entry.owner_foreign_key, owner_id)

        row = mapping.to_row(entry.entity)
        primary_attribute, primary_column = mapping.primary_key

        columns = ", ".join(row)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(row)))
        query = (
            f"INSERT INTO {mapping.table_name} ({columns}) VALUES ({placeholders}) "
            f"RETURNING {primary_column.column}"
        )
        new_id = await self.db_ops.fetch_value(query, list(row.values()))
        assigned.append((entry.entity, primary_attribute, getattr(entry.entity, primary_attribute)))
        setattr(entry.entity, primary_attribute, new_id)

    async def _update(self, entry: EntityEntry) -> int:
        mapping = entry.mapping
        primary_attribute, primary_column = mapping.primary_key
        row = mapping.to_row(entry.entity)

        set_clause = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(row))
        values: list[Any] = [getattr(entry.entity, primary_attribute), *row.values()]
        return await self.db_ops.execute_query(
            f"UPDATE {mapping.table_name} SET {set_clause} WHERE {primary_column.column} = $1",
            values,
        )

    async def _delete(self, entry: EntityEntry) -> int:
        mapping = entry.mapping
        primary_attribute, primary_column = mapping.primary_key
        query, params = (
            QueryBuilder(mapping.table_name)
            .where(primary_column.column, getattr(entry.entity, primary_attribute))
            .build_delete()
        )
        return await self.db_ops.execute_query(query, params)

    @staticmethod
    def _reset_identities(assigned: list[tuple[BaseModel, str, Any]]) -> None:
        for entity, attribute, previous in reversed(assigned):
            setattr(entity, attribute, previous)
