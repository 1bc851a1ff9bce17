"""
Generic validation routine driven by the entities' declared field metadata.

Every field declared on an entity class is checked with a TypeAdapter built
from the field's annotation and its pydantic constraint metadata, so a single
declaration (e.g. Field(min_length=10, max_length=50)) serves both API input
validation at construction time and the commit gate.
"""

from collections.abc import Collection, Iterable
from functools import cache
from typing import Annotated, Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from blogpost.errors import EntityValidationError


@cache
def field_adapter(entity_class: type[BaseModel], field_name: str) -> TypeAdapter:
    """Build (once) the adapter that enforces one field's declared constraints."""
    field_info = entity_class.model_fields[field_name]
    annotation: Any = field_info.annotation
    if field_info.metadata:
        annotation = Annotated[(annotation, *field_info.metadata)]
    return TypeAdapter(annotation)


def collect_violations(entity: BaseModel, *, skip: Collection[str] = ()) -> list[str]:
    """Return every constraint violation of an entity without modifying it.

    Args:
        entity: The entity to check
        skip: Field names that are not checked (navigations, pending keys)

    Returns:
        Messages in the form "<field>: <message>"; empty when the entity is valid
    """
    entity_class = type(entity)
    messages: list[str] = []
    for field_name in entity_class.model_fields:
        if field_name in skip:
            continue
        # Drafts built with model_construct may lack required attributes
        value = getattr(entity, field_name, None)
        if value is None and entity_class.model_fields[field_name].is_required():
            messages.append(f"{field_name}: Field required")
            continue
        try:
            field_adapter(entity_class, field_name).validate_python(value, strict=True)
        except ValidationError as exc:
            messages.extend(f"{field_name}: {error['msg']}" for error in exc.errors())
    return messages


def validate_entities(
    entities: Iterable[tuple[BaseModel, Collection[str]]],
) -> None:
    """Validate a batch of entities and raise one aggregated error.

    Args:
        entities: Pairs of (entity, field names to skip)

    Raises:
        EntityValidationError: If any entity violates any declared constraint
    """
    errors: dict[str, list[str]] = {}
    for entity, skip in entities:
        messages = collect_violations(entity, skip=skip)
        if messages:
            errors.setdefault(type(entity).__name__, []).extend(messages)

    if errors:
        raise EntityValidationError(errors)
