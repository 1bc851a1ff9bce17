"""Error hierarchy for the blog persistence layer"""


class BlogPostError(Exception):
    """Base class for all errors raised by blogpost."""


class ConfigurationError(BlogPostError):
    """Raised when the entity mapping is incomplete or contradictory."""


class EntityValidationError(BlogPostError):
    """Aggregated constraint violations for every staged entity that failed.

    Args:
        errors: Mapping of entity type name to its violation messages
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors: dict[str, list[str]] = {
            entity_type: list(messages) for entity_type, messages in errors.items()
        }
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return " | ".join(
            f"Validation failed for entity {entity_type}: {'; '.join(messages)}"
            for entity_type, messages in self.errors.items()
        )

    @property
    def entity_types(self) -> list[str]:
        return list(self.errors)


class ReferentialIntegrityError(BlogPostError):
    """Raised when a staged entity references a parent row that does not exist."""
