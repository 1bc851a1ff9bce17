from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

NAME_MIN_LENGTH = 10
NAME_MAX_LENGTH = 50
CONTENT_MAX_LENGTH = 1000
# At least one non-whitespace character
NAME_PATTERN = r"\S"


class BaseEntity(BaseModel):
    """Base entity class for all persisted models.

    Assignment is not validated: an entity changed after construction is
    checked by the commit gate in BlogsContext.save_changes().
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        use_enum_values=True, extra="forbid", validate_assignment=False
    )
    id: int | None = None


class Post(BaseEntity):
    """A single article belonging to exactly one blog."""

    parent_id: int
    name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH, pattern=NAME_PATTERN)
    content: str = Field(max_length=CONTENT_MAX_LENGTH)
    created: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated: datetime | None = None


class Blog(BaseEntity):
    """A named publication container owning its posts."""

    name: str = Field(min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH, pattern=NAME_PATTERN)
    is_active: bool = False
    posts: list[Post] = Field(default_factory=list)


# Sorting functionality
class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"
