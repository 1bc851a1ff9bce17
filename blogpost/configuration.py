"""Mapping of Blog and Post onto the `blogs` and `articles` tables"""

from datetime import datetime
from functools import cache

from blogpost.entities import CONTENT_MAX_LENGTH, NAME_MAX_LENGTH, Blog, Post
from blogpost.mapping import (
    Column,
    EntityMapping,
    ForeignKey,
    MappingModel,
    ModelBuilder,
    OwnedCollection,
    ValueConverter,
)

BLOG_ACTIVE = "Blog is active"
BLOG_NOT_ACTIVE = "Blog is not active"


def is_active_to_storage(value: bool) -> str:
    return BLOG_ACTIVE if value else BLOG_NOT_ACTIVE


def is_active_from_storage(value: str) -> bool:
    """Anything other than the exact active sentinel reads back as inactive."""
    return value == BLOG_ACTIVE


IS_ACTIVE_CONVERTER = ValueConverter[bool, str](
    to_provider=is_active_to_storage,
    from_provider=is_active_from_storage,
)

BLOG_MAPPING = EntityMapping(
    Blog,
    "blogs",
    columns={
        "id": Column[int]("blog_id", "INTEGER", primary_key=True, identity=True),
        "name": Column[str](
            "name", f"VARCHAR({NAME_MAX_LENGTH})", max_length=NAME_MAX_LENGTH
        ),
        "is_active": Column[bool]("is_active", "TEXT", converter=IS_ACTIVE_CONVERTER),
    },
    collections=[OwnedCollection("posts", Post, foreign_key="parent_id")],
)

POST_MAPPING = EntityMapping(
    Post,
    "articles",
    columns={
        "id": Column[int]("post_id", "INTEGER", primary_key=True, identity=True),
        "parent_id": Column[int]("blog_id", "INTEGER"),
        "name": Column[str](
            "name", f"VARCHAR({NAME_MAX_LENGTH})", max_length=NAME_MAX_LENGTH
        ),
        "content": Column[str](
            "content", f"VARCHAR({CONTENT_MAX_LENGTH})", max_length=CONTENT_MAX_LENGTH
        ),
        "created": Column[datetime]("created", "TIMESTAMP WITH TIME ZONE"),
        "updated": Column[datetime]("updated", "TIMESTAMP WITH TIME ZONE", nullable=True),
    },
    foreign_keys=[ForeignKey("parent_id", Blog, on_delete="CASCADE")],
)


@cache
def build_blog_model() -> MappingModel:
    """Build and check the blog model once; raises ConfigurationError when misconfigured."""
    return ModelBuilder().entity(BLOG_MAPPING).entity(POST_MAPPING).build()
