"""Validated relational persistence for blogs and their posts"""

from blogpost.configuration import (
    BLOG_MAPPING,
    IS_ACTIVE_CONVERTER,
    POST_MAPPING,
    build_blog_model,
    is_active_from_storage,
    is_active_to_storage,
)
from blogpost.context import BlogsContext, EntityState
from blogpost.db_context import DatabaseManager, transactional
from blogpost.entities import Blog, Post
from blogpost.errors import (
    BlogPostError,
    ConfigurationError,
    EntityValidationError,
    ReferentialIntegrityError,
)
from blogpost.repository import Repository
from blogpost.service import BlogService

__all__ = [
    "Blog",
    "Post",
    "BlogsContext",
    "EntityState",
    "BlogService",
    "Repository",
    "DatabaseManager",
    "transactional",
    "BLOG_MAPPING",
    "POST_MAPPING",
    "IS_ACTIVE_CONVERTER",
    "build_blog_model",
    "is_active_to_storage",
    "is_active_from_storage",
    "BlogPostError",
    "ConfigurationError",
    "EntityValidationError",
    "ReferentialIntegrityError",
]
