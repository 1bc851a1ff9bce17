"""Flat transfer shapes used at the API boundary"""

from datetime import datetime

from pydantic import BaseModel, Field


class PostDto(BaseModel):
    post_id: int = 0
    parent_id: int = 0
    name: str
    content: str
    created: datetime | None = None
    updated: datetime | None = None


class BlogDto(BaseModel):
    blog_id: int = 0
    name: str
    is_active: bool = False
    articles: list[PostDto] = Field(default_factory=list)
