"""
Application operations over blogs and posts.

Each call is one unit of work: a fresh BlogsContext inside one transaction.
Entities are built from transfer shapes without validation so that the commit
gate reports every constraint failure in a single EntityValidationError.
"""

from datetime import UTC, datetime

from blogpost.context import BlogsContext
from blogpost.db_context import DatabaseManager
from blogpost.dtos import BlogDto, PostDto
from blogpost.entities import Blog, Post
from blogpost.mapping import MappingModel


def blog_to_dto(blog: Blog, *, include_posts: bool = True) -> BlogDto:
    return BlogDto(
        blog_id=blog.id,
        name=blog.name,
        is_active=blog.is_active,
        articles=[post_to_dto(post) for post in blog.posts] if include_posts else [],
    )


def post_to_dto(post: Post) -> PostDto:
    return PostDto(
        post_id=post.id,
        parent_id=post.parent_id,
        name=post.name,
        content=post.content,
        created=post.created,
        updated=post.updated,
    )


class BlogService:
    def __init__(self, db_name: str = "default", model: MappingModel | None = None):
        self.db_name = db_name
        self.model = model

    def _context(self) -> BlogsContext:
        return BlogsContext(self.model, db_name=self.db_name)

    async def create_blog(self, dto: BlogDto) -> int:
        """Persist a new blog and return its assigned id"""
        blog = Blog.model_construct(name=dto.name, is_active=dto.is_active)
        async with DatabaseManager.transaction(self.db_name):
            context = self._context()
            context.add(blog)
            await context.save_changes()
        return blog.id

    async def list_blogs(self, include_posts: bool = True) -> list[BlogDto]:
        async with DatabaseManager.transaction(self.db_name):
            blogs = self._context().blogs.order_by("id")
            if include_posts:
                blogs = blogs.include("posts")
            return [blog_to_dto(blog, include_posts=include_posts) for blog in await blogs.get()]

    async def get_blog(self, blog_id: int) -> BlogDto | None:
        """Return the blog without its articles, or None when it does not exist"""
        async with DatabaseManager.transaction(self.db_name):
            blog = await self._context().blogs.find_by_id(blog_id)
        if blog is None:
            return None
        return blog_to_dto(blog, include_posts=False)

    async def delete_blog(self, blog_id: int) -> bool:
        """Delete a blog and, by cascade, its posts; False when it does not exist"""
        async with DatabaseManager.transaction(self.db_name):
            context = self._context()
            blog = await context.blogs.find_by_id(blog_id)
            if blog is None:
                return False
            context.remove(blog)
            await context.save_changes()
        return True

    async def set_blog_active(self, blog_id: int, active: bool) -> BlogDto | None:
        async with DatabaseManager.transaction(self.db_name):
            context = self._context()
            blog = await context.blogs.find_by_id(blog_id)
            if blog is None:
                return None
            blog.is_active = active
            context.update(blog)
            await context.save_changes()
        return blog_to_dto(blog, include_posts=False)

    async def create_post(self, dto: PostDto) -> int:
        """Persist a new post under dto.parent_id and return its assigned id"""
        post = Post.model_construct(
            parent_id=dto.parent_id,
            name=dto.name,
            content=dto.content,
            created=datetime.now(UTC),
        )
        async with DatabaseManager.transaction(self.db_name):
            context = self._context()
            context.add(post)
            await context.save_changes()
        return post.id

    async def get_post(self, post_id: int) -> PostDto | None:
        async with DatabaseManager.transaction(self.db_name):
            post = await self._context().posts.find_by_id(post_id)
        return post_to_dto(post) if post is not None else None

    async def update_post(self, post_id: int, dto: PostDto) -> PostDto | None:
        """Replace a post's name and content and stamp its update time"""
        async with DatabaseManager.transaction(self.db_name):
            context = self._context()
            post = await context.posts.find_by_id(post_id)
            if post is None:
                return None
            post.name = dto.name
            post.content = dto.content
            post.updated = datetime.now(UTC)
            context.update(post)
            await context.save_changes()
        return post_to_dto(post)
