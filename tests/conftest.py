import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from blogpost.configuration import build_blog_model
from blogpost.db_context import DatabaseManager
from blogpost.schema import create_schema_sql


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL test container for the session."""
    with PostgresContainer("postgres:17") as postgres:
        yield postgres


@pytest_asyncio.fixture
async def db_pool(postgres_container):
    """Create a pool named "test" on the container with the blog schema in place."""
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    dsn = f"postgresql://{postgres_container.username}:{postgres_container.password}@{host}:{port}/{postgres_container.dbname}"

    # Create a new pool for each test to avoid event loop issues
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)

    async with pool.acquire() as conn:
        for statement in create_schema_sql(build_blog_model()):
            await conn.execute(statement)

    await DatabaseManager.add_pool("test", pool)

    yield pool

    async with pool.acquire() as conn:
        await conn.execute("TRUNCATE TABLE articles, blogs RESTART IDENTITY CASCADE;")

    await pool.close()
