"""
Startup and shutdown of the persistence layer
"""

import asyncpg

from blogpost.configuration import build_blog_model
from blogpost.db_context import DatabaseManager
from blogpost.log import configure_logging, get_logger
from blogpost.schema import create_schema
from blogpost.settings import Settings, get_settings

logger = get_logger("bootstrap")


async def init_database(settings: Settings | None = None) -> asyncpg.Pool:
    """
    Prepare the persistence layer for traffic.

    The mapping model is built before any connection is opened, so a
    misconfigured model raises ConfigurationError and the service never starts.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    model = build_blog_model()

    pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
    )
    await DatabaseManager.add_pool(settings.pool_name, pool)
    logger.info("Connected database pool '%s'", settings.pool_name)

    if settings.create_schema:
        await create_schema(model, settings.pool_name)

    return pool


async def close_database() -> None:
    """Close all database connections (call this at shutdown)."""
    await DatabaseManager.close_pools()
    logger.info("Closed database pools")
