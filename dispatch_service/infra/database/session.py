"""Async database engine and session factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dispatch_service.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()

engine = create_async_engine(db_settings.url, **db_settings.engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get an async database session.

    Example:
        async with get_async_session() as session:
            user = await session.get(User, user_id)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database(*, create_tables: bool = False) -> None:
    """Check connectivity and optionally create missing tables.

    Raises:
        Exception: Whatever the driver raises when the database is unreachable.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                from dispatch_service.features import load_models

                metadata = load_models()
                await conn.run_sync(metadata.create_all)
    except Exception as exc:
        logger.error(
            "Failed to connect to database",
            extra={"sqlite": db_settings.is_sqlite, "error": str(exc)},
        )
        raise

    logger.info(
        "Database connection established",
        extra={"sqlite": db_settings.is_sqlite, "create_tables": create_tables},
    )


async def close_database() -> None:
    """Dispose of the engine's connection pool."""
    logger.info("Closing database connection")
    await engine.dispose()
