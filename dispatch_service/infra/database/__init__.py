"""Database session management.

Example:
    from dispatch_service.infra.database import get_async_session

    async with get_async_session() as session:
        ...
"""

from .session import (
    AsyncSessionLocal,
    close_database,
    engine,
    get_async_session,
    init_database,
)

__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
