"""Database primitives: declarative base, mixins and the generic repository."""

from dispatch_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    CreatedAtMixin,
    TimestampMixin,
    UUIDPKMixin,
)
from dispatch_service.core.database.repository import BaseRepository, SessionFactory

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "SessionFactory",
    "CreatedAtMixin",
    "TimestampMixin",
    "UUIDPKMixin",
]
