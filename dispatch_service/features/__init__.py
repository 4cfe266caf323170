"""Feature modules of the dispatch service."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import MetaData


def load_models() -> MetaData:
    """Import every model module so the shared metadata is complete."""
    from dispatch_service.core.database import Base
    from dispatch_service.features.messaging import models as _messaging  # noqa: F401
    from dispatch_service.features.notifications import models as _notifications  # noqa: F401
    from dispatch_service.features.settings_store import models as _settings  # noqa: F401
    from dispatch_service.features.users import models as _users  # noqa: F401

    return Base.metadata
