"""Read-only recipient lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from dispatch_service.core.database import BaseRepository
from dispatch_service.features.users.models import User

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class UserRepository(BaseRepository[User]):
    """Queries used to resolve notification recipients."""

    def __init__(self) -> None:
        super().__init__(User)

    async def list_ids_by_role(self, session: AsyncSession, role: str) -> Sequence[str]:
        """Return ids of active users holding ``role``."""
        stmt = select(User.id).where(User.role == role, User.is_active.is_(True)).order_by(User.id)
        result = await session.execute(stmt)
        ids = result.scalars().all()
        self._lazy.debug(lambda: f"users.by_role: {role} -> {len(ids)} users")
        return ids


_user_repository: UserRepository | None = None


def get_user_repository() -> UserRepository:
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository()
    return _user_repository
