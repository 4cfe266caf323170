"""Data access for runtime settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from dispatch_service.core.database import BaseRepository
from dispatch_service.features.settings_store.models import SystemSetting

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


class SystemSettingRepository(BaseRepository[SystemSetting]):
    def __init__(self) -> None:
        super().__init__(SystemSetting)

    async def get_value(self, session: AsyncSession, key: str) -> str | None:
        """Return the value of an active setting, or ``None`` if absent."""
        stmt = select(SystemSetting.value).where(
            SystemSetting.key == key,
            SystemSetting.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_value(
        self,
        session: AsyncSession,
        key: str,
        value: str,
        *,
        category: str = "general",
    ) -> SystemSetting:
        """Insert or overwrite a setting. Caller commits."""
        setting = await self.get_by(session, SystemSetting.key, key)
        if setting is None:
            return await self.create(
                session, SystemSetting(key=key, value=value, category=category)
            )
        setting.value = value
        setting.is_active = True
        await session.flush()
        return setting


_system_setting_repository: SystemSettingRepository | None = None


def get_system_setting_repository() -> SystemSettingRepository:
    global _system_setting_repository
    if _system_setting_repository is None:
        _system_setting_repository = SystemSettingRepository()
    return _system_setting_repository
