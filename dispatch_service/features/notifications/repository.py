"""Repositories for notification records and templates."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_, select, update

from dispatch_service.core.database import BaseRepository
from dispatch_service.features.notifications.models import Notification, NotificationTemplate
from dispatch_service.features.notifications.schemas import NotificationStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from dispatch_service.features.notifications.schemas import Channel, NotificationTrigger


class NotificationRepository(BaseRepository[Notification]):
    """Notification record persistence. Callers own the transaction."""

    def __init__(self) -> None:
        super().__init__(Notification)

    async def create_pending(
        self,
        session: AsyncSession,
        user_id: str,
        trigger: NotificationTrigger,
        channels: Sequence[Channel],
    ) -> Notification:
        """Create a PENDING record for the channels the resolver allowed."""
        notification = Notification(
            user_id=user_id,
            type=trigger.type.value,
            title=trigger.title,
            message=trigger.message,
            channels=[channel.value for channel in channels],
            status=NotificationStatus.PENDING.value,
            data=trigger.data,
            scheduled_at=trigger.scheduled_at,
        )
        return await self.create(session, notification)

    async def set_status(
        self,
        session: AsyncSession,
        notification_id: UUID,
        status: NotificationStatus,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Move a record to a terminal status. ``sent_at`` is stamped for SENT only."""
        values: dict[str, object] = {"status": status.value}
        if status is NotificationStatus.SENT:
            values["sent_at"] = now or datetime.now(UTC)
        stmt = update(Notification).where(Notification.id == notification_id).values(**values)
        result = await session.execute(stmt)
        self._lazy.debug(lambda: f"notifications.set_status: {notification_id} -> {status.value}")
        return result.rowcount > 0

    async def mark_read(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        now: datetime | None = None,
    ) -> bool:
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id)
            .values(read_at=now or datetime.now(UTC))
        )
        result = await session.execute(stmt)
        return result.rowcount > 0

    async def list_pending(
        self,
        session: AsyncSession,
        *,
        now: datetime | None = None,
        limit: int = 500,
    ) -> Sequence[Notification]:
        """PENDING records that are unscheduled or due, oldest first."""
        now = now or datetime.now(UTC)
        stmt = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.PENDING.value,
                or_(Notification.scheduled_at.is_(None), Notification.scheduled_at <= now),
            )
            .order_by(Notification.created_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


class NotificationTemplateRepository(BaseRepository[NotificationTemplate]):
    def __init__(self) -> None:
        super().__init__(NotificationTemplate)

    async def get_by_name(self, session: AsyncSession, name: str) -> NotificationTemplate | None:
        return await self.get_by(session, NotificationTemplate.name, name)


_notification_repository: NotificationRepository | None = None
_notification_template_repository: NotificationTemplateRepository | None = None


def get_notification_repository() -> NotificationRepository:
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository


def get_notification_template_repository() -> NotificationTemplateRepository:
    global _notification_template_repository
    if _notification_template_repository is None:
        _notification_template_repository = NotificationTemplateRepository()
    return _notification_template_repository
