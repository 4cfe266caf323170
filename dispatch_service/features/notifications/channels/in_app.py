"""In-app channel dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dispatch_service.features.notifications.schemas import Channel, ChannelOutcome
from dispatch_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from uuid import UUID

    from dispatch_service.features.notifications.schemas import NotificationTrigger

lazy_logger = get_lazy_logger(__name__)


class InAppChannelDispatcher:
    """In-app notifications are the stored record itself; nothing is sent."""

    channel = Channel.IN_APP

    async def deliver(
        self,
        address: str | None,
        trigger: NotificationTrigger,
        *,
        notification_id: UUID | None = None,
    ) -> ChannelOutcome:
        if notification_id is None:
            return ChannelOutcome.skipped(self.channel, "No notification record")
        lazy_logger.debug(lambda: f"In-app notification {notification_id} available: {trigger.title}")
        return ChannelOutcome.sent(self.channel, str(notification_id))
