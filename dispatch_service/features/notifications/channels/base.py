"""Base protocol for channel dispatchers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from uuid import UUID

    from dispatch_service.features.notifications.schemas import (
        Channel,
        ChannelOutcome,
        NotificationTrigger,
    )


class ChannelDispatcher(Protocol):
    """Delivers a trigger to one address over one channel.

    Implementations report every provider-side problem in the returned
    ``ChannelOutcome``; a missing configuration or a disabled gate is a
    ``skipped`` outcome, not an error.
    """

    channel: Channel

    async def deliver(
        self,
        address: str | None,
        trigger: NotificationTrigger,
        *,
        notification_id: UUID | None = None,
    ) -> ChannelOutcome:
        """Send ``trigger`` to ``address``.

        Args:
            address: Email address or phone number; unused for in-app.
            trigger: Content and type of the notification.
            notification_id: Record the delivery belongs to, if any.
        """
        ...
