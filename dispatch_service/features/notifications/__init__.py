"""Multi-channel notification dispatch.

This feature:
- Resolves a user's preferences into the channels a trigger may use
- Records a notification per user dispatch and moves it PENDING -> SENT | FAILED
- Delivers in-app, email and SMS through pluggable channel dispatchers
- Maps domain events (stock, orders, leads, logins) to triggers

Architecture:
    - Models: Notification, NotificationTemplate
    - Preferences: typed NotificationPreferences with a legacy JSON migration
    - Channels: dispatchers for in-app, email and SMS
    - Service: NotificationDispatchService, the dispatch coordinator

Example:
    ```python
    service = get_notification_dispatch_service()
    outcome = await service.send_to_user(
        "user-123",
        NotificationTrigger(
            type=NotificationType.STOCK_LOW,
            title="Low stock",
            message="Widget is at 3 units",
            channels=[Channel.IN_APP, Channel.EMAIL],
        ),
    )
    outcome.raise_for_status()
    ```

The HTTP router lives in ``router`` and is mounted by the app.
"""

from dispatch_service.features.notifications.login import LoginDetails, LoginNotificationService
from dispatch_service.features.notifications.models import Notification, NotificationTemplate
from dispatch_service.features.notifications.preferences import (
    NotificationPreferences,
    QuietHours,
    resolve,
)
from dispatch_service.features.notifications.repository import (
    NotificationRepository,
    NotificationTemplateRepository,
    get_notification_repository,
    get_notification_template_repository,
)
from dispatch_service.features.notifications.schemas import (
    Channel,
    ChannelOutcome,
    ChannelStatus,
    DispatchOutcome,
    DispatchStatus,
    NotificationStatus,
    NotificationTrigger,
    NotificationType,
    SuppressionReason,
)
from dispatch_service.features.notifications.service import (
    NotificationDispatchService,
    get_notification_dispatch_service,
)
from dispatch_service.features.notifications.triggers import SystemNotificationTriggers

__all__ = [
    "Channel",
    "ChannelOutcome",
    "ChannelStatus",
    "DispatchOutcome",
    "DispatchStatus",
    "LoginDetails",
    "LoginNotificationService",
    "Notification",
    "NotificationDispatchService",
    "NotificationPreferences",
    "NotificationRepository",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationTemplateRepository",
    "NotificationTrigger",
    "NotificationType",
    "QuietHours",
    "SuppressionReason",
    "SystemNotificationTriggers",
    "get_notification_dispatch_service",
    "get_notification_repository",
    "get_notification_template_repository",
    "resolve",
]
