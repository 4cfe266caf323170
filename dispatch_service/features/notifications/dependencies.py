"""FastAPI dependencies for the notifications feature.

Example usage:
    from dispatch_service.features.notifications.dependencies import DispatchServiceDep

    @router.post("/dispatch/user/{user_id}")
    async def dispatch_to_user(user_id: str, body: TriggerRequest, service: DispatchServiceDep):
        return await service.send_to_user(user_id, body.to_trigger())
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from dispatch_service.features.notifications.service import (
    NotificationDispatchService,
    get_notification_dispatch_service,
)
from dispatch_service.workers.notifications.queue import NotificationQueue, get_notification_queue

DispatchServiceDep = Annotated[
    NotificationDispatchService,
    Depends(get_notification_dispatch_service),
]
NotificationQueueDep = Annotated[NotificationQueue, Depends(get_notification_queue)]


__all__ = [
    "DispatchServiceDep",
    "NotificationQueueDep",
]
