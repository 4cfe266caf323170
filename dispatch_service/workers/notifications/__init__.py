"""Email and SMS delivery jobs.

This module provides:
- Job payloads and results (``jobs``)
- Framework-free job processing (``processors``)
- The enqueue facade used by the API (``queue``)

The taskiq task definitions live in ``tasks`` and are imported by the broker
module, not from here.
"""

from __future__ import annotations

from .jobs import (
    BatchResult,
    BulkEmailJob,
    BulkSmsJob,
    EmailJob,
    JobAttachment,
    RecipientResult,
    SingleResult,
    SmsJob,
)
from .processors import DeliveryJobProcessor, get_delivery_job_processor
from .queue import (
    BulkEnqueueResult,
    NotificationQueue,
    batch_delays,
    chunk_recipients,
    get_notification_queue,
)

__all__ = [
    "BatchResult",
    "BulkEmailJob",
    "BulkEnqueueResult",
    "BulkSmsJob",
    "DeliveryJobProcessor",
    "EmailJob",
    "JobAttachment",
    "NotificationQueue",
    "RecipientResult",
    "SingleResult",
    "SmsJob",
    "batch_delays",
    "chunk_recipients",
    "get_delivery_job_processor",
    "get_notification_queue",
]
