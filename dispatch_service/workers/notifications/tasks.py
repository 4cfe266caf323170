"""Delivery task definitions.

This module provides:
- Single email and SMS jobs, retried by the broker when they raise
- Bulk email and SMS batch jobs, which report per-recipient results

Payloads travel as plain dicts and are validated into job models here.
"""

from __future__ import annotations

import logging
from typing import Any

from dispatch_service.core.settings import get_notification_settings
from dispatch_service.infra.tasks.broker import email_broker, sms_broker
from dispatch_service.workers.notifications.jobs import (
    SEND_BULK_EMAIL_TASK,
    SEND_BULK_SMS_TASK,
    SEND_EMAIL_TASK,
    SEND_SMS_TASK,
    BulkEmailJob,
    BulkSmsJob,
    EmailJob,
    SmsJob,
)
from dispatch_service.workers.notifications.processors import get_delivery_job_processor

logger = logging.getLogger(__name__)

_max_retries = get_notification_settings().job_max_retries


if email_broker is not None:

    @email_broker.task(task_name=SEND_EMAIL_TASK, retry_on_error=True, max_retries=_max_retries)
    async def send_email_job(job: dict[str, Any]) -> dict[str, Any]:
        """Send one email.

        Example:
            task = await send_email_job.kiq(EmailJob(to="a@b.co", subject="Hi", message="...").model_dump())
        """
        result = await get_delivery_job_processor().process_email_job(EmailJob.model_validate(job))
        return result.model_dump()

    @email_broker.task(task_name=SEND_BULK_EMAIL_TASK)
    async def send_bulk_email_job(job: dict[str, Any]) -> dict[str, Any]:
        result = await get_delivery_job_processor().process_bulk_email_job(BulkEmailJob.model_validate(job))
        return result.model_dump()


if sms_broker is not None:

    @sms_broker.task(task_name=SEND_SMS_TASK, retry_on_error=True, max_retries=_max_retries)
    async def send_sms_job(job: dict[str, Any]) -> dict[str, Any]:
        """Send one SMS."""
        result = await get_delivery_job_processor().process_sms_job(SmsJob.model_validate(job))
        return result.model_dump()

    @sms_broker.task(task_name=SEND_BULK_SMS_TASK)
    async def send_bulk_sms_job(job: dict[str, Any]) -> dict[str, Any]:
        result = await get_delivery_job_processor().process_bulk_sms_job(BulkSmsJob.model_validate(job))
        return result.model_dump()
