"""Enqueue facade for delivery jobs.

API handlers and services go through ``NotificationQueue`` rather than the
taskiq tasks directly. It checks the runtime ``QUEUE_<CH>_ENABLED`` switch,
splits bulk campaigns into batches, and staggers those batches with the
taskiq ``delay`` label.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dispatch_service.core.exceptions import PersistenceError, QueueDisabledError
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.messaging import DeliveryLedger
from dispatch_service.features.settings_store import QueueConfig, SettingsReader
from dispatch_service.infra.ratelimit import EMAIL_CHANNEL, SMS_CHANNEL
from dispatch_service.infra.tasks.broker import broker_queue_name, get_broker
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

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from pydantic import BaseModel

    from dispatch_service.workers.notifications.jobs import JobAttachment

logger = logging.getLogger(__name__)


def chunk_recipients(recipients: list[str], batch_size: int) -> list[list[str]]:
    """Split recipients into consecutive batches of at most ``batch_size``."""
    size = max(1, batch_size)
    return [recipients[i : i + size] for i in range(0, len(recipients), size)]


def batch_delays(total_batches: int, delay_ms: int) -> list[int]:
    """Delay in milliseconds for each batch: ``i * delay_ms``."""
    return [i * delay_ms for i in range(total_batches)]


@dataclass(slots=True)
class BulkEnqueueResult:
    job_id: str
    channel: str
    total_batches: int
    total_recipients: int
    batch_task_ids: list[str] = field(default_factory=list)


class NotificationQueue:
    """Puts email and SMS jobs on the per-channel brokers.

    Example:
        queue = NotificationQueue()
        result = await queue.enqueue_bulk_sms(recipients, "Sale ends today")
        print(result.total_batches)
    """

    def __init__(
        self,
        settings_reader: SettingsReader | None = None,
        *,
        broker_getter: Callable[[str], Any] = get_broker,
        ledger: DeliveryLedger | None = None,
    ) -> None:
        self._settings = settings_reader or SettingsReader()
        self._get_broker = broker_getter
        self._ledger = ledger or DeliveryLedger()

    async def is_queue_available(self, channel: str) -> bool:
        """True when the channel's broker exists and its queue is enabled in settings."""
        if self._get_broker(channel) is None:
            return False
        config = await self._settings.queue_config()
        return config.enabled(channel)

    async def _task(self, channel: str, task_name: str) -> tuple[Any, QueueConfig]:
        broker = self._get_broker(channel)
        if broker is None:
            raise QueueDisabledError(channel)
        config = await self._settings.queue_config()
        if not config.enabled(channel):
            raise QueueDisabledError(channel)
        task = broker.find_task(task_name)
        if task is None:
            raise QueueDisabledError(channel)
        return task, config

    async def enqueue_email(self, job: EmailJob) -> str:
        """Queue one email and return its task id.

        Raises:
            QueueDisabledError: If the email queue is off or unavailable.
        """
        task, _ = await self._task(EMAIL_CHANNEL, SEND_EMAIL_TASK)
        handle = await task.kiq(job.model_dump())
        logger.info("Email job queued", extra={"task_id": handle.task_id, "campaign_id": job.campaign_id})
        return handle.task_id

    async def enqueue_sms(self, job: SmsJob) -> str:
        """Queue one SMS and return its task id.

        Raises:
            QueueDisabledError: If the SMS queue is off or unavailable.
        """
        task, _ = await self._task(SMS_CHANNEL, SEND_SMS_TASK)
        handle = await task.kiq(job.model_dump())
        logger.info("SMS job queued", extra={"task_id": handle.task_id, "campaign_id": job.campaign_id})
        return handle.task_id

    async def enqueue_bulk_email(
        self,
        recipients: list[str],
        subject: str,
        message: str,
        *,
        campaign_id: str | None = None,
        sent_by: str | None = None,
        attachments: Sequence[JobAttachment] = (),
    ) -> BulkEnqueueResult:
        task, config = await self._task(EMAIL_CHANNEL, SEND_BULK_EMAIL_TASK)

        def build(batch: list[str], number: int, total: int, job_id: str) -> BaseModel:
            return BulkEmailJob(
                recipients=batch,
                subject=subject,
                message=message,
                attachments=list(attachments),
                bulk_job_id=job_id,
                batch_number=number,
                total_batches=total,
                campaign_id=campaign_id,
                sent_by=sent_by,
            )

        return await self._enqueue_batches(
            task,
            EMAIL_CHANNEL,
            recipients,
            config.batch_size(EMAIL_CHANNEL),
            config.delay_ms(EMAIL_CHANNEL),
            build,
        )

    async def enqueue_bulk_sms(
        self,
        recipients: list[str],
        message: str,
        *,
        campaign_id: str | None = None,
        distributor_id: str | None = None,
        sent_by: str | None = None,
    ) -> BulkEnqueueResult:
        task, config = await self._task(SMS_CHANNEL, SEND_BULK_SMS_TASK)

        def build(batch: list[str], number: int, total: int, job_id: str) -> BaseModel:
            return BulkSmsJob(
                recipients=batch,
                message=message,
                bulk_job_id=job_id,
                batch_number=number,
                total_batches=total,
                campaign_id=campaign_id,
                distributor_id=distributor_id,
                sent_by=sent_by,
            )

        return await self._enqueue_batches(
            task,
            SMS_CHANNEL,
            recipients,
            config.batch_size(SMS_CHANNEL),
            config.delay_ms(SMS_CHANNEL),
            build,
        )

    async def _enqueue_batches(
        self,
        task: Any,
        channel: str,
        recipients: list[str],
        batch_size: int,
        delay_ms: int,
        build: Callable[[list[str], int, int, str], BaseModel],
    ) -> BulkEnqueueResult:
        batches = chunk_recipients(recipients, batch_size)
        delays = batch_delays(len(batches), delay_ms)
        result = BulkEnqueueResult(
            job_id=f"bulk-{channel}-{int(time.time() * 1000)}",
            channel=channel,
            total_batches=len(batches),
            total_recipients=len(recipients),
        )
        for number, (batch, delay) in enumerate(zip(batches, delays, strict=True), start=1):
            job = build(batch, number, len(batches), result.job_id)
            handle = await task.kicker().with_labels(delay=delay / 1000, bulk_job_id=result.job_id).kiq(
                job.model_dump()
            )
            result.batch_task_ids.append(handle.task_id)

        logger.info(
            "Bulk campaign queued",
            extra={
                "job_id": result.job_id,
                "channel": channel,
                "total_batches": result.total_batches,
                "total_recipients": result.total_recipients,
            },
        )
        return result

    async def get_job_status(self, task_id: str, channel: str) -> dict[str, Any]:
        """Look up a task in the broker's result backend.

        Returns a dict whose ``state`` is ``unavailable``, ``untracked``,
        ``pending``, ``completed``, ``failed`` or ``unknown``.
        """
        broker = self._get_broker(channel)
        if broker is None:
            return {"task_id": task_id, "state": "unavailable"}

        from taskiq.result_backends.dummy import DummyResultBackend

        backend = broker.result_backend
        if isinstance(backend, DummyResultBackend):
            return {"task_id": task_id, "state": "untracked"}

        try:
            if not await backend.is_result_ready(task_id):
                return {"task_id": task_id, "state": "pending"}
            result = await backend.get_result(task_id)
        except Exception as e:
            logger.warning("Job status lookup failed", extra={"task_id": task_id, "error": str(e)})
            return {"task_id": task_id, "state": "unknown", "error": str(e)}

        if result.is_err:
            return {"task_id": task_id, "state": "failed", "error": str(result.error)}
        return {"task_id": task_id, "state": "completed", "result": result.return_value}

    async def get_bulk_job_progress(
        self,
        bulk_job_id: str,
        total_recipients: int | None = None,
    ) -> dict[str, Any]:
        """Aggregate the ledger rows written so far for a bulk campaign.

        Each batch copies ``bulk_job_id`` onto its ledger rows, so progress is
        the count of SENT and FAILED rows. ``progress`` is a percentage and is
        only reported when ``total_recipients`` is given.
        """
        try:
            counts = await self._ledger.bulk_job_progress(bulk_job_id)
        except PersistenceError as e:
            logger.warning("Bulk job progress lookup failed", extra={"job_id": bulk_job_id, "error": e.detail})
            return {"job_id": bulk_job_id, "state": "unknown", "error": e.detail}

        processed = counts.processed
        if total_recipients and processed >= total_recipients:
            state = "completed"
        elif processed:
            state = "in_progress"
        else:
            state = "queued"
        return {
            "job_id": bulk_job_id,
            "state": state,
            "sent": counts.sent,
            "failed": counts.failed,
            "processed": processed,
            "total": total_recipients,
            "progress": counts.progress(total_recipients),
        }

    async def get_worker_status(self) -> dict[str, dict[str, Any]]:
        """Queue name, concurrency, rate and availability for each channel."""
        settings = get_notification_settings()
        config = await self._settings.queue_config()
        return {
            EMAIL_CHANNEL: {
                "queue": broker_queue_name(EMAIL_CHANNEL),
                "concurrency": settings.email_concurrency,
                "rate_per_second": settings.email_rate_per_second,
                "broker_available": self._get_broker(EMAIL_CHANNEL) is not None,
                "enabled": config.email_enabled,
            },
            SMS_CHANNEL: {
                "queue": broker_queue_name(SMS_CHANNEL),
                "concurrency": settings.sms_concurrency,
                "rate_per_second": settings.sms_rate_per_second,
                "broker_available": self._get_broker(SMS_CHANNEL) is not None,
                "enabled": config.sms_enabled,
            },
        }


_notification_queue: NotificationQueue | None = None


def get_notification_queue() -> NotificationQueue:
    global _notification_queue
    if _notification_queue is None:
        _notification_queue = NotificationQueue()
    return _notification_queue
