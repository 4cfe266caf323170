"""Delivery job processing, independent of the queue framework.

The taskiq tasks in ``tasks.py`` are thin wrappers around these methods, and
tests call them directly. For every recipient a processor:

1. paces through the channel limiter (inside the adapter)
2. calls the gateway adapter
3. appends one ledger row

A single-recipient job re-raises the failure after its FAILED row is written
so the queue can retry it. Missing relay or gateway configuration is the
exception: no retry can fix it, so the job writes its FAILED row and returns
an unsuccessful result instead. A batch job records each recipient's result
and never raises for an individual failure.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from dispatch_service.core.exceptions import (
    ConfigurationMissingError,
    NotificationError,
    RecipientValidationError,
)
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.messaging import DeliveryAttempt, DeliveryLedger
from dispatch_service.features.notifications.metrics import (
    delivery_job_recipients_total,
    delivery_job_total,
)
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.infra.email import (
    EmailAttachment,
    EmailMessage,
    SMTPProvider,
    get_email_renderer,
    render_email_bodies,
)
from dispatch_service.infra.logging import log_context
from dispatch_service.infra.ratelimit import get_rate_limiter_registry
from dispatch_service.infra.sms import SmsGatewayClient
from dispatch_service.workers.notifications.jobs import (
    BatchResult,
    RecipientResult,
    SingleResult,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from dispatch_service.core.database import SessionFactory
    from dispatch_service.infra.email import BaseEmailProvider, JinjaEmailRenderer, SmtpConfig
    from dispatch_service.infra.ratelimit import RateLimiterRegistry
    from dispatch_service.infra.sms import SmsCredentials
    from dispatch_service.workers.notifications.jobs import (
        BulkEmailJob,
        BulkSmsJob,
        EmailJob,
        JobAttachment,
        SmsJob,
    )

    type AttachmentFetcher = Callable[[JobAttachment], Awaitable[bytes]]

logger = logging.getLogger(__name__)


class DeliveryJobProcessor:
    """Executes email and SMS delivery jobs.

    Example:
        processor = DeliveryJobProcessor()
        result = await processor.process_bulk_sms_job(job)
        logger.info("batch done", extra={"sent": result.sent, "failed": result.failed})
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        *,
        settings_reader: SettingsReader | None = None,
        ledger: DeliveryLedger | None = None,
        rate_limiters: RateLimiterRegistry | None = None,
        email_provider_factory: Callable[[SmtpConfig], BaseEmailProvider] | None = None,
        sms_client_factory: Callable[[], SmsGatewayClient] | None = None,
        renderer: JinjaEmailRenderer | None = None,
        attachment_fetcher: AttachmentFetcher | None = None,
    ) -> None:
        self._settings = settings_reader or SettingsReader(session_factory)
        self._ledger = ledger or DeliveryLedger(session_factory)
        self._rate_limiters = rate_limiters or get_rate_limiter_registry()
        self._email_provider_factory = email_provider_factory or self._default_email_provider
        self._sms_client_factory = sms_client_factory or self._default_sms_client
        self._renderer = renderer or get_email_renderer()
        self._fetch_attachment = attachment_fetcher or self._download_attachment

    def _default_email_provider(self, config: SmtpConfig) -> BaseEmailProvider:
        return SMTPProvider(
            config,
            timeout=get_notification_settings().smtp_timeout,
            limiter=self._rate_limiters.email,
        )

    def _default_sms_client(self) -> SmsGatewayClient:
        settings = get_notification_settings()
        return SmsGatewayClient(
            str(settings.sms_gateway_url),
            timeout=settings.sms_timeout,
            limiter=self._rate_limiters.sms,
        )

    @staticmethod
    async def _download_attachment(attachment: JobAttachment) -> bytes:
        timeout = httpx.Timeout(get_notification_settings().smtp_timeout)
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(attachment.url)
            response.raise_for_status()
            return response.content

    async def _load_attachments(self, attachments: Sequence[JobAttachment]) -> list[EmailAttachment]:
        """Download job attachments; one that cannot be fetched is logged and left out."""
        loaded: list[EmailAttachment] = []
        for attachment in attachments:
            try:
                content = await self._fetch_attachment(attachment)
            except httpx.HTTPError as exc:
                logger.warning(
                    "Error fetching attachment, sending without it",
                    extra={"filename": attachment.filename, "url": attachment.url, "error": str(exc)},
                )
                continue
            loaded.append(
                EmailAttachment(
                    filename=attachment.filename,
                    content=content,
                    content_type=attachment.content_type,
                )
            )
        return loaded

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    async def process_email_job(self, job: EmailJob) -> SingleResult:
        """Send one email.

        Returns an unsuccessful result, without raising, when the relay is
        not configured.

        Raises:
            NotificationError: Any validation or gateway failure, after the
                FAILED ledger row has been written.
        """
        with log_context(channel="email", campaign_id=job.campaign_id):
            try:
                provider, company_name = await self._email_context()
            except ConfigurationMissingError as exc:
                await self._record_email(job.to, job.subject, job.message, job, is_bulk=job.is_bulk, error=exc.detail)
                return self._skip_single("email", job.to, exc)

            attachments = await self._load_attachments(job.attachments)
            result, exc = await self._send_email(
                provider,
                company_name,
                job.to,
                job.subject,
                job.message,
                job,
                is_bulk=job.is_bulk,
                attachments=attachments,
            )
            if exc is not None:
                delivery_job_total.labels(channel="email", kind="single", status="failed").inc()
                raise exc
            delivery_job_total.labels(channel="email", kind="single", status="sent").inc()
            return SingleResult(recipient=job.to, message_id=result.message_id)

    async def process_bulk_email_job(self, job: BulkEmailJob) -> BatchResult:
        """Send one batch of a campaign, collecting a result per recipient."""
        with log_context(
            channel="email",
            campaign_id=job.campaign_id,
            bulk_job_id=job.bulk_job_id,
            batch_number=job.batch_number,
        ):
            batch = BatchResult(batch_number=job.batch_number, total_batches=job.total_batches)
            try:
                provider, company_name = await self._email_context()
            except NotificationError as exc:
                for recipient in job.recipients:
                    await self._record_email(recipient, job.subject, job.message, job, is_bulk=True, error=exc.detail)
                    batch.results.append(RecipientResult(recipient=recipient, success=False, error=exc.detail))
                self._finish_batch("email", batch)
                return batch

            attachments = await self._load_attachments(job.attachments)
            for recipient in job.recipients:
                result, _ = await self._send_email(
                    provider,
                    company_name,
                    recipient,
                    job.subject,
                    job.message,
                    job,
                    is_bulk=True,
                    attachments=attachments,
                )
                batch.results.append(result)
            self._finish_batch("email", batch)
            return batch

    async def _email_context(self) -> tuple[BaseEmailProvider, str]:
        config = await self._settings.mail_relay_config()
        return self._email_provider_factory(config), await self._settings.company_name()

    async def _send_email(
        self,
        provider: BaseEmailProvider,
        company_name: str,
        recipient: str,
        subject: str,
        message: str,
        job: EmailJob | BulkEmailJob,
        *,
        is_bulk: bool,
        attachments: list[EmailAttachment] | None = None,
    ) -> tuple[RecipientResult, NotificationError | None]:
        body_html, body_text = render_email_bodies(
            self._renderer.with_company(company_name), message, subject=subject, title=subject
        )
        try:
            email = EmailMessage(
                to=[recipient],
                subject=subject,
                body_html=body_html,
                body_text=body_text,
                attachments=attachments or [],
            )
        except ValidationError:
            exc = RecipientValidationError(
                f"Invalid email address: {recipient}", channel="email", recipient=recipient
            )
            await self._record_email(recipient, subject, message, job, is_bulk=is_bulk, error=exc.detail)
            return RecipientResult(recipient=recipient, success=False, error=exc.detail), exc

        result = await provider.send(email)
        await self._record_email(
            recipient,
            subject,
            message,
            job,
            is_bulk=is_bulk,
            error=result.error if not result.success else None,
            message_id=result.message_id,
        )
        return (
            RecipientResult(
                recipient=recipient,
                success=result.success,
                message_id=result.message_id,
                error=result.error if not result.success else None,
            ),
            result.to_exception(),
        )

    async def _record_email(
        self,
        recipient: str,
        subject: str,
        message: str,
        job: EmailJob | BulkEmailJob,
        *,
        is_bulk: bool,
        error: str | None,
        message_id: str | None = None,
    ) -> None:
        await self._ledger.record_quietly(
            DeliveryAttempt(
                channel="email",
                recipient=recipient,
                subject=subject,
                message=message,
                success=error is None,
                provider_message_id=message_id,
                error=error,
                campaign_id=job.campaign_id,
                bulk_job_id=job.bulk_job_id,
                is_bulk=is_bulk,
                sent_by=job.sent_by,
            )
        )

    # ------------------------------------------------------------------
    # SMS
    # ------------------------------------------------------------------

    async def process_sms_job(self, job: SmsJob) -> SingleResult:
        """Send one SMS.

        Returns an unsuccessful result, without raising, when the gateway is
        not configured.

        Raises:
            NotificationError: Any validation or gateway failure, after the
                FAILED ledger row has been written.
        """
        with log_context(channel="sms", campaign_id=job.campaign_id, distributor_id=job.distributor_id):
            try:
                credentials = await self._settings.sms_gateway_config()
            except ConfigurationMissingError as exc:
                await self._record_sms(job.to, job.message, job, is_bulk=job.is_bulk, error=exc.detail)
                return self._skip_single("sms", job.to, exc)
            async with self._sms_client_factory() as client:
                result, exc = await self._send_sms(client, credentials, job.to, job.message, job, is_bulk=job.is_bulk)
            if exc is not None:
                delivery_job_total.labels(channel="sms", kind="single", status="failed").inc()
                raise exc
            delivery_job_total.labels(channel="sms", kind="single", status="sent").inc()
            return SingleResult(recipient=job.to, message_id=result.message_id)

    async def process_bulk_sms_job(self, job: BulkSmsJob) -> BatchResult:
        """Send one batch of an SMS campaign, collecting a result per recipient."""
        with log_context(
            channel="sms",
            campaign_id=job.campaign_id,
            distributor_id=job.distributor_id,
            bulk_job_id=job.bulk_job_id,
            batch_number=job.batch_number,
        ):
            batch = BatchResult(batch_number=job.batch_number, total_batches=job.total_batches)
            try:
                credentials = await self._settings.sms_gateway_config()
            except NotificationError as exc:
                for recipient in job.recipients:
                    await self._record_sms(recipient, job.message, job, is_bulk=True, error=exc.detail)
                    batch.results.append(RecipientResult(recipient=recipient, success=False, error=exc.detail))
                self._finish_batch("sms", batch)
                return batch

            async with self._sms_client_factory() as client:
                for recipient in job.recipients:
                    result, _ = await self._send_sms(client, credentials, recipient, job.message, job, is_bulk=True)
                    batch.results.append(result)
            self._finish_batch("sms", batch)
            return batch

    async def _send_sms(
        self,
        client: SmsGatewayClient,
        credentials: SmsCredentials,
        recipient: str,
        message: str,
        job: SmsJob | BulkSmsJob,
        *,
        is_bulk: bool,
    ) -> tuple[RecipientResult, NotificationError | None]:
        result = await client.send(recipient, message, credentials)
        cost = result.cost
        if result.success and cost is None:
            cost = get_notification_settings().default_sms_cost
        await self._record_sms(
            recipient,
            message,
            job,
            is_bulk=is_bulk,
            error=result.error if not result.success else None,
            message_id=result.message_id,
            cost=cost,
        )
        return (
            RecipientResult(
                recipient=recipient,
                success=result.success,
                message_id=result.message_id,
                error=result.error if not result.success else None,
            ),
            result.to_exception(),
        )

    async def _record_sms(
        self,
        recipient: str,
        message: str,
        job: SmsJob | BulkSmsJob,
        *,
        is_bulk: bool,
        error: str | None,
        message_id: str | None = None,
        cost: float | None = None,
    ) -> None:
        await self._ledger.record_quietly(
            DeliveryAttempt(
                channel="sms",
                recipient=recipient,
                message=message,
                success=error is None,
                provider_message_id=message_id,
                error=error,
                cost=cost,
                campaign_id=job.campaign_id,
                distributor_id=job.distributor_id,
                bulk_job_id=job.bulk_job_id,
                is_bulk=is_bulk,
                sent_by=job.sent_by,
            )
        )

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    @staticmethod
    def _skip_single(channel: str, recipient: str, exc: ConfigurationMissingError) -> SingleResult:
        logger.warning(
            f"{channel.upper()} job dropped, configuration missing",
            extra={"recipient": recipient, "missing_keys": exc.missing_keys, "error": exc.detail},
        )
        delivery_job_total.labels(channel=channel, kind="single", status="skipped").inc()
        return SingleResult(success=False, recipient=recipient, error=exc.detail)

    @staticmethod
    def _finish_batch(channel: str, batch: BatchResult) -> None:
        delivery_job_total.labels(
            channel=channel,
            kind="bulk",
            status="sent" if batch.failed == 0 else "failed",
        ).inc()
        delivery_job_recipients_total.labels(channel=channel, status="sent").inc(batch.sent)
        delivery_job_recipients_total.labels(channel=channel, status="failed").inc(batch.failed)
        logger.info(
            f"{channel.upper()} batch {batch.batch_number}/{batch.total_batches} completed",
            extra={"sent": batch.sent, "failed": batch.failed},
        )


_delivery_job_processor: DeliveryJobProcessor | None = None


def get_delivery_job_processor() -> DeliveryJobProcessor:
    global _delivery_job_processor
    if _delivery_job_processor is None:
        _delivery_job_processor = DeliveryJobProcessor()
    return _delivery_job_processor
