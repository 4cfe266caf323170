"""Writer for the append-only delivery ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from dispatch_service.core.exceptions import PersistenceError
from dispatch_service.features.messaging.models import (
    DeliveryStatus,
    DistributorSmsLog,
    EmailMessageLog,
    SmsMessageLog,
)

if TYPE_CHECKING:
    from dispatch_service.core.database import Base, SessionFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryAttempt:
    """Everything the ledger needs to know about one physical send."""

    channel: str
    recipient: str
    message: str
    success: bool
    subject: str | None = None
    provider_message_id: str | None = None
    error: str | None = None
    cost: float | None = None
    campaign_id: str | None = None
    distributor_id: str | None = None
    is_bulk: bool = False
    sent_by: str | None = None
    bulk_job_id: str | None = None

    @property
    def status(self) -> DeliveryStatus:
        return DeliveryStatus.SENT if self.success else DeliveryStatus.FAILED


@dataclass(frozen=True, slots=True)
class BulkJobProgress:
    """Ledger rows written so far for one bulk campaign."""

    bulk_job_id: str
    sent: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return self.sent + self.failed

    def progress(self, total_recipients: int | None) -> int | None:
        """Percent of ``total_recipients`` processed, or ``None`` when the total is unknown."""
        if not total_recipients:
            return None
        return min(100, round(self.processed * 100 / total_recipients))


class DeliveryLedger:
    """Appends one row per attempt, choosing the table from the attempt's linkage.

    - SMS with a ``distributor_id`` goes to ``distributor_sms``
    - other SMS goes to ``sms_messages`` (carrying ``campaign_id`` when set)
    - email goes to ``email_messages``
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory

    def _sessions(self) -> SessionFactory:
        if self._session_factory is None:
            from dispatch_service.infra.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    @staticmethod
    def build_row(attempt: DeliveryAttempt, *, now: datetime | None = None) -> Base:
        now = now or datetime.now(UTC)
        sent_at = now if attempt.success else None
        failed_at = None if attempt.success else now
        cost = Decimal(str(attempt.cost)) if attempt.cost is not None else None

        if attempt.channel == "sms" and attempt.distributor_id:
            return DistributorSmsLog(
                distributor_id=attempt.distributor_id,
                to=attempt.recipient,
                message=attempt.message,
                status=attempt.status.value,
                provider_message_id=attempt.provider_message_id,
                error_message=attempt.error,
                sent_at=sent_at,
                failed_at=failed_at,
                sent_by=attempt.sent_by,
                bulk_job_id=attempt.bulk_job_id,
            )
        if attempt.channel == "sms":
            return SmsMessageLog(
                recipient=attempt.recipient,
                message=attempt.message,
                status=attempt.status.value,
                provider="deywuro",
                provider_message_id=attempt.provider_message_id,
                cost=cost,
                error_message=attempt.error,
                sent_at=sent_at,
                failed_at=failed_at,
                campaign_id=attempt.campaign_id,
                bulk_job_id=attempt.bulk_job_id,
                is_bulk=attempt.is_bulk,
                sent_by=attempt.sent_by,
            )
        return EmailMessageLog(
            recipient=attempt.recipient,
            subject=attempt.subject or "",
            message=attempt.message,
            status=attempt.status.value,
            provider="smtp",
            provider_message_id=attempt.provider_message_id,
            error_message=attempt.error,
            sent_at=sent_at,
            failed_at=failed_at,
            campaign_id=attempt.campaign_id,
            bulk_job_id=attempt.bulk_job_id,
            is_bulk=attempt.is_bulk,
            sent_by=attempt.sent_by,
        )

    async def record(self, attempt: DeliveryAttempt) -> None:
        """Insert and commit the ledger row for ``attempt``.

        Raises:
            PersistenceError: If the row could not be written.
        """
        row = self.build_row(attempt)
        table = row.__tablename__
        try:
            async with self._sessions()() as session:
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Failed to write {table} ledger row: {exc}", table=table
            ) from exc

        logger.debug(
            "Delivery attempt recorded",
            extra={"table": table, "status": attempt.status.value, "channel": attempt.channel},
        )

    async def record_quietly(self, attempt: DeliveryAttempt) -> bool:
        """Like ``record`` but logs a persistence failure instead of raising it."""
        try:
            await self.record(attempt)
        except PersistenceError as exc:
            logger.error(
                "Delivery ledger write failed",
                extra={
                    "table": exc.extra.get("table"),
                    "channel": attempt.channel,
                    "recipient": attempt.recipient,
                    "error": exc.detail,
                },
            )
            return False
        return True

    async def bulk_job_progress(self, bulk_job_id: str) -> BulkJobProgress:
        """Count SENT and FAILED rows tagged with ``bulk_job_id`` across the ledger tables.

        Raises:
            PersistenceError: If the ledger could not be read.
        """
        counts = {DeliveryStatus.SENT.value: 0, DeliveryStatus.FAILED.value: 0}
        try:
            async with self._sessions()() as session:
                for model in (EmailMessageLog, SmsMessageLog, DistributorSmsLog):
                    rows = await session.execute(
                        select(model.status, func.count())
                        .where(model.bulk_job_id == bulk_job_id)
                        .group_by(model.status)
                    )
                    for status, count in rows.all():
                        counts[status] = counts.get(status, 0) + count
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read bulk job progress: {exc}") from exc

        return BulkJobProgress(
            bulk_job_id=bulk_job_id,
            sent=counts[DeliveryStatus.SENT.value],
            failed=counts[DeliveryStatus.FAILED.value],
        )
