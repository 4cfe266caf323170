"""Tests for the append-only delivery ledger."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select

from dispatch_service.core.exceptions import PersistenceError
from dispatch_service.features.messaging import (
    BulkJobProgress,
    DeliveryAttempt,
    DeliveryLedger,
    DistributorSmsLog,
    EmailMessageLog,
    SmsMessageLog,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


class TestBuildRow:
    """Table routing and status stamping."""

    def test_email_attempt_goes_to_email_messages(self) -> None:
        row = DeliveryLedger.build_row(
            DeliveryAttempt(
                channel="email",
                recipient="buyer@example.com",
                subject="Low stock",
                message="Widget is low",
                success=True,
                provider_message_id="<1@smtp>",
                campaign_id="spring",
                is_bulk=True,
            ),
            now=NOW,
        )

        assert isinstance(row, EmailMessageLog)
        assert row.status == "SENT"
        assert row.sent_at == NOW
        assert row.failed_at is None
        assert row.campaign_id == "spring"
        assert row.is_bulk is True

    def test_plain_sms_goes_to_sms_messages(self) -> None:
        row = DeliveryLedger.build_row(
            DeliveryAttempt(channel="sms", recipient="0241234567", message="Hi", success=True, cost=0.03),
            now=NOW,
        )

        assert isinstance(row, SmsMessageLog)
        assert row.cost == Decimal("0.03")

    def test_distributor_sms_goes_to_distributor_table(self) -> None:
        row = DeliveryLedger.build_row(
            DeliveryAttempt(
                channel="sms",
                recipient="0241234567",
                message="Hi",
                success=False,
                error="Insufficient balance",
                distributor_id="dist-7",
                campaign_id="ignored-here",
            ),
            now=NOW,
        )

        assert isinstance(row, DistributorSmsLog)
        assert row.to == "0241234567"
        assert row.status == "FAILED"
        assert row.failed_at == NOW
        assert row.sent_at is None
        assert row.error_message == "Insufficient balance"

    def test_email_without_subject_stores_empty_subject(self) -> None:
        row = DeliveryLedger.build_row(
            DeliveryAttempt(channel="email", recipient="a@example.com", message="x", success=False, error="boom")
        )

        assert row.subject == ""
        assert row.failed_at is not None


class TestRecord:
    """Persistence through a session factory."""

    async def test_record_appends_one_row(self, session_factory) -> None:
        ledger = DeliveryLedger(session_factory)

        await ledger.record(
            DeliveryAttempt(channel="sms", recipient="0241234567", message="Hi", success=True, campaign_id="c1")
        )
        await ledger.record(
            DeliveryAttempt(channel="sms", recipient="0241234568", message="Hi", success=False, error="rejected")
        )

        async with session_factory() as session:
            rows = (await session.execute(select(SmsMessageLog).order_by(SmsMessageLog.recipient))).scalars().all()
        assert [(row.recipient, row.status) for row in rows] == [
            ("0241234567", "SENT"),
            ("0241234568", "FAILED"),
        ]

    async def test_write_failure_raises_persistence_error(self) -> None:
        from sqlalchemy.exc import OperationalError

        class BrokenSession:
            def add(self, row: object) -> None:
                return None

            async def commit(self) -> None:
                raise OperationalError("INSERT", {}, Exception("disk full"))

            async def __aenter__(self) -> BrokenSession:
                return self

            async def __aexit__(self, *exc: object) -> None:
                return None

        ledger = DeliveryLedger(lambda: BrokenSession())
        attempt = DeliveryAttempt(channel="email", recipient="a@example.com", message="x", success=True)

        with pytest.raises(PersistenceError) as exc_info:
            await ledger.record(attempt)
        assert exc_info.value.extra["table"] == "email_messages"

        assert await ledger.record_quietly(attempt) is False


class TestBulkJobProgress:
    """Progress counts for rows tagged with a bulk job id."""

    async def test_counts_rows_across_ledger_tables(self, session_factory) -> None:
        ledger = DeliveryLedger(session_factory)
        attempts = [
            DeliveryAttempt(channel="sms", recipient="0241234567", message="Hi", success=True, bulk_job_id="bulk-sms-1"),
            DeliveryAttempt(
                channel="sms",
                recipient="0241234568",
                message="Hi",
                success=False,
                error="rejected",
                bulk_job_id="bulk-sms-1",
            ),
            DeliveryAttempt(
                channel="sms",
                recipient="0241234569",
                message="Hi",
                success=True,
                distributor_id="dist-1",
                bulk_job_id="bulk-sms-1",
            ),
            DeliveryAttempt(channel="sms", recipient="0241234570", message="Hi", success=True, bulk_job_id="bulk-sms-2"),
            DeliveryAttempt(channel="sms", recipient="0241234571", message="Hi", success=True),
        ]
        for attempt in attempts:
            await ledger.record(attempt)

        progress = await ledger.bulk_job_progress("bulk-sms-1")

        assert progress == BulkJobProgress(bulk_job_id="bulk-sms-1", sent=2, failed=1)
        assert progress.processed == 3
        assert progress.progress(4) == 75

    async def test_unknown_job_has_no_rows(self, session_factory) -> None:
        progress = await DeliveryLedger(session_factory).bulk_job_progress("bulk-email-missing")

        assert (progress.sent, progress.failed) == (0, 0)

    @pytest.mark.parametrize(("total", "expected"), [(None, None), (0, None), (3, 67), (2, 100)])
    def test_progress_percentage(self, total: int | None, expected: int | None) -> None:
        assert BulkJobProgress(bulk_job_id="bulk-email-1", sent=1, failed=1).progress(total) == expected
