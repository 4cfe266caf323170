"""Append-only delivery ledger tables.

One row per physical send attempt. Rows are inserted by the dispatch
coordinator and the queue workers and never updated afterwards.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_service.core.database import Base, CreatedAtMixin, UUIDPKMixin


class DeliveryStatus(StrEnum):
    SENT = "SENT"
    FAILED = "FAILED"


class EmailMessageLog(Base, UUIDPKMixin, CreatedAtMixin):
    """Ledger row for one email send."""

    __tablename__ = "email_messages"

    recipient: Mapped[str] = mapped_column(String(255), index=True)
    subject: Mapped[str] = mapped_column(String(998))
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), index=True)
    provider: Mapped[str] = mapped_column(String(32), default="smtp")
    provider_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    campaign_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    bulk_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_bulk: Mapped[bool] = mapped_column(Boolean, default=False)
    sent_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class SmsMessageLog(Base, UUIDPKMixin, CreatedAtMixin):
    """Ledger row for one SMS send."""

    __tablename__ = "sms_messages"

    recipient: Mapped[str] = mapped_column(String(32), index=True)
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), index=True)
    provider: Mapped[str] = mapped_column(String(32), default="deywuro")
    provider_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    campaign_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    bulk_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_bulk: Mapped[bool] = mapped_column(Boolean, default=False)
    sent_by: Mapped[str | None] = mapped_column(String(64), nullable=True)


class DistributorSmsLog(Base, UUIDPKMixin, CreatedAtMixin):
    """Ledger row for an SMS sent on behalf of a distributor."""

    __tablename__ = "distributor_sms"

    distributor_id: Mapped[str] = mapped_column(String(64), index=True)
    bulk_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    to: Mapped[str] = mapped_column(String(32))
    message: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), index=True)
    provider_message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
