"""Delivery job payloads and results.

Jobs are serialized onto the broker as plain dicts (``model_dump``) and
validated again when a worker picks them up.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Job(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    campaign_id: str | None = None
    sent_by: str | None = None
    # set on every batch of a bulk campaign and copied onto its ledger rows
    bulk_job_id: str | None = None


class JobAttachment(BaseModel):
    """File the worker downloads from ``url`` and attaches to the email."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1)
    content_type: str = "application/octet-stream"


class EmailJob(_Job):
    """One email to one recipient."""

    channel: Literal["email"] = "email"
    to: str = Field(min_length=3, max_length=255)
    subject: str = Field(max_length=998)
    message: str
    is_bulk: bool = False
    attachments: list[JobAttachment] = Field(default_factory=list)


class SmsJob(_Job):
    """One SMS to one recipient."""

    channel: Literal["sms"] = "sms"
    to: str = Field(min_length=1, max_length=32)
    message: str
    distributor_id: str | None = None
    is_bulk: bool = False


class BulkEmailJob(_Job):
    """One batch of a bulk email campaign."""

    channel: Literal["email"] = "email"
    recipients: list[str] = Field(min_length=1)
    subject: str = Field(max_length=998)
    message: str
    attachments: list[JobAttachment] = Field(default_factory=list)
    batch_number: int = Field(default=1, ge=1)
    total_batches: int = Field(default=1, ge=1)


class BulkSmsJob(_Job):
    """One batch of a bulk SMS campaign."""

    channel: Literal["sms"] = "sms"
    recipients: list[str] = Field(min_length=1)
    message: str
    distributor_id: str | None = None
    batch_number: int = Field(default=1, ge=1)
    total_batches: int = Field(default=1, ge=1)


class RecipientResult(BaseModel):
    recipient: str
    success: bool
    message_id: str | None = None
    error: str | None = None


class BatchResult(BaseModel):
    """What a batch job did for each of its recipients."""

    batch_number: int
    total_batches: int
    results: list[RecipientResult] = Field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.sent


class SingleResult(BaseModel):
    """Return value of a single-recipient job that should not be retried.

    ``success`` is false only when the job was dropped for missing
    configuration; every other failure raises.
    """

    success: bool = True
    recipient: str
    message_id: str | None = None
    error: str | None = None


SEND_EMAIL_TASK = "notifications.send_email"
SEND_BULK_EMAIL_TASK = "notifications.send_bulk_email"
SEND_SMS_TASK = "notifications.send_sms"
SEND_BULK_SMS_TASK = "notifications.send_bulk_sms"
