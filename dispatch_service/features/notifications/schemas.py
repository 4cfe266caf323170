"""Notification types, triggers and dispatch outcomes.

Also holds the request/response models used by the HTTP router.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from dispatch_service.core.exceptions import ChannelSuppressedError, NotificationError


def normalize_key(value: object) -> str:
    """Lower-case and strip separators so ``IN_APP``, ``in_app`` and ``inApp`` compare equal."""
    return str(value).strip().lower().replace("_", "").replace("-", "")


class Channel(StrEnum):
    """Delivery medium."""

    IN_APP = "IN_APP"
    EMAIL = "EMAIL"
    SMS = "SMS"

    @property
    def preference_key(self) -> str:
        return self.value.lower()

    @property
    def is_external(self) -> bool:
        """Whether delivery needs a provider call (everything but in-app)."""
        return self is not Channel.IN_APP

    @classmethod
    def parse(cls, value: object) -> Channel | None:
        """Match ``value`` against the channel names, ignoring case and separators."""
        if isinstance(value, cls):
            return value
        wanted = normalize_key(value)
        for channel in cls:
            if normalize_key(channel.value) == wanted:
                return channel
        return None


class NotificationType(StrEnum):
    SYSTEM_ALERT = "SYSTEM_ALERT"
    STOCK_LOW = "STOCK_LOW"
    STOCK_OUT = "STOCK_OUT"
    ORDER_STATUS = "ORDER_STATUS"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    USER_INVITED = "USER_INVITED"
    PASSWORD_RESET = "PASSWORD_RESET"
    SECURITY_ALERT = "SECURITY_ALERT"
    LEAD_CREATED = "LEAD_CREATED"
    LEAD_ASSIGNED = "LEAD_ASSIGNED"
    LEAD_OWNER_NOTIFICATION = "LEAD_OWNER_NOTIFICATION"
    LEAD_WELCOME = "LEAD_WELCOME"
    TASK_COMMENT = "TASK_COMMENT"
    LOGIN_ALERT = "LOGIN_ALERT"
    CUSTOM = "CUSTOM"

    @classmethod
    def parse(cls, value: object) -> NotificationType | None:
        if isinstance(value, cls):
            return value
        wanted = normalize_key(value)
        for member in cls:
            if normalize_key(member.value) == wanted:
                return member
        return None


class NotificationStatus(StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationTrigger(BaseModel):
    """What to notify about and over which channels.

    Example:
        trigger = NotificationTrigger(
            type=NotificationType.STOCK_LOW,
            title="Low Stock Alert",
            message="Widget is running low",
            channels=[Channel.IN_APP, Channel.EMAIL],
        )
    """

    model_config = ConfigDict(frozen=True)

    type: NotificationType
    title: str = Field(min_length=1, max_length=255)
    message: str
    channels: list[Channel] = Field(default_factory=list)
    data: dict[str, Any] | None = None
    scheduled_at: datetime | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> Any:
        return NotificationType.parse(value) or value

    @field_validator("channels", mode="before")
    @classmethod
    def _parse_channels(cls, value: Any) -> Any:
        if not isinstance(value, list | tuple):
            return value
        channels: list[Any] = []
        for item in value:
            channel = Channel.parse(item) or item
            if channel not in channels:
                channels.append(channel)
        return channels

    @property
    def gate_type(self) -> str:
        """Type name used for the ``EMAIL_<TYPE>`` / ``SMS_<TYPE>`` switches.

        A ``CUSTOM`` trigger may carry its real type in ``data``.
        """
        data = self.data or {}
        override = data.get("notification_type") or data.get("notificationType")
        return str(override).upper() if override else self.type.value


# ============================================================================
# Outcomes
# ============================================================================


class SuppressionReason(StrEnum):
    DISABLED = "disabled"
    TYPE_DISABLED = "type-disabled"
    QUIET_HOURS = "quiet-hours"
    NO_CHANNELS = "no-channels"


class ChannelStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class DispatchStatus(StrEnum):
    SUPPRESSED = "suppressed"
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ChannelOutcome:
    """Result of delivering one notification over one channel."""

    channel: Channel
    status: ChannelStatus
    provider_message_id: str | None = None
    error: str | None = None
    exception: NotificationError | None = field(default=None, compare=False, repr=False)

    @property
    def attempted(self) -> bool:
        return self.status is not ChannelStatus.SKIPPED

    @classmethod
    def sent(cls, channel: Channel, provider_message_id: str | None = None) -> ChannelOutcome:
        return cls(channel=channel, status=ChannelStatus.SENT, provider_message_id=provider_message_id)

    @classmethod
    def failed(
        cls,
        channel: Channel,
        error: str,
        exception: NotificationError | None = None,
    ) -> ChannelOutcome:
        return cls(channel=channel, status=ChannelStatus.FAILED, error=error, exception=exception)

    @classmethod
    def skipped(cls, channel: Channel, reason: str) -> ChannelOutcome:
        return cls(channel=channel, status=ChannelStatus.SKIPPED, error=reason)


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """What happened to one dispatch request.

    Coordinator operations return this instead of raising. Callers that want
    an exception opt in with ``raise_for_status()``.
    """

    status: DispatchStatus
    user_id: str | None = None
    recipient: str | None = None
    notification_id: UUID | None = None
    reason: SuppressionReason | None = None
    channels: tuple[ChannelOutcome, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.DELIVERED

    def channel(self, channel: Channel) -> ChannelOutcome | None:
        return next((outcome for outcome in self.channels if outcome.channel is channel), None)

    def raise_for_status(self) -> None:
        """Raise the taxonomy exception matching a non-delivered outcome.

        Raises:
            ChannelSuppressedError: The recipient's preferences vetoed the dispatch.
            NotificationError: Delivery failed, was skipped or errored.
        """
        match self.status:
            case DispatchStatus.DELIVERED:
                return
            case DispatchStatus.SUPPRESSED:
                reason = self.reason.value if self.reason else "unknown"
                raise ChannelSuppressedError(reason, user_id=self.user_id)
            case DispatchStatus.FAILED:
                for outcome in self.channels:
                    if outcome.exception is not None:
                        raise outcome.exception
                raise NotificationError(self.error or "Notification delivery failed")
            case _:
                raise NotificationError(
                    self.error or f"Notification {self.status.value}",
                    extra={"status": self.status.value},
                )


# ============================================================================
# API schemas
# ============================================================================


class TriggerRequest(BaseModel):
    type: NotificationType
    title: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)
    channels: list[Channel] = Field(min_length=1)
    data: dict[str, Any] | None = None
    scheduled_at: datetime | None = None

    def to_trigger(self) -> NotificationTrigger:
        return NotificationTrigger.model_validate(self.model_dump())


class EmailDispatchRequest(BaseModel):
    email: EmailStr
    trigger: TriggerRequest


class TemplateDispatchRequest(BaseModel):
    template_name: str = Field(min_length=1, max_length=100)
    variables: dict[str, Any] = Field(default_factory=dict)


class ChannelOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel: Channel
    status: ChannelStatus
    provider_message_id: str | None = None
    error: str | None = None


class DispatchOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: DispatchStatus
    user_id: str | None = None
    recipient: str | None = None
    notification_id: UUID | None = None
    reason: SuppressionReason | None = None
    channels: list[ChannelOutcomeResponse] = Field(default_factory=list)
    error: str | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    type: str
    title: str
    message: str
    channels: list[str]
    status: NotificationStatus
    data: dict[str, Any] | None = None
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    read_at: datetime | None = None
    created_at: datetime


class AttachmentRequest(BaseModel):
    """A file the worker downloads from ``url`` and attaches to every email."""

    filename: str = Field(min_length=1, max_length=255)
    url: str = Field(min_length=1)
    content_type: str = "application/octet-stream"


class BulkEmailRequest(BaseModel):
    recipients: list[EmailStr] = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=998)
    message: str = Field(min_length=1)
    attachments: list[AttachmentRequest] = Field(default_factory=list)
    campaign_id: str | None = None
    sent_by: str | None = None


class BulkSmsRequest(BaseModel):
    recipients: list[str] = Field(min_length=1)
    message: str = Field(min_length=1, max_length=1600)
    campaign_id: str | None = None
    distributor_id: str | None = None
    sent_by: str | None = None


class BulkEnqueueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    channel: str
    total_batches: int
    total_recipients: int
    batch_task_ids: list[str]
