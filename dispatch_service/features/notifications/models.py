"""Notification records and templates."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from dispatch_service.core.database import Base, TimestampMixin, UUIDPKMixin
from dispatch_service.features.notifications.schemas import NotificationStatus


class JSONEncodedText(TypeDecorator[Any]):
    """Stores a JSON value as text.

    Records written by older clients hold ``channels`` and ``data`` as
    serialized strings, so the column type stays ``TEXT`` on every backend.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        if value is None:
            return None
        return json.dumps(value, default=str)

    def process_result_value(self, value: str | None, dialect: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return json.loads(value)
        except ValueError:
            return None


class Notification(Base, UUIDPKMixin, TimestampMixin):
    """One notification addressed to one user.

    ``channels`` is the set the recipient's preferences allowed when the
    record was created. Only ``status`` and the timestamps change afterwards.
    """

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    type: Mapped[str] = mapped_column(String(50), index=True)
    title: Mapped[str] = mapped_column(String(255))
    message: Mapped[str] = mapped_column(Text)
    channels: Mapped[list[str]] = mapped_column(JSONEncodedText, default=list)
    status: Mapped[str] = mapped_column(
        String(16),
        default=NotificationStatus.PENDING.value,
        index=True,
    )
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONEncodedText, nullable=True)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, status={self.status})>"


class NotificationTemplate(Base, UUIDPKMixin, TimestampMixin):
    """Reusable notification content with ``{{variable}}`` placeholders."""

    __tablename__ = "notification_templates"

    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    type: Mapped[str] = mapped_column(String(50))
    subject: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text)
    channels: Mapped[list[str] | None] = mapped_column(JSONEncodedText, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<NotificationTemplate(name={self.name}, active={self.is_active})>"
