"""Recipient profile model.

User accounts are owned by the wider application; this service only reads
the columns it needs to address and filter notifications.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_service.core.database import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Notification recipient."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(50), index=True, default="USER")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notification_preferences: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
        comment="Legacy untyped preference blob; migrated on read",
    )
    login_notifications_email: Mapped[bool] = mapped_column(Boolean, default=False)
    login_notifications_sms: Mapped[bool] = mapped_column(Boolean, default=False)

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or self.id

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
