"""Key-value runtime settings table."""

from __future__ import annotations

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_service.core.database import Base, TimestampMixin, UUIDPKMixin


class SystemSetting(Base, UUIDPKMixin, TimestampMixin):
    """One runtime setting, e.g. ``SMTP_HOST`` or ``EMAIL_STOCK_LOW``.

    Values are stored as text; flags use the literal string ``"true"``.
    """

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), default="general")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<SystemSetting(key={self.key})>"
