"""Fresh-read access to the runtime key-value settings store.

Every call opens a short session and reads the current value, so credential
or flag changes take effect on the very next send. Reads are independent and
need no locking. A failing read is logged and answered with the caller's
default; it never propagates into a delivery.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, get_args

from dispatch_service.core.exceptions import ConfigurationMissingError
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.settings_store.repository import (
    SystemSettingRepository,
    get_system_setting_repository,
)
from dispatch_service.infra.email.schemas import SmtpConfig, SmtpEncryption
from dispatch_service.infra.sms.client import SmsCredentials

if TYPE_CHECKING:
    from dispatch_service.core.database import SessionFactory

logger = logging.getLogger(__name__)

DEFAULT_COMPANY_NAME = "AdPools Group"
DEFAULT_SMTP_PORT = 587
SUPPORTED_SMS_PROVIDER = "deywuro"


@dataclass(frozen=True, slots=True)
class QueueConfig:
    """Queue switches and batching parameters for bulk campaigns."""

    email_enabled: bool = True
    sms_enabled: bool = True
    email_batch_size: int = 10
    email_delay_ms: int = 1000
    sms_batch_size: int = 10
    sms_delay_ms: int = 2000

    def batch_size(self, channel: str) -> int:
        return self.email_batch_size if channel == "email" else self.sms_batch_size

    def delay_ms(self, channel: str) -> int:
        return self.email_delay_ms if channel == "email" else self.sms_delay_ms

    def enabled(self, channel: str) -> bool:
        return self.email_enabled if channel == "email" else self.sms_enabled


class SettingsReader:
    """Typed reader over the ``system_settings`` table.

    Example:
        reader = SettingsReader(session_factory)
        if await reader.is_type_enabled("EMAIL", "STOCK_LOW"):
            config = await reader.mail_relay_config()
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        repository: SystemSettingRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._repository = repository or get_system_setting_repository()

    def _sessions(self) -> SessionFactory:
        if self._session_factory is None:
            from dispatch_service.infra.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    async def get(self, key: str, default: str | None = None) -> str | None:
        """Return the stored value for ``key`` or ``default`` when absent or unreadable."""
        try:
            async with self._sessions()() as session:
                value = await self._repository.get_value(session, key)
        except Exception:
            logger.warning(
                "Failed to read setting, using default",
                exc_info=True,
                extra={"key": key},
            )
            return default
        return default if value is None else value

    async def get_bool(self, key: str, default: bool = False) -> bool:
        value = await self.get(key)
        if value is None:
            return default
        return value.strip().lower() == "true"

    async def get_int(self, key: str, default: int) -> int:
        value = await self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Setting is not an integer, using default",
                extra={"key": key, "value": value, "default": default},
            )
            return default

    async def is_type_enabled(self, channel_prefix: str, notification_type: str) -> bool:
        """Per-type channel gate, e.g. ``EMAIL_STOCK_LOW == "true"``."""
        return await self.get_bool(f"{channel_prefix}_{notification_type.upper()}")

    async def company_name(self) -> str:
        return await self.get("company_name", DEFAULT_COMPANY_NAME) or DEFAULT_COMPANY_NAME

    async def smtp_from_name(self) -> str:
        """Sender display name: SMTP_FROM_NAME, then company_name, then the service default."""
        from_name = await self.get("SMTP_FROM_NAME")
        if from_name:
            return from_name
        company = await self.get("company_name")
        return company or get_notification_settings().default_from_name

    async def mail_relay_config(self) -> SmtpConfig:
        """Resolve SMTP configuration.

        Raises:
            ConfigurationMissingError: If host, username, password or from-address is unset.
        """
        host = await self.get("SMTP_HOST")
        username = await self.get("SMTP_USERNAME")
        password = await self.get("SMTP_PASSWORD")
        from_address = await self.get("SMTP_FROM_ADDRESS")

        missing = [
            key
            for key, value in (
                ("SMTP_HOST", host),
                ("SMTP_USERNAME", username),
                ("SMTP_PASSWORD", password),
                ("SMTP_FROM_ADDRESS", from_address),
            )
            if not value
        ]
        if missing:
            raise ConfigurationMissingError(
                "SMTP configuration incomplete",
                channel="email",
                missing_keys=missing,
            )

        encryption = (await self.get("SMTP_ENCRYPTION", "tls") or "tls").lower()
        if encryption not in get_args(SmtpEncryption):
            encryption = "tls"

        return SmtpConfig(
            host=host,  # type: ignore[arg-type]
            port=await self.get_int("SMTP_PORT", DEFAULT_SMTP_PORT),
            username=username,  # type: ignore[arg-type]
            password=password,  # type: ignore[arg-type]
            from_address=from_address,  # type: ignore[arg-type]
            from_name=await self.smtp_from_name(),
            encryption=encryption,  # type: ignore[arg-type]
        )

    async def sms_enabled(self) -> bool:
        return await self.get_bool("SMS_ENABLED")

    async def sms_gateway_config(self) -> SmsCredentials:
        """Resolve SMS gateway credentials.

        Raises:
            ConfigurationMissingError: If the provider is unsupported or credentials are unset.
        """
        provider = (await self.get("SMS_PROVIDER", SUPPORTED_SMS_PROVIDER) or "").lower()
        if provider != SUPPORTED_SMS_PROVIDER:
            raise ConfigurationMissingError(
                f"Unsupported SMS provider: {provider or '<empty>'}",
                channel="sms",
                missing_keys=["SMS_PROVIDER"],
            )

        username = await self.get("SMS_USERNAME")
        password = await self.get("SMS_PASSWORD")
        missing = [
            key for key, value in (("SMS_USERNAME", username), ("SMS_PASSWORD", password)) if not value
        ]
        if missing:
            raise ConfigurationMissingError(
                "SMS gateway credentials not configured",
                channel="sms",
                missing_keys=missing,
            )

        sender_id = await self.get("SMS_SENDER_ID") or get_notification_settings().default_sender_id
        return SmsCredentials(
            username=username,  # type: ignore[arg-type]
            password=password,  # type: ignore[arg-type]
            sender_id=sender_id,
        )

    async def queue_config(self) -> QueueConfig:
        """Queue switches and batching; each value falls back to its default on error."""
        defaults = QueueConfig()
        return QueueConfig(
            email_enabled=await self.get_bool("QUEUE_EMAIL_ENABLED", defaults.email_enabled),
            sms_enabled=await self.get_bool("QUEUE_SMS_ENABLED", defaults.sms_enabled),
            email_batch_size=max(1, await self.get_int("QUEUE_EMAIL_BATCH_SIZE", defaults.email_batch_size)),
            email_delay_ms=max(0, await self.get_int("QUEUE_EMAIL_DELAY_MS", defaults.email_delay_ms)),
            sms_batch_size=max(1, await self.get_int("QUEUE_SMS_BATCH_SIZE", defaults.sms_batch_size)),
            sms_delay_ms=max(0, await self.get_int("QUEUE_SMS_DELAY_MS", defaults.sms_delay_ms)),
        )
