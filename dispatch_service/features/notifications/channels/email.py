"""Email channel dispatcher over the SMTP relay."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError

from dispatch_service.core.exceptions import ConfigurationMissingError, RecipientValidationError
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.messaging import DeliveryAttempt, DeliveryLedger
from dispatch_service.features.notifications.schemas import Channel, ChannelOutcome
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.infra.email import (
    EmailMessage,
    SMTPProvider,
    get_email_renderer,
    render_email_bodies,
)
from dispatch_service.infra.ratelimit import get_rate_limiter_registry

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from dispatch_service.features.notifications.schemas import NotificationTrigger
    from dispatch_service.infra.email import BaseEmailProvider, JinjaEmailRenderer, SmtpConfig
    from dispatch_service.infra.ratelimit import ChannelRateLimiter

    type EmailProviderFactory = Callable[[SmtpConfig], BaseEmailProvider]

logger = logging.getLogger(__name__)


class EmailChannelDispatcher:
    """Sends a notification email through the relay configured in the settings store.

    Relay credentials are resolved on every delivery, so a change in the
    settings store applies to the next email without a restart.
    """

    channel = Channel.EMAIL

    def __init__(
        self,
        settings_reader: SettingsReader | None = None,
        *,
        ledger: DeliveryLedger | None = None,
        limiter: ChannelRateLimiter | None = None,
        provider_factory: EmailProviderFactory | None = None,
        renderer: JinjaEmailRenderer | None = None,
    ) -> None:
        self._settings = settings_reader or SettingsReader()
        self._ledger = ledger or DeliveryLedger()
        self._limiter = limiter or get_rate_limiter_registry().email
        self._provider_factory = provider_factory or self._default_provider
        self._renderer = renderer or get_email_renderer()

    def _default_provider(self, config: SmtpConfig) -> BaseEmailProvider:
        return SMTPProvider(
            config,
            timeout=get_notification_settings().smtp_timeout,
            limiter=self._limiter,
        )

    async def deliver(
        self,
        address: str | None,
        trigger: NotificationTrigger,
        *,
        notification_id: UUID | None = None,
    ) -> ChannelOutcome:
        if not address:
            return ChannelOutcome.skipped(self.channel, "No email address")

        gate_type = trigger.gate_type
        if not await self._settings.is_type_enabled("EMAIL", gate_type):
            logger.info(
                "Email notifications disabled for type",
                extra={"notification_type": gate_type, "notification_id": str(notification_id)},
            )
            return ChannelOutcome.skipped(self.channel, f"EMAIL_{gate_type} is disabled")

        try:
            config = await self._settings.mail_relay_config()
        except ConfigurationMissingError as exc:
            logger.warning(
                "SMTP configuration not found, skipping email",
                extra={"missing_keys": exc.missing_keys},
            )
            return ChannelOutcome.skipped(self.channel, exc.detail)

        renderer = self._renderer.with_company(await self._settings.company_name())
        body_html, body_text = render_email_bodies(
            renderer, trigger.message, subject=trigger.title, title=trigger.title
        )
        try:
            message = EmailMessage(
                to=[address], subject=trigger.title, body_html=body_html, body_text=body_text
            )
        except ValidationError:
            error = RecipientValidationError(
                f"Invalid email address: {address}", channel="email", recipient=address
            )
            await self._record(address, trigger, success=False, error=error.detail)
            return ChannelOutcome.failed(self.channel, error.detail, error)

        result = await self._provider_factory(config).send(message)
        await self._record(
            address,
            trigger,
            success=result.success,
            provider_message_id=result.message_id,
            error=result.error,
        )
        if result.success:
            return ChannelOutcome.sent(self.channel, result.message_id)
        return ChannelOutcome.failed(
            self.channel, result.error or "Email delivery failed", result.to_exception()
        )

    async def _record(
        self,
        address: str,
        trigger: NotificationTrigger,
        *,
        success: bool,
        provider_message_id: str | None = None,
        error: str | None = None,
    ) -> None:
        await self._ledger.record_quietly(
            DeliveryAttempt(
                channel="email",
                recipient=address,
                subject=trigger.title,
                message=trigger.message,
                success=success,
                provider_message_id=provider_message_id,
                error=error,
            )
        )
