"""SMS channel dispatcher over the SMS aggregator gateway."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from dispatch_service.core.exceptions import ConfigurationMissingError
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.messaging import DeliveryAttempt, DeliveryLedger
from dispatch_service.features.notifications.schemas import Channel, ChannelOutcome
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.infra.ratelimit import get_rate_limiter_registry
from dispatch_service.infra.sms import SmsGatewayClient

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from dispatch_service.features.notifications.schemas import NotificationTrigger
    from dispatch_service.infra.ratelimit import ChannelRateLimiter

logger = logging.getLogger(__name__)


class SmsChannelDispatcher:
    """Sends a notification SMS when the gateway is switched on and configured.

    Three settings gate a send: ``SMS_<TYPE>``, ``SMS_ENABLED`` and a
    supported ``SMS_PROVIDER`` with credentials.
    """

    channel = Channel.SMS

    def __init__(
        self,
        settings_reader: SettingsReader | None = None,
        *,
        ledger: DeliveryLedger | None = None,
        limiter: ChannelRateLimiter | None = None,
        client_factory: Callable[[], SmsGatewayClient] | None = None,
    ) -> None:
        self._settings = settings_reader or SettingsReader()
        self._ledger = ledger or DeliveryLedger()
        self._limiter = limiter or get_rate_limiter_registry().sms
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> SmsGatewayClient:
        settings = get_notification_settings()
        return SmsGatewayClient(
            str(settings.sms_gateway_url),
            timeout=settings.sms_timeout,
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
            return ChannelOutcome.skipped(self.channel, "No phone number")

        gate_type = trigger.gate_type
        if not await self._settings.is_type_enabled("SMS", gate_type):
            logger.info(
                "SMS notifications disabled for type",
                extra={"notification_type": gate_type, "notification_id": str(notification_id)},
            )
            return ChannelOutcome.skipped(self.channel, f"SMS_{gate_type} is disabled")

        if not await self._settings.sms_enabled():
            logger.info("SMS notifications disabled")
            return ChannelOutcome.skipped(self.channel, "SMS_ENABLED is off")

        try:
            credentials = await self._settings.sms_gateway_config()
        except ConfigurationMissingError as exc:
            logger.warning(
                "SMS gateway not configured, skipping SMS",
                extra={"missing_keys": exc.missing_keys, "error": exc.detail},
            )
            return ChannelOutcome.skipped(self.channel, exc.detail)

        async with self._client_factory() as client:
            result = await client.send(address, trigger.message, credentials)

        cost = result.cost
        if result.success and cost is None:
            cost = get_notification_settings().default_sms_cost
        await self._ledger.record_quietly(
            DeliveryAttempt(
                channel="sms",
                recipient=address,
                message=trigger.message,
                success=result.success,
                provider_message_id=result.message_id,
                error=result.error,
                cost=cost,
            )
        )
        if result.success:
            return ChannelOutcome.sent(self.channel, result.message_id)
        return ChannelOutcome.failed(
            self.channel, result.error or "SMS delivery failed", result.to_exception()
        )
