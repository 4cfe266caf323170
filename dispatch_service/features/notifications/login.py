"""Security alerts sent after a successful login."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from dispatch_service.core.exceptions import ConfigurationMissingError
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.notifications.schemas import (
    Channel,
    ChannelOutcome,
    NotificationTrigger,
    NotificationType,
)
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.features.users import UserRepository, get_user_repository
from dispatch_service.infra.ratelimit import get_rate_limiter_registry
from dispatch_service.infra.sms import SmsGatewayClient

if TYPE_CHECKING:
    from collections.abc import Callable

    from dispatch_service.core.database import SessionFactory
    from dispatch_service.features.notifications.service import NotificationDispatchService
    from dispatch_service.features.users import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoginDetails:
    ip_address: str | None = None
    user_agent: str | None = None
    device: str | None = None
    location: str | None = None


def _format_timestamp(moment: datetime) -> str:
    return moment.strftime("%A, %B %d, %Y at %I:%M:%S %p %Z")


def build_login_email(user: User, details: LoginDetails, company_name: str, timestamp: str) -> str:
    warning = (
        '<p style="color: #ef4444; font-weight: bold;">'
        "If this wasn't you, please secure your account immediately.</p>"
        if details.ip_address
        else ""
    )
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        '<h2 style="color: #3b82f6;">Login Alert</h2>'
        f"<p>Hello {escape(user.first_name or 'User')},</p>"
        "<p>We detected a login to your account:</p>"
        '<div style="background: #f3f4f6; padding: 15px; border-radius: 5px; margin: 15px 0;">'
        f"<p><strong>Time:</strong> {escape(timestamp)}</p>"
        f"<p><strong>Device:</strong> {escape(details.device or 'Unknown device')}</p>"
        f"<p><strong>Location:</strong> {escape(details.location or 'Unknown location')}</p>"
        f"<p><strong>IP Address:</strong> {escape(details.ip_address or 'Unknown IP')}</p>"
        "</div>"
        f"{warning}"
        '<p style="color: #666; font-size: 12px; margin-top: 20px;">'
        f"This is an automated security notification from {escape(company_name)}.</p>"
        "</div>"
    )


def build_login_sms(details: LoginDetails, company_name: str, timestamp: str) -> str:
    return (
        f"Login Alert: Your {company_name} account was accessed on {timestamp}. "
        f"Device: {details.device or 'Unknown device'}, "
        f"Location: {details.location or 'Unknown location'}. "
        "If this wasn't you, secure your account immediately."
    )


class LoginNotificationService:
    """Emails and texts a user after they sign in, per their login-alert switches.

    The email goes through the coordinator's direct-email path. The SMS goes
    straight to the gateway with the stored credentials and ignores the
    per-type SMS switches, since it is a security notice.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatchService,
        session_factory: SessionFactory | None = None,
        *,
        settings_reader: SettingsReader | None = None,
        user_repository: UserRepository | None = None,
        sms_client_factory: Callable[[], SmsGatewayClient] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._session_factory = session_factory
        self._settings = settings_reader or SettingsReader(session_factory)
        self._users = user_repository or get_user_repository()
        self._sms_client_factory = sms_client_factory or self._default_sms_client
        self._clock = clock or (lambda: datetime.now(ZoneInfo(get_notification_settings().timezone)))

    def _sessions(self) -> SessionFactory:
        if self._session_factory is None:
            from dispatch_service.infra.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    @staticmethod
    def _default_sms_client() -> SmsGatewayClient:
        settings = get_notification_settings()
        return SmsGatewayClient(
            str(settings.sms_gateway_url),
            timeout=settings.sms_timeout,
            limiter=get_rate_limiter_registry().sms,
        )

    async def send_login_notification(
        self,
        user_id: str,
        details: LoginDetails | None = None,
    ) -> tuple[ChannelOutcome, ...]:
        """Send the enabled login alerts for ``user_id``. Never raises."""
        details = details or LoginDetails()
        try:
            return await self._send(user_id, details)
        except Exception:
            logger.exception("Error sending login notifications", extra={"user_id": user_id})
            return ()

    async def _send(self, user_id: str, details: LoginDetails) -> tuple[ChannelOutcome, ...]:
        async with self._sessions()() as session:
            user = await self._users.get(session, user_id)
        if user is None:
            logger.info("Login notification skipped, user not found", extra={"user_id": user_id})
            return ()
        if not (user.login_notifications_email or user.login_notifications_sms):
            logger.debug("Login notifications disabled", extra={"user_id": user_id})
            return ()

        company_name = await self._settings.company_name()
        timestamp = _format_timestamp(self._clock())
        outcomes: list[ChannelOutcome] = []

        if user.login_notifications_email and user.email:
            trigger = NotificationTrigger(
                type=NotificationType.LOGIN_ALERT,
                title=f"Login Alert - {company_name}",
                message=build_login_email(user, details, company_name, timestamp),
                channels=[Channel.EMAIL],
                data={"ip_address": details.ip_address, "device": details.device},
            )
            outcome = await self._dispatcher.send_to_email(user.email, trigger)
            outcomes.extend(outcome.channels)

        if user.login_notifications_sms and user.phone:
            outcomes.append(
                await self._send_sms(user.phone, build_login_sms(details, company_name, timestamp))
            )

        return tuple(outcomes)

    async def _send_sms(self, phone: str, message: str) -> ChannelOutcome:
        try:
            credentials = await self._settings.sms_gateway_config()
        except ConfigurationMissingError as exc:
            logger.info("SMS credentials not configured, skipping login SMS", extra={"error": exc.detail})
            return ChannelOutcome.skipped(Channel.SMS, exc.detail)

        async with self._sms_client_factory() as client:
            result = await client.send(phone, message, credentials)
        if result.success:
            return ChannelOutcome.sent(Channel.SMS, result.message_id)
        return ChannelOutcome.failed(
            Channel.SMS, result.error or "SMS delivery failed", result.to_exception()
        )
