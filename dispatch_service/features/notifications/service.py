"""Dispatch coordinator: turns triggers into per-channel deliveries.

Every public operation reports what happened through ``DispatchOutcome``
and never raises to the caller. Business workflows fire notifications as a
side effect and must not fail because a provider is down.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from dispatch_service.core.exceptions import NotificationError
from dispatch_service.features.messaging import DeliveryLedger
from dispatch_service.features.notifications.channels import (
    EmailChannelDispatcher,
    InAppChannelDispatcher,
    SmsChannelDispatcher,
)
from dispatch_service.features.notifications.metrics import (
    notification_channel_delivery_total,
    notification_dispatch_total,
    notification_record_status_total,
)
from dispatch_service.features.notifications.preferences import (
    NotificationPreferences,
    Suppressed,
    local_now,
    resolve,
)
from dispatch_service.features.notifications.repository import (
    NotificationRepository,
    NotificationTemplateRepository,
    get_notification_repository,
    get_notification_template_repository,
)
from dispatch_service.features.notifications.schemas import (
    Channel,
    ChannelOutcome,
    ChannelStatus,
    DispatchOutcome,
    DispatchStatus,
    NotificationStatus,
    NotificationTrigger,
    NotificationType,
)
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.features.users import UserRepository, get_user_repository
from dispatch_service.infra.logging import get_lazy_logger, log_context
from dispatch_service.infra.ratelimit import get_rate_limiter_registry

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from uuid import UUID

    from dispatch_service.core.database import SessionFactory
    from dispatch_service.features.notifications.channels import ChannelDispatcher
    from dispatch_service.features.notifications.models import Notification
    from dispatch_service.infra.ratelimit import RateLimiterRegistry

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")


def substitute_variables(text: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{key}}`` with ``str(variables[key])``; unknown placeholders stay."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)

    return _PLACEHOLDER.sub(_replace, text)


def parse_template_channels(raw: Any) -> list[Channel]:
    """Channels stored on a template, tolerating JSON text and unknown names."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    channels: list[Channel] = []
    for item in raw:
        channel = Channel.parse(item)
        if channel is not None and channel not in channels:
            channels.append(channel)
    return channels


class NotificationDispatchService:
    """Routes a trigger to users, roles or a bare email address.

    Example:
        service = get_notification_dispatch_service()
        outcome = await service.send_to_user(user_id, trigger)
        if outcome.status is DispatchStatus.SUPPRESSED:
            ...
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        *,
        settings_reader: SettingsReader | None = None,
        rate_limiters: RateLimiterRegistry | None = None,
        ledger: DeliveryLedger | None = None,
        dispatchers: Mapping[Channel, ChannelDispatcher] | None = None,
        user_repository: UserRepository | None = None,
        notification_repository: NotificationRepository | None = None,
        template_repository: NotificationTemplateRepository | None = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._session_factory = session_factory
        self._users = user_repository or get_user_repository()
        self._notifications = notification_repository or get_notification_repository()
        self._templates = template_repository or get_notification_template_repository()
        self._clock = clock

        if dispatchers is None:
            reader = settings_reader or SettingsReader(session_factory)
            registry = rate_limiters or get_rate_limiter_registry()
            ledger = ledger or DeliveryLedger(session_factory)
            dispatchers = {
                Channel.IN_APP: InAppChannelDispatcher(),
                Channel.EMAIL: EmailChannelDispatcher(reader, ledger=ledger, limiter=registry.email),
                Channel.SMS: SmsChannelDispatcher(reader, ledger=ledger, limiter=registry.sms),
            }
        self._dispatchers: dict[Channel, ChannelDispatcher] = dict(dispatchers)

    def _sessions(self) -> SessionFactory:
        if self._session_factory is None:
            from dispatch_service.infra.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    # ------------------------------------------------------------------
    # Single recipient
    # ------------------------------------------------------------------

    async def send_to_user(self, user_id: str, trigger: NotificationTrigger) -> DispatchOutcome:
        """Resolve preferences, record the notification and deliver it on each allowed channel."""
        with log_context(notification_type=trigger.type.value, user_id=user_id):
            try:
                outcome = await self._send_to_user(user_id, trigger)
            except Exception as exc:
                logger.exception(
                    "Error sending notification to user",
                    extra={"user_id": user_id, "title": trigger.title},
                )
                outcome = DispatchOutcome(status=DispatchStatus.ERROR, user_id=user_id, error=str(exc))
        self._count_dispatch(outcome)
        return outcome

    @staticmethod
    def _count_dispatch(outcome: DispatchOutcome) -> None:
        notification_dispatch_total.labels(
            status=outcome.status.value,
            reason=outcome.reason.value if outcome.reason is not None else "none",
        ).inc()

    async def _send_to_user(self, user_id: str, trigger: NotificationTrigger) -> DispatchOutcome:
        async with self._sessions()() as session:
            user = await self._users.get(session, user_id)
            if user is None or not user.is_active:
                logger.info("Recipient not found or inactive, skipping notification", extra={"user_id": user_id})
                return DispatchOutcome(
                    status=DispatchStatus.SKIPPED,
                    user_id=user_id,
                    error="User not found or inactive",
                )

            preferences = NotificationPreferences.from_legacy(user.notification_preferences)
            decision = resolve(preferences, trigger, self._clock())
            if isinstance(decision, Suppressed):
                logger.info(
                    "Notification suppressed by user preferences",
                    extra={"user_id": user_id, "reason": decision.reason.value, "title": trigger.title},
                )
                return DispatchOutcome(
                    status=DispatchStatus.SUPPRESSED,
                    user_id=user_id,
                    reason=decision.reason,
                )

            email, phone = user.email, user.phone
            notification = await self._notifications.create_pending(
                session, user_id, trigger, decision.channels
            )
            notification_id = notification.id
            await session.commit()

        outcomes = [
            await self._deliver(channel, self._address_for(channel, email, phone), trigger, notification_id)
            for channel in decision.channels
        ]

        status = self._terminal_status(outcomes)
        notification_record_status_total.labels(status=status.value).inc()
        async with self._sessions()() as session:
            await self._notifications.set_status(session, notification_id, status)
            await session.commit()

        logger.info(
            "Notification processed",
            extra={
                "user_id": user_id,
                "notification_id": str(notification_id),
                "status": status.value,
                "channels": [f"{o.channel.value}:{o.status.value}" for o in outcomes],
            },
        )
        return DispatchOutcome(
            status=DispatchStatus.DELIVERED if status is NotificationStatus.SENT else DispatchStatus.FAILED,
            user_id=user_id,
            notification_id=notification_id,
            channels=tuple(outcomes),
        )

    @staticmethod
    def _address_for(channel: Channel, email: str | None, phone: str | None) -> str | None:
        match channel:
            case Channel.EMAIL:
                return email
            case Channel.SMS:
                return phone
            case _:
                return None

    @staticmethod
    def _terminal_status(outcomes: Sequence[ChannelOutcome]) -> NotificationStatus:
        """FAILED only when external channels were attempted and every one of them failed."""
        attempted = [o for o in outcomes if o.channel.is_external and o.attempted]
        if attempted and all(o.status is ChannelStatus.FAILED for o in attempted):
            return NotificationStatus.FAILED
        return NotificationStatus.SENT

    async def _deliver(
        self,
        channel: Channel,
        address: str | None,
        trigger: NotificationTrigger,
        notification_id: UUID | None,
    ) -> ChannelOutcome:
        """Run one channel dispatcher, isolating it from the others."""
        outcome = await self._run_dispatcher(channel, address, trigger, notification_id)
        notification_channel_delivery_total.labels(channel=channel.value, status=outcome.status.value).inc()
        return outcome

    async def _run_dispatcher(
        self,
        channel: Channel,
        address: str | None,
        trigger: NotificationTrigger,
        notification_id: UUID | None,
    ) -> ChannelOutcome:
        dispatcher = self._dispatchers.get(channel)
        if dispatcher is None:
            return ChannelOutcome.skipped(channel, f"No dispatcher for {channel.value}")
        if channel.is_external and not address:
            logger.info(
                "Skipping channel, missing contact info",
                extra={"channel": channel.value, "notification_id": str(notification_id)},
            )
            return ChannelOutcome.skipped(channel, "Missing contact info")
        try:
            return await dispatcher.deliver(address, trigger, notification_id=notification_id)
        except NotificationError as exc:
            logger.warning(
                "Channel delivery failed",
                extra={"channel": channel.value, "error": exc.detail},
            )
            return ChannelOutcome.failed(channel, exc.detail, exc)
        except Exception as exc:
            logger.exception("Channel delivery raised", extra={"channel": channel.value})
            return ChannelOutcome.failed(channel, str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def send_to_users(
        self,
        user_ids: Sequence[str],
        trigger: NotificationTrigger,
    ) -> list[DispatchOutcome]:
        """Dispatch concurrently to each user; one failure never aborts the others."""
        results = await asyncio.gather(
            *(self.send_to_user(user_id, trigger) for user_id in user_ids),
            return_exceptions=True,
        )
        outcomes: list[DispatchOutcome] = []
        for user_id, result in zip(user_ids, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Dispatch to user raised",
                    exc_info=result,
                    extra={"user_id": user_id},
                )
                outcomes.append(
                    DispatchOutcome(status=DispatchStatus.ERROR, user_id=user_id, error=str(result))
                )
            else:
                outcomes.append(result)

        logger.info(
            "Notification fan-out complete",
            extra={
                "recipients": len(user_ids),
                "delivered": sum(1 for o in outcomes if o.ok),
                "title": trigger.title,
            },
        )
        return outcomes

    async def send_to_role(self, role: str, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        """Dispatch to every active user holding ``role``."""
        try:
            async with self._sessions()() as session:
                user_ids = list(await self._users.list_ids_by_role(session, role))
        except Exception:
            logger.exception("Error loading users for role", extra={"role": role})
            return []
        lazy_logger.debug(lambda: f"Role {role} resolved to {len(user_ids)} recipients")
        return await self.send_to_users(user_ids, trigger)

    async def send_to_admins(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("ADMIN", trigger)

    async def send_to_super_admins(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("SUPER_ADMIN", trigger)

    async def send_to_inventory_managers(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("INVENTORY_MANAGER", trigger)

    async def send_to_sales_managers(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("SALES_MANAGER", trigger)

    async def send_to_sales_reps(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("SALES_REP", trigger)

    async def send_to_finance_officers(self, trigger: NotificationTrigger) -> list[DispatchOutcome]:
        return await self.send_to_role("FINANCE_OFFICER", trigger)

    # ------------------------------------------------------------------
    # Bypass and templates
    # ------------------------------------------------------------------

    async def send_to_email(self, address: str, trigger: NotificationTrigger) -> DispatchOutcome:
        """Email an address directly. No preferences apply and no record is created."""
        with log_context(notification_type=trigger.type.value):
            outcome = await self._deliver(Channel.EMAIL, address, trigger, None)

        status = {
            ChannelStatus.SENT: DispatchStatus.DELIVERED,
            ChannelStatus.FAILED: DispatchStatus.FAILED,
        }.get(outcome.status, DispatchStatus.SKIPPED)
        logger.info(
            "Direct email processed",
            extra={"recipient": address, "status": status.value},
        )
        result = DispatchOutcome(
            status=status,
            recipient=address,
            channels=(outcome,),
            error=outcome.error,
        )
        self._count_dispatch(result)
        return result

    async def send_from_template(
        self,
        user_id: str,
        template_name: str,
        variables: Mapping[str, Any] | None = None,
    ) -> DispatchOutcome:
        """Render a stored template with ``variables`` and send it to ``user_id``."""
        variables = dict(variables or {})
        try:
            async with self._sessions()() as session:
                template = await self._templates.get_by_name(session, template_name)
        except Exception as exc:
            logger.exception("Error loading notification template", extra={"template": template_name})
            return DispatchOutcome(status=DispatchStatus.ERROR, user_id=user_id, error=str(exc))

        if template is None or not template.is_active:
            reason = "not found" if template is None else "inactive"
            logger.warning(
                f"Notification template {reason}",
                extra={"template": template_name, "user_id": user_id},
            )
            return DispatchOutcome(
                status=DispatchStatus.SKIPPED,
                user_id=user_id,
                error=f"Template {template_name} {reason}",
            )

        try:
            trigger = NotificationTrigger(
                type=NotificationType.parse(template.type) or template.type,
                title=substitute_variables(template.subject or "", variables) or template_name,
                message=substitute_variables(template.body, variables),
                channels=parse_template_channels(template.channels),
                data={"template_name": template_name, "variables": variables},
            )
        except ValidationError as exc:
            logger.warning(
                "Notification template is invalid",
                extra={"template": template_name, "errors": exc.errors(include_url=False)},
            )
            return DispatchOutcome(
                status=DispatchStatus.SKIPPED,
                user_id=user_id,
                error=f"Template {template_name} is invalid",
            )
        return await self.send_to_user(user_id, trigger)

    # ------------------------------------------------------------------
    # Record lifecycle
    # ------------------------------------------------------------------

    async def mark_as_sent(self, notification_id: UUID) -> bool:
        try:
            async with self._sessions()() as session:
                updated = await self._notifications.set_status(
                    session, notification_id, NotificationStatus.SENT
                )
                await session.commit()
        except Exception:
            logger.exception("Error marking notification as sent", extra={"notification_id": str(notification_id)})
            return False
        return updated

    async def mark_as_read(self, notification_id: UUID) -> bool:
        try:
            async with self._sessions()() as session:
                updated = await self._notifications.mark_read(session, notification_id)
                await session.commit()
        except Exception:
            logger.exception("Error marking notification as read", extra={"notification_id": str(notification_id)})
            return False
        return updated

    async def get_pending_notifications(self, *, now: datetime | None = None) -> list[Notification]:
        """PENDING records due for processing; empty on error."""
        try:
            async with self._sessions()() as session:
                return list(
                    await self._notifications.list_pending(session, now=now or datetime.now(UTC))
                )
        except Exception:
            logger.exception("Error fetching pending notifications")
            return []


_notification_dispatch_service: NotificationDispatchService | None = None


def get_notification_dispatch_service() -> NotificationDispatchService:
    global _notification_dispatch_service
    if _notification_dispatch_service is None:
        _notification_dispatch_service = NotificationDispatchService()
    return _notification_dispatch_service
