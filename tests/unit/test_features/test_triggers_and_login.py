"""Tests for business-event triggers and login alerts."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from dispatch_service.features.notifications import (
    Channel,
    ChannelStatus,
    DispatchOutcome,
    DispatchStatus,
    LoginDetails,
    LoginNotificationService,
    NotificationDispatchService,
    NotificationType,
    SystemNotificationTriggers,
)
from dispatch_service.features.notifications.channels import EmailChannelDispatcher
from dispatch_service.features.notifications.triggers import (
    lead_assigned_trigger,
    lead_created_trigger,
    order_created_trigger,
    stock_low_trigger,
)
from dispatch_service.features.users import User


@pytest.fixture
def dispatcher() -> AsyncMock:
    mock = AsyncMock(spec=NotificationDispatchService)
    mock.send_to_role.return_value = [DispatchOutcome(status=DispatchStatus.DELIVERED)]
    mock.send_to_user.return_value = DispatchOutcome(status=DispatchStatus.DELIVERED)
    mock.send_to_email.return_value = DispatchOutcome(status=DispatchStatus.DELIVERED)
    return mock


class TestTriggerBuilders:
    def test_stock_low(self) -> None:
        trigger = stock_low_trigger("Widget", current_stock=3, reorder_point=10)

        assert trigger.type is NotificationType.STOCK_LOW
        assert trigger.message == "Widget is running low. Current stock: 3, Reorder point: 10"
        assert trigger.channels == [Channel.IN_APP, Channel.EMAIL, Channel.SMS]

    def test_order_created_formats_money(self) -> None:
        trigger = order_created_trigger("SO-1", "Acme", 1234.5)

        assert "$1,234.50" in trigger.message
        assert trigger.channels == [Channel.IN_APP, Channel.EMAIL]

    def test_lead_triggers_use_lead_types(self) -> None:
        assert lead_created_trigger("Jo", "jo@example.com", "Sam", ["u1", "u2"]).type is NotificationType.LEAD_CREATED
        assigned = lead_assigned_trigger("Jo", None, "Sam", lead_source="web")
        assert assigned.type is NotificationType.LEAD_ASSIGNED
        assert assigned.message == 'You have been assigned to lead "Jo" by Sam from web'


class TestSystemNotificationTriggers:
    """Audience routing for business events."""

    async def test_stock_low_goes_to_inventory_managers_and_admins(self, dispatcher: AsyncMock) -> None:
        outcomes = await SystemNotificationTriggers(dispatcher).stock_low("Widget", 3, 10)

        assert [call.args[0] for call in dispatcher.send_to_role.await_args_list] == [
            "INVENTORY_MANAGER",
            "ADMIN",
        ]
        assert len(outcomes) == 2

    async def test_order_created_goes_to_sales_managers(self, dispatcher: AsyncMock) -> None:
        await SystemNotificationTriggers(dispatcher).order_created("SO-1", "Acme", 10.0)

        dispatcher.send_to_sales_managers.assert_awaited_once()

    async def test_password_reset_goes_to_one_user(self, dispatcher: AsyncMock) -> None:
        await SystemNotificationTriggers(dispatcher).password_reset("u-1", "Jo")

        user_id, trigger = dispatcher.send_to_user.await_args.args
        assert user_id == "u-1"
        assert trigger.type is NotificationType.PASSWORD_RESET

    async def test_lead_welcome_is_a_direct_email(self, dispatcher: AsyncMock) -> None:
        await SystemNotificationTriggers(dispatcher).lead_welcome("jo@example.com", "Jo", "Acme", "Sam")

        address, trigger = dispatcher.send_to_email.await_args.args
        assert address == "jo@example.com"
        assert trigger.type is NotificationType.LEAD_WELCOME
        assert "your dedicated contact is Sam" in trigger.message


class TestLoginNotifications:
    """Security alerts after sign-in."""

    @pytest.fixture
    def login_service(
        self, session_factory, settings_reader, ledger, rate_limiters, email_provider, sms_client, settings_values
    ) -> LoginNotificationService:
        settings_values["EMAIL_LOGIN_ALERT"] = "true"
        coordinator = NotificationDispatchService(
            session_factory,
            dispatchers={
                Channel.EMAIL: EmailChannelDispatcher(
                    settings_reader,
                    ledger=ledger,
                    limiter=rate_limiters.email,
                    provider_factory=email_provider,
                )
            },
        )
        return LoginNotificationService(
            coordinator,
            session_factory,
            settings_reader=settings_reader,
            sms_client_factory=sms_client,
            clock=lambda: datetime(2026, 3, 2, 8, 15, tzinfo=UTC),
        )

    async def add_user(self, session_factory, **overrides) -> None:
        values = {
            "id": "u-1",
            "email": "jo@example.com",
            "phone": "0241234567",
            "first_name": "Jo",
            "login_notifications_email": True,
            "login_notifications_sms": True,
        }
        values.update(overrides)
        async with session_factory() as session:
            session.add(User(**values))
            await session.commit()

    async def test_sends_email_and_sms(self, login_service, session_factory, email_provider, sms_client) -> None:
        await self.add_user(session_factory)

        outcomes = await login_service.send_login_notification(
            "u-1", LoginDetails(ip_address="10.0.0.1", device="Firefox on Linux", location="Accra")
        )

        assert [(o.channel, o.status) for o in outcomes] == [
            (Channel.EMAIL, ChannelStatus.SENT),
            (Channel.SMS, ChannelStatus.SENT),
        ]
        email = email_provider.sent[0]
        assert email.subject == "Login Alert - Acme Supplies"
        assert "10.0.0.1" in (email.body_html or "")
        _, sms_text, _ = sms_client.sent[0]
        assert sms_text.startswith("Login Alert: Your Acme Supplies account was accessed on Monday, March 02, 2026")
        assert "Firefox on Linux" in sms_text

    async def test_sms_ignores_type_and_master_switches(
        self, login_service, session_factory, settings_values, sms_client
    ) -> None:
        settings_values["SMS_ENABLED"] = "false"
        await self.add_user(session_factory, login_notifications_email=False)

        outcomes = await login_service.send_login_notification("u-1")

        assert [o.status for o in outcomes] == [ChannelStatus.SENT]
        assert len(sms_client.sent) == 1

    async def test_nothing_sent_when_switches_off(
        self, login_service, session_factory, email_provider, sms_client
    ) -> None:
        await self.add_user(session_factory, login_notifications_email=False, login_notifications_sms=False)

        assert await login_service.send_login_notification("u-1") == ()
        assert email_provider.sent == []
        assert sms_client.sent == []

    async def test_unknown_user(self, login_service) -> None:
        assert await login_service.send_login_notification("missing") == ()

    async def test_missing_sms_credentials_skip_sms(
        self, login_service, session_factory, settings_values, sms_client
    ) -> None:
        del settings_values["SMS_PASSWORD"]
        await self.add_user(session_factory, login_notifications_email=False)

        [outcome] = await login_service.send_login_notification("u-1")

        assert outcome.status is ChannelStatus.SKIPPED
        assert sms_client.sent == []
