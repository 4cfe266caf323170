"""Test doubles for the delivery pipeline's external edges."""

from __future__ import annotations

from typing import Any

from dispatch_service.features.messaging import DeliveryAttempt, DeliveryLedger
from dispatch_service.features.settings_store import SettingsReader
from dispatch_service.infra.email import BaseEmailProvider, EmailDeliveryResult, EmailMessage
from dispatch_service.infra.sms import SmsCredentials, SmsDeliveryResult, clean_phone_number
from dispatch_service.core.exceptions import RecipientValidationError


class StaticSettingsReader(SettingsReader):
    """Settings store backed by a dict; every read sees the dict's current contents."""

    def __init__(self, values: dict[str, str]) -> None:
        super().__init__()
        self.values = values
        self.reads: list[str] = []

    async def get(self, key: str, default: str | None = None) -> str | None:
        self.reads.append(key)
        value = self.values.get(key)
        return default if value is None else value


class RecordingLedger(DeliveryLedger):
    """Keeps attempts in memory instead of writing rows."""

    def __init__(self) -> None:
        super().__init__()
        self.attempts: list[DeliveryAttempt] = []

    async def record(self, attempt: DeliveryAttempt) -> None:
        self.attempts.append(attempt)

    def for_channel(self, channel: str) -> list[DeliveryAttempt]:
        return [attempt for attempt in self.attempts if attempt.channel == channel]


class FakeEmailProvider(BaseEmailProvider):
    """Accepts every message unless the recipient is listed in ``fail_for``."""

    def __init__(self, *, fail_for: set[str] | None = None, limiter: Any = None) -> None:
        super().__init__(limiter=limiter)
        self.fail_for = fail_for or set()
        self.sent: list[EmailMessage] = []
        self.configs: list[Any] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def __call__(self, config: Any) -> FakeEmailProvider:
        """Acts as its own provider factory."""
        self.configs.append(config)
        return self

    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult:
        self.sent.append(message)
        recipient = str(message.to[0])
        if recipient in self.fail_for:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error="SMTP error: 550 mailbox unavailable",
                error_code="SMTP_ERROR",
            )
        return EmailDeliveryResult.success_result(f"<msg-{len(self.sent)}@fake>", self.provider_name)


class FakeSmsClient:
    """Stands in for ``SmsGatewayClient`` as both factory and async context manager."""

    def __init__(self, *, fail_for: set[str] | None = None, cost: float | None = None) -> None:
        self.fail_for = fail_for or set()
        self.cost = cost
        self.sent: list[tuple[str, str, SmsCredentials]] = []
        self.opened = 0

    def __call__(self) -> FakeSmsClient:
        return self

    async def __aenter__(self) -> FakeSmsClient:
        self.opened += 1
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def send(self, phone: str, message: str, credentials: SmsCredentials) -> SmsDeliveryResult:
        try:
            clean_phone_number(phone)
        except RecipientValidationError as exc:
            return SmsDeliveryResult.failure_result(
                exc.detail, error_code="invalid_recipient", metadata={"recipient": phone}
            )
        self.sent.append((phone, message, credentials))
        if phone in self.fail_for:
            return SmsDeliveryResult.failure_result(
                "Insufficient balance",
                error_code="rejected",
                status_code=200,
                metadata={"provider_code": 2},
            )
        return SmsDeliveryResult.success_result(f"sms-{len(self.sent)}", cost=self.cost, status_code=200)
