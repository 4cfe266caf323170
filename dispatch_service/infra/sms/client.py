"""HTTP client for the SMS aggregator gateway.

The gateway takes a form-encoded POST of ``username``, ``password``,
``destination``, ``source`` and ``message`` and answers with a JSON body in
which ``code == 0`` signals acceptance. Gateways of this kind answer with an
HTML error page when they are overloaded or misconfigured, so the reply is
parsed defensively and a non-JSON body becomes a protocol failure with a
short diagnostic snippet.

``send`` never raises for provider-side problems. It returns an
``SmsDeliveryResult``; callers that need an exception (the queue workers)
call ``raise_for_failure()``.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

import httpx

from dispatch_service.core.exceptions import (
    DeliveryRejectedError,
    GatewayProtocolError,
    GatewayTransportError,
    NotificationError,
    RecipientValidationError,
)
from dispatch_service.infra.metrics.providers import observe_provider_send

if TYPE_CHECKING:
    from dispatch_service.infra.ratelimit import ChannelRateLimiter

logger = logging.getLogger(__name__)

CHANNEL = "sms"
PROVIDER = "deywuro"
SNIPPET_LENGTH = 100
MIN_PHONE_DIGITS = 10

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True, slots=True)
class SmsCredentials:
    """Gateway account used for one send."""

    username: str
    password: str
    sender_id: str


@dataclass(frozen=True, slots=True)
class SmsDeliveryResult:
    """Outcome of one SMS submission.

    ``error_code`` is one of ``rejected``, ``protocol``, ``transport`` or
    ``invalid_recipient`` on failure.
    """

    success: bool
    message_id: str | None = None
    error: str | None = None
    error_code: str | None = None
    cost: float | None = None
    status_code: int | None = None
    duration_ms: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success_result(
        cls,
        message_id: str | None,
        *,
        cost: float | None = None,
        status_code: int | None = None,
    ) -> Self:
        return cls(success=True, message_id=message_id, cost=cost, status_code=status_code)

    @classmethod
    def failure_result(
        cls,
        error: str,
        *,
        error_code: str,
        status_code: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Self:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            status_code=status_code,
            metadata=metadata or {},
        )

    def with_duration(self, duration_ms: float) -> SmsDeliveryResult:
        return SmsDeliveryResult(
            success=self.success,
            message_id=self.message_id,
            error=self.error,
            error_code=self.error_code,
            cost=self.cost,
            status_code=self.status_code,
            duration_ms=duration_ms,
            metadata=self.metadata,
        )

    def to_exception(self) -> NotificationError | None:
        """Map a failed result onto the delivery error taxonomy."""
        if self.success:
            return None
        detail = self.error or "SMS delivery failed"
        match self.error_code:
            case "protocol":
                return GatewayProtocolError(
                    detail,
                    channel=CHANNEL,
                    status_code=self.status_code,
                    snippet=self.metadata.get("snippet", ""),
                )
            case "invalid_recipient":
                return RecipientValidationError(
                    detail, channel=CHANNEL, recipient=self.metadata.get("recipient", "")
                )
            case "rejected":
                return DeliveryRejectedError(
                    detail, channel=CHANNEL, provider_code=self.metadata.get("provider_code")
                )
            case _:
                return GatewayTransportError(detail, channel=CHANNEL, status_code=self.status_code)

    def raise_for_failure(self) -> None:
        exc = self.to_exception()
        if exc is not None:
            raise exc


def clean_phone_number(raw: str) -> str:
    """Strip everything but digits.

    Raises:
        RecipientValidationError: If fewer than ten digits remain.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) < MIN_PHONE_DIGITS:
        msg = f"Invalid phone number: {raw}"
        raise RecipientValidationError(msg, channel=CHANNEL, recipient=raw)
    return digits


def parse_gateway_response(status_code: int, body: str) -> SmsDeliveryResult:
    """Interpret the gateway's reply body.

    Example:
        >>> parse_gateway_response(200, '{"code":0,"messageId":"abc"}').message_id
        'abc'
    """
    try:
        payload = json.loads(body)
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        snippet = body[:SNIPPET_LENGTH]
        return SmsDeliveryResult.failure_result(
            f"SMS provider returned non-JSON response: {status_code} - {snippet}...",
            error_code="protocol",
            status_code=status_code,
            metadata={"snippet": snippet},
        )

    code = payload.get("code")
    # only an integer 0 means accepted; false and "0" do not
    if type(code) is int and code == 0:
        message_id = payload.get("messageId") or payload.get("id")
        cost = payload.get("cost")
        return SmsDeliveryResult.success_result(
            str(message_id) if message_id is not None else None,
            cost=float(cost) if isinstance(cost, int | float) else None,
            status_code=status_code,
        )

    return SmsDeliveryResult.failure_result(
        str(payload.get("message") or "Unknown error"),
        error_code="transport" if status_code >= 500 else "rejected",
        status_code=status_code,
        metadata={"provider_code": code},
    )


class SmsGatewayClient:
    """Async client for the SMS gateway.

    Example:
        async with SmsGatewayClient(url, limiter=registry.sms) as client:
            result = await client.send("0241234567", "Your order shipped", credentials)
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        limiter: ChannelRateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.limiter = limiter
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> SmsGatewayClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def send(
        self,
        phone_number: str,
        message: str,
        credentials: SmsCredentials,
    ) -> SmsDeliveryResult:
        """Submit one SMS, pacing through the channel limiter first."""
        try:
            destination = clean_phone_number(phone_number)
        except RecipientValidationError as exc:
            return SmsDeliveryResult.failure_result(
                exc.detail,
                error_code="invalid_recipient",
                metadata={"recipient": phone_number},
            )

        if self.limiter is not None:
            await self.limiter.acquire()

        start = time.perf_counter()
        try:
            response = await self._client.post(
                self.url,
                data={
                    "username": credentials.username,
                    "password": credentials.password,
                    "destination": destination,
                    "source": credentials.sender_id,
                    "message": message,
                },
            )
        except httpx.TimeoutException as exc:
            result = SmsDeliveryResult.failure_result(
                f"SMS gateway timed out: {exc}", error_code="transport"
            )
        except httpx.HTTPError as exc:
            result = SmsDeliveryResult.failure_result(
                f"SMS gateway request failed: {exc}", error_code="transport"
            )
        else:
            result = parse_gateway_response(response.status_code, response.text)

        elapsed = time.perf_counter() - start
        result = result.with_duration(round(elapsed * 1000, 2))
        observe_provider_send(
            CHANNEL,
            PROVIDER,
            success=result.success,
            duration_seconds=elapsed,
            error_code=result.error_code,
        )
        if result.success:
            logger.info(
                "SMS accepted by gateway",
                extra={
                    "destination": destination,
                    "message_id": result.message_id,
                    "duration_ms": result.duration_ms,
                },
            )
        else:
            logger.warning(
                "SMS delivery failed",
                extra={
                    "destination": destination,
                    "error": result.error,
                    "error_code": result.error_code,
                    "status_code": result.status_code,
                    "duration_ms": result.duration_ms,
                },
            )
        return result
