"""Base email provider and delivery result.

Usage:
    class MyProvider(BaseEmailProvider):
        @property
        def provider_name(self) -> str:
            return "myprovider"

        async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult:
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from dispatch_service.core.exceptions import (
    GatewayTransportError,
    NotificationError,
    RecipientValidationError,
)
from dispatch_service.infra.metrics.providers import observe_provider_send

if TYPE_CHECKING:
    from dispatch_service.infra.email.schemas import EmailMessage
    from dispatch_service.infra.ratelimit import ChannelRateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailDeliveryResult:
    """Outcome of one email send.

    Attributes:
        success: Whether the relay accepted the message.
        message_id: Message-ID header assigned to the message.
        provider: Provider name (``smtp``).
        error: Error message if failed.
        error_code: Error category for programmatic handling.
        duration_ms: Time taken to send in milliseconds.
        metadata: Provider-specific metadata.
    """

    success: bool
    message_id: str | None
    provider: str
    recipients_rejected: list[str] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error:
            object.__setattr__(self, "error", "Unknown error")

    @classmethod
    def success_result(
        cls,
        message_id: str | None,
        provider: str,
        metadata: dict[str, Any] | None = None,
    ) -> EmailDeliveryResult:
        return cls(success=True, message_id=message_id, provider=provider, metadata=metadata or {})

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        error_code: str | None = None,
        recipients_rejected: list[str] | None = None,
    ) -> EmailDeliveryResult:
        return cls(
            success=False,
            message_id=None,
            provider=provider,
            recipients_rejected=recipients_rejected or [],
            error=error,
            error_code=error_code,
        )

    def to_exception(self) -> NotificationError | None:
        """Map a failed result onto the delivery error taxonomy."""
        if self.success:
            return None
        if self.error_code == "RECIPIENTS_REFUSED":
            return RecipientValidationError(
                self.error or "Recipients refused",
                channel="email",
                recipient=", ".join(self.recipients_rejected),
            )
        return GatewayTransportError(
            self.error or "Email delivery failed",
            channel="email",
            extra={"error_code": self.error_code},
        )

    def raise_for_failure(self) -> None:
        exc = self.to_exception()
        if exc is not None:
            raise exc


class BaseEmailProvider(ABC):
    """Abstract email provider.

    ``send`` paces through the channel limiter, times the call and logs the
    outcome; subclasses implement ``_do_send`` and must return failures as
    results rather than raising.
    """

    def __init__(self, *, limiter: ChannelRateLimiter | None = None) -> None:
        self._limiter = limiter

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @abstractmethod
    async def _do_send(self, message: EmailMessage) -> EmailDeliveryResult: ...

    async def send(self, message: EmailMessage) -> EmailDeliveryResult:
        if self._limiter is not None:
            await self._limiter.acquire()

        start_time = time.perf_counter()
        result = await self._do_send(message)
        if result.duration_ms is None:
            result = replace(result, duration_ms=int((time.perf_counter() - start_time) * 1000))
        observe_provider_send(
            "email",
            self.provider_name,
            success=result.success,
            duration_seconds=(result.duration_ms or 0) / 1000,
            error_code=result.error_code,
        )

        if result.success:
            logger.info(
                f"Email sent via {self.provider_name}",
                extra={
                    "message_id": result.message_id,
                    "provider": self.provider_name,
                    "recipients": len(message.to),
                    "duration_ms": result.duration_ms,
                },
            )
        else:
            logger.warning(
                f"Email send failed via {self.provider_name}",
                extra={
                    "provider": self.provider_name,
                    "error": result.error,
                    "error_code": result.error_code,
                    "duration_ms": result.duration_ms,
                },
            )
        return result
