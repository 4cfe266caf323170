"""Custom exception classes for the dispatch service.

The hierarchy follows RFC 7807 Problem Details so the same exceptions can be
rendered by the HTTP layer and carried in delivery outcomes by the
dispatch pipeline.
"""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Template not found",
            type="template-not-found",
            extra={"template_name": "welcome"},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        titles = {
            400: "Bad Request",
            404: "Not Found",
            409: "Conflict",
            422: "Unprocessable Entity",
            500: "Internal Server Error",
            502: "Bad Gateway",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")

    def to_problem(self) -> dict[str, Any]:
        """Render the exception as an RFC 7807 problem document."""
        problem: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status_code,
            "detail": self.detail,
        }
        if self.instance:
            problem["instance"] = self.instance
        if self.extra:
            problem.update(self.extra)
        return problem


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            extra=extra,
        )


# ============================================================================
# Notification delivery taxonomy
# ============================================================================


class NotificationError(AppException):
    """Base class for every failure raised by the dispatch pipeline.

    Carries the channel the failure belongs to (``email``, ``sms`` or
    ``in_app``) so ledger writers and outcome builders can attribute it.
    """

    def __init__(
        self,
        detail: str,
        *,
        channel: str | None = None,
        status_code: int = 500,
        type: str = "notification-error",
        title: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.channel = channel
        merged = {"channel": channel} if channel else {}
        merged.update(extra or {})
        super().__init__(
            status_code=status_code,
            detail=detail,
            type=type,
            title=title,
            extra=merged,
        )


class ConfigurationMissingError(NotificationError):
    """Provider credentials or required configuration keys are absent.

    Example:
        raise ConfigurationMissingError(
            "SMTP configuration incomplete",
            channel="email",
            missing_keys=["SMTP_HOST"],
        )
    """

    def __init__(
        self,
        detail: str,
        *,
        channel: str | None = None,
        missing_keys: list[str] | None = None,
    ) -> None:
        self.missing_keys = missing_keys or []
        super().__init__(
            detail,
            channel=channel,
            status_code=503,
            type="configuration-missing",
            title="Configuration Missing",
            extra={"missing_keys": self.missing_keys},
        )


class ChannelSuppressedError(NotificationError):
    """A recipient's preferences vetoed the delivery."""

    def __init__(self, reason: str, *, user_id: str | None = None) -> None:
        self.reason = reason
        super().__init__(
            f"Notification suppressed: {reason}",
            status_code=409,
            type="channel-suppressed",
            title="Notification Suppressed",
            extra={"reason": reason, "user_id": user_id},
        )


class GatewayTransportError(NotificationError):
    """Network failure or non-success HTTP exchange with a provider."""

    def __init__(
        self,
        detail: str,
        *,
        channel: str | None = None,
        status_code: int | None = None,
        type: str = "gateway-transport-error",
        title: str = "Gateway Transport Error",
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.upstream_status = status_code
        merged = {"upstream_status": status_code}
        merged.update(extra or {})
        super().__init__(
            detail,
            channel=channel,
            status_code=502,
            type=type,
            title=title,
            extra=merged,
        )


class GatewayProtocolError(GatewayTransportError):
    """Provider replied with a body that could not be interpreted.

    ``snippet`` holds the truncated raw body for diagnostics.
    """

    def __init__(
        self,
        detail: str,
        *,
        channel: str | None = None,
        status_code: int | None = None,
        snippet: str = "",
    ) -> None:
        self.snippet = snippet
        super().__init__(
            detail,
            channel=channel,
            status_code=status_code,
            type="gateway-protocol-error",
            title="Gateway Protocol Error",
            extra={"snippet": snippet},
        )


class DeliveryRejectedError(NotificationError):
    """Provider accepted the request but refused to deliver the message."""

    def __init__(
        self,
        detail: str,
        *,
        channel: str | None = None,
        provider_code: Any = None,
    ) -> None:
        self.provider_code = provider_code
        super().__init__(
            detail,
            channel=channel,
            status_code=502,
            type="delivery-rejected",
            title="Delivery Rejected",
            extra={"provider_code": provider_code},
        )


class RecipientValidationError(NotificationError):
    """Recipient address failed validation before any send was attempted."""

    def __init__(self, detail: str, *, channel: str | None = None, recipient: str = "") -> None:
        super().__init__(
            detail,
            channel=channel,
            status_code=422,
            type="recipient-invalid",
            title="Invalid Recipient",
            extra={"recipient": recipient},
        )


class PersistenceError(NotificationError):
    """Writing or reading a notification record or ledger row failed."""

    def __init__(self, detail: str, *, table: str | None = None) -> None:
        super().__init__(
            detail,
            status_code=500,
            type="persistence-error",
            title="Persistence Error",
            extra={"table": table},
        )


class QueueDisabledError(NotificationError):
    """The job queue for a channel is switched off in settings."""

    def __init__(self, channel: str) -> None:
        super().__init__(
            f"{channel} queue is disabled",
            channel=channel,
            status_code=503,
            type="queue-disabled",
            title="Queue Disabled",
        )


__all__ = [
    "AppException",
    "ChannelSuppressedError",
    "ConfigurationMissingError",
    "DeliveryRejectedError",
    "GatewayProtocolError",
    "GatewayTransportError",
    "NotFoundException",
    "NotificationError",
    "PersistenceError",
    "QueueDisabledError",
    "RecipientValidationError",
]
