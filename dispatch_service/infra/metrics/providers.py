"""Metrics for calls to the mail relay and the SMS gateway.

Usage:
    from dispatch_service.infra.metrics.providers import observe_provider_send

    observe_provider_send("sms", "deywuro", success=result.success, duration_seconds=0.42)
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from dispatch_service.infra.metrics.prometheus import PROVIDER_LATENCY_BUCKETS, REGISTRY

provider_send_total = Counter(
    "provider_send_total",
    "Total provider send attempts by channel, provider and result",
    ["channel", "provider", "status"],
    registry=REGISTRY,
)
"""
Labels:
    channel: email or sms
    provider: smtp, deywuro, ...
    status: success or failed
"""

provider_send_errors_total = Counter(
    "provider_send_errors_total",
    "Total provider send failures by error category",
    ["channel", "provider", "error_code"],
    registry=REGISTRY,
)

provider_send_duration_seconds = Histogram(
    "provider_send_duration_seconds",
    "Provider send latency in seconds, excluding rate limiter waits",
    ["channel", "provider"],
    buckets=PROVIDER_LATENCY_BUCKETS,
    registry=REGISTRY,
)


def observe_provider_send(
    channel: str,
    provider: str,
    *,
    success: bool,
    duration_seconds: float,
    error_code: str | None = None,
) -> None:
    """Record one provider call."""
    provider_send_total.labels(
        channel=channel,
        provider=provider,
        status="success" if success else "failed",
    ).inc()
    provider_send_duration_seconds.labels(channel=channel, provider=provider).observe(duration_seconds)
    if not success:
        provider_send_errors_total.labels(
            channel=channel,
            provider=provider,
            error_code=error_code or "unknown",
        ).inc()
