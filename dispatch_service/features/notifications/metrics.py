"""Prometheus metrics for notification dispatch and delivery jobs.

This module provides:
- Dispatch outcomes per recipient, with the suppression reason
- Per-channel delivery results from the coordinator
- Terminal status of notification records
- Queue worker job results

Usage:
    from dispatch_service.features.notifications.metrics import (
        notification_dispatch_total,
        notification_channel_delivery_total,
    )

    notification_dispatch_total.labels(status="suppressed", reason="quiet-hours").inc()
    notification_channel_delivery_total.labels(channel="EMAIL", status="sent").inc()
"""

from __future__ import annotations

from prometheus_client import Counter

from dispatch_service.infra.metrics.prometheus import REGISTRY

# =============================================================================
# Dispatch Metrics
# =============================================================================

notification_dispatch_total = Counter(
    "notification_dispatch_total",
    "Total notification dispatches by outcome",
    ["status", "reason"],
    registry=REGISTRY,
)
"""
Labels:
    status: delivered, failed, suppressed, skipped or error
    reason: suppression reason (disabled, type-disabled, quiet-hours,
        no-channels), or "none"

Example:
    notification_dispatch_total.labels(status="suppressed", reason="quiet-hours").inc()
"""

notification_channel_delivery_total = Counter(
    "notification_channel_delivery_total",
    "Total per-channel delivery results from the dispatch coordinator",
    ["channel", "status"],
    registry=REGISTRY,
)
"""
Labels:
    channel: IN_APP, EMAIL or SMS
    status: sent, failed or skipped
"""

notification_record_status_total = Counter(
    "notification_record_status_total",
    "Total notification records moved to a terminal status",
    ["status"],
    registry=REGISTRY,
)

# =============================================================================
# Worker Metrics
# =============================================================================

delivery_job_total = Counter(
    "delivery_job_total",
    "Total delivery job results by channel, kind and status",
    ["channel", "kind", "status"],
    registry=REGISTRY,
)
"""
Labels:
    channel: email or sms
    kind: single or bulk
    status: sent, failed or skipped (configuration missing)
"""

delivery_job_recipients_total = Counter(
    "delivery_job_recipients_total",
    "Total recipients processed by bulk batch jobs",
    ["channel", "status"],
    registry=REGISTRY,
)
