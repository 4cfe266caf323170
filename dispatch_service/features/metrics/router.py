"""Prometheus metrics endpoint.

Endpoints:
    GET /metrics - Prometheus scrape endpoint

Metrics Exposed:
    - notification_dispatch_total - Dispatch outcomes with suppression reason
    - notification_channel_delivery_total - Per-channel results
    - notification_record_status_total - Terminal record statuses
    - delivery_job_total / delivery_job_recipients_total - Queue worker results
    - provider_send_total / provider_send_duration_seconds - Relay and gateway calls
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

# Registers the notification series on the shared registry
from dispatch_service.features.notifications import metrics as _notification_metrics  # noqa: F401
from dispatch_service.infra.metrics.prometheus import REGISTRY

router = APIRouter(tags=["observability"])


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in the text exposition format."""
    data = generate_latest(REGISTRY)
    return Response(
        content=data,
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )
