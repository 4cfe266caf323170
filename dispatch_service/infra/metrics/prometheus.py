"""Prometheus registry shared by every metric in the service."""

from __future__ import annotations

from prometheus_client import CollectorRegistry

# Custom registry so tests and the /metrics endpoint see only our series
REGISTRY = CollectorRegistry()

# Gateway calls: a local relay answers in milliseconds, a congested
# aggregator can take the full request timeout
PROVIDER_LATENCY_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)
