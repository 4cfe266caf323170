"""Prometheus scrape endpoint."""

from dispatch_service.features.metrics.router import router

__all__ = ["router"]
