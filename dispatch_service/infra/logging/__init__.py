"""Logging infrastructure.

Basic usage:
    import logging

    from dispatch_service.infra.logging import get_lazy_logger, set_log_context

    logger = logging.getLogger(__name__)
    set_log_context(channel="email", campaign_id="cmp_1")
    logger.info("Batch started")  # record carries channel and campaign_id

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Payload: {job.model_dump()}")
"""

from dispatch_service.infra.logging.config import configure_logging, setup_logging, shutdown
from dispatch_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from dispatch_service.infra.logging.formatters import JSONFormatter
from dispatch_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
