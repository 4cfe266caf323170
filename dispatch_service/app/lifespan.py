"""Application lifespan management.

Startup Order:
1. Core (logging)
2. Database - connectivity check, optional table creation
3. Delivery queues (Taskiq brokers on RabbitMQ) - conditional on configuration

Shutdown Order: Reverse of startup
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from dispatch_service.core.settings import (
    get_app_settings,
    get_logging_settings,
    get_rabbit_settings,
)
from dispatch_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_brokers_started = False


def get_brokers_started() -> bool:
    """Check if the delivery brokers were successfully started."""
    return _brokers_started


async def _startup_core() -> None:
    app = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )


async def _startup_database() -> None:
    from dispatch_service.infra.database.session import init_database

    await init_database(create_tables=get_app_settings().create_tables_on_startup)


async def _startup_queues() -> None:
    """Connect the delivery brokers so the API can enqueue jobs.

    A broker failure leaves the queues unavailable rather than failing startup;
    the queue endpoints then answer 503.
    """
    global _brokers_started

    if not get_rabbit_settings().is_configured:
        logger.info("RabbitMQ not configured, delivery queues disabled")
        return

    from dispatch_service.infra.tasks import start_brokers

    try:
        await start_brokers()
    except Exception as e:
        logger.warning("Delivery queues unavailable", extra={"error": str(e)})
        return
    _brokers_started = True
    logger.info("Delivery brokers connected (use 'dispatch-service worker <channel>' to consume)")


async def _shutdown_queues() -> None:
    global _brokers_started

    if not _brokers_started:
        return
    from dispatch_service.infra.tasks import stop_brokers

    await stop_brokers()
    _brokers_started = False


async def _shutdown_database() -> None:
    from dispatch_service.infra.database.session import close_database

    await close_database()
    logger.info("Database connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start services in dependency order and stop them in reverse."""
    await _startup_core()
    await _startup_database()
    await _startup_queues()
    try:
        yield
    finally:
        await _shutdown_queues()
        await _shutdown_database()
        logger.info("Application stopped")
