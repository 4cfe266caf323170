"""Taskiq brokers for the delivery job queues.

Each channel gets its own RabbitMQ queue and broker so its concurrency can be
bounded independently. ``qos`` is the per-worker prefetch, i.e. the number of
jobs one worker process runs at once.

Importing this module only declares the brokers. Consumers are started by
the worker entry point:

    dispatch-service worker email
    dispatch-service worker sms

which run ``taskiq worker dispatch_service.infra.tasks.broker:<channel>_broker``.

Middleware order matters:
1. SimpleRetryMiddleware - handles retry_on_error=True on tasks (must be first)
2. DeliveryLoggingMiddleware - logs completed/failed per attempt
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from dispatch_service.core.settings import get_notification_settings, get_rabbit_settings
from dispatch_service.infra.logging import setup_logging
from dispatch_service.infra.ratelimit import EMAIL_CHANNEL, SMS_CHANNEL

if TYPE_CHECKING:
    from taskiq_aio_pika import AioPikaBroker as AioPikaBrokerType
else:
    AioPikaBrokerType = Any

logger = logging.getLogger(__name__)

rabbit_settings = get_rabbit_settings()
notification_settings = get_notification_settings()
setup_logging()

EMAIL_QUEUE = rabbit_settings.get_prefixed_queue("email-jobs")
SMS_QUEUE = rabbit_settings.get_prefixed_queue("sms-jobs")

email_broker: AioPikaBrokerType | None = None
sms_broker: AioPikaBrokerType | None = None


def _create_broker(channel: str, queue_name: str, qos: int) -> AioPikaBrokerType:
    from taskiq.middlewares import SimpleRetryMiddleware
    from taskiq_aio_pika import AioPikaBroker

    from dispatch_service.infra.tasks.middleware import DeliveryLoggingMiddleware

    broker = AioPikaBroker(
        url=rabbit_settings.get_url(),
        exchange_name=f"{rabbit_settings.exchange_name}.{channel}",
        queue_name=queue_name,
        qos=qos,
        declare_exchange=True,
        declare_queues=True,
    ).with_middlewares(
        SimpleRetryMiddleware(default_retry_count=notification_settings.job_max_retries),
        DeliveryLoggingMiddleware(channel=channel),
    )
    logger.info(
        "Taskiq delivery broker configured",
        extra={"channel": channel, "queue": queue_name, "qos": qos},
    )
    return broker


if rabbit_settings.is_configured:
    email_broker = _create_broker(EMAIL_CHANNEL, EMAIL_QUEUE, notification_settings.email_concurrency)
    sms_broker = _create_broker(SMS_CHANNEL, SMS_QUEUE, notification_settings.sms_concurrency)
else:
    logger.warning("RabbitMQ not configured - delivery job queues disabled")


def get_broker(channel: str) -> AioPikaBrokerType | None:
    """Broker for ``channel`` (``email`` or ``sms``), or ``None`` when queues are disabled."""
    return email_broker if channel == EMAIL_CHANNEL else sms_broker


def broker_queue_name(channel: str) -> str:
    return EMAIL_QUEUE if channel == EMAIL_CHANNEL else SMS_QUEUE


async def start_brokers() -> None:
    """Connect the brokers for enqueueing from the API process.

    Raises:
        ConnectionError: If RabbitMQ is unreachable.
    """
    for broker in (email_broker, sms_broker):
        if broker is None:
            continue
        try:
            await broker.startup()
        except Exception as e:
            logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
            raise
    logger.info("Taskiq delivery brokers started")


async def stop_brokers() -> None:
    for broker in (email_broker, sms_broker):
        if broker is None:
            continue
        try:
            await broker.shutdown()
        except Exception as e:
            logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})


# Task modules register themselves on import; the worker imports this module.
if email_broker is not None or sms_broker is not None:
    import dispatch_service.workers.notifications.tasks  # noqa: F401
