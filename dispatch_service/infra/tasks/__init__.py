"""Job queue infrastructure using Taskiq over RabbitMQ.

- broker.py: one taskiq-aio-pika broker per delivery channel
- middleware.py: delivery job logging

For the job definitions, see ``dispatch_service.workers``.
"""

from __future__ import annotations

from dispatch_service.infra.tasks.broker import (
    broker_queue_name,
    email_broker,
    get_broker,
    sms_broker,
    start_brokers,
    stop_brokers,
)

__all__ = [
    "broker_queue_name",
    "email_broker",
    "get_broker",
    "sms_broker",
    "start_brokers",
    "stop_brokers",
]
