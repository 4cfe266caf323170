"""Taskiq middleware for delivery job logging.

``DeliveryLoggingMiddleware`` binds the task id and channel into the log
context for the duration of a job and emits one ``completed`` or ``failed``
record per execution attempt, including retries.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from taskiq import TaskiqMiddleware

from dispatch_service.infra.logging import clear_log_context, set_log_context

if TYPE_CHECKING:
    from taskiq import TaskiqMessage, TaskiqResult

logger = logging.getLogger(__name__)


class DeliveryLoggingMiddleware(TaskiqMiddleware):
    """Logs the lifecycle of every delivery job on one channel's broker.

    Example usage:
        broker = AioPikaBroker(...).with_middlewares(
            SimpleRetryMiddleware(),
            DeliveryLoggingMiddleware(channel="email"),
        )
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self.channel = channel
        self._start_times: dict[str, float] = {}

    async def pre_execute(self, message: TaskiqMessage) -> TaskiqMessage:
        self._start_times[message.task_id] = time.perf_counter()
        set_log_context(task_id=message.task_id, channel=self.channel)
        logger.debug(
            "Delivery job started",
            extra={
                "task_name": message.task_name,
                "retry_count": message.labels.get("_retries", 0),
            },
        )
        return message

    async def post_execute(self, message: TaskiqMessage, result: TaskiqResult[Any]) -> None:
        start_time = self._start_times.pop(message.task_id, None)
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2) if start_time else None

        # failures are logged by on_error
        if not result.is_err:
            logger.info(
                "Delivery job completed",
                extra={
                    "event": "completed",
                    "task_name": message.task_name,
                    "duration_ms": duration_ms,
                },
            )
        clear_log_context()

    async def on_error(
        self,
        message: TaskiqMessage,
        result: TaskiqResult[Any],
        exception: BaseException,
    ) -> None:
        start_time = self._start_times.get(message.task_id)
        logger.error(
            "Delivery job failed",
            exc_info=exception,
            extra={
                "event": "failed",
                "task_id": message.task_id,
                "task_name": message.task_name,
                "channel": self.channel,
                "retry_count": message.labels.get("_retries", 0),
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2) if start_time else None,
            },
        )
