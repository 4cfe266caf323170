"""Tests for logging context, formatting and lazy messages."""

from __future__ import annotations

import json
import logging

from dispatch_service.infra.logging import get_lazy_logger, log_context
from dispatch_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from dispatch_service.infra.logging.formatters import JSONFormatter


def _record(msg: str = "Job completed", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("dispatch_service.workers", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_block_binding_is_restored(self) -> None:
        clear_log_context()
        set_log_context(task_id="t-1")

        with log_context(channel="sms", campaign_id="c-1"):
            assert get_log_context() == {"task_id": "t-1", "channel": "sms", "campaign_id": "c-1"}

        assert get_log_context() == {"task_id": "t-1"}
        clear_log_context()

    def test_filter_does_not_clobber_record_attributes(self) -> None:
        record = _record(channel="email")

        with log_context(channel="sms", user_id="u-1"):
            ContextInjectingFilter().filter(record)

        assert record.channel == "email"
        assert record.user_id == "u-1"


class TestJSONFormatter:
    def test_one_json_object_per_record(self) -> None:
        formatter = JSONFormatter(static={"service": "dispatch-service"})

        line = formatter.format(_record("line one\nline two", channel="sms"))

        assert "\n" not in line
        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["message"] == "line one\nline two"
        assert data["service"] == "dispatch-service"
        assert data["channel"] == "sms"
        assert data["timestamp"].endswith("Z")


class TestLazyLogger:
    def test_callable_is_not_evaluated_when_level_disabled(self) -> None:
        logger = get_lazy_logger("dispatch_service.tests.lazy")
        logger.logger.setLevel(logging.INFO)
        calls: list[int] = []

        logger.debug(lambda: calls.append(1) or "expensive")

        assert calls == []
