"""Logging configuration setup.

- dictConfig builds the root logger and its filters
- a QueueHandler on the root logger feeds a QueueListener that owns the
  real console/file handlers, so slow I/O never blocks the event loop
- ContextInjectingFilter adds contextvar fields to every record
"""

from __future__ import annotations

import atexit
import logging
import logging.config
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from typing import TYPE_CHECKING, Any

from dispatch_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from dispatch_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

_listener: QueueListener | None = None
_LOGGING_INITIALIZED = False

_TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records."""
    global _listener

    if _listener is not None:
        _listener.stop()
        _listener = None


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **overrides: Any,
) -> None:
    """Configure logging once per process.

    Args:
        log_settings: Optional settings instance; loaded from the environment if omitted.
        force: Reconfigure even if logging was already initialized.
        **overrides: Explicit overrides for ``configure_logging``.
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    if log_settings is None:
        from dispatch_service.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **overrides})
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    console_level: str | None = None,
    file_level: str | None = None,
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "dispatch-service",
) -> None:
    """Apply the dictConfig and start the queue listener.

    Example:
        configure_logging(log_level="DEBUG", json_logs=False)
    """
    global _listener

    if capture_warnings:
        logging.captureWarnings(True)

    filters: dict[str, Any] = {}
    if include_context:
        filters["context"] = {
            "()": "dispatch_service.infra.logging.context.ContextInjectingFilter",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": filters,
            "root": {
                "level": log_level.upper(),
                "handlers": [],
                "filters": list(filters),
            },
            "loggers": {
                # aio-pika and aiormq are chatty at INFO during reconnects
                "aiormq": {"level": "WARNING"},
                "aio_pika": {"level": "WARNING"},
                "httpx": {"level": "WARNING"},
            },
        }
    )

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(static={"service": service_name})
    else:
        formatter = logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = []
    if console_enabled:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel((console_level or log_level).upper())
        console.setFormatter(formatter)
        handlers.append(console)

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel((file_level or log_level).upper())
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    shutdown()
    log_queue: SimpleQueue[logging.LogRecord] = SimpleQueue()
    root = logging.getLogger()
    root.addHandler(QueueHandler(log_queue))

    _listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    logger.debug(
        "Logging configured",
        extra={"json_logs": json_logs, "file_path": str(file_path) if file_path else None},
    )


atexit.register(shutdown)
