"""Modular settings for the dispatch service.

Each domain has its own ``BaseSettings`` class with an environment prefix and
an optional YAML source under ``conf/``.
"""

from .app import AppSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
    get_rabbit_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .postgres import DatabaseSettings
from .rabbit import RabbitSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "RabbitSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_rabbit_settings",
]
