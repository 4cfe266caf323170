"""Runtime key-value settings store."""

from .models import SystemSetting
from .reader import QueueConfig, SettingsReader
from .repository import SystemSettingRepository, get_system_setting_repository

__all__ = [
    "QueueConfig",
    "SettingsReader",
    "SystemSetting",
    "SystemSettingRepository",
    "get_system_setting_repository",
]
