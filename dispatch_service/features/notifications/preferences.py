"""Per-user notification preferences and the resolver that applies them.

Preferences live on the user profile as a JSON blob. Older profiles carry an
untyped shape (camelCase ``quietHours``, upper-case channel keys, sometimes a
JSON string, sometimes nested under ``notifications``); ``from_legacy`` turns
any of those into the typed model and never raises.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.notifications.schemas import (
    Channel,
    NotificationType,
    SuppressionReason,
    normalize_key,
)

if TYPE_CHECKING:
    from dispatch_service.features.notifications.schemas import NotificationTrigger

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def parse_hhmm(value: Any) -> int | None:
    """Minutes since midnight for an ``HH:MM`` string, or ``None`` if unparseable."""
    if not isinstance(value, str):
        return None
    match = _HHMM.match(value)
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def _truthy(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _falsy(value: Any) -> bool:
    return value is False or (isinstance(value, str) and value.strip().lower() == "false")


class QuietHours(BaseModel):
    """Daily window during which every notification is suppressed.

    Bounds are inclusive. A window whose start is after its end wraps past
    midnight, e.g. ``22:00``-``06:00``.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    start: str = "22:00"
    end: str = "06:00"

    def contains(self, minute_of_day: int) -> bool:
        if not self.enabled:
            return False
        start, end = parse_hhmm(self.start), parse_hhmm(self.end)
        if start is None or end is None:
            logger.debug(
                "Ignoring unparseable quiet hours",
                extra={"start": self.start, "end": self.end},
            )
            return False
        if start <= end:
            return start <= minute_of_day <= end
        return minute_of_day >= start or minute_of_day <= end


class ChannelPreferences(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: bool = True
    sms: bool = True
    in_app: bool = True

    def allows(self, channel: Channel) -> bool:
        return bool(getattr(self, channel.preference_key))


class NotificationPreferences(BaseModel):
    """Typed preference structure stored on the user profile.

    ``types`` only lists overrides; a type that is absent is allowed.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    channels: ChannelPreferences = Field(default_factory=ChannelPreferences)
    types: dict[NotificationType, bool] = Field(default_factory=dict)
    quiet_hours: QuietHours = Field(default_factory=QuietHours)

    def type_allowed(self, notification_type: NotificationType) -> bool:
        return self.types.get(notification_type, True)

    @classmethod
    def from_legacy(cls, blob: Any) -> NotificationPreferences:
        """Migrate a stored preference blob of any historical shape.

        - ``None``, non-objects and invalid JSON yield the defaults
        - a nested ``{"notifications": {...}}`` profile section is unwrapped
        - when a channel map is present, only channels explicitly set to
          ``true`` stay enabled
        - type overrides only ever disable (``false``); unknown keys are dropped
        """
        if isinstance(blob, str):
            try:
                blob = json.loads(blob)
            except ValueError:
                logger.warning("Preference blob is not valid JSON, using defaults")
                return cls()
        if not isinstance(blob, dict):
            return cls()
        nested = blob.get("notifications")
        if isinstance(nested, dict) and not {"enabled", "channels", "types"} & blob.keys():
            blob = nested

        channels = ChannelPreferences()
        raw_channels = blob.get("channels")
        if isinstance(raw_channels, dict):
            normalized = {normalize_key(key): value for key, value in raw_channels.items()}
            channels = ChannelPreferences(
                **{
                    channel.preference_key: _truthy(normalized.get(normalize_key(channel.value)))
                    for channel in Channel
                }
            )

        types: dict[NotificationType, bool] = {}
        raw_types = blob.get("types")
        if isinstance(raw_types, dict):
            for key, value in raw_types.items():
                notification_type = NotificationType.parse(key)
                if notification_type is not None and _falsy(value):
                    types[notification_type] = False

        quiet_hours = QuietHours()
        raw_quiet = blob.get("quiet_hours", blob.get("quietHours"))
        if isinstance(raw_quiet, dict):
            quiet_hours = QuietHours(
                enabled=_truthy(raw_quiet.get("enabled")),
                # a missing bound stays empty and never matches
                start=str(raw_quiet.get("start") or ""),
                end=str(raw_quiet.get("end") or ""),
            )

        return cls(
            enabled=not _falsy(blob.get("enabled")),
            channels=channels,
            types=types,
            quiet_hours=quiet_hours,
        )


# ============================================================================
# Resolution
# ============================================================================


@dataclass(frozen=True, slots=True)
class Allowed:
    channels: tuple[Channel, ...]

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Suppressed:
    reason: SuppressionReason

    @property
    def allowed(self) -> bool:
        return False


type PreferenceDecision = Allowed | Suppressed


def local_now() -> datetime:
    """Current time in the timezone configured for quiet hours."""
    return datetime.now(ZoneInfo(get_notification_settings().timezone))


def resolve(
    preferences: NotificationPreferences,
    trigger: NotificationTrigger,
    now: datetime | None = None,
) -> PreferenceDecision:
    """Decide which of the trigger's channels a user receives.

    Checks run in order and the first veto wins: global switch, type
    override, quiet hours, then whether any channel is left.

    Example:
        decision = resolve(prefs, trigger)
        if isinstance(decision, Suppressed):
            logger.info("suppressed", extra={"reason": decision.reason})
    """
    if not preferences.enabled:
        return Suppressed(SuppressionReason.DISABLED)

    channels = tuple(channel for channel in trigger.channels if preferences.channels.allows(channel))

    if not preferences.type_allowed(trigger.type):
        return Suppressed(SuppressionReason.TYPE_DISABLED)

    if preferences.quiet_hours.enabled:
        current = now or local_now()
        if preferences.quiet_hours.contains(current.hour * 60 + current.minute):
            return Suppressed(SuppressionReason.QUIET_HOURS)

    if not channels:
        return Suppressed(SuppressionReason.NO_CHANNELS)

    return Allowed(channels)
