"""Outbound send pacing."""

from .limiter import (
    EMAIL_CHANNEL,
    SMS_CHANNEL,
    ChannelRateLimiter,
    RateLimiterRegistry,
    get_rate_limiter_registry,
)

__all__ = [
    "EMAIL_CHANNEL",
    "SMS_CHANNEL",
    "ChannelRateLimiter",
    "RateLimiterRegistry",
    "get_rate_limiter_registry",
]
