"""Per-channel pacing for outbound provider calls.

A ``ChannelRateLimiter`` enforces a minimum interval between physical sends
on one channel. It is a non-bursting throttle, not a token bucket: there is
no banked capacity, and every caller on the channel serializes against the
same last-send timestamp. Throughput therefore converges on
``max_per_second`` no matter how many workers share the limiter.

Each caller reserves its slot by moving the last-send timestamp forward before
it sleeps, so concurrent callers on one event loop queue up one interval apart
without holding a lock across the wait.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from functools import lru_cache

logger = logging.getLogger(__name__)

EMAIL_CHANNEL = "email"
SMS_CHANNEL = "sms"


class ChannelRateLimiter:
    """Minimum-interval throttle for one delivery channel.

    Attributes:
        channel: Channel name used in log records.
        max_per_second: Nominal ceiling on sends per second.
        min_interval: Seconds that must separate two sends.

    Example:
        limiter = ChannelRateLimiter("sms", max_per_second=3)
        await limiter.acquire()  # waits until ~333ms after the previous send
        await gateway.send(phone, message)
    """

    def __init__(
        self,
        channel: str,
        max_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if max_per_second <= 0:
            msg = f"max_per_second must be positive, got {max_per_second}"
            raise ValueError(msg)
        self.channel = channel
        self.max_per_second = max_per_second
        self.min_interval = 1.0 / max_per_second
        self._clock = clock
        self._sleep = sleep
        self._last_sent: float | None = None

    @property
    def last_sent(self) -> float | None:
        return self._last_sent

    async def acquire(self) -> float:
        """Reserve the next send slot on the channel and wait for it.

        Returns:
            Seconds spent waiting (0.0 when no wait was needed).
        """
        now = self._clock()
        slot = now if self._last_sent is None else max(now, self._last_sent + self.min_interval)
        self._last_sent = slot
        waited = slot - now
        if waited > 0:
            logger.debug(
                "Pacing outbound send",
                extra={"channel": self.channel, "wait_seconds": round(waited, 4)},
            )
            await self._sleep(waited)
        return waited

    def reset(self) -> None:
        self._last_sent = None

    def __repr__(self) -> str:
        return f"ChannelRateLimiter(channel={self.channel!r}, max_per_second={self.max_per_second})"


class RateLimiterRegistry:
    """Owns one limiter per channel for the lifetime of a process.

    Passed explicitly to gateway adapters, job processors and the dispatch
    coordinator. Tests build their own registry instead of patching globals.
    """

    def __init__(self, limiters: dict[str, ChannelRateLimiter] | None = None) -> None:
        self._limiters: dict[str, ChannelRateLimiter] = dict(limiters or {})

    @classmethod
    def from_rates(
        cls,
        rates: dict[str, float],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> RateLimiterRegistry:
        return cls(
            {
                channel: ChannelRateLimiter(channel, rate, clock=clock, sleep=sleep)
                for channel, rate in rates.items()
            }
        )

    def for_channel(self, channel: str) -> ChannelRateLimiter:
        try:
            return self._limiters[channel]
        except KeyError:
            msg = f"No rate limiter registered for channel '{channel}'"
            raise KeyError(msg) from None

    @property
    def email(self) -> ChannelRateLimiter:
        return self.for_channel(EMAIL_CHANNEL)

    @property
    def sms(self) -> ChannelRateLimiter:
        return self.for_channel(SMS_CHANNEL)

    def channels(self) -> list[str]:
        return sorted(self._limiters)


@lru_cache(maxsize=1)
def get_rate_limiter_registry() -> RateLimiterRegistry:
    """Process-wide registry built from ``NotificationSettings``."""
    from dispatch_service.core.settings import get_notification_settings

    settings = get_notification_settings()
    registry = RateLimiterRegistry.from_rates(
        {
            EMAIL_CHANNEL: settings.email_rate_per_second,
            SMS_CHANNEL: settings.sms_rate_per_second,
        }
    )
    logger.info(
        "Channel rate limiters configured",
        extra={
            "email_per_second": settings.email_rate_per_second,
            "sms_per_second": settings.sms_rate_per_second,
        },
    )
    return registry
