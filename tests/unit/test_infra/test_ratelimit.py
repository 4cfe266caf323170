"""Tests for per-channel outbound pacing."""

from __future__ import annotations

import asyncio
import time

import pytest

from dispatch_service.infra.ratelimit import ChannelRateLimiter, RateLimiterRegistry


class FakeClock:
    """Monotonic clock that only moves when sleep is awaited or advance is called."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    async def yielding_sleep(self, seconds: float) -> None:
        """Like ``sleep`` but lets other tasks run before the clock catches up."""
        self.sleeps.append(seconds)
        deadline = self.now + seconds
        await asyncio.sleep(0)
        self.now = max(self.now, deadline)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestChannelRateLimiter:
    """Minimum-interval throttle behaviour."""

    async def test_first_acquire_does_not_wait(self, clock: FakeClock) -> None:
        limiter = ChannelRateLimiter("sms", 3, clock=clock, sleep=clock.sleep)

        waited = await limiter.acquire()

        assert waited == 0.0
        assert clock.sleeps == []
        assert limiter.last_sent == 100.0

    async def test_back_to_back_sends_are_spaced_by_min_interval(self, clock: FakeClock) -> None:
        limiter = ChannelRateLimiter("sms", 4, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        waited = await limiter.acquire()

        assert waited == pytest.approx(0.25)
        assert clock.sleeps == [pytest.approx(0.25)]

    async def test_only_the_remaining_interval_is_waited(self, clock: FakeClock) -> None:
        limiter = ChannelRateLimiter("email", 2, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        clock.advance(0.2)
        waited = await limiter.acquire()

        assert waited == pytest.approx(0.3)

    async def test_no_banked_capacity_after_idle(self, clock: FakeClock) -> None:
        """An idle period lets exactly one send through immediately, not a burst."""
        limiter = ChannelRateLimiter("sms", 10, clock=clock, sleep=clock.sleep)

        await limiter.acquire()
        clock.advance(5.0)
        first = await limiter.acquire()
        second = await limiter.acquire()

        assert first == 0.0
        assert second == pytest.approx(0.1)

    async def test_reset_forgets_last_send(self, clock: FakeClock) -> None:
        limiter = ChannelRateLimiter("sms", 1, clock=clock, sleep=clock.sleep)
        await limiter.acquire()

        limiter.reset()

        assert limiter.last_sent is None
        assert await limiter.acquire() == 0.0

    @pytest.mark.parametrize("rate", [0, -1])
    def test_rejects_non_positive_rate(self, rate: float) -> None:
        with pytest.raises(ValueError, match="must be positive"):
            ChannelRateLimiter("sms", rate)

    def test_min_interval(self) -> None:
        assert ChannelRateLimiter("email", 10).min_interval == pytest.approx(0.1)

    async def test_real_clock_throughput_converges_on_rate(self) -> None:
        """Five sends at 3/s need at least four intervals of 1/3 s."""
        limiter = ChannelRateLimiter("sms", 3)

        start = time.monotonic()
        for _ in range(5):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        assert elapsed >= 4 / 3 - 0.01

    async def test_concurrent_callers_share_one_limiter(self, clock: FakeClock) -> None:
        limiter = ChannelRateLimiter("sms", 5, clock=clock, sleep=clock.sleep)

        await asyncio.gather(*(limiter.acquire() for _ in range(3)))

        assert limiter.last_sent is not None
        assert limiter.last_sent >= 100.0 + 0.2

    @pytest.mark.parametrize("callers", [2, 5, 8])
    async def test_gathered_acquires_take_at_least_n_minus_one_intervals(
        self, clock: FakeClock, callers: int
    ) -> None:
        """Sleepers that yield to the loop still leave one interval between sends."""
        limiter = ChannelRateLimiter("sms", 5, clock=clock, sleep=clock.yielding_sleep)

        async def send() -> float:
            await limiter.acquire()
            return clock()

        sent_at = sorted(await asyncio.gather(*(send() for _ in range(callers))))

        assert clock.now - 100.0 >= (callers - 1) * limiter.min_interval - 1e-9
        gaps = [later - earlier for earlier, later in zip(sent_at, sent_at[1:])]
        assert all(gap >= limiter.min_interval - 1e-9 for gap in gaps)


class TestRateLimiterRegistry:
    """Registry of one limiter per channel."""

    def test_from_rates_builds_one_limiter_per_channel(self) -> None:
        registry = RateLimiterRegistry.from_rates({"email": 10, "sms": 3})

        assert registry.channels() == ["email", "sms"]
        assert registry.email.max_per_second == 10
        assert registry.sms.min_interval == pytest.approx(1 / 3)

    def test_unknown_channel_raises_key_error(self) -> None:
        registry = RateLimiterRegistry.from_rates({"email": 10})

        with pytest.raises(KeyError, match="push"):
            registry.for_channel("push")

    def test_same_limiter_returned_each_time(self) -> None:
        registry = RateLimiterRegistry.from_rates({"sms": 3})

        assert registry.sms is registry.for_channel("sms")
