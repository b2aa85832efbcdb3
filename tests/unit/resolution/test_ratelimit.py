"""Tests for the per-provider rate limiter."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from bookmerge.core.exceptions import RateLimitError
from bookmerge.resolution.ratelimit import RateLimitConfig, RateLimiter


@pytest.fixture
def limiter(clock) -> RateLimiter:
    return RateLimiter(
        {"isbndb": RateLimitConfig(requests_per_minute=20, requests_per_day=1000, burst_limit=10)},
        clock=clock,
        sleep=clock.sleep,
    )


# ============================================================================
# Config Tests
# ============================================================================


class TestRateLimitConfig:
    """Tests for quota validation."""

    @pytest.mark.parametrize("field", ["requests_per_minute", "requests_per_day", "burst_limit"])
    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_quota_rejected(self, field, value):
        with pytest.raises(ValueError, match=field):
            RateLimitConfig(**{field: value})

    def test_defaults_valid(self):
        config = RateLimitConfig()
        assert config.requests_per_minute == 60


# ============================================================================
# Admission Tests
# ============================================================================


class TestTryAdmit:
    """Tests for the non-blocking admission check."""

    def test_burst_caps_admissions(self, limiter: RateLimiter):
        """With rpm 20 and burst 10, 25 instant calls admit exactly 10."""
        admitted = sum(limiter.try_admit("isbndb") for _ in range(25))
        assert admitted == 10

    def test_per_minute_caps_when_lower_than_burst(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=3, burst_limit=10)}, clock=clock
        )
        assert sum(limiter.try_admit("p") for _ in range(10)) == 3

    def test_window_slides(self, limiter: RateLimiter, clock):
        for _ in range(10):
            limiter.try_admit("isbndb")
        assert not limiter.try_admit("isbndb")

        clock.advance(59)
        assert not limiter.try_admit("isbndb")

        clock.advance(1)
        assert limiter.try_admit("isbndb")

    def test_daily_quota_and_rollover(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=100, requests_per_day=5, burst_limit=100)},
            clock=clock,
        )
        assert sum(limiter.try_admit("p") for _ in range(8)) == 5
        assert limiter.daily_exhausted("p")

        clock.advance(61)
        assert not limiter.try_admit("p")

        clock.advance(86_400)
        assert limiter.try_admit("p")
        assert limiter.remaining("p").per_day == 4

    def test_providers_are_independent(self, limiter: RateLimiter):
        for _ in range(10):
            limiter.try_admit("isbndb")
        assert not limiter.try_admit("isbndb")
        assert limiter.try_admit("google_books")

    def test_unconfigured_provider_uses_default(self, clock):
        limiter = RateLimiter(default_config=RateLimitConfig(burst_limit=2), clock=clock)
        assert sum(limiter.try_admit("anything") for _ in range(5)) == 2

    def test_concurrent_callers_never_exceed_burst(self):
        """Admission is atomic across threads."""
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=20, burst_limit=10)}
        )
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: limiter.try_admit("p"), range(25)))
        assert sum(results) == 10


# ============================================================================
# Remaining Quota Tests
# ============================================================================


class TestRemaining:
    """Tests for quota reporting."""

    def test_fresh_provider(self, limiter: RateLimiter):
        status = limiter.remaining("isbndb")
        assert status.per_minute == 10
        assert status.per_day == 1000

    def test_after_admissions(self, limiter: RateLimiter):
        for _ in range(3):
            limiter.try_admit("isbndb")
        status = limiter.remaining("isbndb")
        assert status.per_minute == 7
        assert status.per_day == 997

    def test_reset_at_is_in_the_future(self, limiter: RateLimiter, clock):
        status = limiter.remaining("isbndb")
        assert status.reset_at.timestamp() > clock.now

    def test_minute_quota_recovers(self, limiter: RateLimiter, clock):
        for _ in range(10):
            limiter.try_admit("isbndb")
        assert limiter.remaining("isbndb").per_minute == 0
        clock.advance(61)
        assert limiter.remaining("isbndb").per_minute == 10


# ============================================================================
# Waiting Tests
# ============================================================================


class TestAcquire:
    """Tests for blocking admission."""

    async def test_waits_for_window(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=2, burst_limit=2)},
            clock=clock,
            sleep=clock.sleep,
        )
        await limiter.acquire("p")
        await limiter.acquire("p")
        await limiter.acquire("p")
        assert clock.sleeps == [60.0]

    async def test_no_wait_when_slot_free(self, limiter: RateLimiter, clock):
        await limiter.acquire("isbndb")
        assert clock.sleeps == []

    async def test_await_slot_sleeps_until_oldest_expires(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(burst_limit=1)}, clock=clock, sleep=clock.sleep
        )
        limiter.try_admit("p")
        clock.advance(20)
        await limiter.await_slot("p")
        assert clock.sleeps == [40.0]
        assert limiter.try_admit("p")

    async def test_max_wait_exceeded(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=1, burst_limit=1)},
            clock=clock,
            sleep=clock.sleep,
        )
        await limiter.acquire("p")
        with pytest.raises(RateLimitError) as exc_info:
            await limiter.acquire("p", max_wait=10)
        assert exc_info.value.retry_after == 60.0
        assert clock.sleeps == []

    async def test_daily_exhausted_raises(self, clock):
        limiter = RateLimiter(
            {"p": RateLimitConfig(requests_per_minute=10, requests_per_day=1, burst_limit=10)},
            clock=clock,
            sleep=clock.sleep,
        )
        await limiter.acquire("p")
        with pytest.raises(RateLimitError, match="Daily") as exc_info:
            await limiter.acquire("p")
        assert exc_info.value.retry_after > 0
