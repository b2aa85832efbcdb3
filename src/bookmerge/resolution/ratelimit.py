"""Per-provider sliding-window rate limiting with daily quotas."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel

from bookmerge.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class RateLimitConfig:
    """Quotas for one provider."""

    requests_per_minute: int = 60
    requests_per_day: int = 1000
    burst_limit: int = 10

    def __post_init__(self) -> None:
        for name in ("requests_per_minute", "requests_per_day", "burst_limit"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be greater than 0, got {getattr(self, name)}")


@dataclass
class RateLimitWindow:
    """Tracks admissions for one provider."""

    recent_requests: deque[float] = field(default_factory=deque)
    daily_count: int = 0
    daily_reset_at: float = 0.0


class RateLimitStatus(BaseModel):
    """Remaining quota for a provider."""

    per_minute: int
    per_day: int
    reset_at: datetime


def next_local_midnight(now: float) -> float:
    """Timestamp of the next local midnight after ``now``."""
    current = datetime.fromtimestamp(now)
    tomorrow = (current + timedelta(days=1)).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    return tomorrow.timestamp()


class RateLimiter:
    """
    Admission control for outbound provider requests.

    A request is admitted only while all three quotas hold: fewer than
    ``requests_per_minute`` and fewer than ``burst_limit`` admissions in
    the trailing 60 seconds, and fewer than ``requests_per_day`` since
    the last local midnight.

    State is kept per provider id, each behind its own lock, so one
    provider running out of quota never delays another.
    """

    def __init__(
        self,
        configs: dict[str, RateLimitConfig] | None = None,
        *,
        default_config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._configs: dict[str, RateLimitConfig] = dict(configs or {})
        self._default_config = default_config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._windows: dict[str, RateLimitWindow] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def configure(self, provider_id: str, config: RateLimitConfig) -> None:
        """Set (or replace) the quotas for a provider."""
        self._configs[provider_id] = config

    def config_for(self, provider_id: str) -> RateLimitConfig:
        return self._configs.get(provider_id, self._default_config)

    def _state(self, provider_id: str) -> tuple[threading.Lock, RateLimitWindow]:
        with self._registry_lock:
            if provider_id not in self._windows:
                self._windows[provider_id] = RateLimitWindow(
                    daily_reset_at=next_local_midnight(self._clock())
                )
                self._locks[provider_id] = threading.Lock()
            return self._locks[provider_id], self._windows[provider_id]

    def _refresh(self, window: RateLimitWindow, now: float) -> None:
        """Prune the trailing window and roll the daily counter over."""
        cutoff = now - WINDOW_SECONDS
        while window.recent_requests and window.recent_requests[0] <= cutoff:
            window.recent_requests.popleft()

        if now > window.daily_reset_at:
            window.daily_count = 0
            window.daily_reset_at = next_local_midnight(now)

    def try_admit(self, provider_id: str) -> bool:
        """Record and admit a request if every quota allows it."""
        config = self.config_for(provider_id)
        lock, window = self._state(provider_id)
        with lock:
            now = self._clock()
            self._refresh(window, now)
            in_window = len(window.recent_requests)
            if (
                in_window < config.requests_per_minute
                and in_window < config.burst_limit
                and window.daily_count < config.requests_per_day
            ):
                window.recent_requests.append(now)
                window.daily_count += 1
                return True
            return False

    def wait_time(self, provider_id: str) -> float:
        """Seconds until the oldest tracked request leaves the window."""
        lock, window = self._state(provider_id)
        with lock:
            now = self._clock()
            self._refresh(window, now)
            if not window.recent_requests:
                return 0.0
            return max(0.0, window.recent_requests[0] + WINDOW_SECONDS - now)

    async def await_slot(self, provider_id: str) -> None:
        """
        Sleep until a slot should be free.

        Admission is not guaranteed afterwards; callers re-check with
        ``try_admit``.
        """
        wait = self.wait_time(provider_id)
        if wait > 0:
            logger.debug(f"Rate limit reached for {provider_id}, waiting {wait:.2f}s")
        await self._sleep(wait)

    def daily_exhausted(self, provider_id: str) -> bool:
        config = self.config_for(provider_id)
        lock, window = self._state(provider_id)
        with lock:
            self._refresh(window, self._clock())
            return window.daily_count >= config.requests_per_day

    def remaining(self, provider_id: str) -> RateLimitStatus:
        """Requests left in the current minute and day."""
        config = self.config_for(provider_id)
        lock, window = self._state(provider_id)
        with lock:
            self._refresh(window, self._clock())
            per_minute = min(config.requests_per_minute, config.burst_limit) - len(
                window.recent_requests
            )
            return RateLimitStatus(
                per_minute=max(0, per_minute),
                per_day=max(0, config.requests_per_day - window.daily_count),
                reset_at=datetime.fromtimestamp(window.daily_reset_at, tz=timezone.utc),
            )

    async def acquire(self, provider_id: str, max_wait: float | None = None) -> None:
        """
        Wait for admission.

        Raises:
            RateLimitError: If the daily quota is spent, or admission would
                take longer than ``max_wait`` seconds.
        """
        waited = 0.0
        while not self.try_admit(provider_id):
            if self.daily_exhausted(provider_id):
                lock, window = self._state(provider_id)
                with lock:
                    retry_after = max(0.0, window.daily_reset_at - self._clock())
                raise RateLimitError(
                    message="Daily request quota exhausted",
                    source=provider_id,
                    retry_after=retry_after,
                )

            wait = self.wait_time(provider_id)
            if max_wait is not None and waited + wait > max_wait:
                raise RateLimitError(
                    message=f"Rate limit wait of {wait:.1f}s exceeds {max_wait:.1f}s",
                    source=provider_id,
                    retry_after=wait,
                )
            await self.await_slot(provider_id)
            waited += wait
