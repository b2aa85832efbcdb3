"""Exponential backoff with jitter for retrying provider calls."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from bookmerge.core.exceptions import ExhaustedRetriesError, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_MAX_MS = 1000.0


@dataclass
class RetryConfig:
    """Retry budget for one provider. ``retry_attempts`` counts every try."""

    retry_attempts: int = 3
    base_delay_ms: float = 1000.0
    max_delay_ms: float = 10000.0
    jitter: bool = True


def default_retry_on(error: BaseException) -> bool:
    """Retry provider errors flagged retryable, and any foreign exception."""
    if isinstance(error, ProviderError):
        return error.retryable
    return True


class Backoff:
    """
    Runs an async operation, retrying failures with exponential delays.

    The delay before retry ``n`` is ``min(base * 2**(n-1), max)``
    milliseconds plus up to one second of random jitter. Every call to
    ``execute`` keeps its own attempt counter, so one instance can be
    shared by concurrent callers.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        source: str = "unknown",
        retry_on: Callable[[BaseException], bool] = default_retry_on,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self.config = config or RetryConfig()
        self.source = source
        self._retry_on = retry_on
        self._sleep = sleep
        self._rng = rng

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
        delay_ms = min(
            self.config.base_delay_ms * 2 ** (attempt - 1),
            self.config.max_delay_ms,
        )
        if self.config.jitter:
            delay_ms += self._rng() * JITTER_MAX_MS
        return delay_ms / 1000.0

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` until it succeeds or the budget is spent.

        Errors rejected by ``retry_on`` propagate immediately. With a budget
        of one attempt the error propagates unchanged.

        Raises:
            ExhaustedRetriesError: After more than one attempt failed, chained
                to the last error.
        """
        max_attempts = max(1, self.config.retry_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not self._retry_on(e):
                    raise
                if attempt == max_attempts:
                    if max_attempts == 1:
                        raise
                    raise ExhaustedRetriesError(
                        message=f"Gave up after {attempt} attempts: {e}",
                        source=self.source,
                        attempts=attempt,
                        last_error=e,
                    ) from e

                delay = self.delay_for(attempt)
                # Never retry before the provider's Retry-After has elapsed
                retry_after = getattr(e, "retry_after", None)
                if retry_after:
                    delay = max(delay, retry_after)
                logger.debug(
                    f"{self.source}: attempt {attempt}/{max_attempts} failed ({e!r}), "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        raise AssertionError("unreachable")
