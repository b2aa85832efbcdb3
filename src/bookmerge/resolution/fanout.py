"""Concurrent fan-out of one query across every provider."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from bookmerge.core.models import RawProviderRecord, SearchCriteria
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.resolution.base import AbstractProvider, ProviderResult

logger = logging.getLogger(__name__)

ProviderCall = Callable[[AbstractProvider], Awaitable[ProviderResult]]


@dataclass
class FanOutConfig:
    """Configuration for fan-out."""

    # Timeout for the whole fan-out (seconds); slower providers are cancelled
    total_timeout: float = 30.0


@dataclass
class FanOutResult:
    """Results from every provider that was asked."""

    results: list[ProviderResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether any provider returned records."""
        return any(r.success for r in self.results)

    @property
    def sources_tried(self) -> list[SourceName]:
        return [r.source for r in self.results]

    @property
    def record_lists(self) -> list[list[RawProviderRecord]]:
        """One record list per successful provider, in provider order."""
        return [r.records for r in self.results if r.success]

    @property
    def failures(self) -> dict[SourceName, ProviderResult]:
        return {r.source: r for r in self.results if not r.success}

    @property
    def total_items(self) -> int | None:
        """Largest total any provider reported."""
        totals = [r.total_items for r in self.results if r.total_items is not None]
        return max(totals) if totals else None


class ProviderFanOut:
    """
    Issues one query to all enabled providers in parallel.

    Provider failures become entries in ``FanOutResult.failures``; only a
    provider that outlives ``total_timeout`` is cancelled, and it is then
    reported with a TIMEOUT status.
    """

    def __init__(
        self,
        providers: list[AbstractProvider],
        config: FanOutConfig | None = None,
    ) -> None:
        self._providers = [p for p in providers if p.is_enabled]
        self.config = config or FanOutConfig()

    @property
    def providers(self) -> list[AbstractProvider]:
        return list(self._providers)

    async def fetch_by_identifier(self, identifier: str) -> FanOutResult:
        return await self._run(lambda provider: provider.fetch_by_identifier(identifier))

    async def search(self, criteria: SearchCriteria) -> FanOutResult:
        return await self._run(lambda provider: provider.search(criteria))

    async def _try_provider(
        self,
        provider: AbstractProvider,
        call: ProviderCall,
    ) -> ProviderResult:
        """Run one provider call, turning unexpected faults into an ERROR result."""
        try:
            return await call(provider)
        except Exception as e:
            logger.exception(f"Provider {provider.source_name} failed: {e}")
            return ProviderResult(
                status=ResolutionStatus.ERROR,
                source=provider.source_name,
                error_message=str(e),
                error_type=type(e).__name__,
            )

    async def _run(self, call: ProviderCall) -> FanOutResult:
        if not self._providers:
            logger.warning("No providers enabled")
            return FanOutResult()

        tasks = [
            asyncio.create_task(self._try_provider(provider, call))
            for provider in self._providers
        ]
        done, pending = await asyncio.wait(tasks, timeout=self.config.total_timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[ProviderResult] = []
        for provider, task in zip(self._providers, tasks):
            if task in done:
                results.append(task.result())
            else:
                logger.warning(
                    f"Provider {provider.source_name} cancelled after "
                    f"{self.config.total_timeout}s"
                )
                results.append(
                    ProviderResult(
                        status=ResolutionStatus.TIMEOUT,
                        source=provider.source_name,
                        error_message=f"Cancelled after {self.config.total_timeout}s",
                        error_type="TimeoutError",
                    )
                )
        return FanOutResult(results=results)
