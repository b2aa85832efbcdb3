"""Lookup service: fan out, merge, group editions."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from pydantic import BaseModel, Field

from bookmerge.cache.store import CacheAnalytics, ErrorHook, combine_analytics, log_error_hook
from bookmerge.core.exceptions import BookmergeError, ValidationError
from bookmerge.core.identifiers import extract_unique_isbns, looks_like_isbn
from bookmerge.core.models import EditionGroup, MergedBookRecord, SearchCriteria
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.merge.editions import EditionGrouper
from bookmerge.merge.engine import MergeEngine
from bookmerge.resolution.base import ProviderResult
from bookmerge.resolution.fanout import FanOutResult
from bookmerge.resolution.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class LookupResult(BaseModel):
    """Merged, edition-grouped answer for one identifier."""

    status: ResolutionStatus
    identifier: str
    records: list[MergedBookRecord] = Field(default_factory=list)
    editions: list[EditionGroup] = Field(default_factory=list)
    sources: set[SourceName] = Field(default_factory=set)
    failures: dict[SourceName, ProviderResult] = Field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.status == ResolutionStatus.SUCCESS

    @property
    def best_record(self) -> MergedBookRecord | None:
        """The most confident merged record."""
        if not self.records:
            return None
        return max(self.records, key=lambda r: r.confidence)


class SearchPage(BaseModel):
    """One page of criteria search results."""

    status: ResolutionStatus
    criteria: SearchCriteria
    records: list[MergedBookRecord] = Field(default_factory=list)
    editions: list[EditionGroup] = Field(default_factory=list)
    sources: set[SourceName] = Field(default_factory=set)
    failures: dict[SourceName, ProviderResult] = Field(default_factory=dict)
    page: int
    page_size: int
    total: int = 0
    has_more: bool = False
    duration_ms: float = 0.0


class LookupService:
    """
    Answers lookups by running every provider and reconciling the results.

    Flow for one request:
    1. Fan out to all providers (each consults its own cache first)
    2. Merge records by normalized key
    3. Group merged records into editions
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        *,
        merge_engine: MergeEngine | None = None,
        grouper: EditionGrouper | None = None,
        error_hook: ErrorHook | None = None,
        hot_keys_limit: int = 10,
    ) -> None:
        self._registry = registry
        self._merge_engine = merge_engine or MergeEngine()
        self._grouper = grouper or EditionGrouper()
        self._error_hook = error_hook or log_error_hook
        self.hot_keys_limit = hot_keys_limit

    def _reconcile(
        self, fan_out: FanOutResult
    ) -> tuple[list[MergedBookRecord], list[EditionGroup], set[SourceName]]:
        records = self._merge_engine.merge(fan_out.record_lists)
        editions = self._grouper.group(records)
        sources = {source for record in records for source in record.sources}
        return records, editions, sources

    async def lookup_by_identifier(self, identifier: str) -> LookupResult:
        """
        Look up a single book by ISBN (or provider-specific ID).

        Raises:
            ValidationError: If the identifier is blank
        """
        start = time.monotonic()
        identifier = identifier.strip()
        if not identifier:
            raise ValidationError("Identifier must not be empty")

        if looks_like_isbn(identifier):
            identifier = extract_unique_isbns([identifier])[0]

        fan_out = await self._registry.fan_out().fetch_by_identifier(identifier)
        records, editions, sources = self._reconcile(fan_out)

        status = ResolutionStatus.SUCCESS if records else ResolutionStatus.NOT_FOUND
        if not records:
            logger.info(
                f"No provider found {identifier}: "
                + ", ".join(f"{s}={r.status}" for s, r in fan_out.failures.items())
            )

        return LookupResult(
            status=status,
            identifier=identifier,
            records=records,
            editions=editions,
            sources=sources,
            failures=fan_out.failures,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    async def lookup_by_criteria(self, criteria: SearchCriteria) -> SearchPage:
        """
        Search by title, author, publisher and/or subject.

        Raises:
            ValidationError: If no search field is long enough to send
        """
        start = time.monotonic()
        if not criteria.is_searchable:
            raise ValidationError(
                "At least one of title, author, publisher or subject is required",
                details={"criteria": criteria.terms()},
            )

        fan_out = await self._registry.fan_out().search(criteria)
        records, editions, sources = self._reconcile(fan_out)

        seen_before = (criteria.page - 1) * criteria.page_size
        total = fan_out.total_items or seen_before + len(records)
        return SearchPage(
            status=ResolutionStatus.SUCCESS if records else ResolutionStatus.NOT_FOUND,
            criteria=criteria,
            records=records,
            editions=editions,
            sources=sources,
            failures=fan_out.failures,
            page=criteria.page,
            page_size=criteria.page_size,
            total=total,
            has_more=criteria.page * criteria.page_size < total,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    def cache_analytics(self, limit: int | None = None) -> CacheAnalytics:
        """Combined analytics of every provider cache."""
        limit = limit or self.hot_keys_limit
        return combine_analytics(
            (cache.analytics(limit) for cache in self._registry.caches.values()),
            limit=limit,
        )

    async def prewarm(self, queries: Iterable[SearchCriteria]) -> int:
        """
        Issue common searches so their results are cached.

        Failures never propagate; each one is passed to the error hook.

        Returns:
            Number of queries that produced records
        """
        warmed = 0
        for criteria in queries:
            try:
                page = await self.lookup_by_criteria(criteria)
            except BookmergeError as e:
                self._error_hook("prewarm", e)
                continue

            for source, failure in page.failures.items():
                if failure.status != ResolutionStatus.NOT_FOUND:
                    self._error_hook(
                        "prewarm",
                        BookmergeError(
                            f"{source}: {failure.error_message}",
                            details={"status": failure.status, "criteria": criteria.terms()},
                        ),
                    )
            if page.records:
                warmed += 1

        logger.info(f"Cache pre-warm finished: {warmed} queries returned records")
        return warmed
