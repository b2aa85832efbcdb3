"""Main library client for standalone usage."""

from __future__ import annotations

import logging

from bookmerge.cache.store import CacheAnalytics, ErrorHook
from bookmerge.config import BookmergeSettings
from bookmerge.core.models import SearchCriteria
from bookmerge.merge.engine import MergeEngine, MergePolicy
from bookmerge.resolution.ratelimit import RateLimitStatus
from bookmerge.resolution.registry import ProviderRegistry
from bookmerge.services.lookup import LookupResult, LookupService, SearchPage

logger = logging.getLogger(__name__)


class BookmergeClient:
    """
    Main client for the bookmerge library.

    Provides merged, edition-grouped book metadata from every configured
    provider without requiring the web server.

    Usage:
        async with BookmergeClient() as client:
            # Look up a book by ISBN
            result = await client.lookup("978-0-14-312755-0")

            # Search by title and author
            page = await client.search(title="Venture Deals", author="Brad Feld")

            # Inspect cache effectiveness
            analytics = client.cache_analytics()

    Settings are loaded from environment variables or can be passed explicitly.
    """

    def __init__(
        self,
        settings: BookmergeSettings | None = None,
        *,
        registry: ProviderRegistry | None = None,
        merge_policy: MergePolicy | None = None,
        error_hook: ErrorHook | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Application settings. If not provided, loaded from environment.
            registry: Pre-built provider registry (built from settings otherwise).
            merge_policy: Source precedence and scoring (from settings otherwise).
            error_hook: Receives non-fatal cache and pre-warm errors.
        """
        self._settings = settings or BookmergeSettings()
        self._registry = registry
        self._merge_policy = merge_policy
        self._error_hook = error_hook
        self._service: LookupService | None = None

    async def __aenter__(self) -> BookmergeClient:
        """Initialize resources on context entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Clean up resources on context exit."""
        await self.close()

    async def _initialize(self) -> None:
        """Build the registry, restore caches and optionally pre-warm."""
        if self._registry is None:
            self._registry = ProviderRegistry.from_settings(
                self._settings, error_hook=self._error_hook
            )
        await self._registry.start()

        policy = self._merge_policy or MergePolicy.from_settings(self._settings.merge)
        self._service = LookupService(
            self._registry,
            merge_engine=MergeEngine(policy),
            error_hook=self._error_hook,
            hot_keys_limit=self._settings.cache.hot_keys_limit,
        )

        if self._settings.cache.prewarm_on_start:
            await self._service.prewarm(self._settings.cache.prewarm_queries)

    async def close(self) -> None:
        """Close providers and flush caches."""
        if self._registry:
            await self._registry.close_all()
        self._service = None

    def _ensure_initialized(self) -> LookupService:
        """Ensure client is initialized."""
        if self._service is None:
            raise RuntimeError(
                "Client not initialized. Use 'async with BookmergeClient() as client:'"
            )
        return self._service

    @property
    def registry(self) -> ProviderRegistry:
        self._ensure_initialized()
        assert self._registry is not None
        return self._registry

    async def lookup(self, identifier: str) -> LookupResult:
        """
        Look up a book by ISBN-10, ISBN-13 or provider-specific ID.

        Returns:
            LookupResult with NOT_FOUND status when no provider has the book
        """
        return await self._ensure_initialized().lookup_by_identifier(identifier)

    async def search(
        self,
        title: str | None = None,
        author: str | None = None,
        *,
        publisher: str | None = None,
        subject: str | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> SearchPage:
        """Search by any combination of title, author, publisher and subject."""
        criteria = SearchCriteria(
            title=title,
            author=author,
            publisher=publisher,
            subject=subject,
            page=page,
            page_size=page_size,
        )
        return await self._ensure_initialized().lookup_by_criteria(criteria)

    def cache_analytics(self, limit: int | None = None) -> CacheAnalytics:
        """Combined cache statistics and hot keys across providers."""
        return self._ensure_initialized().cache_analytics(limit)

    def rate_limit_status(self) -> dict[str, RateLimitStatus]:
        """Remaining quota per provider."""
        return dict(self.registry.rate_limit_status())


# Convenience function for one-off lookups
async def lookup_book(
    identifier: str,
    *,
    settings: BookmergeSettings | None = None,
) -> LookupResult:
    """
    Look up a book (convenience function).

    For multiple lookups, use BookmergeClient so caches and rate limits are shared.
    """
    async with BookmergeClient(settings) as client:
        return await client.lookup(identifier)
