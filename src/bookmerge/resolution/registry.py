"""Provider registry owning the per-provider limiter and cache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from bookmerge.cache.snapshot import FileSnapshotStore, RedisSnapshotStore, SnapshotStore
from bookmerge.cache.store import ErrorHook, TTLCache
from bookmerge.core.types import SourceName
from bookmerge.resolution.base import AbstractProvider, ProviderConfig
from bookmerge.resolution.fanout import FanOutConfig, ProviderFanOut
from bookmerge.resolution.ratelimit import RateLimiter, RateLimitStatus

if TYPE_CHECKING:
    from bookmerge.config import BookmergeSettings, CacheSettings

logger = logging.getLogger(__name__)


def snapshot_path(base: str | Path, source: SourceName | str) -> Path:
    """Per-provider snapshot file: ``api-cache.json`` -> ``api-cache-isbndb.json``."""
    base = Path(base)
    return base.with_name(f"{base.stem}-{source}{base.suffix}")


class ProviderRegistry:
    """
    Built once at startup; holds one provider client per source.

    Each provider gets its own cache, and all providers share one
    ``RateLimiter`` whose state is keyed by provider id, so quotas stay
    per provider without any module-level singletons.
    """

    def __init__(
        self,
        limiter: RateLimiter | None = None,
        *,
        fan_out_config: FanOutConfig | None = None,
    ) -> None:
        self.limiter = limiter or RateLimiter()
        self.fan_out_config = fan_out_config or FanOutConfig()
        self._providers: dict[SourceName, AbstractProvider] = {}
        self._started = False

    def register(self, provider: AbstractProvider) -> None:
        """Register a provider client."""
        self._providers[provider.source_name] = provider

    def get(self, source: SourceName) -> AbstractProvider | None:
        return self._providers.get(source)

    @property
    def providers(self) -> list[AbstractProvider]:
        return list(self._providers.values())

    @property
    def caches(self) -> dict[SourceName, TTLCache]:
        return {source: p.cache for source, p in self._providers.items()}

    def fan_out(self) -> ProviderFanOut:
        return ProviderFanOut(self.providers, self.fan_out_config)

    def rate_limit_status(self) -> dict[SourceName, RateLimitStatus]:
        return {source: self.limiter.remaining(source) for source in self._providers}

    @classmethod
    def from_settings(
        cls,
        settings: BookmergeSettings,
        *,
        error_hook: ErrorHook | None = None,
    ) -> ProviderRegistry:
        """
        Create a registry with providers configured from settings.

        ISBNdb is only registered when an API key is configured.
        """
        from bookmerge.resolution.providers.google_books import GoogleBooksProvider
        from bookmerge.resolution.providers.isbndb import ISBNdbProvider

        registry = cls(fan_out_config=FanOutConfig(total_timeout=settings.total_timeout))

        candidates: list[tuple[type[AbstractProvider], ProviderConfig]] = [
            (ISBNdbProvider, settings.isbndb),
            (GoogleBooksProvider, settings.google_books),
        ]
        for provider_cls, config in candidates:
            if not config.enabled:
                logger.info(f"Provider {provider_cls.SOURCE_NAME} disabled")
                continue
            if provider_cls.REQUIRES_API_KEY and not config.api_key:
                logger.info(f"Provider {provider_cls.SOURCE_NAME} skipped: no API key")
                continue

            cache = registry._build_cache(provider_cls.SOURCE_NAME, settings.cache, error_hook)
            registry.register(
                provider_cls(
                    config,
                    limiter=registry.limiter,
                    cache=cache,
                    max_rate_limit_wait=settings.max_rate_limit_wait,
                )
            )

        return registry

    @staticmethod
    def _build_cache(
        source: SourceName,
        cache_settings: CacheSettings,
        error_hook: ErrorHook | None,
    ) -> TTLCache:
        store: SnapshotStore | None = None
        if cache_settings.redis_url:
            store = RedisSnapshotStore(str(cache_settings.redis_url), key=f"bookmerge:cache:{source}")
        elif cache_settings.persist_to_file:
            store = FileSnapshotStore(snapshot_path(cache_settings.file_path, source))

        return TTLCache(
            str(source),
            default_ttl=cache_settings.ttl_seconds_default,
            cleanup_interval=cache_settings.cleanup_interval_ms / 1000,
            snapshot_store=store,
            persist_every_sets=cache_settings.persist_every_sets,
            flush_interval=cache_settings.flush_interval_seconds,
            error_hook=error_hook,
        )

    async def start(self) -> None:
        """Restore cache snapshots and start background cache tasks."""
        if self._started:
            return
        for provider in self._providers.values():
            await provider.cache.start()
        self._started = True
        logger.info(f"Provider registry started: {', '.join(self._providers) or 'none'}")

    async def close_all(self) -> None:
        """Close all providers and flush their caches."""
        for provider in self._providers.values():
            await provider.close()
            await provider.cache.close()
        self._started = False
