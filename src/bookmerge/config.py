"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import BaseModel, Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict

from bookmerge.core.models import SearchCriteria
from bookmerge.core.types import SourceName
from bookmerge.resolution.base import ProviderConfig

DEFAULT_PREWARM_QUERIES = [
    SearchCriteria(title=title, author="Brad Feld")
    for title in (
        "Startup Life",
        "Startup Opportunities",
        "Venture Deals",
        "Startup Communities",
        "Do More Faster",
    )
]


class CacheSettings(BaseModel):
    """Cache behaviour shared by every provider cache."""

    cleanup_interval_ms: int = Field(
        default=60_000,
        gt=0,
        description="Interval of the background sweep for expired entries",
    )
    ttl_seconds_default: int = Field(
        default=3600,
        gt=0,
        description="TTL for entries stored without an explicit one",
    )
    persist_to_file: bool = Field(
        default=False,
        description="Persist cache snapshots to disk",
    )
    file_path: str = Field(
        default=".cache/api-cache.json",
        description="Snapshot path; each provider gets its own file next to it",
    )
    redis_url: RedisDsn | None = Field(
        default=None,
        description="Keep snapshots in Redis instead of on disk (optional)",
    )
    persist_every_sets: int = Field(
        default=10,
        ge=1,
        description="Wake the flusher after this many writes",
    )
    flush_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Maximum time between flushes while there are unsaved writes",
    )
    prewarm_on_start: bool = Field(
        default=False,
        description="Issue the pre-warm queries at startup",
    )
    prewarm_queries: list[SearchCriteria] = Field(
        default_factory=lambda: list(DEFAULT_PREWARM_QUERIES),
        description="Queries used to pre-warm the cache",
    )
    hot_keys_limit: int = Field(
        default=10,
        ge=1,
        description="Number of hot keys reported by cache analytics",
    )


class MergeSettings(BaseModel):
    """Source precedence used when providers disagree."""

    default_precedence: list[SourceName] = Field(
        default_factory=lambda: [SourceName.ISBNDB, SourceName.GOOGLE_BOOKS],
        description="Order used for fields without an explicit entry",
    )
    field_precedence: dict[str, list[SourceName]] = Field(
        default_factory=lambda: {
            "publisher": [SourceName.ISBNDB, SourceName.GOOGLE_BOOKS],
            "description": [SourceName.ISBNDB, SourceName.GOOGLE_BOOKS],
            "binding": [SourceName.ISBNDB, SourceName.GOOGLE_BOOKS],
            "cover_image_url": [SourceName.GOOGLE_BOOKS, SourceName.ISBNDB],
        },
        description="Per-field provider order, highest precedence first",
    )


class BookmergeSettings(BaseSettings):
    """
    Application configuration from environment variables.

    Nested values use a double underscore, e.g.
    ``BOOKMERGE_ISBNDB__API_KEY`` or ``BOOKMERGE_CACHE__PERSIST_TO_FILE``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="BOOKMERGE_",
        env_nested_delimiter="__",
    )

    # Providers
    isbndb: ProviderConfig = Field(
        default_factory=ProviderConfig,
        description="ISBNdb provider (requires api_key)",
    )
    google_books: ProviderConfig = Field(
        default_factory=ProviderConfig,
        description="Google Books provider (api_key optional, increases quotas)",
    )

    # Cache
    cache: CacheSettings = Field(default_factory=CacheSettings)

    # Merge policy
    merge: MergeSettings = Field(default_factory=MergeSettings)

    # Lookups
    total_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for one fan-out across all providers (seconds)",
    )
    max_rate_limit_wait: float | None = Field(
        default=120.0,
        description="Longest a request may wait for a rate limit slot (seconds)",
    )

    # App settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )


@lru_cache
def get_settings() -> BookmergeSettings:
    """Get cached settings instance."""
    return BookmergeSettings()
