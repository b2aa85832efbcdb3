"""TTL cache with analytics and snapshot persistence."""

from .keys import CacheKeys, normalize_cache_key
from .snapshot import FileSnapshotStore, RedisSnapshotStore, SnapshotStore
from .store import (
    CacheAnalytics,
    CacheEntry,
    CacheStats,
    ErrorHook,
    HotKey,
    TTLCache,
    combine_analytics,
    log_error_hook,
)

__all__ = [
    "CacheAnalytics",
    "CacheEntry",
    "CacheKeys",
    "CacheStats",
    "ErrorHook",
    "FileSnapshotStore",
    "HotKey",
    "RedisSnapshotStore",
    "SnapshotStore",
    "TTLCache",
    "combine_analytics",
    "log_error_hook",
    "normalize_cache_key",
]
