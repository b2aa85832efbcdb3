"""In-memory TTL cache with hit/miss analytics and snapshot persistence."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .keys import normalize_cache_key
from .snapshot import SnapshotStore

logger = logging.getLogger(__name__)

ErrorHook = Callable[[str, BaseException], None]


def log_error_hook(operation: str, error: BaseException) -> None:
    """Default observability hook: non-fatal errors are logged and dropped."""
    logger.warning(f"Non-fatal cache error during {operation}: {error!r}")


def _as_datetime(timestamp: float | None) -> datetime | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class CacheEntry:
    """A cached value with its age and usage counters."""

    key: str
    value: Any
    stored_at: float
    ttl_seconds: float
    hit_count: int = 0
    last_access: float | None = None

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "stored_at": self.stored_at,
            "ttl_seconds": self.ttl_seconds,
            "hit_count": self.hit_count,
            "last_access": self.last_access,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        return cls(
            key=str(data["key"]),
            value=data["value"],
            stored_at=float(data["stored_at"]),
            ttl_seconds=float(data["ttl_seconds"]),
            hit_count=int(data.get("hit_count", 0)),
            last_access=data.get("last_access"),
        )


class CacheStats(BaseModel):
    """Counters describing cache effectiveness."""

    size: int = Field(default=0, description="Entries currently held")
    hits: int = Field(default=0, description="Reads that returned a live entry")
    misses: int = Field(default=0, description="Reads that found nothing or an expired entry")
    total_requests: int = Field(default=0, description="All reads")
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0, description="hits / total_requests")
    persisted_at: datetime | None = Field(default=None, description="Last successful snapshot")
    restored_at: datetime | None = Field(default=None, description="When a snapshot was loaded")


class HotKey(BaseModel):
    """A frequently read cache key."""

    key: str
    hit_count: int
    last_access: datetime | None = None


class CacheAnalytics(CacheStats):
    """Stats plus the most-read keys."""

    hot_keys: list[HotKey] = Field(default_factory=list)
    average_hits_per_key: float = 0.0


def combine_analytics(parts: Iterable[CacheAnalytics], limit: int = 10) -> CacheAnalytics:
    """Aggregate analytics of several caches into one view."""
    parts = list(parts)
    hits = sum(p.hits for p in parts)
    total = sum(p.total_requests for p in parts)
    size = sum(p.size for p in parts)
    hot_keys = sorted(
        (hot for p in parts for hot in p.hot_keys),
        key=lambda h: h.hit_count,
        reverse=True,
    )[:limit]
    weighted_hits = sum(p.average_hits_per_key * p.size for p in parts)
    persisted = [p.persisted_at for p in parts if p.persisted_at]
    restored = [p.restored_at for p in parts if p.restored_at]
    return CacheAnalytics(
        size=size,
        hits=hits,
        misses=sum(p.misses for p in parts),
        total_requests=total,
        hit_rate=hits / total if total else 0.0,
        persisted_at=max(persisted) if persisted else None,
        restored_at=max(restored) if restored else None,
        hot_keys=hot_keys,
        average_hits_per_key=weighted_hits / size if size else 0.0,
    )


class TTLCache:
    """
    Thread-safe key/value cache with per-entry TTL.

    Reads and writes are synchronous and never touch storage. When a
    snapshot store is configured, ``start()`` restores the last snapshot
    and launches two background tasks: a sweep that evicts expired
    entries and a flusher that persists the cache every
    ``persist_every_sets`` writes (or every ``flush_interval`` seconds
    while dirty). ``close()`` stops both and flushes once more.

    Persistence failures never propagate; they are handed to
    ``error_hook``.
    """

    def __init__(
        self,
        name: str = "default",
        *,
        default_ttl: float = 3600.0,
        cleanup_interval: float = 60.0,
        snapshot_store: SnapshotStore | None = None,
        persist_every_sets: int = 10,
        flush_interval: float = 30.0,
        key_normalizer: Callable[[str], str] = normalize_cache_key,
        clock: Callable[[], float] = time.time,
        error_hook: ErrorHook | None = None,
    ) -> None:
        self.name = name
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.persist_every_sets = max(1, persist_every_sets)
        self.flush_interval = flush_interval
        self._snapshot_store = snapshot_store
        self._normalize = key_normalizer
        self._clock = clock
        self._error_hook = error_hook or log_error_hook

        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._total_requests = 0
        self._persisted_at: float | None = None
        self._restored_at: float | None = None

        self._dirty = False
        self._sets_since_flush = 0
        self._flush_event = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def persistent(self) -> bool:
        return self._snapshot_store is not None

    # ------------------------------------------------------------------
    # Foreground operations
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default`` on a miss."""
        normalized = self._normalize(key)
        with self._lock:
            self._total_requests += 1
            entry = self._entries.get(normalized)
            if entry is None:
                self._misses += 1
                return default

            now = self._clock()
            if entry.is_expired(now):
                del self._entries[normalized]
                self._dirty = True
                self._misses += 1
                return default

            entry.hit_count += 1
            entry.last_access = now
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store ``value`` for ``ttl_seconds`` (the cache default when omitted)."""
        normalized = self._normalize(key)
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[normalized] = CacheEntry(
                key=normalized,
                value=value,
                stored_at=self._clock(),
                ttl_seconds=ttl,
            )
            self._dirty = True
            self._sets_since_flush += 1
            flush_due = self._sets_since_flush >= self.persist_every_sets

        if flush_due and self.persistent:
            self._flush_event.set()

    def has(self, key: str) -> bool:
        """Whether a live entry exists. Does not count as a read."""
        normalized = self._normalize(key)
        with self._lock:
            entry = self._entries.get(normalized)
            if entry is None:
                return False
            if entry.is_expired(self._clock()):
                del self._entries[normalized]
                self._dirty = True
                return False
            return True

    def delete(self, key: str) -> bool:
        normalized = self._normalize(key)
        with self._lock:
            removed = self._entries.pop(normalized, None) is not None
            if removed:
                self._dirty = True
            return removed

    def clear(self) -> None:
        """Drop every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._total_requests = 0
            self._dirty = True

    def sweep(self) -> int:
        """Evict expired entries, returning how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._dirty = True
        if expired:
            logger.debug(f"Cache {self.name}: swept {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                total_requests=self._total_requests,
                hit_rate=self._hits / self._total_requests if self._total_requests else 0.0,
                persisted_at=_as_datetime(self._persisted_at),
                restored_at=_as_datetime(self._restored_at),
            )

    def analytics(self, limit: int = 10) -> CacheAnalytics:
        """Stats plus the ``limit`` keys with the most hits."""
        with self._lock:
            entries = sorted(
                self._entries.values(), key=lambda e: e.hit_count, reverse=True
            )
            total_hits = sum(e.hit_count for e in entries)
            hot_keys = [
                HotKey(
                    key=e.key,
                    hit_count=e.hit_count,
                    last_access=_as_datetime(e.last_access),
                )
                for e in entries[:limit]
            ]
            average = total_hits / len(entries) if entries else 0.0

        return CacheAnalytics(
            **self.stats().model_dump(),
            hot_keys=hot_keys,
            average_hits_per_key=average,
        )

    # ------------------------------------------------------------------
    # Persistence and lifecycle
    # ------------------------------------------------------------------

    def _snapshot_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entries": [entry.to_dict() for entry in self._entries.values()],
            "stats": {
                "hits": self._hits,
                "misses": self._misses,
                "total_requests": self._total_requests,
            },
            "saved_at": self._clock(),
        }

    async def flush(self) -> bool:
        """Persist the current state. Returns False when nothing was written."""
        if self._snapshot_store is None:
            return False

        with self._lock:
            payload = self._snapshot_payload()
            self._dirty = False
            self._sets_since_flush = 0

        try:
            await self._snapshot_store.save(payload)
        except Exception as e:
            with self._lock:
                self._dirty = True
            self._error_hook("flush", e)
            return False

        with self._lock:
            self._persisted_at = payload["saved_at"]
        logger.debug(f"Cache {self.name}: persisted {len(payload['entries'])} entries")
        return True

    async def restore(self) -> int:
        """
        Load the last snapshot, dropping entries whose TTL has lapsed.

        A missing snapshot is a cold start. An unreadable or corrupt one
        is reported to the error hook and also treated as a cold start.

        Returns:
            Number of entries restored
        """
        if self._snapshot_store is None:
            return 0

        try:
            payload = await self._snapshot_store.load()
        except Exception as e:
            self._error_hook("restore", e)
            return 0

        if payload is None:
            return 0

        try:
            entries = [CacheEntry.from_dict(item) for item in payload["entries"]]
            stats = payload.get("stats", {})
            hits = int(stats.get("hits", 0))
            misses = int(stats.get("misses", 0))
            total = int(stats.get("total_requests", hits + misses))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            self._error_hook("restore", e)
            return 0

        now = self._clock()
        live = [entry for entry in entries if not entry.is_expired(now)]
        with self._lock:
            for entry in live:
                self._entries[entry.key] = entry
            self._hits = hits
            self._misses = misses
            self._total_requests = total
            self._restored_at = now

        logger.info(
            f"Cache {self.name}: restored {len(live)} entries "
            f"({len(entries) - len(live)} expired)"
        )
        return len(live)

    async def start(self) -> None:
        """Restore the snapshot and launch background tasks."""
        if self._tasks:
            return
        await self.restore()
        self._tasks.append(asyncio.create_task(self._sweep_loop()))
        if self.persistent:
            self._tasks.append(asyncio.create_task(self._flush_loop()))

    async def close(self) -> None:
        """Stop background tasks and flush outstanding changes."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        if self._dirty:
            await self.flush()
        if self._snapshot_store is not None:
            try:
                await self._snapshot_store.close()
            except Exception as e:
                self._error_hook("close", e)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            self.sweep()

    async def _flush_loop(self) -> None:
        while True:
            with contextlib.suppress(TimeoutError):
                async with asyncio.timeout(self.flush_interval):
                    await self._flush_event.wait()
            self._flush_event.clear()
            if self._dirty:
                await self.flush()

    async def __aenter__(self) -> TTLCache:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
