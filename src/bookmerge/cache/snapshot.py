"""Persistent storage backends for cache snapshots."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    """Where a cache persists its entries between runs."""

    async def load(self) -> dict[str, Any] | None: ...

    async def save(self, payload: dict[str, Any]) -> None: ...

    async def close(self) -> None: ...


class FileSnapshotStore:
    """
    JSON snapshot on local disk.

    Writes go to a temporary file in the same directory which then
    replaces the target, so a crash never leaves a half-written snapshot.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read)

    async def save(self, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, payload)

    async def close(self) -> None:
        return None

    def _read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, default=str)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote cache snapshot to {self.path}")


class RedisSnapshotStore:
    """Snapshot kept under a single Redis key, for multi-host deployments."""

    def __init__(self, redis_url: str, key: str) -> None:
        self._redis_url = redis_url
        self.key = key
        self._pool: aioredis.ConnectionPool | None = None
        self._redis: aioredis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._pool = aioredis.ConnectionPool.from_url(
            self._redis_url,
            max_connections=5,
            decode_responses=True,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def _ensure_connected(self) -> aioredis.Redis:
        if self._redis is None:
            await self.connect()
        assert self._redis is not None
        return self._redis

    async def load(self) -> dict[str, Any] | None:
        redis = await self._ensure_connected()
        value = await redis.get(self.key)
        if value is None:
            return None
        return json.loads(value)

    async def save(self, payload: dict[str, Any]) -> None:
        # SET replaces the whole value atomically.
        redis = await self._ensure_connected()
        await redis.set(self.key, json.dumps(payload, default=str))

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis:
            await self._redis.aclose()
        if self._pool:
            await self._pool.disconnect()
        self._redis = None
        self._pool = None
