"""Abstract provider client with caching, rate limiting and retries."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, ClassVar

import httpx
from pydantic import BaseModel, Field

from bookmerge.cache.keys import CacheKeys
from bookmerge.cache.store import TTLCache
from bookmerge.core.exceptions import (
    MalformedResponseError,
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TransientNetworkError,
    UnauthorizedError,
)
from bookmerge.core.models import RawProviderRecord, SearchCriteria
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.resolution.backoff import Backoff, RetryConfig
from bookmerge.resolution.ratelimit import RateLimitConfig, RateLimiter

logger = logging.getLogger(__name__)

# A parser turns a decoded JSON payload into records plus the provider's
# total hit count (None when the endpoint does not report one).
PayloadParser = Callable[[Any], tuple[list[RawProviderRecord], int | None]]


class ProviderConfig(BaseModel):
    """Configuration for a provider. Unset values use the provider defaults."""

    api_key: str | None = None
    base_url: str | None = None
    timeout: float | None = Field(default=None, gt=0, description="Per-request timeout (s)")
    cache_ttl: float | None = Field(default=None, gt=0, description="Cache TTL (s)")
    rate_limit: RateLimitConfig | None = None
    retry: RetryConfig | None = None
    enabled: bool = True


class ProviderResult(BaseModel):
    """Outcome of one provider call. Failures are data, not exceptions."""

    status: ResolutionStatus
    source: SourceName
    records: list[RawProviderRecord] = Field(default_factory=list)
    total_items: int | None = None
    error_message: str | None = None
    error_type: str | None = None
    duration_ms: float = 0.0
    from_cache: bool = False

    @property
    def success(self) -> bool:
        return self.status == ResolutionStatus.SUCCESS and len(self.records) > 0


class AbstractProvider(ABC):
    """
    Base class for bibliographic metadata providers.

    Every outbound call goes through the same pipeline:

    1. cache lookup (a hit returns immediately)
    2. rate limiter admission, waiting for a slot when needed
    3. the HTTP request, retried by the backoff policy, each attempt
       bounded by the provider timeout
    4. on success the records are cached with the provider TTL

    Errors are classified into the ``ProviderError`` hierarchy and turned
    into a ``ProviderResult`` carrying the matching status.
    """

    SOURCE_NAME: ClassVar[SourceName]
    BASE_URL: ClassVar[str]
    DEFAULT_RATE_LIMIT: ClassVar[RateLimitConfig] = RateLimitConfig()
    DEFAULT_RETRY: ClassVar[RetryConfig] = RetryConfig()
    DEFAULT_TIMEOUT: ClassVar[float] = 5.0
    DEFAULT_CACHE_TTL: ClassVar[float] = 3600.0
    HEALTH_PATH: ClassVar[str] = "/"
    HEALTH_PARAMS: ClassVar[dict[str, Any]] = {}
    REQUIRES_API_KEY: ClassVar[bool] = False

    def __init__(
        self,
        config: ProviderConfig | None = None,
        *,
        limiter: RateLimiter | None = None,
        cache: TTLCache | None = None,
        backoff: Backoff | None = None,
        max_rate_limit_wait: float | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        if self.REQUIRES_API_KEY and not self.config.api_key:
            raise ValueError(f"{self.SOURCE_NAME} requires an API key")

        self.limiter = limiter or RateLimiter()
        self.limiter.configure(self.source_name, self.rate_limit_config)
        # TTLCache defines __len__, so an empty injected cache is falsy.
        if cache is None:
            cache = TTLCache(self.source_name, default_ttl=self.cache_ttl)
        self.cache = cache
        self.backoff = backoff or Backoff(self.retry_config, source=self.source_name)
        self.max_rate_limit_wait = max_rate_limit_wait
        self._client: httpx.AsyncClient | None = None

    @property
    def source_name(self) -> SourceName:
        return self.SOURCE_NAME

    @property
    def rate_limit_config(self) -> RateLimitConfig:
        return self.config.rate_limit or self.DEFAULT_RATE_LIMIT

    @property
    def retry_config(self) -> RetryConfig:
        return self.config.retry or self.DEFAULT_RETRY

    @property
    def timeout(self) -> float:
        return self.config.timeout or self.DEFAULT_TIMEOUT

    @property
    def cache_ttl(self) -> float:
        return self.config.cache_ttl or self.DEFAULT_CACHE_TTL

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _get_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Lazily created shared client; httpx failures surface as provider errors."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url or self.BASE_URL,
                timeout=httpx.Timeout(self.timeout),
                headers=self._get_default_headers(),
                follow_redirects=True,
            )

        try:
            yield self._client
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(
                message=f"Request timed out: {e}",
                source=self.source_name,
            ) from e
        except httpx.HTTPError as e:
            raise TransientNetworkError(
                message=f"HTTP error: {e}",
                source=self.source_name,
            ) from e

    def _get_default_headers(self) -> dict[str, str]:
        """Headers sent with every request. Providers with header auth extend this."""
        return {
            "User-Agent": "bookmerge/1.0",
            "Accept": "application/json",
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map an unsuccessful HTTP status to a ProviderError."""
        if response.is_success:
            return

        status = response.status_code
        message = f"HTTP {status} from {self.source_name}"
        if status in (401, 403):
            raise UnauthorizedError(message, self.source_name, status_code=status)
        if status == 404:
            raise NotFoundError(message, self.source_name, status_code=status)
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message,
                self.source_name,
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                status_code=status,
            )
        if status >= 500:
            raise TransientNetworkError(message, self.source_name, status_code=status)
        raise ProviderError(message, self.source_name, status_code=status)

    async def _request_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """One GET attempt, cancelled when it exceeds the provider timeout."""
        try:
            async with asyncio.timeout(self.timeout):
                async with self._get_client() as client:
                    response = await client.get(path, params=params)
        except TimeoutError as e:
            raise ProviderTimeoutError(
                message=f"No response within {self.timeout}s",
                source=self.source_name,
            ) from e

        self._raise_for_status(response)

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                message=f"Response is not valid JSON: {e}",
                source=self.source_name,
                status_code=response.status_code,
            ) from e

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _from_cache(self, cache_key: str) -> ProviderResult | None:
        cached = self.cache.get(cache_key)
        if cached is None:
            return None
        try:
            records = [RawProviderRecord.model_validate(r) for r in cached["records"]]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cache entry {cache_key}: {e}")
            self.cache.delete(cache_key)
            return None

        logger.debug(f"Cache hit for {cache_key}")
        return ProviderResult(
            status=ResolutionStatus.SUCCESS,
            source=self.source_name,
            records=records,
            total_items=cached.get("total_items"),
            from_cache=True,
        )

    def _failure(self, error: ProviderError, start: float) -> ProviderResult:
        if error.status == ResolutionStatus.NOT_FOUND:
            logger.debug(f"{self.source_name}: {error.message}")
        else:
            logger.warning(f"{self.source_name} failed ({error.status}): {error.message}")

        return ProviderResult(
            status=error.status,
            source=self.source_name,
            error_message=error.message,
            error_type=type(error).__name__,
            duration_ms=(time.monotonic() - start) * 1000,
        )

    async def _execute(
        self,
        cache_key: str,
        path: str,
        params: dict[str, Any] | None,
        parse: PayloadParser,
    ) -> ProviderResult:
        """Run the cache, limiter, backoff and request pipeline for one call."""
        start = time.monotonic()

        if cached := self._from_cache(cache_key):
            cached.duration_ms = (time.monotonic() - start) * 1000
            return cached

        try:
            await self.limiter.acquire(self.source_name, max_wait=self.max_rate_limit_wait)
            payload = await self.backoff.execute(lambda: self._request_json(path, params))
            try:
                records, total_items = parse(payload)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise MalformedResponseError(
                    message=f"Unexpected response shape: {e}",
                    source=self.source_name,
                ) from e
        except ProviderError as e:
            return self._failure(e, start)

        duration_ms = (time.monotonic() - start) * 1000
        if not records:
            return ProviderResult(
                status=ResolutionStatus.NOT_FOUND,
                source=self.source_name,
                total_items=total_items,
                duration_ms=duration_ms,
            )

        self.cache.set(
            cache_key,
            {
                "records": [r.model_dump(mode="json") for r in records],
                "total_items": total_items,
            },
            ttl_seconds=self.cache_ttl,
        )
        return ProviderResult(
            status=ResolutionStatus.SUCCESS,
            source=self.source_name,
            records=records,
            total_items=total_items,
            duration_ms=duration_ms,
        )

    def _invalid_input(self, message: str) -> ProviderResult:
        return ProviderResult(
            status=ResolutionStatus.ERROR,
            source=self.source_name,
            error_message=message,
            error_type="ValidationError",
        )

    def book_cache_key(self, identifier: str) -> str:
        return CacheKeys.book(self.source_name, identifier)

    def search_cache_key(self, criteria: SearchCriteria) -> str:
        return CacheKeys.search(self.source_name, criteria.cache_params())

    async def health_check(self) -> bool:
        """Whether the provider answers a cheap request. Bypasses the cache."""
        try:
            await self._request_json(
                self.HEALTH_PATH, {**self.HEALTH_PARAMS, **self._auth_params()} or None
            )
        except ProviderError as e:
            logger.warning(f"{self.source_name} health check failed: {e.message}")
            return False
        return True

    def _auth_params(self) -> dict[str, Any]:
        """Query parameters carrying credentials. Override for query-string auth."""
        return {}

    # Abstract methods
    @abstractmethod
    async def fetch_by_identifier(self, identifier: str) -> ProviderResult:
        """
        Look up a single book.

        Args:
            identifier: ISBN-10/13 or a provider-specific ID

        Returns:
            ProviderResult with the matching records or a failure status
        """
        ...

    @abstractmethod
    async def search(self, criteria: SearchCriteria) -> ProviderResult:
        """
        Search by title, author, publisher and/or subject.

        Args:
            criteria: Search fields and pagination

        Returns:
            ProviderResult with one page of records or a failure status
        """
        ...

    async def __aenter__(self) -> AbstractProvider:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
