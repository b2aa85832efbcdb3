"""Shared test fixtures for all tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from bookmerge.config import BookmergeSettings, CacheSettings
from bookmerge.core.models import RawProviderRecord, SearchCriteria
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.resolution.base import AbstractProvider, ProviderConfig, ProviderResult


class FakeClock:
    """Manually advanced clock; ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


def make_record(source: SourceName = SourceName.ISBNDB, **overrides: Any) -> RawProviderRecord:
    """Build a provider record with sensible defaults."""
    data: dict[str, Any] = {
        "source": source,
        "source_id": overrides.pop("source_id", "id-1"),
        "title": "Venture Deals",
        "authors": ["Brad Feld"],
        "retrieved_at": datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return RawProviderRecord(**data)


class StubProvider(AbstractProvider):
    """Provider answering from memory, optionally slow or failing."""

    BASE_URL = "http://stub.invalid"

    def __init__(
        self,
        source: SourceName,
        *,
        records: list[RawProviderRecord] | None = None,
        status: ResolutionStatus | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
        total_items: int | None = None,
        enabled: bool = True,
    ) -> None:
        self._source = source
        super().__init__(ProviderConfig(enabled=enabled))
        self.records = records or []
        self.status = status
        self.error = error
        self.delay = delay
        self.total_items = total_items
        self.calls: list[Any] = []

    @property
    def source_name(self) -> SourceName:
        return self._source

    async def _respond(self, query: Any) -> ProviderResult:
        self.calls.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.status is not None:
            return ProviderResult(
                status=self.status, source=self._source, error_message=f"stub {self.status}"
            )
        return ProviderResult(
            status=ResolutionStatus.SUCCESS if self.records else ResolutionStatus.NOT_FOUND,
            source=self._source,
            records=self.records,
            total_items=self.total_items,
        )

    async def fetch_by_identifier(self, identifier: str) -> ProviderResult:
        return await self._respond(identifier)

    async def search(self, criteria: SearchCriteria) -> ProviderResult:
        return await self._respond(criteria)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def isbndb_record() -> RawProviderRecord:
    """ISBNdb view of a paperback."""
    return make_record(
        SourceName.ISBNDB,
        source_id="9780143127550",
        title="Everything I Never Told You",
        authors=["Celeste Ng"],
        isbn_13="9780143127550",
        isbn_10="0143127551",
        publisher="Penguin Books",
        published_date="2015-05-12",
        binding="Paperback",
        pages=320,
    )


@pytest.fixture
def google_record() -> RawProviderRecord:
    """Google Books view of the same ISBN with a different publisher string."""
    return make_record(
        SourceName.GOOGLE_BOOKS,
        source_id="zyTCAlFPjgYC",
        title="Everything I Never Told You",
        authors=["Celeste Ng"],
        isbn_13="9780143127550",
        publisher="Penguin",
        published_date="2015-05-12",
        cover_image_url="https://books.google.com/cover.jpg",
        description="A novel.",
    )


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings(tmp_path) -> BookmergeSettings:
    """Settings isolated from the environment and from disk."""
    return BookmergeSettings(
        _env_file=None,
        isbndb={"api_key": "test-api-key"},
        google_books={"api_key": "test-google-key"},
        cache=CacheSettings(
            persist_to_file=False,
            file_path=str(tmp_path / "api-cache.json"),
        ),
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def record_factory():
    """The ``make_record`` helper, for tests that build their own records."""
    return make_record


@pytest.fixture
def stub_provider():
    """Factory for in-memory providers."""
    return StubProvider
