"""ISBNdb provider implementation."""

from __future__ import annotations

from typing import Any, ClassVar

from bookmerge.core.identifiers import extract_unique_isbns, looks_like_isbn
from bookmerge.core.models import RawProviderRecord, SearchCriteria
from bookmerge.core.normalization import extract_year
from bookmerge.core.types import SourceName
from bookmerge.resolution.backoff import RetryConfig
from bookmerge.resolution.base import AbstractProvider, ProviderResult
from bookmerge.resolution.ratelimit import RateLimitConfig


class ISBNdbProvider(AbstractProvider):
    """
    ISBNdb API provider (primary source for publisher and binding data).

    API Documentation: https://isbndb.com/isbndb-api-documentation-v2

    Requires API key. Different subscription tiers have different base URLs:
    - Default: api2.isbndb.com
    - Premium: api.premium.isbndb.com
    - Pro: api.pro.isbndb.com
    """

    SOURCE_NAME: ClassVar[SourceName] = SourceName.ISBNDB
    BASE_URL: ClassVar[str] = "https://api2.isbndb.com"
    DEFAULT_RATE_LIMIT: ClassVar[RateLimitConfig] = RateLimitConfig(
        requests_per_minute=100,
        requests_per_day=1000,
        burst_limit=10,
    )
    DEFAULT_RETRY: ClassVar[RetryConfig] = RetryConfig(
        retry_attempts=2,
        base_delay_ms=500,
        max_delay_ms=5000,
    )
    DEFAULT_TIMEOUT: ClassVar[float] = 4.0
    DEFAULT_CACHE_TTL: ClassVar[float] = 24 * 60 * 60
    HEALTH_PATH: ClassVar[str] = "/stats"
    REQUIRES_API_KEY: ClassVar[bool] = True

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        headers["Authorization"] = self.config.api_key or ""
        return headers

    async def fetch_by_identifier(self, identifier: str) -> ProviderResult:
        """Look up a book by ISBN-10 or ISBN-13."""
        if not looks_like_isbn(identifier):
            return self._invalid_input(f"ISBNdb only supports ISBN lookups: {identifier!r}")

        isbn13 = extract_unique_isbns([identifier])[0]
        return await self._execute(
            self.book_cache_key(isbn13),
            f"/book/{isbn13}",
            None,
            self._parse_book_response,
        )

    async def search(self, criteria: SearchCriteria) -> ProviderResult:
        """Search ISBNdb by any combination of title, author, publisher and subject."""
        params: dict[str, Any] = {
            **criteria.terms(),
            "page": criteria.page,
            "pageSize": criteria.page_size,
        }
        return await self._execute(
            self.search_cache_key(criteria),
            "/books",
            params,
            self._parse_search_response,
        )

    def _parse_book_response(self, data: dict[str, Any]) -> tuple[list[RawProviderRecord], int | None]:
        record = self._parse_book(data.get("book") or {})
        return ([record] if record else []), None

    def _parse_search_response(
        self, data: dict[str, Any]
    ) -> tuple[list[RawProviderRecord], int | None]:
        records = [self._parse_book(book) for book in data.get("books") or []]
        total = data.get("total")
        return [r for r in records if r is not None], int(total) if total is not None else None

    def _parse_book(self, data: dict[str, Any]) -> RawProviderRecord | None:
        """Parse an ISBNdb book object into a RawProviderRecord."""
        if not data:
            return None

        isbn10 = data.get("isbn10") or data.get("isbn")
        isbn13 = data.get("isbn13")
        if not (isbn10 or isbn13 or data.get("title")):
            return None

        published = data.get("date_published") or data.get("publish_date")
        published = str(published) if published is not None else None

        subjects = data.get("subjects") or []
        if isinstance(subjects, str):
            subjects = [s.strip() for s in subjects.split(",") if s.strip()]

        pages = data.get("pages")

        return RawProviderRecord(
            source=self.source_name,
            source_id=isbn13 or isbn10 or data.get("title", ""),
            title=data.get("title"),
            authors=[a for a in data.get("authors") or [] if a],
            isbn_10=isbn10,
            isbn_13=isbn13,
            publisher=data.get("publisher"),
            published_date=published,
            year=extract_year(published_date=published, title=data.get("title")),
            description=data.get("synopsis") or data.get("overview"),
            pages=int(pages) if pages else None,
            language=data.get("language"),
            subjects=subjects[:10],
            binding=data.get("binding"),
            cover_image_url=data.get("image"),
            edition=data.get("edition"),
        )
