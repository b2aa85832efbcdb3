"""Google Books provider implementation."""

from __future__ import annotations

from typing import Any, ClassVar

from bookmerge.core.identifiers import extract_unique_isbns, looks_like_isbn
from bookmerge.core.models import RawProviderRecord, SearchCriteria
from bookmerge.core.normalization import extract_year
from bookmerge.core.types import SourceName
from bookmerge.resolution.backoff import RetryConfig
from bookmerge.resolution.base import AbstractProvider, ProviderResult
from bookmerge.resolution.ratelimit import RateLimitConfig

# Search field name -> Google Books query keyword
_QUERY_KEYWORDS = {
    "title": "intitle",
    "author": "inauthor",
    "publisher": "inpublisher",
    "subject": "subject",
}


class GoogleBooksProvider(AbstractProvider):
    """
    Google Books API provider (preferred source for cover images).

    API Documentation: https://developers.google.com/books/docs/v1/using

    Works without API key but rate limits apply.
    With API key, higher quotas are available.
    """

    SOURCE_NAME: ClassVar[SourceName] = SourceName.GOOGLE_BOOKS
    BASE_URL: ClassVar[str] = "https://www.googleapis.com/books/v1"
    DEFAULT_RATE_LIMIT: ClassVar[RateLimitConfig] = RateLimitConfig(
        requests_per_minute=1000,
        requests_per_day=100000,
        burst_limit=100,
    )
    DEFAULT_RETRY: ClassVar[RetryConfig] = RetryConfig(
        retry_attempts=1,
        base_delay_ms=300,
        max_delay_ms=3000,
    )
    DEFAULT_TIMEOUT: ClassVar[float] = 3.0
    DEFAULT_CACHE_TTL: ClassVar[float] = 12 * 60 * 60
    HEALTH_PATH: ClassVar[str] = "/volumes"
    HEALTH_PARAMS: ClassVar[dict[str, Any]] = {"q": "isbn:9780143127550", "maxResults": 1}

    def _auth_params(self) -> dict[str, Any]:
        if self.config.api_key:
            return {"key": self.config.api_key}
        return {}

    async def fetch_by_identifier(self, identifier: str) -> ProviderResult:
        """Look up by ISBN, or by Google Books volume ID otherwise."""
        if looks_like_isbn(identifier):
            isbn13 = extract_unique_isbns([identifier])[0]
            return await self._execute(
                self.book_cache_key(isbn13),
                "/volumes",
                {"q": f"isbn:{isbn13}", "maxResults": 1, **self._auth_params()},
                self._parse_volumes_response,
            )

        volume_id = identifier.strip()
        if not volume_id or "/" in volume_id:
            return self._invalid_input(f"Invalid Google Books volume ID: {identifier!r}")

        return await self._execute(
            self.book_cache_key(volume_id),
            f"/volumes/{volume_id}",
            self._auth_params() or None,
            self._parse_single_volume,
        )

    async def search(self, criteria: SearchCriteria) -> ProviderResult:
        """Search Google Books using intitle/inauthor/inpublisher/subject keywords."""
        query = "+".join(
            f"{_QUERY_KEYWORDS[field]}:{value}" for field, value in criteria.terms().items()
        )
        params: dict[str, Any] = {
            "q": query,
            "startIndex": (criteria.page - 1) * criteria.page_size,
            "maxResults": criteria.page_size,
            "printType": "books",
            **self._auth_params(),
        }
        return await self._execute(
            self.search_cache_key(criteria),
            "/volumes",
            params,
            self._parse_volumes_response,
        )

    def _parse_volumes_response(
        self, data: dict[str, Any]
    ) -> tuple[list[RawProviderRecord], int | None]:
        records = [self._parse_volume(item) for item in data.get("items") or []]
        total = data.get("totalItems")
        return [r for r in records if r is not None], int(total) if total is not None else None

    def _parse_single_volume(
        self, data: dict[str, Any]
    ) -> tuple[list[RawProviderRecord], int | None]:
        record = self._parse_volume(data)
        return ([record] if record else []), None

    def _parse_volume(self, data: dict[str, Any]) -> RawProviderRecord | None:
        """Parse a Google Books volume into a RawProviderRecord."""
        if not data:
            return None

        volume_info = data.get("volumeInfo") or {}
        if not volume_info:
            return None

        isbn10 = None
        isbn13 = None
        for ident in volume_info.get("industryIdentifiers") or []:
            ident_type = ident.get("type", "")
            if ident_type == "ISBN_10":
                isbn10 = ident.get("identifier")
            elif ident_type == "ISBN_13":
                isbn13 = ident.get("identifier")

        image_links = volume_info.get("imageLinks") or {}
        cover_url = (
            image_links.get("large")
            or image_links.get("medium")
            or image_links.get("small")
            or image_links.get("thumbnail")
            or image_links.get("smallThumbnail")
        )

        published = volume_info.get("publishedDate")

        return RawProviderRecord(
            source=self.source_name,
            source_id=data.get("id") or isbn13 or isbn10 or "",
            title=volume_info.get("title"),
            subtitle=volume_info.get("subtitle"),
            authors=[a for a in volume_info.get("authors") or [] if a],
            isbn_10=isbn10,
            isbn_13=isbn13,
            publisher=volume_info.get("publisher"),
            published_date=published,
            year=extract_year(published_date=published, title=volume_info.get("title")),
            description=volume_info.get("description"),
            pages=volume_info.get("pageCount"),
            language=volume_info.get("language"),
            subjects=(volume_info.get("categories") or [])[:10],
            binding=self._infer_binding(data, volume_info),
            cover_image_url=cover_url,
        )

    @staticmethod
    def _infer_binding(data: dict[str, Any], volume_info: dict[str, Any]) -> str | None:
        """Google Books has no binding field; infer what it can."""
        if (data.get("saleInfo") or {}).get("isEbook"):
            return "Kindle Edition"
        if volume_info.get("printType") == "BOOK":
            return "Paperback"
        return None
