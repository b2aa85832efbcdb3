"""Domain models for bibliographic records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .identifiers import extract_unique_isbns
from .normalization import extract_year, normalize_binding, normalized_key
from .types import BindingType, SourceName

MAX_PAGE_SIZE = 40
DEFAULT_PAGE_SIZE = 10
MIN_QUERY_LENGTH = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RawProviderRecord(BaseModel):
    """A single record as returned by one provider, before merging."""

    model_config = ConfigDict(frozen=True)

    source: SourceName = Field(..., description="Provider that returned the record")
    source_id: str = Field(..., description="ID within the provider")
    title: str | None = Field(default=None, description="Title of the book")
    subtitle: str | None = Field(default=None, description="Subtitle")
    authors: list[str] = Field(default_factory=list, description="Author names")
    isbn_10: str | None = Field(default=None, description="10-digit ISBN")
    isbn_13: str | None = Field(default=None, description="13-digit ISBN")
    publisher: str | None = Field(default=None, description="Publisher name")
    published_date: str | None = Field(default=None, description="Date as given by the provider")
    year: int | None = Field(default=None, description="Publication year")
    description: str | None = Field(default=None, description="Synopsis or description")
    pages: int | None = Field(default=None, description="Number of pages")
    language: str | None = Field(default=None, description="Language code")
    subjects: list[str] = Field(default_factory=list, description="Subject categories")
    binding: str | None = Field(default=None, description="Binding text as given by the provider")
    cover_image_url: str | None = Field(default=None, description="Cover image URL")
    edition: str | None = Field(default=None, description="Edition information")
    retrieved_at: datetime = Field(default_factory=_utcnow, description="When data was fetched")

    @property
    def isbns(self) -> list[str]:
        """Every ISBN-13 derivable from this record."""
        return extract_unique_isbns([self.isbn_13, self.isbn_10])

    @property
    def key(self) -> str:
        return normalized_key(
            isbn_13=self.isbn_13,
            isbn_10=self.isbn_10,
            title=self.title,
            author=self.authors[0] if self.authors else None,
            fallback=f"{self.source}:{self.source_id}",
        )

    @property
    def publication_year(self) -> int | None:
        return extract_year(self.year, self.published_date, self.title)

    @property
    def binding_type(self) -> BindingType:
        return normalize_binding(self.binding)


class MergedBookRecord(BaseModel):
    """Union of every raw record sharing one normalized key."""

    key: str = Field(..., description="Normalized key (ISBN-13 or title|author)")
    title: str | None = None
    subtitle: str | None = None
    authors: list[str] = Field(default_factory=list)
    isbn_13: str | None = None
    isbn_10: str | None = None
    isbns: list[str] = Field(default_factory=list, description="Every ISBN-13 seen")
    publisher: str | None = None
    published_date: str | None = None
    year: int | None = None
    description: str | None = None
    pages: int | None = None
    language: str | None = None
    subjects: list[str] = Field(default_factory=list)
    binding: BindingType = BindingType.UNKNOWN
    cover_image_url: str | None = None
    edition: str | None = None

    sources: set[SourceName] = Field(default_factory=set, description="Contributing providers")
    source_ids: dict[SourceName, str] = Field(
        default_factory=dict, description="ID of the record within each contributing provider"
    )
    field_sources: dict[str, SourceName] = Field(
        default_factory=dict, description="Provider each scalar field was taken from"
    )
    conflicts: list[str] = Field(
        default_factory=list, description="Fields on which providers disagreed"
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Merge confidence")

    @property
    def has_cover(self) -> bool:
        return bool(self.cover_image_url)


class BindingVariant(BaseModel):
    """All merged records of one edition that share a binding."""

    binding: BindingType
    records: list[MergedBookRecord] = Field(default_factory=list)


class EditionGroup(BaseModel):
    """Records judged to be the same edition, split by binding."""

    title: str | None = None
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    edition_number: int | None = Field(default=None, description="Explicit edition number, if any")
    bindings: list[BindingVariant] = Field(default_factory=list)

    @property
    def records(self) -> list[MergedBookRecord]:
        return [record for variant in self.bindings for record in variant.records]

    @property
    def sources(self) -> set[SourceName]:
        return {source for record in self.records for source in record.sources}

    @property
    def has_cover(self) -> bool:
        return any(record.has_cover for record in self.records)


class SearchCriteria(BaseModel):
    """Free-text search criteria with pagination."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    author: str | None = None
    publisher: str | None = None
    subject: str | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    def terms(self) -> dict[str, str]:
        """Non-empty search fields, stripped."""
        values = {
            "title": self.title,
            "author": self.author,
            "publisher": self.publisher,
            "subject": self.subject,
        }
        return {k: v.strip() for k, v in values.items() if v and v.strip()}

    @property
    def is_searchable(self) -> bool:
        """At least one field long enough to be worth sending."""
        return any(len(v) >= MIN_QUERY_LENGTH for v in self.terms().values())

    def cache_params(self) -> dict[str, Any]:
        return {**self.terms(), "page": self.page, "page_size": self.page_size}
