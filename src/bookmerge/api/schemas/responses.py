"""Response schemas for API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from bookmerge.api.schemas.base import APIBaseSchema, PagedResponse
from bookmerge.core.types import BindingType, ResolutionStatus, SourceName


class BookResponse(APIBaseSchema):
    """A merged book record."""

    key: str
    title: str | None = None
    subtitle: str | None = None
    authors: list[str] = Field(default_factory=list)
    isbn_13: str | None = None
    isbn_10: str | None = None
    isbns: list[str] = Field(default_factory=list)
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
    sources: list[SourceName] = Field(default_factory=list)
    source_ids: dict[SourceName, str] = Field(default_factory=dict)
    field_sources: dict[str, SourceName] = Field(default_factory=dict)
    conflicts: list[str] = Field(default_factory=list)
    confidence: float


class BindingVariantResponse(APIBaseSchema):
    """Records of one edition sharing a binding."""

    binding: BindingType
    records: list[BookResponse]


class EditionGroupResponse(APIBaseSchema):
    """An edition with its binding variants."""

    title: str | None = None
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    edition_number: int | None = None
    bindings: list[BindingVariantResponse]


class ProviderFailureResponse(APIBaseSchema):
    """Why a provider contributed nothing."""

    source: SourceName
    status: ResolutionStatus
    error_message: str | None = None
    duration_ms: float = 0.0


class LookupResponse(APIBaseSchema):
    """Response for a lookup by identifier."""

    identifier: str
    status: ResolutionStatus
    editions: list[EditionGroupResponse]
    sources: list[SourceName]
    failures: list[ProviderFailureResponse] = Field(default_factory=list)
    duration_ms: float


class SearchBooksResponse(PagedResponse):
    """Response for a search by criteria."""

    status: ResolutionStatus
    editions: list[EditionGroupResponse]
    sources: list[SourceName]
    failures: list[ProviderFailureResponse] = Field(default_factory=list)
    duration_ms: float


class HotKeyResponse(APIBaseSchema):
    """A frequently read cache key."""

    key: str
    hit_count: int
    last_access: datetime | None = None


class CacheAnalyticsResponse(APIBaseSchema):
    """Combined cache statistics."""

    size: int
    hits: int
    misses: int
    hit_rate: float
    total_requests: int
    hot_keys: list[HotKeyResponse]
    average_hits_per_key: float
    persisted_at: datetime | None = None
    restored_at: datetime | None = None


class RateLimitResponse(APIBaseSchema):
    """Remaining provider quota."""

    per_minute: int
    per_day: int
    reset_at: datetime


class HealthResponse(APIBaseSchema):
    """Health check response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    services: dict[str, Literal["up", "down", "unknown"]]
    rate_limits: dict[str, RateLimitResponse] = Field(default_factory=dict)
