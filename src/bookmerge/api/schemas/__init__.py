"""API schema definitions."""

from bookmerge.api.schemas.base import (
    APIBaseSchema,
    APIError,
    ErrorDetail,
    PagedResponse,
)
from bookmerge.api.schemas.responses import (
    BindingVariantResponse,
    BookResponse,
    CacheAnalyticsResponse,
    EditionGroupResponse,
    HealthResponse,
    HotKeyResponse,
    LookupResponse,
    ProviderFailureResponse,
    RateLimitResponse,
    SearchBooksResponse,
)

__all__ = [
    # Base
    "APIBaseSchema",
    "APIError",
    "ErrorDetail",
    "PagedResponse",
    # Responses
    "BindingVariantResponse",
    "BookResponse",
    "CacheAnalyticsResponse",
    "EditionGroupResponse",
    "HealthResponse",
    "HotKeyResponse",
    "LookupResponse",
    "ProviderFailureResponse",
    "RateLimitResponse",
    "SearchBooksResponse",
]
