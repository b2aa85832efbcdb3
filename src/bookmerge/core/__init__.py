"""Core types, models, and utilities."""

from .exceptions import (
    BookmergeError,
    CacheError,
    ExhaustedRetriesError,
    MalformedResponseError,
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    TransientNetworkError,
    UnauthorizedError,
    ValidationError,
)
from .identifiers import (
    ISBN,
    extract_unique_isbns,
    is_valid_isbn10,
    is_valid_isbn13,
    to_isbn10,
    to_isbn13,
)
from .models import (
    BindingVariant,
    EditionGroup,
    MergedBookRecord,
    RawProviderRecord,
    SearchCriteria,
)
from .normalization import (
    extract_year,
    normalize_author_name,
    normalize_binding,
    normalize_text,
    normalize_title,
    normalized_key,
)
from .types import BindingType, ResolutionStatus, SourceName

__all__ = [
    # Types
    "BindingType",
    "ResolutionStatus",
    "SourceName",
    # Identifiers
    "ISBN",
    "extract_unique_isbns",
    "is_valid_isbn10",
    "is_valid_isbn13",
    "to_isbn10",
    "to_isbn13",
    # Models
    "BindingVariant",
    "EditionGroup",
    "MergedBookRecord",
    "RawProviderRecord",
    "SearchCriteria",
    # Normalization
    "extract_year",
    "normalize_author_name",
    "normalize_binding",
    "normalize_text",
    "normalize_title",
    "normalized_key",
    # Exceptions
    "BookmergeError",
    "CacheError",
    "ExhaustedRetriesError",
    "MalformedResponseError",
    "NotFoundError",
    "ProviderError",
    "ProviderTimeoutError",
    "RateLimitError",
    "TransientNetworkError",
    "UnauthorizedError",
    "ValidationError",
]
