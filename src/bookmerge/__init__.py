"""bookmerge - Aggregated, deduplicated book metadata from multiple providers."""

from bookmerge.cache.store import CacheAnalytics, CacheStats, TTLCache
from bookmerge.client import BookmergeClient, lookup_book
from bookmerge.core.models import EditionGroup, MergedBookRecord, RawProviderRecord, SearchCriteria
from bookmerge.core.types import BindingType, ResolutionStatus, SourceName
from bookmerge.merge.engine import MergeEngine, MergePolicy
from bookmerge.services.lookup import LookupResult, SearchPage

__version__ = "0.1.0"
__all__ = [
    # Client
    "BookmergeClient",
    "lookup_book",
    # Types
    "BindingType",
    "ResolutionStatus",
    "SourceName",
    # Models
    "EditionGroup",
    "MergedBookRecord",
    "RawProviderRecord",
    "SearchCriteria",
    # Results
    "LookupResult",
    "SearchPage",
    # Cache
    "CacheAnalytics",
    "CacheStats",
    "TTLCache",
    # Merge
    "MergeEngine",
    "MergePolicy",
    # Version
    "__version__",
]
