"""Service layer for business logic."""

from bookmerge.services.lookup import LookupResult, LookupService, SearchPage

__all__ = [
    "LookupResult",
    "LookupService",
    "SearchPage",
]
