"""API route modules."""

from bookmerge.api.routes.books import router as books_router
from bookmerge.api.routes.cache import router as cache_router
from bookmerge.api.routes.health import router as health_router

__all__ = [
    "books_router",
    "cache_router",
    "health_router",
]
