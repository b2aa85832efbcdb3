"""Core enums and type definitions."""

from enum import StrEnum


class SourceName(StrEnum):
    """Known bibliographic metadata providers."""

    ISBNDB = "isbndb"
    GOOGLE_BOOKS = "google_books"


class ResolutionStatus(StrEnum):
    """Status of a provider call or an aggregated lookup."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAUTHORIZED = "unauthorized"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MALFORMED_RESPONSE = "malformed_response"
    EXHAUSTED_RETRIES = "exhausted_retries"
    ERROR = "error"


class BindingType(StrEnum):
    """Normalized physical (or digital) format of an edition."""

    HARDCOVER = "hardcover"
    PAPERBACK = "paperback"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"
    BOARD_BOOK = "board_book"
    SPIRAL_BOUND = "spiral_bound"
    LIBRARY_BINDING = "library_binding"
    UNKNOWN = "unknown"
