"""Concrete bibliographic metadata providers."""

from bookmerge.resolution.providers.google_books import GoogleBooksProvider
from bookmerge.resolution.providers.isbndb import ISBNdbProvider

__all__ = [
    "GoogleBooksProvider",
    "ISBNdbProvider",
]
