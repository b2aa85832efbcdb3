"""Cache key builders and key normalization."""

import re
from typing import Any

from bookmerge.core.normalization import fold_accents
from bookmerge.core.types import SourceName

_ARTICLES = re.compile(r"\b(the|a|an)\b")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9:|\-]")


def is_bibliographic_key(key: str) -> bool:
    """Keys built from a title plus author query."""
    lowered = key.lower()
    return "title:" in lowered and "author:" in lowered


def _compact_segment(segment: str) -> str:
    """
    Compact one ``|``-separated part of a title/author key.

    Segments holding letters outside ASCII even after accent folding
    (Japanese or Cyrillic titles, say) are only whitespace-collapsed, since
    the ASCII filter would erase them and make distinct queries collide.
    """
    folded = fold_accents(segment)
    if any(c.isalnum() and not c.isascii() for c in folded):
        return _WHITESPACE.sub(" ", segment).strip()
    without_articles = _ARTICLES.sub("", folded)
    return _DISALLOWED.sub("", _WHITESPACE.sub("", without_articles))


def normalize_cache_key(key: str) -> str:
    """
    Canonical form of a cache key.

    Title/author keys are lowercased, accent-folded, stripped of English
    articles, of whitespace and of anything outside ``[a-z0-9:|-]`` so that
    "The Hobbit" and "hobbit" share an entry. Other keys are only
    lowercased with whitespace collapsed.
    """
    lowered = key.lower()
    if is_bibliographic_key(lowered):
        return "|".join(_compact_segment(part) for part in lowered.split("|"))
    return _WHITESPACE.sub(" ", lowered).strip()


class CacheKeys:
    """Cache key builders for consistent key formatting."""

    @classmethod
    def book(cls, source: SourceName | str, identifier: str) -> str:
        """Key for a provider lookup by identifier."""
        return f"{source}:book:{identifier}"

    @classmethod
    def search(cls, source: SourceName | str, params: dict[str, Any]) -> str:
        """Key for a provider search; parameters are sorted for stability."""
        return f"{source}:search:{build_param_key(params)}"


def build_param_key(params: dict[str, Any]) -> str:
    """``key:value`` pairs sorted by key and joined with ``|``."""
    return "|".join(
        f"{key}:{value}" for key, value in sorted(params.items()) if value is not None
    )
