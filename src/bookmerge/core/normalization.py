"""Text normalization utilities for matching and deduplication."""

import re
import unicodedata
from datetime import date

from .identifiers import extract_unique_isbns
from .types import BindingType

MIN_PUBLICATION_YEAR = 1800

# Checked in order; the first matching keyword wins.
_BINDING_KEYWORDS: tuple[tuple[BindingType, tuple[str, ...]], ...] = (
    (BindingType.AUDIOBOOK, ("audiobook", "audio cd", "mp3 cd", "audible", "unabridged")),
    (BindingType.EBOOK, ("ebook", "e-book", "kindle", "epub", "pdf", "digital")),
    (BindingType.BOARD_BOOK, ("board book",)),
    (BindingType.SPIRAL_BOUND, ("spiral",)),
    (BindingType.LIBRARY_BINDING, ("library binding",)),
    (BindingType.HARDCOVER, ("hardcover", "hardback", "cloth")),
    (
        BindingType.PAPERBACK,
        ("paperback", "softcover", "mass market", "trade paperback", "perfect"),
    ),
)


_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

_ORDINAL_WORDS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
}

_EDITION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(\d+)(?:st|nd|rd|th)\s+ed(?:ition|\.)?(?!\w)"),
    re.compile(r"\bedition\s+(\d+)\b"),
    re.compile(r"\b(" + "|".join(_ORDINAL_WORDS) + r")\s+edition\b"),
    re.compile(r"\b(?:unabridged|revised|updated)\s+(\d+)\b"),
)


def fold_accents(text: str) -> str:
    """Strip combining marks after NFKD decomposition ("Brontë" -> "Bronte")."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_text(text: str | None, *, lowercase: bool = True) -> str:
    """
    Comparison form of free text.

    Accents are folded, punctuation becomes a space and runs of whitespace
    collapse to one. Empty or missing input gives an empty string.
    """
    if not text:
        return ""
    result = fold_accents(text)
    if lowercase:
        result = result.lower()
    result = _PUNCTUATION.sub(" ", result)
    return _WHITESPACE.sub(" ", result).strip()


def normalize_title(title: str | None) -> str:
    """Comparison form of a title, without subtitle or leading article."""
    if not title:
        return ""
    main = title.split(":", 1)[0]
    return re.sub(r"^(the|a|an)\s+", "", normalize_text(main))


def normalize_author_name(name: str | None) -> str:
    """
    Comparison form of an author name.

    "Ng, Celeste" and "Celeste Ng" both become "celeste ng"; initials
    lose their periods ("J. R. R. Tolkien" -> "j r r tolkien").
    """
    if not name:
        return ""
    if "," in name:
        last, first = (part.strip() for part in name.split(",", 1))
        name = f"{first} {last}"
    return normalize_text(name)


def normalize_binding(binding: str | None) -> BindingType:
    """Map a provider's free-text binding description to a BindingType."""
    if not binding:
        return BindingType.UNKNOWN
    lowered = binding.lower().strip()
    for binding_type, keywords in _BINDING_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return binding_type
    return BindingType.UNKNOWN


def _plausible_year(year: int) -> bool:
    return MIN_PUBLICATION_YEAR <= year <= date.today().year + 5


def extract_year(
    year: int | None = None,
    published_date: str | None = None,
    title: str | None = None,
) -> int | None:
    """
    Best-effort publication year.

    Tries an explicit year, then the leading four characters of a date
    string, then a ``(YYYY)`` suffix in the title.
    """
    if year is not None and _plausible_year(year):
        return year

    if published_date:
        head = published_date.strip()[:4]
        if head.isdigit() and _plausible_year(int(head)):
            return int(head)

    if title:
        match = re.search(r"\((\d{4})\)", title)
        if match and _plausible_year(int(match.group(1))):
            return int(match.group(1))

    return None


def _edition_number_in(text: str) -> int | None:
    lowered = text.lower()
    for pattern in _EDITION_PATTERNS:
        match = pattern.search(lowered)
        if match:
            token = match.group(1)
            number = _ORDINAL_WORDS.get(token) or int(token)
            return number if number > 0 else None
    return None


def parse_edition_number(edition: str | None, title: str | None = None) -> int | None:
    """
    Explicit edition number from edition metadata, else from the title.

    Understands "2nd edition", "edition 3", "third edition" and
    "revised 2"; an edition field holding only digits ("4") counts too.
    """
    if edition:
        stripped = edition.strip()
        if stripped.isdigit():
            return int(stripped) or None
        number = _edition_number_in(stripped)
        if number is not None:
            return number
    if title:
        return _edition_number_in(title)
    return None


def title_author_key(title: str | None, author: str | None) -> str:
    """Composite ``title|author`` key used when no ISBN is known."""
    return f"{normalize_title(title or '')}|{normalize_author_name(author or '')}"


def normalized_key(
    *,
    isbn_13: str | None = None,
    isbn_10: str | None = None,
    title: str | None = None,
    author: str | None = None,
    fallback: str | None = None,
) -> str:
    """
    Deduplication key for a record.

    The canonical ISBN-13 when one can be derived, otherwise the
    normalized title and first author. When neither title nor author
    normalizes to anything, ``fallback`` (typically ``source:source_id``)
    is used so such records never merge with each other.
    """
    isbns = extract_unique_isbns([isbn_13, isbn_10])
    if isbns:
        return isbns[0]
    key = title_author_key(title, author)
    if key == "|" and fallback:
        return fallback
    return key
