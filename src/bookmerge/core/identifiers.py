"""ISBN value object and normalization helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import ClassVar, Literal, Self

from pydantic import BaseModel, Field, field_validator, model_validator

_SEPARATORS = re.compile(r"[-\s]")


def strip_isbn(value: str) -> str:
    """Remove hyphens and whitespace, uppercase a trailing X."""
    return _SEPARATORS.sub("", str(value)).upper()


def isbn13_check_digit(base: str) -> int:
    """Check digit for the first 12 digits of an ISBN-13."""
    total = sum(int(c) * (1 if i % 2 == 0 else 3) for i, c in enumerate(base))
    remainder = total % 10
    return 0 if remainder == 0 else 10 - remainder


def isbn10_check_digit(base: str) -> str:
    """Check character for the first 9 digits of an ISBN-10."""
    total = sum(int(c) * (10 - i) for i, c in enumerate(base))
    checksum = (11 - (total % 11)) % 11
    return "X" if checksum == 10 else str(checksum)


def is_valid_isbn10(value: str) -> bool:
    """Validate an ISBN-10 using weights 10..1 and modulus 11."""
    isbn = strip_isbn(value)
    if not re.fullmatch(r"[0-9]{9}[0-9X]", isbn):
        return False
    total = sum(
        (10 if c == "X" else int(c)) * (10 - i) for i, c in enumerate(isbn)
    )
    return total % 11 == 0


def is_valid_isbn13(value: str) -> bool:
    """Validate an ISBN-13 by recomputing its check digit."""
    isbn = strip_isbn(value)
    if not re.fullmatch(r"[0-9]{13}", isbn):
        return False
    return isbn13_check_digit(isbn[:12]) == int(isbn[12])


def to_isbn13(isbn10: str) -> str:
    """
    Convert an ISBN-10 to ISBN-13.

    The ISBN-10 check digit is dropped, ``978`` is prefixed and a fresh
    ISBN-13 check digit is computed.

    Raises:
        ValueError: If the input is not 10 characters after stripping.
    """
    isbn = strip_isbn(isbn10)
    if len(isbn) != 10 or not isbn[:9].isdigit():
        raise ValueError(f"Invalid ISBN-10: {isbn10}")
    base = "978" + isbn[:9]
    return base + str(isbn13_check_digit(base))


def to_isbn10(isbn13: str) -> str | None:
    """Convert an ISBN-13 to ISBN-10 (only possible for the 978 prefix)."""
    isbn = strip_isbn(isbn13)
    if len(isbn) != 13 or not isbn.isdigit() or not isbn.startswith("978"):
        return None
    base = isbn[3:12]
    return base + isbn10_check_digit(base)


def extract_unique_isbns(values: Iterable[str | None]) -> list[str]:
    """
    Collect distinct ISBN-13s from a mix of ISBN-10 and ISBN-13 strings.

    Values of the wrong length (or empty ones) are skipped silently.
    Order of first appearance is preserved.
    """
    seen: dict[str, None] = {}
    for raw in values:
        if not raw:
            continue
        isbn = strip_isbn(raw)
        if len(isbn) == 13 and isbn.isdigit():
            seen.setdefault(isbn, None)
        elif len(isbn) == 10 and isbn[:9].isdigit():
            seen.setdefault(to_isbn13(isbn), None)
    return list(seen)


def looks_like_isbn(value: str) -> bool:
    """Whether a string has the shape of an ISBN-10 or ISBN-13."""
    isbn = strip_isbn(value)
    return bool(re.fullmatch(r"[0-9]{9}[0-9X]|[0-9]{13}", isbn))


class ISBN(BaseModel):
    """
    A checksum-validated ISBN in either form.

    The ISBN-10 and ISBN-13 of one book compare and hash equal, so a set
    of ISBNs deduplicates the two forms.
    """

    value: str = Field(..., description="Digits only; ISBN-10 may end in X")
    format: Literal["isbn10", "isbn13"]

    PATTERNS: ClassVar[dict[str, re.Pattern[str]]] = {
        "isbn10": re.compile(r"[0-9]{9}[0-9X]"),
        "isbn13": re.compile(r"97[89][0-9]{10}"),
    }

    @field_validator("value", mode="before")
    @classmethod
    def strip_separators(cls, v: str) -> str:
        return strip_isbn(v)

    @model_validator(mode="after")
    def check_shape_and_checksum(self) -> Self:
        label = "ISBN-10" if self.format == "isbn10" else "ISBN-13"
        if not self.PATTERNS[self.format].fullmatch(self.value):
            raise ValueError(f"{self.value!r} is not shaped like an {label}")
        valid = is_valid_isbn10 if self.format == "isbn10" else is_valid_isbn13
        if not valid(self.value):
            raise ValueError(f"{self.value!r} fails the {label} checksum")
        return self

    @classmethod
    def parse(cls, value: str) -> ISBN:
        """Parse either form; the format is inferred from the length."""
        digits = strip_isbn(value)
        formats = {10: "isbn10", 13: "isbn13"}
        if len(digits) not in formats:
            raise ValueError(f"ISBN must have 10 or 13 characters, got {len(digits)}")
        return cls(value=digits, format=formats[len(digits)])

    def to_isbn13(self) -> ISBN:
        if self.format == "isbn13":
            return self
        return ISBN(value=to_isbn13(self.value), format="isbn13")

    def to_isbn10(self) -> ISBN | None:
        """ISBN-10 form, or None for 979-prefixed ISBNs."""
        if self.format == "isbn10":
            return self
        converted = to_isbn10(self.value)
        return ISBN(value=converted, format="isbn10") if converted else None

    def __str__(self) -> str:
        return self.value

    def __hash__(self) -> int:
        return hash(self.to_isbn13().value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ISBN):
            return NotImplemented
        return self.to_isbn13().value == other.to_isbn13().value
