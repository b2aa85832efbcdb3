"""Merge and deduplicate provider records into MergedBookRecords."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from bookmerge.core.identifiers import extract_unique_isbns
from bookmerge.core.models import MergedBookRecord, RawProviderRecord
from bookmerge.core.normalization import (
    normalize_author_name,
    normalize_text,
    normalize_title,
)
from bookmerge.core.types import BindingType, SourceName

if TYPE_CHECKING:
    from bookmerge.config import MergeSettings

logger = logging.getLogger(__name__)

ConfidenceScorer = Callable[[MergedBookRecord, Sequence[RawProviderRecord]], float]

SCALAR_FIELDS: tuple[str, ...] = (
    "title",
    "subtitle",
    "isbn_13",
    "isbn_10",
    "publisher",
    "published_date",
    "year",
    "description",
    "pages",
    "language",
    "binding",
    "cover_image_url",
    "edition",
)

# Fields where disagreement between providers lowers confidence. Free text
# and URLs differ between providers even for the same edition.
CONFLICT_FIELDS: frozenset[str] = frozenset({"title", "publisher", "year", "binding"})

DEFAULT_PRECEDENCE: tuple[SourceName, ...] = (SourceName.ISBNDB, SourceName.GOOGLE_BOOKS)

DEFAULT_FIELD_PRECEDENCE: dict[str, tuple[SourceName, ...]] = {
    "publisher": (SourceName.ISBNDB, SourceName.GOOGLE_BOOKS),
    "description": (SourceName.ISBNDB, SourceName.GOOGLE_BOOKS),
    "binding": (SourceName.ISBNDB, SourceName.GOOGLE_BOOKS),
    "cover_image_url": (SourceName.GOOGLE_BOOKS, SourceName.ISBNDB),
}


COMPLETENESS_WEIGHTS: dict[str, int] = {
    "isbn": 3,
    "authors": 2,
    "publisher": 1,
    "date": 1,
    "description": 2,
    "pages": 1,
    "binding": 1,
    "cover": 1,
}


def completeness(record: MergedBookRecord) -> int:
    """Weighted count of the descriptive fields a merged record carries."""
    present = {
        "isbn": bool(record.isbns or record.isbn_13),
        "authors": bool(record.authors),
        "publisher": bool(record.publisher),
        "date": bool(record.published_date or record.year),
        "description": bool(record.description),
        "pages": bool(record.pages),
        "binding": record.binding != BindingType.UNKNOWN,
        "cover": record.has_cover,
    }
    return sum(COMPLETENESS_WEIGHTS[name] for name, has in present.items() if has)


def default_confidence(
    record: MergedBookRecord,
    raw_records: Sequence[RawProviderRecord],
) -> float:
    """
    Score how far a merged record can be trusted.

    Starts at ``1 - 0.5**n`` for ``n`` independent sources, adds 0.1 for
    every extra source confirming one of the record's ISBNs and subtracts
    0.1 per conflicting field.
    """
    score = 1.0 - 0.5 ** len(record.sources)

    confirming = {r.source for r in raw_records if set(r.isbns) & set(record.isbns)}
    score += 0.1 * max(0, len(confirming) - 1)

    score -= 0.1 * len(record.conflicts)
    return min(1.0, max(0.0, score))


@dataclass(frozen=True)
class MergePolicy:
    """Source precedence per field plus the confidence scoring function."""

    field_precedence: Mapping[str, Sequence[SourceName]] = field(
        default_factory=lambda: dict(DEFAULT_FIELD_PRECEDENCE)
    )
    default_precedence: Sequence[SourceName] = DEFAULT_PRECEDENCE
    scorer: ConfidenceScorer = default_confidence

    def precedence_for(self, field_name: str) -> Sequence[SourceName]:
        return self.field_precedence.get(field_name, self.default_precedence)

    def rank(self, field_name: str, source: SourceName) -> int:
        """Position of ``source`` for a field; unknown sources rank last."""
        order = self.precedence_for(field_name)
        try:
            return list(order).index(source)
        except ValueError:
            return len(order)

    def authority(self, sources: Iterable[SourceName]) -> int:
        """Best default-precedence rank among ``sources``; lower is more authoritative."""
        order = list(self.default_precedence)
        return min(
            (order.index(s) if s in order else len(order) for s in sources),
            default=len(order),
        )

    @classmethod
    def from_settings(
        cls,
        settings: MergeSettings,
        scorer: ConfidenceScorer = default_confidence,
    ) -> MergePolicy:
        return cls(
            field_precedence={k: tuple(v) for k, v in settings.field_precedence.items()},
            default_precedence=tuple(settings.default_precedence),
            scorer=scorer,
        )


def _field_value(record: RawProviderRecord, field_name: str) -> Any:
    """Value of a field as used for merging; empty values come back as None."""
    if field_name == "binding":
        binding = record.binding_type
        return None if binding == BindingType.UNKNOWN else binding
    if field_name == "year":
        return record.publication_year
    value = getattr(record, field_name)
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _comparable(field_name: str, value: Any) -> Any:
    if field_name == "title":
        return normalize_title(value)
    if field_name == "publisher":
        return normalize_text(value)
    return value


class MergeEngine:
    """
    Groups raw records by normalized key and merges each group.

    Scalar fields come from the highest-precedence source that has a value;
    authors, subjects and ISBNs are unioned.
    """

    def __init__(self, policy: MergePolicy | None = None) -> None:
        self.policy = policy or MergePolicy()

    def merge(
        self,
        provider_results: Iterable[Iterable[RawProviderRecord]],
    ) -> list[MergedBookRecord]:
        """
        Merge one record list per provider.

        Returns:
            One MergedBookRecord per normalized key, most relevant first:
            records with an ISBN, then by completeness, then by source
            authority, then by title
        """
        groups: dict[str, list[RawProviderRecord]] = {}
        for records in provider_results:
            for record in records:
                groups.setdefault(record.key, []).append(record)

        merged = [self._merge_group(key, records) for key, records in groups.items()]
        merged.sort(key=self._relevance)
        logger.debug(
            f"Merged {sum(len(g) for g in groups.values())} records into {len(merged)}"
        )
        return merged

    def _relevance(self, record: MergedBookRecord) -> tuple[bool, int, int, str]:
        return (
            not record.isbns,
            -completeness(record),
            self.policy.authority(record.sources),
            normalize_title(record.title),
        )

    def _ordered(self, field_name: str, records: list[RawProviderRecord]) -> list[RawProviderRecord]:
        # sorted() is stable, so same-rank records keep arrival order
        return sorted(records, key=lambda r: self.policy.rank(field_name, r.source))

    def _merge_group(self, key: str, records: list[RawProviderRecord]) -> MergedBookRecord:
        values: dict[str, Any] = {}
        field_sources: dict[str, SourceName] = {}
        conflicts: list[str] = []

        for field_name in SCALAR_FIELDS:
            candidates = [
                (r.source, value)
                for r in self._ordered(field_name, records)
                if (value := _field_value(r, field_name)) is not None
            ]
            if not candidates:
                continue

            source, value = candidates[0]
            values[field_name] = value
            field_sources[field_name] = source

            if field_name in CONFLICT_FIELDS:
                distinct = {_comparable(field_name, v) for _, v in candidates}
                if len(distinct) > 1:
                    conflicts.append(field_name)

        by_default_order = self._ordered("authors", records)
        isbns = extract_unique_isbns(
            isbn for r in records for isbn in (r.isbn_13, r.isbn_10)
        )
        if isbns and key in isbns:
            values["isbn_13"] = key

        record = MergedBookRecord(
            key=key,
            **values,
            authors=self._union(
                (a for r in by_default_order for a in r.authors), normalize_author_name
            ),
            subjects=self._union(
                (s for r in self._ordered("subjects", records) for s in r.subjects),
                lambda s: s.strip().lower(),
            ),
            isbns=isbns,
            sources={r.source for r in records},
            source_ids=self._first_ids(by_default_order),
            field_sources=field_sources,
            conflicts=conflicts,
        )
        record.confidence = min(1.0, max(0.0, self.policy.scorer(record, records)))
        return record

    @staticmethod
    def _first_ids(records: Iterable[RawProviderRecord]) -> dict[SourceName, str]:
        ids: dict[SourceName, str] = {}
        for record in records:
            ids.setdefault(record.source, record.source_id)
        return ids

    @staticmethod
    def _union(values: Iterable[str], normalize: Callable[[str], str]) -> list[str]:
        """Distinct values by normalized form, keeping the first spelling."""
        seen: dict[str, str] = {}
        for value in values:
            if not value:
                continue
            seen.setdefault(normalize(value), value)
        return list(seen.values())
