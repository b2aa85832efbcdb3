"""Group merged records into editions with binding variants."""

from __future__ import annotations

from collections.abc import Iterable

from bookmerge.core.models import BindingVariant, EditionGroup, MergedBookRecord
from bookmerge.core.normalization import parse_edition_number, title_author_key
from bookmerge.core.types import BindingType

_BINDING_ORDER = {binding: index for index, binding in enumerate(BindingType)}


class EditionGrouper:
    """
    Buckets merged records into EditionGroups.

    Records are grouped by normalized title and first author, then by
    explicit edition number ("2nd edition" in the edition field or the
    title), then by publication year. Records without an edition number
    only share buckets with each other. A record without a year joins the
    most recent dated bucket of its work and edition, or forms its own
    bucket when none is dated. Within a bucket records are split by
    binding so hardcover, paperback, ebook and audiobook variants stay
    distinct.
    """

    def group(self, records: Iterable[MergedBookRecord]) -> list[EditionGroup]:
        works: dict[str, dict[int | None, list[MergedBookRecord]]] = {}
        for record in records:
            key = title_author_key(record.title, record.authors[0] if record.authors else None)
            number = parse_edition_number(record.edition, record.title)
            works.setdefault(key, {}).setdefault(number, []).append(record)

        groups: list[EditionGroup] = []
        for editions in works.values():
            for number, edition_records in editions.items():
                for year, bucket in self._year_buckets(edition_records).items():
                    groups.append(self._build_group(number, year, bucket))

        groups.sort(key=self._sort_key)
        return groups

    @staticmethod
    def _year_buckets(records: list[MergedBookRecord]) -> dict[int | None, list[MergedBookRecord]]:
        buckets: dict[int | None, list[MergedBookRecord]] = {}
        undated: list[MergedBookRecord] = []
        for record in records:
            if record.year is None:
                undated.append(record)
            else:
                buckets.setdefault(record.year, []).append(record)

        if undated:
            target = max(buckets) if buckets else None
            buckets.setdefault(target, []).extend(undated)
        return buckets

    @staticmethod
    def _build_group(
        number: int | None,
        year: int | None,
        records: list[MergedBookRecord],
    ) -> EditionGroup:
        variants: dict[BindingType, list[MergedBookRecord]] = {}
        for record in records:
            variants.setdefault(record.binding, []).append(record)

        representative = max(records, key=lambda r: r.confidence)
        return EditionGroup(
            title=representative.title,
            authors=list(representative.authors),
            year=year,
            edition_number=number,
            bindings=[
                BindingVariant(binding=binding, records=variants[binding])
                for binding in sorted(variants, key=_BINDING_ORDER.__getitem__)
            ],
        )

    @staticmethod
    def _sort_key(group: EditionGroup) -> tuple[bool, int, int, bool, int]:
        # Most recent year first (undated last), then highest edition, cover, corroboration
        return (
            group.year is None,
            -(group.year or 0),
            -(group.edition_number or 0),
            not group.has_cover,
            -len(group.sources),
        )
