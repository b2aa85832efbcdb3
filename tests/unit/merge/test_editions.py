"""Tests for edition grouping."""

from __future__ import annotations

from typing import Any

import pytest

from bookmerge.core.models import MergedBookRecord
from bookmerge.core.types import BindingType, SourceName
from bookmerge.merge.editions import EditionGrouper


def merged(key: str, **overrides: Any) -> MergedBookRecord:
    data: dict[str, Any] = {
        "key": key,
        "title": "Venture Deals",
        "authors": ["Brad Feld"],
        "sources": {SourceName.ISBNDB},
        "confidence": 0.5,
    }
    data.update(overrides)
    return MergedBookRecord(**data)


@pytest.fixture
def grouper() -> EditionGrouper:
    return EditionGrouper()


# ============================================================================
# Grouping Tests
# ============================================================================


class TestEditionGrouper:
    """Tests for grouping merged records into editions."""

    def test_bindings_of_one_edition_share_a_group(self, grouper: EditionGrouper):
        hardcover = merged("9781119594826", year=2019, binding=BindingType.HARDCOVER)
        ebook = merged("9781119594833", year=2019, binding=BindingType.EBOOK)

        groups = grouper.group([ebook, hardcover])

        assert len(groups) == 1
        group = groups[0]
        assert group.year == 2019
        assert [v.binding for v in group.bindings] == [BindingType.HARDCOVER, BindingType.EBOOK]
        assert group.bindings[0].records == [hardcover]

    def test_years_split_editions_newest_first(self, grouper: EditionGrouper):
        old = merged("9781118443613", year=2012)
        new = merged("9781119594826", year=2019)

        groups = grouper.group([old, new])

        assert [g.year for g in groups] == [2019, 2012]

    def test_undated_joins_latest_year(self, grouper: EditionGrouper):
        old = merged("9781118443613", year=2012)
        new = merged("9781119594826", year=2019)
        undated = merged("venture deals|brad feld", binding=BindingType.AUDIOBOOK)

        groups = grouper.group([old, undated, new])

        assert len(groups) == 2
        assert undated in groups[0].records
        assert groups[0].year == 2019

    def test_all_undated_forms_own_group(self, grouper: EditionGrouper):
        groups = grouper.group([merged("a"), merged("b", binding=BindingType.PAPERBACK)])

        assert len(groups) == 1
        assert groups[0].year is None

    def test_different_works_stay_apart(self, grouper: EditionGrouper):
        a = merged("1", title="Venture Deals", year=2019)
        b = merged("2", title="Startup Communities", year=2019)

        groups = grouper.group([a, b])

        assert len(groups) == 2

    def test_subtitle_and_article_ignored_for_work(self, grouper: EditionGrouper):
        a = merged("1", title="The Startup Life", year=2014)
        b = merged("2", title="Startup Life: Surviving and Thriving", year=2014)

        assert len(grouper.group([a, b])) == 1

    def test_group_takes_most_confident_title(self, grouper: EditionGrouper):
        weak = merged("1", title="venture deals", year=2019, confidence=0.3)
        strong = merged("2", title="Venture Deals", year=2019, confidence=0.9)

        assert grouper.group([weak, strong])[0].title == "Venture Deals"

    def test_same_year_cover_first_then_sources(self, grouper: EditionGrouper):
        bare = merged("1", title="Alpha", year=2019)
        covered = merged("2", title="Beta", year=2019, cover_image_url="https://x/cover.jpg")
        corroborated = merged(
            "3",
            title="Gamma",
            year=2019,
            sources={SourceName.ISBNDB, SourceName.GOOGLE_BOOKS},
        )

        groups = grouper.group([bare, corroborated, covered])

        assert [g.title for g in groups] == ["Beta", "Gamma", "Alpha"]

    def test_undated_groups_sort_last(self, grouper: EditionGrouper):
        dated = merged("1", title="Alpha", year=1999)
        undated = merged("2", title="Beta")

        groups = grouper.group([undated, dated])

        assert [g.year for g in groups] == [1999, None]

    def test_empty(self, grouper: EditionGrouper):
        assert grouper.group([]) == []

    def test_edition_numbers_split_same_year(self, grouper: EditionGrouper):
        first = merged("9781118443613", year=2019, edition="1st Edition")
        second = merged("9781119594826", year=2019, edition="2nd Edition")

        groups = grouper.group([first, second])

        assert [g.edition_number for g in groups] == [2, 1]
        assert groups[0].records == [second]

    def test_edition_number_read_from_title(self, grouper: EditionGrouper):
        plain = merged("1", title="Venture Deals", year=2019, edition="2")
        titled = merged("2", title="Venture Deals: Second Edition", year=2019)
        ebook = merged("3", year=2019, edition="2nd ed.", binding=BindingType.EBOOK)

        groups = grouper.group([plain, titled, ebook])

        assert len(groups) == 1
        assert groups[0].edition_number == 2
        assert [v.binding for v in groups[0].bindings] == [BindingType.EBOOK, BindingType.UNKNOWN]

    def test_unnumbered_records_keep_year_grouping(self, grouper: EditionGrouper):
        numbered = merged("1", year=2019, edition="3rd edition")
        plain = merged("2", year=2019)
        undated = merged("3")

        groups = grouper.group([plain, numbered, undated])

        assert [g.edition_number for g in groups] == [3, None]
        assert groups[1].records == [plain, undated]
