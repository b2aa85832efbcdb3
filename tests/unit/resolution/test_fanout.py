"""Tests for concurrent provider fan-out."""

from __future__ import annotations

from bookmerge.core.models import SearchCriteria
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.resolution.fanout import FanOutConfig, ProviderFanOut


# ============================================================================
# Fan-out Tests
# ============================================================================


class TestProviderFanOut:
    """Tests for running every provider in parallel."""

    async def test_collects_all_results_in_provider_order(
        self, stub_provider, isbndb_record, google_record
    ):
        fan_out = ProviderFanOut(
            [
                stub_provider(SourceName.ISBNDB, records=[isbndb_record], total_items=3),
                stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record], total_items=7),
            ]
        )

        result = await fan_out.fetch_by_identifier("9780143127550")

        assert result.success
        assert result.sources_tried == [SourceName.ISBNDB, SourceName.GOOGLE_BOOKS]
        assert result.record_lists == [[isbndb_record], [google_record]]
        assert result.failures == {}
        assert result.total_items == 7

    async def test_failure_does_not_block_others(self, stub_provider, google_record):
        fan_out = ProviderFanOut(
            [
                stub_provider(SourceName.ISBNDB, status=ResolutionStatus.UNAUTHORIZED),
                stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record]),
            ]
        )

        result = await fan_out.search(SearchCriteria(title="Everything"))

        assert result.record_lists == [[google_record]]
        assert result.failures[SourceName.ISBNDB].status == ResolutionStatus.UNAUTHORIZED

    async def test_unexpected_exception_becomes_error(self, stub_provider, google_record):
        fan_out = ProviderFanOut(
            [
                stub_provider(SourceName.ISBNDB, error=RuntimeError("bug")),
                stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record]),
            ]
        )

        result = await fan_out.fetch_by_identifier("9780143127550")

        failure = result.failures[SourceName.ISBNDB]
        assert failure.status == ResolutionStatus.ERROR
        assert failure.error_type == "RuntimeError"
        assert result.success

    async def test_slow_provider_cancelled(self, stub_provider, google_record):
        slow = stub_provider(SourceName.ISBNDB, records=[google_record], delay=5)
        fast = stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record])
        fan_out = ProviderFanOut([slow, fast], FanOutConfig(total_timeout=0.05))

        result = await fan_out.fetch_by_identifier("9780143127550")

        assert result.failures[SourceName.ISBNDB].status == ResolutionStatus.TIMEOUT
        assert result.record_lists == [[google_record]]

    async def test_disabled_provider_skipped(self, stub_provider, google_record):
        disabled = stub_provider(SourceName.ISBNDB, records=[google_record], enabled=False)
        fan_out = ProviderFanOut(
            [disabled, stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record])]
        )

        result = await fan_out.fetch_by_identifier("x")

        assert result.sources_tried == [SourceName.GOOGLE_BOOKS]
        assert disabled.calls == []

    async def test_no_providers(self):
        result = await ProviderFanOut([]).fetch_by_identifier("x")
        assert result.results == []
        assert not result.success
        assert result.total_items is None

    async def test_every_provider_sees_the_query(self, stub_provider):
        providers = [stub_provider(SourceName.ISBNDB), stub_provider(SourceName.GOOGLE_BOOKS)]
        criteria = SearchCriteria(author="Brad Feld")

        await ProviderFanOut(providers).search(criteria)

        assert [p.calls for p in providers] == [[criteria], [criteria]]
