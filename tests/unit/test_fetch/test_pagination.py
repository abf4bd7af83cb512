"""Unit tests for the paginated stats fetcher."""

import asyncio

import httpx
import pytest
from pydantic import SecretStr

from note_analytics.fetch import (
    FetchConfig,
    FetchedSnapshot,
    FetchFailedError,
    FetchMetrics,
    NoteCredentials,
    NoteStatsFetcher,
    TerminationReason,
)
from note_analytics.normalize import RawMetricRecord
from tests.helpers.note_api import (
    FakeStatsApi,
    make_records,
    page_payload,
    recording_sleep,
)


@pytest.fixture
def credentials() -> NoteCredentials:
    """Session cookies for tests."""
    return NoteCredentials(
        auth_token=SecretStr("auth-token"), session_token=SecretStr("session-token")
    )


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset fetch metrics between tests."""
    FetchMetrics.reset()


def _fetcher(api: FakeStatsApi, sleep=None) -> NoteStatsFetcher:  # noqa: ANN001
    _, default_sleep = recording_sleep()
    return NoteStatsFetcher(
        config=FetchConfig(base_url="https://note.test/api/v1/stats/pv"),
        run_id="test-run",
        transport=api.transport(),
        sleep=sleep or default_sleep,
    )


def _snapshot(
    fetcher: NoteStatsFetcher, credentials: NoteCredentials, max_pages: int = 10
) -> FetchedSnapshot:
    return asyncio.run(fetcher.fetch_snapshot(credentials, max_pages))


class TestTermination:
    """Tests for pagination stop conditions."""

    def test_stops_on_empty_page(self, credentials: NoteCredentials) -> None:
        """Test pages of 12, 8 and 0 records."""
        api = FakeStatsApi(
            [
                page_payload(make_records(1, 12)),
                page_payload(make_records(2, 8)),
                page_payload([]),
            ]
        )

        snapshot = _snapshot(_fetcher(api), credentials)

        assert api.requested_pages == [1, 2, 3]
        assert snapshot.termination_reason == TerminationReason.EMPTY_PAGE
        assert snapshot.record_count == 20
        assert snapshot.pages_fetched == 3

    def test_stops_on_last_page_flag(self, credentials: NoteCredentials) -> None:
        """Test an explicit last-page flag."""
        api = FakeStatsApi(
            [
                page_payload(make_records(1, 5), last_page=False),
                page_payload(make_records(2, 3), last_page=True),
                page_payload(make_records(3, 3)),
            ]
        )

        snapshot = _snapshot(_fetcher(api), credentials)

        assert api.requested_pages == [1, 2]
        assert snapshot.termination_reason == TerminationReason.LAST_PAGE_FLAG
        assert snapshot.record_count == 8

    def test_stops_at_max_pages(self, credentials: NoteCredentials) -> None:
        """Test the page cap."""
        api = FakeStatsApi([page_payload(make_records(p, 2)) for p in range(1, 6)])

        snapshot = _snapshot(_fetcher(api), credentials, max_pages=3)

        assert api.requested_pages == [1, 2, 3]
        assert snapshot.termination_reason == TerminationReason.MAX_PAGES
        assert snapshot.record_count == 6

    def test_rejects_zero_max_pages(self, credentials: NoteCredentials) -> None:
        """Test max_pages must be at least one."""
        api = FakeStatsApi([])

        with pytest.raises(ValueError, match="max_pages"):
            _snapshot(_fetcher(api), credentials, max_pages=0)

        assert api.requests == []


class TestSkippedRecords:
    """Tests for records dropped during normalization."""

    def test_keyless_record_counted(self, credentials: NoteCredentials) -> None:
        """Test one keyless record among two valid ones."""
        records = make_records(1, 2)
        records.append({"name": "no key"})
        api = FakeStatsApi([page_payload(records), page_payload([])])

        snapshot = _snapshot(_fetcher(api), credentials)

        assert snapshot.record_count == 2
        assert snapshot.skipped_count == 1
        assert snapshot.skipped[0].page == 1

    def test_page_of_only_invalid_records_continues(
        self, credentials: NoteCredentials
    ) -> None:
        """Test a page whose raw records are all invalid is not an empty page."""
        api = FakeStatsApi(
            [
                page_payload([{"name": "x"}, {"name": "y"}]),
                page_payload(make_records(2, 1)),
                page_payload([]),
            ]
        )

        snapshot = _snapshot(_fetcher(api), credentials)

        assert api.requested_pages == [1, 2, 3]
        assert snapshot.record_count == 1
        assert snapshot.skipped_count == 2


class TestFailures:
    """Tests for failed pages."""

    def test_non_2xx_aborts(self, credentials: NoteCredentials) -> None:
        """Test a failing page raises and yields no snapshot."""
        api = FakeStatsApi(
            [page_payload(make_records(1, 5)), page_payload(make_records(2, 5))],
            statuses={2: 503},
        )

        with pytest.raises(FetchFailedError) as exc_info:
            _snapshot(_fetcher(api), credentials)

        assert exc_info.value.page == 2
        assert exc_info.value.status == 503
        assert api.requested_pages == [1, 2]
        assert FetchMetrics.get_instance().failures_total == {503: 1}

    def test_unauthorized_on_first_page(self, credentials: NoteCredentials) -> None:
        """Test an expired session."""
        api = FakeStatsApi([], statuses={1: 401})

        with pytest.raises(FetchFailedError) as exc_info:
            _snapshot(_fetcher(api), credentials)

        assert exc_info.value.status == 401

    def test_transport_error(self, credentials: NoteCredentials) -> None:
        """Test a connection failure is reported with status 0."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        fetcher = NoteStatsFetcher(
            config=FetchConfig(page_delay_seconds=0),
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(FetchFailedError) as exc_info:
            _snapshot(fetcher, credentials)

        assert exc_info.value.page == 1
        assert exc_info.value.status == 0

    def test_invalid_json(self, credentials: NoteCredentials) -> None:
        """Test an undecodable body fails the page."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        fetcher = NoteStatsFetcher(
            config=FetchConfig(page_delay_seconds=0),
            transport=httpx.MockTransport(handler),
        )

        with pytest.raises(FetchFailedError) as exc_info:
            _snapshot(fetcher, credentials)

        assert exc_info.value.status == 200

    def test_unrecognized_page_shape_aborts(self, credentials: NoteCredentials) -> None:
        """Test a later page with no record list never ends the fetch early."""
        api = FakeStatsApi(
            [page_payload(make_records(1, 5)), {"data": {"results": []}}],
        )

        with pytest.raises(FetchFailedError) as exc_info:
            _snapshot(_fetcher(api), credentials)

        assert exc_info.value.page == 2
        assert api.requested_pages == [1, 2]


class TestRequests:
    """Tests for what is sent upstream."""

    def test_sends_query_and_cookies(self, credentials: NoteCredentials) -> None:
        """Test query parameters and session cookies."""
        api = FakeStatsApi([page_payload([])])

        _snapshot(_fetcher(api), credentials)

        request = api.requests[0]
        assert request.url.params["filter"] == "all"
        assert request.url.params["sort"] == "pv"
        assert request.url.params["page"] == "1"
        assert "note_gql_auth_token=auth-token" in request.headers["cookie"]
        assert "_note_session_v5=session-token" in request.headers["cookie"]

    def test_delay_between_pages(self, credentials: NoteCredentials) -> None:
        """Test the delay is awaited between pages but not before the first."""
        api = FakeStatsApi(
            [
                page_payload(make_records(1, 1)),
                page_payload(make_records(2, 1)),
                page_payload([]),
            ]
        )
        delays, sleep = recording_sleep()

        _snapshot(_fetcher(api, sleep=sleep), credentials)

        assert delays == [1.0, 1.0]

    def test_each_call_restarts_from_page_one(
        self, credentials: NoteCredentials
    ) -> None:
        """Test repeated fetches re-drive pagination."""
        api = FakeStatsApi([page_payload(make_records(1, 2)), page_payload([])])
        fetcher = _fetcher(api)

        first = _snapshot(fetcher, credentials)
        second = _snapshot(fetcher, credentials)

        assert api.requested_pages == [1, 2, 1, 2]
        assert first.records == second.records


class TestStreaming:
    """Tests for the record iterator."""

    def test_fetch_yields_records(self, credentials: NoteCredentials) -> None:
        """Test fetch() yields every normalized record."""
        api = FakeStatsApi(
            [page_payload(make_records(1, 3)), page_payload(make_records(2, 2))]
        )

        async def collect() -> list[RawMetricRecord]:
            return [r async for r in _fetcher(api).fetch(credentials, max_pages=2)]

        records = asyncio.run(collect())

        assert [r.external_key for r in records] == [
            "n1x0",
            "n1x1",
            "n1x2",
            "n2x0",
            "n2x1",
        ]

    def test_other_coroutines_run_during_delay(
        self, credentials: NoteCredentials
    ) -> None:
        """Test the inter-page wait is a real suspension point."""
        api = FakeStatsApi([page_payload(make_records(1, 1)), page_payload([])])
        fetcher = NoteStatsFetcher(
            config=FetchConfig(page_delay_seconds=0.05),
            transport=api.transport(),
        )
        ticks: list[int] = []

        async def ticker() -> None:
            for i in range(3):
                ticks.append(i)
                await asyncio.sleep(0.01)

        async def main() -> FetchedSnapshot:
            snapshot, _ = await asyncio.gather(
                fetcher.fetch_snapshot(credentials, 5), ticker()
            )
            return snapshot

        snapshot = asyncio.run(main())

        assert ticks == [0, 1, 2]
        assert snapshot.termination_reason == TerminationReason.EMPTY_PAGE
