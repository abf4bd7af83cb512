"""End-to-end tests mixing the snapshot and cumulative import paths."""

import asyncio
import tempfile
from collections.abc import Generator
from datetime import date
from pathlib import Path

import pytest
from pydantic import SecretStr

from note_analytics.fetch import FetchConfig, FetchMetrics, NoteCredentials, NoteStatsFetcher
from note_analytics.normalize import rows_from_csv
from note_analytics.reconcile import ReconcileMetrics
from note_analytics.report import export_summary_csv, kpi_totals
from note_analytics.store import AnalyticsStore, ArticleStatus, MetricTotals, StoreMetrics
from note_analytics.sync import ImportService, SyncService
from tests.helpers.note_api import FakeStatsApi, page_payload, recording_sleep


SYNC_DAY = date(2024, 5, 11)
IMPORT_DAY = date(2024, 5, 12)


@pytest.fixture
def workdir() -> Generator[Path]:
    """Create a temporary working directory."""
    StoreMetrics.reset()
    FetchMetrics.reset()
    ReconcileMetrics.reset()
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _stats_api() -> FakeStatsApi:
    records = [
        {"key": "nalpha", "name": "Alpha", "readCount": 100, "likeCount": 5},
        # Older response shape for the second article.
        {"noteKey": "nbeta", "title": "Beta", "read_count": "40", "likes": 2},
        {"name": "missing key", "readCount": 999},
    ]
    return FakeStatsApi([page_payload(records, last_page=True)])


class TestSyncThenImport:
    """Tests for a day of sync followed by a cumulative import."""

    def test_import_deltas_build_on_synced_day(self, workdir: Path) -> None:
        """Test the import delta is computed against the synced snapshot."""
        credentials = NoteCredentials(
            auth_token=SecretStr("a"), session_token=SecretStr("s")
        )
        export = workdir / "cumulative.csv"
        export.write_text(
            "key,title,views,likes,comments\n"
            "nalpha,Alpha,130,6,1\n"
            "nbeta,Beta,35,2,0\n"
            ",Gamma,7,0,0\n",
            encoding="utf-8",
        )

        with AnalyticsStore(workdir / "flow.sqlite", run_id="flow") as store:
            _, sleep = recording_sleep()
            fetcher = NoteStatsFetcher(
                config=FetchConfig(), transport=_stats_api().transport(), sleep=sleep
            )
            sync_result = asyncio.run(
                SyncService(store, fetcher=fetcher).run(
                    credentials, snapshot_date=SYNC_DAY
                )
            )
            import_result = ImportService(store).run(
                IMPORT_DAY, rows_from_csv(export), backfill_only=True
            )

            alpha = store.get_article_by_key("nalpha")
            beta = store.get_article_by_key("nbeta")
            assert alpha is not None
            assert beta is not None
            alpha_row = store.get_daily_metric(alpha.internal_id, IMPORT_DAY)
            beta_row = store.get_daily_metric(beta.internal_id, IMPORT_DAY)
            gamma = store.find_articles_by_title("Gamma")
            totals = kpi_totals(store)
            summary = export_summary_csv(store)

        assert sync_result.record_count == 2
        assert sync_result.skipped_count == 1
        assert alpha_row is not None
        assert alpha_row.totals == MetricTotals(pv=30, likes=1, comments=1)
        assert beta_row is not None
        assert beta_row.pv == 0
        assert [a.metric for a in import_result.anomalies] == ["pv"]
        assert import_result.created_count == 1
        assert len(gamma) == 1
        assert gamma[0].status == ArticleStatus.DRAFT
        assert alpha.status == ArticleStatus.PUBLISHED
        assert totals.pv == 100 + 30 + 40 + 0 + 7
        assert "Alpha,130,6,1,2024-05-12" in summary
