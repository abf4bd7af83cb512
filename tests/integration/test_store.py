"""Integration tests for the analytics store."""

import sqlite3
import tempfile
from collections.abc import Generator
from datetime import date
from pathlib import Path

import pytest

from note_analytics.store import (
    AccountStats,
    AnalyticsStore,
    ArticleStatus,
    ConnectionError as StoreConnectionError,
    MetricSource,
    MetricTotals,
    OperationKind,
    RunNotFoundError,
    StoreMetrics,
)
from tests.helpers.time import FIXED_DATE


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_analytics.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[AnalyticsStore]:
    """Create a connected analytics store."""
    StoreMetrics.reset()
    store = AnalyticsStore(temp_db_path, run_id="test-run-001")
    store.connect()
    yield store
    store.close()


def _article(store: AnalyticsStore, key: str = "n1", title: str = "A") -> int:
    store.insert_article_if_absent(key, title, None, ArticleStatus.PUBLISHED)
    article = store.get_article_by_key(key)
    assert article is not None
    return article.internal_id


class TestAnalyticsStoreConnection:
    """Tests for store connection and setup."""

    def test_connect_creates_parent_dirs(self, temp_db_path: Path) -> None:
        """Test connecting creates parent directories."""
        nested_path = temp_db_path.parent / "subdir" / "analytics.sqlite"
        store = AnalyticsStore(nested_path)
        store.connect()
        assert nested_path.exists()
        store.close()

    def test_context_manager(self, temp_db_path: Path) -> None:
        """Test store works as context manager."""
        with AnalyticsStore(temp_db_path) as store:
            assert store.is_connected
            assert store.get_schema_version() > 0

        assert not store.is_connected

    def test_wal_mode_enabled(self, store: AnalyticsStore) -> None:
        """Test WAL mode is enabled."""
        conn = store._ensure_connected()
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"

    def test_not_connected_raises(self, temp_db_path: Path) -> None:
        """Test queries before connect() fail clearly."""
        store = AnalyticsStore(temp_db_path)
        with pytest.raises(StoreConnectionError):
            store.get_stats()


class TestRunLedger:
    """Tests for the operation run ledger."""

    def test_begin_and_end_run(self, store: AnalyticsStore) -> None:
        """Test a run lifecycle."""
        run = store.begin_run(OperationKind.SYNC, run_id="sync-1")
        assert run.finished_at is None

        finished = store.end_run("sync-1", success=True)

        assert finished.success is True
        assert finished.finished_at is not None

    def test_last_successful_run_by_kind(self, store: AnalyticsStore) -> None:
        """Test failed runs and other kinds are ignored."""
        store.begin_run(OperationKind.SYNC, run_id="sync-ok")
        store.end_run("sync-ok", success=True)
        store.begin_run(OperationKind.SYNC, run_id="sync-bad")
        store.end_run("sync-bad", success=False, error_summary="boom")
        store.begin_run(OperationKind.IMPORT, run_id="import-ok")
        store.end_run("import-ok", success=True)

        last = store.get_last_successful_run(OperationKind.SYNC)

        assert last is not None
        assert last.run_id == "sync-ok"

    def test_end_unknown_run_raises(self, store: AnalyticsStore) -> None:
        """Test ending a run that does not exist."""
        with pytest.raises(RunNotFoundError):
            store.end_run("missing", success=True)


class TestArticles:
    """Tests for article rows."""

    def test_insert_if_absent(self, store: AnalyticsStore) -> None:
        """Test a second insert for the same key is a no-op."""
        assert store.insert_article_if_absent("n1", "A", None, ArticleStatus.PUBLISHED)
        assert not store.insert_article_if_absent("n1", "B", None, ArticleStatus.DRAFT)

        article = store.get_article_by_key("n1")
        assert article is not None
        assert article.canonical_title == "A"
        assert article.status == ArticleStatus.PUBLISHED
        assert StoreMetrics.get_instance().articles_created_total == 1

    def test_refresh_keeps_url_when_missing(self, store: AnalyticsStore) -> None:
        """Test a sighting without url keeps the stored url."""
        store.insert_article_if_absent("n1", "A", "https://u/1", ArticleStatus.PUBLISHED)

        store.refresh_article("n1", "A2", None)

        article = store.get_article_by_key("n1")
        assert article is not None
        assert article.canonical_title == "A2"
        assert article.canonical_url == "https://u/1"

    def test_promote_only_drafts(self, store: AnalyticsStore) -> None:
        """Test promotion moves drafts to published and skips others."""
        store.insert_article_if_absent("d1", "Draft", None, ArticleStatus.DRAFT)
        store.insert_article_if_absent("p1", "Live", None, ArticleStatus.PUBLISHED)
        ids = [a.internal_id for a in store.list_articles()]

        promoted = store.promote_articles(ids)

        assert promoted == 1
        draft = store.get_article_by_key("d1")
        assert draft is not None
        assert draft.status == ArticleStatus.PUBLISHED
        assert draft.published_at is not None


class TestDailyMetrics:
    """Tests for daily metric rows."""

    def test_replace_overwrites_all_counters(self, store: AnalyticsStore) -> None:
        """Test a second write replaces rather than sums."""
        article_id = _article(store)
        store.replace_daily_metric(
            article_id, FIXED_DATE, MetricTotals(pv=10, likes=5, comments=2),
            MetricSource.SNAPSHOT,
        )
        store.replace_daily_metric(
            article_id, FIXED_DATE, MetricTotals(pv=7), MetricSource.SNAPSHOT
        )

        row = store.get_daily_metric(article_id, FIXED_DATE)

        assert row is not None
        assert row.totals == MetricTotals(pv=7, likes=0, comments=0)
        assert store.get_stats()["daily_metrics"] == 1

    def test_sum_before_excludes_the_day(self, store: AnalyticsStore) -> None:
        """Test the prior sum covers strictly earlier dates."""
        article_id = _article(store)
        for day, pv in ((date(2024, 5, 10), 4), (date(2024, 5, 11), 6), (FIXED_DATE, 100)):
            store.replace_daily_metric(
                article_id, day, MetricTotals(pv=pv), MetricSource.DELTA
            )

        prior = store.sum_metrics_before(article_id, FIXED_DATE)

        assert prior.pv == 10

    def test_sum_before_without_rows(self, store: AnalyticsStore) -> None:
        """Test an article without history sums to zero."""
        article_id = _article(store)
        assert store.sum_metrics_before(article_id, FIXED_DATE) == MetricTotals()

    def test_delete_except_keeps_listed(self, store: AnalyticsStore) -> None:
        """Test only the given day's unlisted rows are removed."""
        first = _article(store, "n1")
        second = _article(store, "n2")
        other_day = date(2024, 5, 11)
        for article_id in (first, second):
            store.replace_daily_metric(
                article_id, FIXED_DATE, MetricTotals(pv=1), MetricSource.SNAPSHOT
            )
            store.replace_daily_metric(
                article_id, other_day, MetricTotals(pv=1), MetricSource.SNAPSHOT
            )

        removed = store.delete_daily_metrics_except(FIXED_DATE, {first})

        assert removed == 1
        assert store.get_daily_metric(second, FIXED_DATE) is None
        assert store.get_daily_metric(second, other_day) is not None

    def test_range_query(self, store: AnalyticsStore) -> None:
        """Test inclusive date filtering."""
        article_id = _article(store)
        for offset in range(5):
            day = date(2024, 5, 10 + offset)
            store.replace_daily_metric(
                article_id, day, MetricTotals(pv=offset), MetricSource.SNAPSHOT
            )

        rows = store.get_daily_metrics(start=date(2024, 5, 11), end=date(2024, 5, 13))

        assert [r.date.day for r in rows] == [11, 12, 13]


class TestAccountStats:
    """Tests for per-day followers and revenue."""

    def test_upsert_and_read(self, store: AnalyticsStore) -> None:
        """Test one day's figures are stored."""
        saved = store.upsert_account_stats(FIXED_DATE, followers=120, revenue=3000)

        assert saved == AccountStats(date=FIXED_DATE, followers=120, revenue=3000)
        assert store.get_account_stats(FIXED_DATE) == saved

    def test_missing_figure_keeps_stored_value(self, store: AnalyticsStore) -> None:
        """Test recording only followers leaves revenue as it was."""
        store.upsert_account_stats(FIXED_DATE, followers=120, revenue=3000)

        updated = store.upsert_account_stats(FIXED_DATE, followers=125)

        assert updated.followers == 125
        assert updated.revenue == 3000
        assert store.get_stats()["daily_stats"] == 1

    def test_requires_a_figure(self, store: AnalyticsStore) -> None:
        """Test an empty entry is rejected."""
        with pytest.raises(ValueError, match="followers or revenue"):
            store.upsert_account_stats(FIXED_DATE)

    def test_latest_is_most_recent_date(self, store: AnalyticsStore) -> None:
        """Test the latest entry is chosen by date, not by write order."""
        store.upsert_account_stats(date(2024, 5, 20), followers=200)
        store.upsert_account_stats(date(2024, 5, 1), followers=100, revenue=50)

        latest = store.get_latest_account_stats()

        assert latest is not None
        assert latest.date == date(2024, 5, 20)
        assert latest.revenue is None

    def test_list_in_range(self, store: AnalyticsStore) -> None:
        """Test the history is date ordered with inclusive bounds."""
        for day in (3, 1, 2, 4):
            store.upsert_account_stats(date(2024, 5, day), followers=day)

        listed = store.list_account_stats(date(2024, 5, 2), date(2024, 5, 3))

        assert [s.followers for s in listed] == [2, 3]
        assert len(store.list_account_stats()) == 4

    def test_latest_empty(self, store: AnalyticsStore) -> None:
        """Test no figures recorded yet."""
        assert store.get_latest_account_stats() is None


class TestTransactions:
    """Tests for transaction handling."""

    def test_rollback_on_error(self, store: AnalyticsStore) -> None:
        """Test a failing block leaves nothing behind."""
        article_id = _article(store)

        with pytest.raises(RuntimeError), store.transaction("test", immediate=True):
            store.replace_daily_metric(
                article_id, FIXED_DATE, MetricTotals(pv=1), MetricSource.DELTA
            )
            raise RuntimeError("boom")

        assert store.get_daily_metric(article_id, FIXED_DATE) is None

    def test_nested_blocks_commit_once(self, store: AnalyticsStore) -> None:
        """Test inner blocks join the outer transaction."""
        article_id = _article(store)

        with store.transaction("outer"):
            store.replace_daily_metric(
                article_id, FIXED_DATE, MetricTotals(pv=2), MetricSource.DELTA
            )
            assert store._ensure_connected().in_transaction

        assert not store._ensure_connected().in_transaction
        assert store.get_daily_metric(article_id, FIXED_DATE) is not None

    def test_immediate_blocks_competing_writer(
        self, store: AnalyticsStore, temp_db_path: Path
    ) -> None:
        """Test BEGIN IMMEDIATE holds the write lock for the whole block."""
        other = AnalyticsStore(temp_db_path, busy_timeout_seconds=0.05)
        other.connect()
        try:
            with store.transaction("holder", immediate=True):
                with pytest.raises(sqlite3.OperationalError):
                    with other.transaction("competitor", immediate=True):
                        pass
        finally:
            other.close()
