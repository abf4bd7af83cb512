"""SQLite analytics store implementation."""

import sqlite3
import time
import uuid
from collections.abc import Collection, Generator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from pathlib import Path

import structlog

from note_analytics.store.errors import (
    ConnectionError as StoreConnectionError,
    RunNotFoundError,
    StateStoreError,
)
from note_analytics.store.metrics import StoreMetrics, TransactionContext
from note_analytics.store.migrations import CURRENT_VERSION, MigrationManager
from note_analytics.store.models import (
    AccountStats,
    ArticleIdentity,
    ArticleStatus,
    DailyMetric,
    MetricSource,
    MetricTotals,
    OperationKind,
    Run,
)


logger = structlog.get_logger()

DEFAULT_BUSY_TIMEOUT_SECONDS = 30.0


class AnalyticsStore:
    """SQLite store for articles, daily metrics, account stats, and runs.

    Exposes key-addressed upserts and queries; write policies (snapshot
    replacement, delta reconciliation) live in the components that use it.
    Uses WAL mode and supports schema migrations.
    """

    def __init__(
        self,
        db_path: Path | str,
        run_id: str | None = None,
        busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file.
            run_id: Optional run ID for logging context.
            busy_timeout_seconds: How long to wait for a competing writer.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._run_id = run_id or str(uuid.uuid4())
        self._busy_timeout = busy_timeout_seconds
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            run_id=self._run_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def run_id(self) -> str:
        """Get the current run ID."""
        return self._run_id

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path), timeout=self._busy_timeout)
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "AnalyticsStore":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def transaction(
        self, operation: str, immediate: bool = False
    ) -> Generator[TransactionContext]:
        """Run a block inside one transaction with timing and logging.

        Nested calls join the outermost transaction; only the outermost
        block commits or rolls back.

        Args:
            operation: Name of the operation for logging.
            immediate: Take the database write lock up front (BEGIN
                IMMEDIATE) so reads inside the block cannot be invalidated
                by a competing writer before this block writes.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()

        if self._tx_depth > 0:
            self._tx_depth += 1
            try:
                yield TransactionContext(
                    tx_id="nested",
                    start_time_ns=time.perf_counter_ns(),
                    operation=operation,
                )
            finally:
                self._tx_depth -= 1
            return

        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(tx_id=tx_id, start_time_ns=start_ns, operation=operation)

        conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        self._tx_depth = 1
        self._log.debug("transaction_started", tx_id=tx_id, op=operation)

        try:
            yield ctx
            conn.commit()
        except BaseException:
            conn.rollback()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            self._tx_depth = 0

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx_duration(duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    # ===== Run Ledger =====

    def begin_run(self, kind: OperationKind, run_id: str | None = None) -> Run:
        """Record the start of a sync or import.

        Args:
            kind: Operation kind.
            run_id: Optional run ID (generated if not provided).

        Returns:
            The created Run record.
        """
        run_id = run_id or str(uuid.uuid4())
        now = datetime.now(UTC)

        with self.transaction("begin_run") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO runs (run_id, kind, started_at, finished_at, success, error_summary)
                VALUES (?, ?, ?, NULL, NULL, NULL)
                """,
                (run_id, kind.value, now.isoformat()),
            )
            ctx.add_affected_rows(1)

        return Run(run_id=run_id, kind=kind, started_at=now)

    def end_run(
        self,
        run_id: str,
        success: bool,
        error_summary: str | None = None,
    ) -> Run:
        """Record the end of a run.

        Raises:
            RunNotFoundError: If the run does not exist.
        """
        now = datetime.now(UTC)

        with self.transaction("end_run") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE runs
                SET finished_at = ?, success = ?, error_summary = ?
                WHERE run_id = ?
                """,
                (now.isoformat(), 1 if success else 0, error_summary, run_id),
            )
            ctx.add_affected_rows(cursor.rowcount)

        run = self.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def get_run(self, run_id: str) -> Run | None:
        """Get a run by ID."""
        conn = self._ensure_connected()
        row = conn.execute("SELECT * FROM runs WHERE run_id = ?", (run_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_run(row)

    def get_last_successful_run(self, kind: OperationKind) -> Run | None:
        """Get the most recent successful run of a kind."""
        conn = self._ensure_connected()
        row = conn.execute(
            """
            SELECT * FROM runs
            WHERE kind = ? AND success = 1 AND finished_at IS NOT NULL
            ORDER BY finished_at DESC
            LIMIT 1
            """,
            (kind.value,),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_run(row)

    def _row_to_run(self, row: sqlite3.Row) -> Run:
        return Run(
            run_id=row["run_id"],
            kind=OperationKind(row["kind"]),
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=(
                datetime.fromisoformat(row["finished_at"])
                if row["finished_at"]
                else None
            ),
            success=bool(row["success"]) if row["success"] is not None else None,
            error_summary=row["error_summary"],
        )

    # ===== Articles =====

    def insert_article_if_absent(
        self,
        external_key: str,
        title: str,
        url: str | None,
        status: ArticleStatus,
    ) -> bool:
        """Insert an article unless its external key already exists.

        Returns:
            True if a new row was created.
        """
        now = datetime.now(UTC).isoformat()
        with self.transaction("insert_article") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                INSERT INTO articles (
                    external_key, title, url, status,
                    created_at, updated_at, published_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(external_key) DO NOTHING
                """,
                (
                    external_key,
                    title,
                    url,
                    status.value,
                    now,
                    now,
                    now if status == ArticleStatus.PUBLISHED else None,
                ),
            )
            created = cursor.rowcount == 1
            ctx.add_affected_rows(cursor.rowcount)

        if created:
            self._metrics.record_article_created()
        return created

    def refresh_article(
        self, external_key: str, title: str | None, url: str | None
    ) -> None:
        """Overwrite title and url from the latest sighting.

        A None title or url keeps the stored value. Status is never touched.
        """
        with self.transaction("refresh_article") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE articles SET
                    title = COALESCE(?, title),
                    url = COALESCE(?, url),
                    updated_at = ?
                WHERE external_key = ?
                """,
                (title, url, datetime.now(UTC).isoformat(), external_key),
            )
            ctx.add_affected_rows(cursor.rowcount)

    def get_article_by_key(self, external_key: str) -> ArticleIdentity | None:
        """Get an article by external key."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM articles WHERE external_key = ?", (external_key,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_article(row)

    def find_articles_by_title(self, title: str) -> list[ArticleIdentity]:
        """Get all articles whose canonical title matches exactly."""
        conn = self._ensure_connected()
        cursor = conn.execute(
            "SELECT * FROM articles WHERE title = ? ORDER BY internal_id", (title,)
        )
        return [self._row_to_article(row) for row in cursor.fetchall()]

    def list_articles(self, status: ArticleStatus | None = None) -> list[ArticleIdentity]:
        """List articles, optionally filtered by status."""
        conn = self._ensure_connected()
        if status is None:
            cursor = conn.execute("SELECT * FROM articles ORDER BY internal_id")
        else:
            cursor = conn.execute(
                "SELECT * FROM articles WHERE status = ? ORDER BY internal_id",
                (status.value,),
            )
        return [self._row_to_article(row) for row in cursor.fetchall()]

    def promote_articles(self, internal_ids: Collection[int]) -> int:
        """Promote draft articles to published.

        Articles that are already published are left untouched.

        Returns:
            Number of articles promoted.
        """
        if not internal_ids:
            return 0

        now = datetime.now(UTC).isoformat()
        promoted = 0
        with self.transaction("promote_articles") as ctx:
            conn = self._ensure_connected()
            for internal_id in internal_ids:
                cursor = conn.execute(
                    """
                    UPDATE articles
                    SET status = ?, published_at = ?, updated_at = ?
                    WHERE internal_id = ? AND status = ?
                    """,
                    (
                        ArticleStatus.PUBLISHED.value,
                        now,
                        now,
                        internal_id,
                        ArticleStatus.DRAFT.value,
                    ),
                )
                promoted += cursor.rowcount
            ctx.add_affected_rows(promoted)

        self._metrics.record_promoted(promoted)
        return promoted

    def _row_to_article(self, row: sqlite3.Row) -> ArticleIdentity:
        return ArticleIdentity(
            internal_id=row["internal_id"],
            external_key=row["external_key"],
            canonical_title=row["title"],
            canonical_url=row["url"],
            status=ArticleStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            published_at=(
                datetime.fromisoformat(row["published_at"])
                if row["published_at"]
                else None
            ),
        )

    # ===== Daily Metrics =====

    def replace_daily_metric(
        self,
        article_id: int,
        day: date,
        totals: MetricTotals,
        source: MetricSource,
    ) -> DailyMetric:
        """Insert or fully overwrite the row for (article_id, day).

        All three counters are replaced; nothing is summed or merged.
        """
        with self.transaction("replace_daily_metric") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO daily_metrics (
                    article_id, date, pv, likes, comments, source, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(article_id, date) DO UPDATE SET
                    pv = excluded.pv,
                    likes = excluded.likes,
                    comments = excluded.comments,
                    source = excluded.source,
                    updated_at = excluded.updated_at
                """,
                (
                    article_id,
                    day.isoformat(),
                    totals.pv,
                    totals.likes,
                    totals.comments,
                    source.value,
                    datetime.now(UTC).isoformat(),
                ),
            )
            ctx.add_affected_rows(1)

        if source == MetricSource.DELTA:
            self._metrics.record_delta_row()

        return DailyMetric(
            article_id=article_id,
            date=day,
            pv=totals.pv,
            likes=totals.likes,
            comments=totals.comments,
            source=source,
        )

    def delete_daily_metrics_except(self, day: date, keep_ids: Collection[int]) -> int:
        """Delete rows for a day whose article is not in keep_ids.

        Returns:
            Number of rows deleted.
        """
        with self.transaction("delete_daily_metrics") as ctx:
            conn = self._ensure_connected()
            rows = conn.execute(
                "SELECT article_id FROM daily_metrics WHERE date = ?",
                (day.isoformat(),),
            ).fetchall()
            stale = [row["article_id"] for row in rows if row["article_id"] not in keep_ids]
            for article_id in stale:
                conn.execute(
                    "DELETE FROM daily_metrics WHERE article_id = ? AND date = ?",
                    (article_id, day.isoformat()),
                )
            ctx.add_affected_rows(len(stale))
        return len(stale)

    def sum_metrics_before(self, article_id: int, day: date) -> MetricTotals:
        """Sum all recorded counts for an article strictly before a day."""
        conn = self._ensure_connected()
        row = conn.execute(
            """
            SELECT
                COALESCE(SUM(pv), 0) AS pv,
                COALESCE(SUM(likes), 0) AS likes,
                COALESCE(SUM(comments), 0) AS comments
            FROM daily_metrics
            WHERE article_id = ? AND date < ?
            """,
            (article_id, day.isoformat()),
        ).fetchone()
        return MetricTotals(pv=row["pv"], likes=row["likes"], comments=row["comments"])

    def get_daily_metric(self, article_id: int, day: date) -> DailyMetric | None:
        """Get the row for one article and day."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM daily_metrics WHERE article_id = ? AND date = ?",
            (article_id, day.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_metric(row)

    def get_daily_metrics(
        self,
        article_id: int | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[DailyMetric]:
        """Query daily rows, ordered by date then article.

        Args:
            article_id: Restrict to one article.
            start: Inclusive lower bound.
            end: Inclusive upper bound.
        """
        clauses: list[str] = []
        params: list[int | str] = []
        if article_id is not None:
            clauses.append("article_id = ?")
            params.append(article_id)
        if start is not None:
            clauses.append("date >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("date <= ?")
            params.append(end.isoformat())

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = self._ensure_connected()
        cursor = conn.execute(
            f"SELECT * FROM daily_metrics {where} ORDER BY date, article_id",  # noqa: S608
            params,
        )
        return [self._row_to_metric(row) for row in cursor.fetchall()]

    def _row_to_metric(self, row: sqlite3.Row) -> DailyMetric:
        return DailyMetric(
            article_id=row["article_id"],
            date=date.fromisoformat(row["date"]),
            pv=row["pv"],
            likes=row["likes"],
            comments=row["comments"],
            source=MetricSource(row["source"]),
        )

    # ===== Account Stats =====

    def upsert_account_stats(
        self,
        day: date,
        followers: int | None = None,
        revenue: int | None = None,
    ) -> AccountStats:
        """Record followers and/or revenue for a day.

        A figure passed as None keeps the value already stored for the day.

        Raises:
            ValueError: If neither figure is given.
        """
        if followers is None and revenue is None:
            raise ValueError("Account stats need followers or revenue")

        with self.transaction("upsert_account_stats") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                """
                INSERT INTO daily_stats (date, followers, revenue, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(date) DO UPDATE SET
                    followers = COALESCE(excluded.followers, followers),
                    revenue = COALESCE(excluded.revenue, revenue),
                    updated_at = excluded.updated_at
                """,
                (day.isoformat(), followers, revenue, datetime.now(UTC).isoformat()),
            )
            ctx.add_affected_rows(1)

        stats = self.get_account_stats(day)
        if stats is None:
            raise StateStoreError(f"Account stats for {day} missing after upsert")
        return stats

    def get_account_stats(self, day: date) -> AccountStats | None:
        """Get the account figures recorded for one day."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM daily_stats WHERE date = ?", (day.isoformat(),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_account_stats(row)

    def get_latest_account_stats(self) -> AccountStats | None:
        """Get the most recent day with account figures."""
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT * FROM daily_stats ORDER BY date DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return None
        return self._row_to_account_stats(row)

    def list_account_stats(
        self, start: date | None = None, end: date | None = None
    ) -> list[AccountStats]:
        """List recorded account figures in date order (inclusive bounds)."""
        conn = self._ensure_connected()
        cursor = conn.execute(
            """
            SELECT * FROM daily_stats
            WHERE (? IS NULL OR date >= ?) AND (? IS NULL OR date <= ?)
            ORDER BY date
            """,
            (
                start.isoformat() if start else None,
                start.isoformat() if start else None,
                end.isoformat() if end else None,
                end.isoformat() if end else None,
            ),
        )
        return [self._row_to_account_stats(row) for row in cursor.fetchall()]

    def _row_to_account_stats(self, row: sqlite3.Row) -> AccountStats:
        return AccountStats(
            date=date.fromisoformat(row["date"]),
            followers=row["followers"],
            revenue=row["revenue"],
        )

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get row counts for all tables."""
        conn = self._ensure_connected()
        stats: dict[str, int] = {}
        for table in ("articles", "daily_metrics", "daily_stats", "runs"):
            cursor = conn.execute(f"SELECT COUNT(*) FROM {table}")  # noqa: S608
            stats[table] = cursor.fetchone()[0]
        return stats

    def get_schema_version(self) -> int:
        """Get current schema version."""
        conn = self._ensure_connected()
        return MigrationManager(conn).get_current_version()
