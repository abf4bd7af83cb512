"""Sync and import services.

Wrap the fetch/snapshot and reconcile paths with an overlap guard and the
run ledger, so every operation leaves a success or failure record.
"""

import uuid
from collections.abc import Callable, Iterable
from datetime import date, datetime
from typing import Annotated

import structlog
from pydantic import BaseModel, ConfigDict, Field

from note_analytics.fetch import (
    FetchConfig,
    NoteCredentials,
    NoteStatsFetcher,
    TerminationReason,
)
from note_analytics.fetch.constants import DEFAULT_MAX_PAGES
from note_analytics.normalize import ImportRow
from note_analytics.observability import bind_run_context, clear_run_context
from note_analytics.reconcile import CumulativeDeltaReconciler, ImportResult
from note_analytics.store import (
    AnalyticsStore,
    ArticleIdentityResolver,
    OperationKind,
    SnapshotUpsertStore,
)
from note_analytics.sync.guard import OperationGuard


logger = structlog.get_logger()

MAX_ERROR_SUMMARY_KEYS = 5


class SyncResult(BaseModel):
    """Outcome of one remote sync."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    run_id: str
    date: date
    record_count: Annotated[int, Field(ge=0)]
    skipped_count: Annotated[int, Field(ge=0)]
    termination_reason: TerminationReason
    pages_fetched: Annotated[int, Field(ge=0)]
    rows_written: Annotated[int, Field(ge=0)] = 0
    rows_removed: Annotated[int, Field(ge=0)] = 0
    applied: bool = True


class SyncService:
    """Fetches the stats API and stores the result as today's snapshot."""

    def __init__(
        self,
        store: AnalyticsStore,
        fetcher: NoteStatsFetcher | None = None,
        fetch_config: FetchConfig | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        """Initialize the service.

        Args:
            store: Connected analytics store.
            fetcher: Stats fetcher (built from fetch_config if omitted).
            fetch_config: Fetch configuration for the default fetcher.
            today: Returns the date a snapshot is recorded under.
        """
        self._store = store
        self._fetcher = fetcher or NoteStatsFetcher(
            config=fetch_config, run_id=store.run_id
        )
        self._snapshots = SnapshotUpsertStore(store, ArticleIdentityResolver(store))
        self._today = today
        self._guard = OperationGuard(OperationKind.SYNC.value)
        self._log = logger.bind(component="sync", run_id=store.run_id)

    @property
    def guard(self) -> OperationGuard:
        """The guard serializing this service's syncs."""
        return self._guard

    async def run(
        self,
        credentials: NoteCredentials,
        max_pages: int = DEFAULT_MAX_PAGES,
        snapshot_date: date | None = None,
    ) -> SyncResult:
        """Fetch all pages and apply them as the snapshot for one date.

        A fetch that returns no records applies nothing, so an upstream
        outage that looks like an empty account never wipes a day.

        Args:
            credentials: Session cookies.
            max_pages: Page cap for this sync.
            snapshot_date: Date to record under (defaults to today).

        Raises:
            OperationInProgressError: If a sync is already running.
            FetchFailedError: If any page fails; nothing is written.
        """
        with self._guard.hold():
            day = snapshot_date or self._today()
            run = self._store.begin_run(OperationKind.SYNC, run_id=str(uuid.uuid4()))
            bind_run_context(run.run_id, operation=OperationKind.SYNC.value)
            self._log.info("sync_started", date=day.isoformat(), max_pages=max_pages)

            try:
                snapshot = await self._fetcher.fetch_snapshot(credentials, max_pages)

                if snapshot.record_count == 0:
                    self._log.warning(
                        "sync_empty_fetch",
                        date=day.isoformat(),
                        termination_reason=snapshot.termination_reason.value,
                    )
                    result = SyncResult(
                        run_id=run.run_id,
                        date=day,
                        record_count=0,
                        skipped_count=snapshot.skipped_count,
                        termination_reason=snapshot.termination_reason,
                        pages_fetched=snapshot.pages_fetched,
                        applied=False,
                    )
                else:
                    applied = self._snapshots.apply_snapshot(day, snapshot.records)
                    result = SyncResult(
                        run_id=run.run_id,
                        date=day,
                        record_count=snapshot.record_count,
                        skipped_count=snapshot.skipped_count,
                        termination_reason=snapshot.termination_reason,
                        pages_fetched=snapshot.pages_fetched,
                        rows_written=applied.rows_written,
                        rows_removed=applied.rows_removed,
                    )
            except Exception as e:
                self._store.end_run(
                    run.run_id, success=False, error_summary=f"{type(e).__name__}: {e}"
                )
                self._log.error(
                    "sync_failed", error=str(e), error_type=type(e).__name__
                )
                clear_run_context()
                raise

            self._store.end_run(run.run_id, success=True)
            self._log.info(
                "sync_complete",
                date=day.isoformat(),
                record_count=result.record_count,
                skipped_count=result.skipped_count,
                rows_written=result.rows_written,
                termination_reason=result.termination_reason.value,
            )
            clear_run_context()
            return result

    def last_successful_sync(self) -> datetime | None:
        """Return when the last successful sync finished."""
        run = self._store.get_last_successful_run(OperationKind.SYNC)
        return run.finished_at if run is not None else None


class ImportService:
    """Runs cumulative imports under a guard and the run ledger."""

    def __init__(self, store: AnalyticsStore) -> None:
        self._store = store
        self._reconciler = CumulativeDeltaReconciler(
            store, ArticleIdentityResolver(store)
        )
        self._guard = OperationGuard(OperationKind.IMPORT.value)
        self._log = logger.bind(component="import", run_id=store.run_id)

    @property
    def guard(self) -> OperationGuard:
        """The guard serializing this service's imports."""
        return self._guard

    def run(
        self,
        import_date: date,
        rows: Iterable[ImportRow],
        backfill_only: bool = False,
        promote_drafts: bool = False,
    ) -> ImportResult:
        """Reconcile one cumulative import.

        The run is recorded as failed when any article could not be
        reconciled, even though the others were written.

        Raises:
            OperationInProgressError: If an import is already running.
            IdentityConflictError: If a row maps to more than one article.
        """
        with self._guard.hold():
            run = self._store.begin_run(OperationKind.IMPORT, run_id=str(uuid.uuid4()))
            bind_run_context(run.run_id, operation=OperationKind.IMPORT.value)

            try:
                result = self._reconciler.reconcile_import(
                    import_date,
                    rows,
                    backfill_only=backfill_only,
                    promote_drafts=promote_drafts,
                )
            except Exception as e:
                self._store.end_run(
                    run.run_id, success=False, error_summary=f"{type(e).__name__}: {e}"
                )
                clear_run_context()
                raise

            error_summary = None
            if result.failures:
                keys = [f.external_key for f in result.failures[:MAX_ERROR_SUMMARY_KEYS]]
                error_summary = f"{len(result.failures)} article(s) failed: {', '.join(keys)}"
            self._store.end_run(
                run.run_id, success=result.success, error_summary=error_summary
            )
            clear_run_context()
            return result

    def last_successful_import(self) -> datetime | None:
        """Return when the last fully successful import finished."""
        run = self._store.get_last_successful_run(OperationKind.IMPORT)
        return run.finished_at if run is not None else None
