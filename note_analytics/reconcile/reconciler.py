"""Cumulative-to-delta reconciliation.

Export files carry cumulative totals per article. The metric table holds
per-day increments, so an import for date D stores

    delta = max(0, cumulative - sum(rows before D))

for each metric. Re-importing the same file for D recomputes the same
delta from the same prior sum and overwrites the row, so imports are
idempotent.
"""

import sqlite3
from collections.abc import Iterable
from datetime import date

import structlog

from note_analytics.normalize import ImportRow
from note_analytics.reconcile.metrics import ReconcileMetrics
from note_analytics.reconcile.models import (
    SKIP_REASON_NO_IDENTITY,
    ImportResult,
    NegativeDeltaClamped,
    ReconcileFailure,
    SkippedRecord,
)
from note_analytics.store import (
    METRIC_NAMES,
    AmbiguousTitleError,
    AnalyticsStore,
    ArticleIdentity,
    ArticleIdentityResolver,
    ArticleStatus,
    IdentityConflictError,
    MetricSource,
    MetricTotals,
    StateStoreError,
)


logger = structlog.get_logger()


class CumulativeDeltaReconciler:
    """Converts cumulative import rows into daily delta rows."""

    def __init__(
        self,
        store: AnalyticsStore,
        resolver: ArticleIdentityResolver | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Connected analytics store.
            resolver: Identity resolver (built from the store if omitted).
        """
        self._store = store
        self._resolver = resolver or ArticleIdentityResolver(store)
        self._metrics = ReconcileMetrics.get_instance()
        self._log = logger.bind(component="reconcile", run_id=store.run_id)

    def reconcile_import(
        self,
        import_date: date,
        rows: Iterable[ImportRow],
        backfill_only: bool = False,
        promote_drafts: bool = False,
    ) -> ImportResult:
        """Write one day of deltas derived from cumulative totals.

        Args:
            import_date: Date the cumulative totals were taken.
            rows: Import rows; for a repeated article the last row wins.
            backfill_only: Register unknown articles as drafts.
            promote_drafts: Promote articles that were drafts before this
                import and were reconciled by it.

        Returns:
            Counts, anomalies and per-article failures. A keyless row whose
            title matches several articles is reported as a failure.

        Raises:
            IdentityConflictError: If an article is missing right after its
                upsert. No article or delta from this import is kept.
        """
        self._log.info(
            "import_started",
            import_date=import_date.isoformat(),
            backfill_only=backfill_only,
            promote_drafts=promote_drafts,
        )

        new_status = ArticleStatus.DRAFT if backfill_only else ArticleStatus.PUBLISHED
        skipped: list[SkippedRecord] = []
        failures: list[ReconcileFailure] = []
        targets: dict[int, tuple[ArticleIdentity, ImportRow]] = {}
        created_ids: set[int] = set()
        drafts_before: set[int] = set()

        # Registration is all or nothing: an identity conflict rolls back
        # every article this import created.
        with self._store.transaction("resolve_import_rows", immediate=True):
            for index, row in enumerate(rows):
                if not row.has_identity:
                    skipped.append(
                        SkippedRecord(reason=SKIP_REASON_NO_IDENTITY, row_index=index)
                    )
                    self._log.warning(
                        "import_row_skipped",
                        row_index=index,
                        reason=SKIP_REASON_NO_IDENTITY,
                    )
                    continue

                try:
                    outcome = self._resolver.resolve_import_target(
                        row.external_key, row.title, new_status
                    )
                except IdentityConflictError:
                    raise
                except (sqlite3.Error, AmbiguousTitleError) as e:
                    failures.append(
                        ReconcileFailure(
                            external_key=row.external_key or row.title or "",
                            reason=str(e),
                        )
                    )
                    self._log.error(
                        "import_row_unresolved",
                        row_index=index,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                internal_id = outcome.identity.internal_id
                if outcome.created:
                    created_ids.add(internal_id)
                elif outcome.previous_status == ArticleStatus.DRAFT:
                    drafts_before.add(internal_id)
                targets[internal_id] = (outcome.identity, row)

        anomalies: list[NegativeDeltaClamped] = []
        reconciled: set[int] = set()

        for identity, row in targets.values():
            try:
                anomalies.extend(self._reconcile_article(identity, row, import_date))
            except IdentityConflictError:
                raise
            except (sqlite3.Error, StateStoreError) as e:
                failures.append(
                    ReconcileFailure(external_key=identity.external_key, reason=str(e))
                )
                self._log.error(
                    "reconcile_failed",
                    external_key=identity.external_key,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            reconciled.add(identity.internal_id)

        promoted = 0
        if promote_drafts:
            eligible = (drafts_before - created_ids) & reconciled
            promoted = self._store.promote_articles(sorted(eligible))

        result = ImportResult(
            import_date=import_date,
            deltas_written=len(reconciled),
            skipped=tuple(skipped),
            anomalies=tuple(anomalies),
            failures=tuple(failures),
            created_count=len(created_ids),
            promoted_count=promoted,
        )

        self._metrics.record_import(
            written=result.deltas_written,
            anomalies=len(result.anomalies),
            failures=len(result.failures),
            skipped=result.skipped_count,
        )
        self._log.info(
            "import_complete",
            import_date=import_date.isoformat(),
            deltas_written=result.deltas_written,
            skipped=result.skipped_count,
            anomalies=len(result.anomalies),
            failures=len(result.failures),
            created=result.created_count,
            promoted=result.promoted_count,
        )
        return result

    def _reconcile_article(
        self, identity: ArticleIdentity, row: ImportRow, import_date: date
    ) -> list[NegativeDeltaClamped]:
        # The prior sum and the write share one write-locked transaction so
        # a concurrent import for the same article cannot interleave.
        anomalies: list[NegativeDeltaClamped] = []
        with self._store.transaction("reconcile_article", immediate=True):
            prior = self._store.sum_metrics_before(identity.internal_id, import_date)
            cumulative = MetricTotals(
                pv=row.cumulative_pv,
                likes=row.cumulative_likes,
                comments=row.cumulative_comments,
            )

            deltas: dict[str, int] = {}
            for metric in METRIC_NAMES:
                current = getattr(cumulative, metric)
                previous = getattr(prior, metric)
                delta = current - previous
                if delta < 0:
                    anomalies.append(
                        NegativeDeltaClamped(
                            external_key=identity.external_key,
                            metric=metric,
                            cumulative=current,
                            prior_sum=previous,
                        )
                    )
                    self._log.warning(
                        "negative_delta_clamped",
                        external_key=identity.external_key,
                        metric=metric,
                        cumulative=current,
                        prior_sum=previous,
                    )
                deltas[metric] = max(0, delta)

            self._store.replace_daily_metric(
                identity.internal_id,
                import_date,
                MetricTotals(**deltas),
                MetricSource.DELTA,
            )
        return anomalies
