"""Snapshot write path.

A snapshot is the complete set of absolute daily counts for one date, as
observed from the stats API. Applying it replaces that date wholesale.
"""

from collections.abc import Iterable
from datetime import date
from typing import Annotated

import structlog
from pydantic import BaseModel, ConfigDict, Field

from note_analytics.normalize import RawMetricRecord
from note_analytics.store.identity import ArticleIdentityResolver
from note_analytics.store.metrics import StoreMetrics
from note_analytics.store.models import MetricSource, MetricTotals
from note_analytics.store.store import AnalyticsStore


logger = structlog.get_logger()


class SnapshotResult(BaseModel):
    """Outcome of applying one snapshot."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    date: date
    rows_written: Annotated[int, Field(ge=0)] = 0
    rows_removed: Annotated[int, Field(ge=0)] = 0
    articles_created: Annotated[int, Field(ge=0)] = 0
    duplicate_keys: Annotated[int, Field(ge=0)] = 0


class SnapshotUpsertStore:
    """Writes absolute daily snapshots into the metric table."""

    def __init__(
        self,
        store: AnalyticsStore,
        resolver: ArticleIdentityResolver | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver or ArticleIdentityResolver(store)
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(component="snapshot", run_id=store.run_id)

    def apply_snapshot(
        self, day: date, records: Iterable[RawMetricRecord]
    ) -> SnapshotResult:
        """Replace all metric rows for a date with the given snapshot.

        Every listed article gets its (article, day) row fully overwritten.
        Rows for the day whose article is not listed are removed. Other
        dates are never read or written. All of it happens in one
        transaction, so a failure leaves the day as it was.

        Args:
            day: Calendar date the snapshot describes.
            records: Normalized records; for a repeated key the last wins.

        Returns:
            Counts describing what was written.
        """
        latest: dict[str, RawMetricRecord] = {}
        total = 0
        for record in records:
            latest[record.external_key] = record
            total += 1
        duplicates = total - len(latest)
        if duplicates:
            self._log.warning(
                "snapshot_duplicate_keys", date=day.isoformat(), duplicates=duplicates
            )

        created = 0
        written_ids: set[int] = set()
        with self._store.transaction("apply_snapshot", immediate=True) as ctx:
            for record in latest.values():
                outcome = self._resolver.resolve_detailed(
                    record.external_key, record.title, record.url
                )
                if outcome.created:
                    created += 1
                self._store.replace_daily_metric(
                    outcome.identity.internal_id,
                    day,
                    MetricTotals(pv=record.pv, likes=record.likes, comments=record.comments),
                    MetricSource.SNAPSHOT,
                )
                written_ids.add(outcome.identity.internal_id)

            removed = self._store.delete_daily_metrics_except(day, written_ids)
            ctx.add_affected_rows(len(written_ids) + removed)

        self._metrics.record_snapshot_rows(len(written_ids), removed)
        self._log.info(
            "snapshot_applied",
            date=day.isoformat(),
            rows_written=len(written_ids),
            rows_removed=removed,
            articles_created=created,
        )

        return SnapshotResult(
            date=day,
            rows_written=len(written_ids),
            rows_removed=removed,
            articles_created=created,
            duplicate_keys=duplicates,
        )
