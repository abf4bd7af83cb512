"""Cumulative import reconciliation."""

from note_analytics.reconcile.metrics import ReconcileMetrics
from note_analytics.reconcile.models import (
    NEGATIVE_DELTA_REASON,
    SKIP_REASON_NO_IDENTITY,
    ImportResult,
    NegativeDeltaClamped,
    ReconcileFailure,
    SkippedRecord,
)
from note_analytics.reconcile.reconciler import CumulativeDeltaReconciler


__all__ = [
    "NEGATIVE_DELTA_REASON",
    "SKIP_REASON_NO_IDENTITY",
    "CumulativeDeltaReconciler",
    "ImportResult",
    "NegativeDeltaClamped",
    "ReconcileFailure",
    "ReconcileMetrics",
    "SkippedRecord",
]
