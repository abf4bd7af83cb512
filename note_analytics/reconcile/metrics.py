"""Metrics collection for import reconciliation."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class ReconcileMetrics:
    """Metrics for cumulative imports.

    Attributes:
        imports_total: Completed reconcile_import calls.
        deltas_written_total: Delta rows written.
        anomalies_total: Metrics clamped because the cumulative total dropped.
        failures_total: Articles whose delta could not be written.
        rows_skipped_total: Rows without a key or title.
    """

    imports_total: int = 0
    deltas_written_total: int = 0
    anomalies_total: int = 0
    failures_total: int = 0
    rows_skipped_total: int = 0

    _instance: ClassVar["ReconcileMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ReconcileMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_import(
        self, written: int, anomalies: int, failures: int, skipped: int
    ) -> None:
        """Record the outcome of one import."""
        self.imports_total += 1
        self.deltas_written_total += written
        self.anomalies_total += anomalies
        self.failures_total += failures
        self.rows_skipped_total += skipped

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary."""
        return {
            "imports_total": self.imports_total,
            "deltas_written_total": self.deltas_written_total,
            "anomalies_total": self.anomalies_total,
            "failures_total": self.failures_total,
            "rows_skipped_total": self.rows_skipped_total,
        }
