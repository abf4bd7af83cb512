"""Metrics collection for the fetch layer."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class FetchMetrics:
    """Metrics for paginated stats fetches.

    Singleton class that tracks page requests, records, skips and
    failures across fetch calls.
    """

    pages_total: int = 0
    records_total: int = 0
    records_skipped_total: int = 0
    fetches_completed: int = 0
    failures_total: dict[int, int] = field(default_factory=dict)
    terminations: dict[str, int] = field(default_factory=dict)
    duration_ms_total: float = 0.0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_page(self, records: int, skipped: int) -> None:
        """Record one decoded page."""
        self.pages_total += 1
        self.records_total += records
        self.records_skipped_total += skipped

    def record_failure(self, status: int) -> None:
        """Record an aborted fetch by upstream status."""
        self.failures_total[status] = self.failures_total.get(status, 0) + 1

    def record_completion(self, reason: str, duration_ms: float) -> None:
        """Record a fetch that ran to completion."""
        self.fetches_completed += 1
        self.terminations[reason] = self.terminations.get(reason, 0) + 1
        self.duration_ms_total += duration_ms

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary."""
        return {
            "pages_total": self.pages_total,
            "records_total": self.records_total,
            "records_skipped_total": self.records_skipped_total,
            "fetches_completed": self.fetches_completed,
            "failures_total": dict(self.failures_total),
            "terminations": dict(self.terminations),
            "duration_ms_total": self.duration_ms_total,
        }
