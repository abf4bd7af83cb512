"""Metrics collection for the analytics store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for analytics store operations.

    Attributes:
        articles_created_total: Identities created on first sighting.
        articles_promoted_total: Draft articles promoted to published.
        snapshot_rows_total: Daily rows written by snapshot replacement.
        snapshot_rows_removed_total: Rows removed because a snapshot for
            their date no longer listed the article.
        delta_rows_total: Daily rows written by the delta path.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of committed transactions.
    """

    articles_created_total: int = 0
    articles_promoted_total: int = 0
    snapshot_rows_total: int = 0
    snapshot_rows_removed_total: int = 0
    delta_rows_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_article_created(self) -> None:
        """Record a newly created identity."""
        self.articles_created_total += 1

    def record_promoted(self, count: int) -> None:
        """Record draft promotions."""
        self.articles_promoted_total += count

    def record_snapshot_rows(self, written: int, removed: int) -> None:
        """Record the outcome of one snapshot replacement."""
        self.snapshot_rows_total += written
        self.snapshot_rows_removed_total += removed

    def record_delta_row(self) -> None:
        """Record one delta row written."""
        self.delta_rows_total += 1

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "articles_created_total": self.articles_created_total,
            "articles_promoted_total": self.articles_promoted_total,
            "snapshot_rows_total": self.snapshot_rows_total,
            "snapshot_rows_removed_total": self.snapshot_rows_removed_total,
            "delta_rows_total": self.delta_rows_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
        }


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
