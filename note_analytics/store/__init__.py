"""SQLite store for articles, daily metrics, and operation runs.

This module provides persistent storage for:
- Article identities keyed by upstream key, created on first sighting
- Per-article, per-day metric rows written by whole-row replacement
- Snapshot replacement of a whole date from the stats API
- Per-day account figures (followers, revenue) entered by hand
- A run ledger for syncs and imports
"""

from note_analytics.store.errors import (
    AmbiguousTitleError,
    ConnectionError,
    IdentityConflictError,
    MigrationError,
    RunNotFoundError,
    StateStoreError,
)
from note_analytics.store.identity import (
    ArticleIdentityResolver,
    ResolveOutcome,
    is_synthetic_key,
    synthetic_key_for_title,
)
from note_analytics.store.metrics import StoreMetrics
from note_analytics.store.models import (
    METRIC_NAMES,
    AccountStats,
    ArticleIdentity,
    ArticleStatus,
    DailyMetric,
    MetricSource,
    MetricTotals,
    OperationKind,
    Run,
)
from note_analytics.store.snapshot import SnapshotResult, SnapshotUpsertStore
from note_analytics.store.store import AnalyticsStore


__all__ = [
    # Errors
    "AmbiguousTitleError",
    "ConnectionError",
    "IdentityConflictError",
    "MigrationError",
    "RunNotFoundError",
    "StateStoreError",
    # Identity
    "ArticleIdentityResolver",
    "ResolveOutcome",
    "is_synthetic_key",
    "synthetic_key_for_title",
    # Metrics
    "StoreMetrics",
    # Models
    "METRIC_NAMES",
    "AccountStats",
    "ArticleIdentity",
    "ArticleStatus",
    "DailyMetric",
    "MetricSource",
    "MetricTotals",
    "OperationKind",
    "Run",
    # Snapshot
    "SnapshotResult",
    "SnapshotUpsertStore",
    # Store
    "AnalyticsStore",
]
