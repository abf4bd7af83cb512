"""Guarded sync and import operations."""

from note_analytics.sync.guard import OperationGuard, OperationInProgressError
from note_analytics.sync.service import ImportService, SyncResult, SyncService


__all__ = [
    "ImportService",
    "OperationGuard",
    "OperationInProgressError",
    "SyncResult",
    "SyncService",
]
