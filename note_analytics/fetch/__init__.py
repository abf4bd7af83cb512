"""Paginated fetch layer for the note stats endpoint."""

from note_analytics.fetch.client import (
    NoteStatsFetcher,
    decide_termination,
    extract_envelope,
    extract_last_page_flag,
    extract_record_list,
    parse_flag,
)
from note_analytics.fetch.config import FetchConfig
from note_analytics.fetch.errors import FetchFailedError
from note_analytics.fetch.metrics import FetchMetrics
from note_analytics.fetch.models import (
    FetchedSnapshot,
    FetchSession,
    NoteCredentials,
    PageResult,
    SkippedRecord,
    TerminationReason,
)
from note_analytics.fetch.redact import redact_headers


__all__ = [
    # Client
    "NoteStatsFetcher",
    "decide_termination",
    "extract_envelope",
    "extract_last_page_flag",
    "extract_record_list",
    "parse_flag",
    # Config
    "FetchConfig",
    # Errors
    "FetchFailedError",
    # Metrics
    "FetchMetrics",
    # Models
    "FetchSession",
    "FetchedSnapshot",
    "NoteCredentials",
    "PageResult",
    "SkippedRecord",
    "TerminationReason",
    # Redaction
    "redact_headers",
]
