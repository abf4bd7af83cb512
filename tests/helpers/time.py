"""Shared, deterministic dates for tests."""

from datetime import UTC, date, datetime


FIXED_NOW = datetime(2024, 5, 12, 9, 0, 0, tzinfo=UTC)

# A Sunday, so weekly rollup buckets start on it.
FIXED_DATE = date(2024, 5, 12)
