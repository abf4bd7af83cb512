"""Report models."""

from datetime import date
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from note_analytics.store import MetricTotals


class RollupPeriod(str, Enum):
    """Aggregation bucket for rollups.

    - DAILY: one bucket per date (YYYY-MM-DD)
    - WEEKLY: weeks starting Sunday, keyed by the Sunday's date
    - MONTHLY: one bucket per calendar month (YYYY-MM)
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class PeriodTotals(BaseModel):
    """Summed counts for one rollup bucket."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: Annotated[str, Field(min_length=1)]
    totals: MetricTotals


class ArticleSummary(BaseModel):
    """Per-article totals over a date range."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_key: str
    title: str
    totals: MetricTotals
    last_date: date


class MetricChange(BaseModel):
    """One metric compared across two periods."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    metric: str
    first: Annotated[int, Field(ge=0)]
    second: Annotated[int, Field(ge=0)]
    change_percent: int


class PeriodComparison(BaseModel):
    """Totals of two date ranges side by side."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    first_start: date
    first_end: date
    second_start: date
    second_end: date
    changes: tuple[MetricChange, ...]
