"""Period rollups, KPI totals, and period comparison."""

import math
from datetime import date, timedelta

from note_analytics.report.models import (
    MetricChange,
    PeriodComparison,
    PeriodTotals,
    RollupPeriod,
)
from note_analytics.store import METRIC_NAMES, AnalyticsStore, MetricTotals


# date.weekday() counts from Monday; weeks here start on Sunday.
_SUNDAY_OFFSET = 1


def week_start(day: date) -> date:
    """Return the Sunday on or before a date."""
    return day - timedelta(days=(day.weekday() + _SUNDAY_OFFSET) % 7)


def period_key(day: date, period: RollupPeriod) -> str:
    """Return the bucket key a date falls into."""
    if period == RollupPeriod.WEEKLY:
        return week_start(day).isoformat()
    if period == RollupPeriod.MONTHLY:
        return f"{day.year:04d}-{day.month:02d}"
    return day.isoformat()


def rollup(
    store: AnalyticsStore,
    period: RollupPeriod,
    start: date | None = None,
    end: date | None = None,
) -> list[PeriodTotals]:
    """Sum all articles' daily rows into period buckets.

    Returns:
        Buckets in ascending key order; periods without rows are absent.
    """
    buckets: dict[str, MetricTotals] = {}
    for metric in store.get_daily_metrics(start=start, end=end):
        key = period_key(metric.date, period)
        buckets[key] = buckets.get(key, MetricTotals()) + metric.totals
    return [PeriodTotals(key=key, totals=buckets[key]) for key in sorted(buckets)]


def range_totals(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> MetricTotals:
    """Sum every stored row in the inclusive range."""
    total = MetricTotals()
    for metric in store.get_daily_metrics(start=start, end=end):
        total = total + metric.totals
    return total


def kpi_totals(store: AnalyticsStore) -> MetricTotals:
    """Overall totals across all articles and dates."""
    return range_totals(store)


def change_percent(first: int, second: int) -> int:
    """Percent change from first to second, rounded half up.

    A first value of zero yields 0 rather than an undefined ratio.
    """
    if first <= 0:
        return 0
    return math.floor((second - first) / first * 100 + 0.5)


def compare_periods(
    store: AnalyticsStore,
    first: tuple[date, date],
    second: tuple[date, date],
) -> PeriodComparison:
    """Compare totals of two inclusive date ranges.

    Raises:
        ValueError: If a range ends before it starts.
    """
    for start, end in (first, second):
        if end < start:
            msg = f"Range end {end.isoformat()} is before start {start.isoformat()}"
            raise ValueError(msg)

    first_totals = range_totals(store, *first)
    second_totals = range_totals(store, *second)
    changes = tuple(
        MetricChange(
            metric=metric,
            first=getattr(first_totals, metric),
            second=getattr(second_totals, metric),
            change_percent=change_percent(
                getattr(first_totals, metric), getattr(second_totals, metric)
            ),
        )
        for metric in METRIC_NAMES
    )
    return PeriodComparison(
        first_start=first[0],
        first_end=first[1],
        second_start=second[0],
        second_end=second[1],
        changes=changes,
    )
