"""Exports and aggregate views over stored metrics."""

from note_analytics.report.export import (
    DETAIL_HEADER,
    SUMMARY_HEADER,
    article_ranking,
    article_summaries,
    detail_rows,
    export_detail_csv,
    export_summary_csv,
)
from note_analytics.report.models import (
    ArticleSummary,
    MetricChange,
    PeriodComparison,
    PeriodTotals,
    RollupPeriod,
)
from note_analytics.report.rollup import (
    change_percent,
    compare_periods,
    kpi_totals,
    period_key,
    range_totals,
    rollup,
    week_start,
)


__all__ = [
    # Export
    "DETAIL_HEADER",
    "SUMMARY_HEADER",
    "article_ranking",
    "article_summaries",
    "detail_rows",
    "export_detail_csv",
    "export_summary_csv",
    # Models
    "ArticleSummary",
    "MetricChange",
    "PeriodComparison",
    "PeriodTotals",
    "RollupPeriod",
    # Rollup
    "change_percent",
    "compare_periods",
    "kpi_totals",
    "period_key",
    "range_totals",
    "rollup",
    "week_start",
]
