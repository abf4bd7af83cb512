"""CSV exports of stored metrics."""

import csv
import io
from collections.abc import Sequence
from datetime import date

from note_analytics.report.models import ArticleSummary
from note_analytics.store import AnalyticsStore, MetricTotals


DETAIL_HEADER = ("date", "title", "pv", "likes", "comments")
SUMMARY_HEADER = ("title", "total_pv", "total_likes", "total_comments", "last_date")


def render_csv(header: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    """Render rows as CSV text with a header line."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def detail_rows(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> list[tuple[str, str, int, int, int]]:
    """One row per stored (article, date) within the inclusive range."""
    titles = {a.internal_id: a.canonical_title for a in store.list_articles()}
    return [
        (
            metric.date.isoformat(),
            titles.get(metric.article_id, ""),
            metric.pv,
            metric.likes,
            metric.comments,
        )
        for metric in store.get_daily_metrics(start=start, end=end)
    ]


def article_summaries(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> list[ArticleSummary]:
    """Per-article totals for articles with data in the inclusive range.

    Articles are returned in registration order.
    """
    totals: dict[int, MetricTotals] = {}
    last_dates: dict[int, date] = {}
    for metric in store.get_daily_metrics(start=start, end=end):
        totals[metric.article_id] = (
            totals.get(metric.article_id, MetricTotals()) + metric.totals
        )
        if metric.article_id not in last_dates or metric.date > last_dates[metric.article_id]:
            last_dates[metric.article_id] = metric.date

    return [
        ArticleSummary(
            external_key=article.external_key,
            title=article.canonical_title,
            totals=totals[article.internal_id],
            last_date=last_dates[article.internal_id],
        )
        for article in store.list_articles()
        if article.internal_id in totals
    ]


def article_ranking(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> list[ArticleSummary]:
    """Article summaries ordered by page views, highest first."""
    return sorted(
        article_summaries(store, start, end),
        key=lambda summary: summary.totals.pv,
        reverse=True,
    )


def export_detail_csv(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> str:
    """Export daily rows as ``date,title,pv,likes,comments`` CSV."""
    return render_csv(DETAIL_HEADER, detail_rows(store, start, end))


def export_summary_csv(
    store: AnalyticsStore, start: date | None = None, end: date | None = None
) -> str:
    """Export per-article totals as CSV."""
    rows = [
        (
            summary.title,
            summary.totals.pv,
            summary.totals.likes,
            summary.totals.comments,
            summary.last_date.isoformat(),
        )
        for summary in article_summaries(store, start, end)
    ]
    return render_csv(SUMMARY_HEADER, rows)
