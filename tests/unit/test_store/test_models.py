"""Unit tests for store data models."""

from datetime import date

import pytest
from pydantic import ValidationError

from note_analytics.store.models import (
    ArticleIdentity,
    ArticleStatus,
    DailyMetric,
    MetricSource,
    MetricTotals,
    OperationKind,
    Run,
)


class TestMetricTotals:
    """Tests for the counter triple."""

    def test_addition(self) -> None:
        """Test field-wise addition."""
        total = MetricTotals(pv=1, likes=2, comments=3) + MetricTotals(pv=10)
        assert total == MetricTotals(pv=11, likes=2, comments=3)

    def test_rejects_negative(self) -> None:
        """Test counts cannot be negative."""
        with pytest.raises(ValidationError):
            MetricTotals(pv=-1)

    def test_as_dict(self) -> None:
        """Test the metric name mapping."""
        assert MetricTotals(pv=5).as_dict() == {"pv": 5, "likes": 0, "comments": 0}


class TestDailyMetric:
    """Tests for daily metric rows."""

    def test_totals_property(self) -> None:
        """Test counters are exposed as a triple."""
        metric = DailyMetric(
            article_id=1, date=date(2024, 5, 12), pv=3, likes=2, comments=1
        )
        assert metric.totals == MetricTotals(pv=3, likes=2, comments=1)
        assert metric.source == MetricSource.SNAPSHOT

    def test_is_frozen(self) -> None:
        """Test rows are immutable."""
        metric = DailyMetric(article_id=1, date=date(2024, 5, 12))
        with pytest.raises(ValidationError):
            metric.pv = 10  # type: ignore[misc]


class TestArticleIdentity:
    """Tests for article identities."""

    def test_defaults_to_published(self) -> None:
        """Test the default status."""
        article = ArticleIdentity(internal_id=1, external_key="n1", canonical_title="A")
        assert article.status == ArticleStatus.PUBLISHED
        assert article.canonical_url is None

    def test_rejects_extra_fields(self) -> None:
        """Test unknown fields are rejected."""
        with pytest.raises(ValidationError):
            ArticleIdentity(
                internal_id=1,
                external_key="n1",
                canonical_title="A",
                followers=3,  # type: ignore[call-arg]
            )


class TestRun:
    """Tests for run records."""

    def test_new_run_is_open(self) -> None:
        """Test a new run has no outcome yet."""
        run = Run(run_id="r1", kind=OperationKind.SYNC)
        assert run.finished_at is None
        assert run.success is None
