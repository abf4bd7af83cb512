"""Data models for the analytics store."""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class ArticleStatus(str, Enum):
    """Publication status of an article.

    - DRAFT: registered for historical backfill only
    - PUBLISHED: live article (default)
    """

    DRAFT = "draft"
    PUBLISHED = "published"


class MetricSource(str, Enum):
    """Which write path produced a daily metric row.

    - SNAPSHOT: absolute daily totals observed from the stats API
    - DELTA: increment derived from a cumulative import
    """

    SNAPSHOT = "snapshot"
    DELTA = "delta"


class OperationKind(str, Enum):
    """Kind of operation tracked in the run ledger."""

    SYNC = "sync"
    IMPORT = "import"


class ArticleIdentity(BaseModel):
    """Stable internal identity of an upstream article."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    internal_id: Annotated[int, Field(ge=1, description="Internal primary key")]
    external_key: Annotated[str, Field(min_length=1, description="Upstream key")]
    canonical_title: Annotated[str, Field(min_length=1)]
    canonical_url: str | None = None
    status: ArticleStatus = ArticleStatus.PUBLISHED
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    published_at: datetime | None = None


class MetricTotals(BaseModel):
    """A pv/likes/comments triple."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pv: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)

    def as_dict(self) -> dict[str, int]:
        """Return the counters keyed by metric name."""
        return {"pv": self.pv, "likes": self.likes, "comments": self.comments}

    def __add__(self, other: "MetricTotals") -> "MetricTotals":
        """Sum two triples field by field."""
        return MetricTotals(
            pv=self.pv + other.pv,
            likes=self.likes + other.likes,
            comments=self.comments + other.comments,
        )


METRIC_NAMES = ("pv", "likes", "comments")


class DailyMetric(BaseModel):
    """Engagement counts for one article on one calendar day."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    article_id: Annotated[int, Field(ge=1)]
    date: date
    pv: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    source: MetricSource = MetricSource.SNAPSHOT

    @property
    def totals(self) -> MetricTotals:
        """Counters as a MetricTotals triple."""
        return MetricTotals(pv=self.pv, likes=self.likes, comments=self.comments)


class Run(BaseModel):
    """Operation run record.

    Tracks one sync or import from start to finish.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    run_id: Annotated[str, Field(min_length=1, description="Unique run identifier")]
    kind: OperationKind
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    success: bool | None = None
    error_summary: str | None = None


class AccountStats(BaseModel):
    """Account-level figures recorded for one day.

    Either figure may be missing; a day is stored once at least one is known.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    date: date
    followers: Annotated[int, Field(ge=0)] | None = None
    revenue: Annotated[int, Field(ge=0)] | None = None
