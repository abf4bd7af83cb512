"""Configuration model for the note stats fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from note_analytics.fetch.constants import (
    DEFAULT_PAGE_DELAY_SECONDS,
    NOTE_STATS_FILTER,
    NOTE_STATS_SORT,
    NOTE_STATS_URL,
)


class FetchConfig(BaseModel):
    """Configuration for paginated stats retrieval."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)] = NOTE_STATS_URL
    filter: Annotated[str, Field(min_length=1)] = NOTE_STATS_FILTER
    sort: Annotated[str, Field(min_length=1)] = NOTE_STATS_SORT
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "note-analytics/0.1"
    )
    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    page_delay_seconds: Annotated[float, Field(ge=0.0, le=60.0)] = (
        DEFAULT_PAGE_DELAY_SECONDS
    )

    def page_params(self, page: int) -> dict[str, str | int]:
        """Build query parameters for one page request."""
        return {"filter": self.filter, "page": page, "sort": self.sort}
