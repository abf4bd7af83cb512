"""Data models for the note stats fetch layer."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from note_analytics.fetch.constants import AUTH_TOKEN_COOKIE, SESSION_TOKEN_COOKIE
from note_analytics.normalize.normalizer import RawMetricRecord


class TerminationReason(str, Enum):
    """Why a paginated fetch stopped."""

    EMPTY_PAGE = "empty-page"
    LAST_PAGE_FLAG = "explicit-last-page-flag"
    MAX_PAGES = "max-pages-reached"
    ERROR = "error"


class NoteCredentials(BaseModel):
    """Session cookies for the note stats endpoint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    auth_token: SecretStr
    session_token: SecretStr

    def cookie_header(self) -> dict[str, str]:
        """Build the Cookie header carrying both session tokens."""
        return {
            "Cookie": (
                f"{AUTH_TOKEN_COOKIE}={self.auth_token.get_secret_value()}; "
                f"{SESSION_TOKEN_COOKIE}={self.session_token.get_secret_value()}"
            )
        }


class SkippedRecord(BaseModel):
    """A record dropped during normalization."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    reason: str = Field(min_length=1)
    page: int | None = Field(default=None, ge=1)


@dataclass
class PageResult:
    """One decoded page of the stats API.

    Attributes:
        page: Page number (1-based).
        raw_count: Number of raw entries in the record list.
        records: Records that survived normalization.
        skip_reasons: Why each dropped entry was skipped.
        last_page_flag: Upstream last-page signal, if present.
    """

    page: int
    raw_count: int
    records: list[RawMetricRecord]
    skip_reasons: list[str] = field(default_factory=list)
    last_page_flag: bool | None = None

    @property
    def skipped(self) -> int:
        """Number of entries dropped by the normalizer."""
        return len(self.skip_reasons)


@dataclass
class FetchSession:
    """Mutable state for one fetch call.

    Attributes:
        page: Last page requested.
        accumulated_records: Records gathered so far.
        skipped: Records dropped so far.
        termination_reason: Set once pagination stops.
    """

    page: int = 0
    accumulated_records: list[RawMetricRecord] = field(default_factory=list)
    skipped: list[SkippedRecord] = field(default_factory=list)
    termination_reason: TerminationReason | None = None

    def discard(self) -> None:
        """Drop accumulated state after a failure."""
        self.accumulated_records.clear()
        self.termination_reason = TerminationReason.ERROR


class FetchedSnapshot(BaseModel):
    """Complete result of a paginated fetch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    records: tuple[RawMetricRecord, ...]
    termination_reason: TerminationReason
    pages_fetched: int = Field(ge=0)
    skipped: tuple[SkippedRecord, ...] = ()

    @property
    def record_count(self) -> int:
        """Number of normalized records."""
        return len(self.records)

    @property
    def skipped_count(self) -> int:
        """Number of records dropped during normalization."""
        return len(self.skipped)
