"""Result models for cumulative import reconciliation."""

from datetime import date
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


NEGATIVE_DELTA_REASON = "negative-delta-clamped"
SKIP_REASON_NO_IDENTITY = "missing-key-and-title"


class NegativeDeltaClamped(BaseModel):
    """A cumulative total fell below what was already recorded.

    The stored delta is clamped to zero; the shortfall is reported here
    instead of being written as a negative count.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_key: str
    metric: str
    cumulative: Annotated[int, Field(ge=0)]
    prior_sum: Annotated[int, Field(ge=0)]
    reason: str = NEGATIVE_DELTA_REASON


class ReconcileFailure(BaseModel):
    """An article whose delta could not be written."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_key: str
    reason: str


class SkippedRecord(BaseModel):
    """An import row that was not processed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    reason: str
    row_index: Annotated[int, Field(ge=0)]
    external_key: str | None = None


class ImportResult(BaseModel):
    """Outcome of one cumulative import."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    import_date: date
    deltas_written: Annotated[int, Field(ge=0)] = 0
    skipped: tuple[SkippedRecord, ...] = ()
    anomalies: tuple[NegativeDeltaClamped, ...] = ()
    failures: tuple[ReconcileFailure, ...] = ()
    created_count: Annotated[int, Field(ge=0)] = 0
    promoted_count: Annotated[int, Field(ge=0)] = 0

    @property
    def skipped_count(self) -> int:
        """Number of rows that were skipped."""
        return len(self.skipped)

    @property
    def success(self) -> bool:
        """True if every identifiable article was reconciled."""
        return not self.failures
