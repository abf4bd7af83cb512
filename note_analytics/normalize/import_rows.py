"""Mapping of cumulative export rows onto import records.

Export files come from several tools and languages, so header names vary.
Tokenizing is left to the csv module; this module only decides which
column supplies which quantity.
"""

import csv
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from note_analytics.normalize.fields import (
    IMPORT_COMMENT_FIELDS,
    IMPORT_KEY_FIELDS,
    IMPORT_LIKE_FIELDS,
    IMPORT_PV_FIELDS,
    IMPORT_TITLE_FIELDS,
)
from note_analytics.normalize.normalizer import coerce_count


logger = structlog.get_logger()


class ImportRow(BaseModel):
    """Cumulative-to-date totals for one article from an export file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_key: str | None = Field(default=None, description="Upstream key if known")
    title: str | None = Field(default=None, description="Article title")
    cumulative_pv: int = Field(default=0, ge=0)
    cumulative_likes: int = Field(default=0, ge=0)
    cumulative_comments: int = Field(default=0, ge=0)

    @property
    def has_identity(self) -> bool:
        """Return True if the row carries a key or a title to match on."""
        return bool(self.external_key or self.title)


def _cell(row: Mapping[str, str | None], candidates: tuple[str, ...]) -> str | None:
    for name in candidates:
        value = row.get(name)
        if not isinstance(value, str):
            continue
        text = value.strip()
        if text:
            return text
    return None


def _count(row: Mapping[str, str | None], candidates: tuple[str, ...]) -> int:
    return coerce_count(_cell(row, candidates)) or 0


def map_import_row(row: Mapping[str, str | None]) -> ImportRow | None:
    """Map one tokenized export row to an ImportRow.

    Args:
        row: Column name to cell text.

    Returns:
        The mapped row, or None for a blank row.
    """
    if not any(isinstance(value, str) and value.strip() for value in row.values()):
        return None

    return ImportRow(
        external_key=_cell(row, IMPORT_KEY_FIELDS),
        title=_cell(row, IMPORT_TITLE_FIELDS),
        cumulative_pv=_count(row, IMPORT_PV_FIELDS),
        cumulative_likes=_count(row, IMPORT_LIKE_FIELDS),
        cumulative_comments=_count(row, IMPORT_COMMENT_FIELDS),
    )


def map_import_rows(rows: Iterable[Mapping[str, str | None]]) -> Iterator[ImportRow]:
    """Map tokenized rows, dropping blank ones."""
    for row in rows:
        mapped = map_import_row(row)
        if mapped is not None:
            yield mapped


def rows_from_csv(path: Path) -> list[ImportRow]:
    """Read a cumulative export CSV file.

    The file is decoded as UTF-8 with an optional byte order mark.

    Args:
        path: Path to the export file.

    Returns:
        Import rows in file order.
    """
    with path.open(encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        rows = list(map_import_rows(reader))

    logger.info(
        "import_file_read",
        component="import_rows",
        path=str(path),
        columns=reader.fieldnames,
        rows=len(rows),
    )
    return rows
