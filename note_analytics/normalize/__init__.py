"""Normalization of upstream records and export rows."""

from note_analytics.normalize.import_rows import (
    ImportRow,
    map_import_row,
    map_import_rows,
    rows_from_csv,
)
from note_analytics.normalize.normalizer import (
    RawMetricRecord,
    build_article_url,
    coerce_count,
    first_present,
    normalize_record,
    resolve_count,
    skip_reason,
)


__all__ = [
    "ImportRow",
    "RawMetricRecord",
    "build_article_url",
    "coerce_count",
    "first_present",
    "map_import_row",
    "map_import_rows",
    "normalize_record",
    "resolve_count",
    "rows_from_csv",
    "skip_reason",
]
