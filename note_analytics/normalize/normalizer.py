"""Field normalizer for upstream stats records.

Maps the heterogeneous per-article shapes returned by different versions
of the stats API onto a single RawMetricRecord.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from note_analytics.normalize.fields import (
    COMMENT_FIELDS,
    DEFAULT_TITLE,
    EXTERNAL_KEY_FIELDS,
    LIKE_FIELDS,
    NOTE_ARTICLE_URL_TEMPLATE,
    PV_FIELDS,
    TITLE_FIELDS,
    URL_FIELDS,
    URL_KEY_FIELDS,
    URLNAME_FIELDS,
)


logger = structlog.get_logger()

SKIP_REASON_MISSING_KEY = "missing-external-key"
SKIP_REASON_NOT_A_RECORD = "not-a-record"


class RawMetricRecord(BaseModel):
    """Normalized metrics for one article as observed in one cycle."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    external_key: str = Field(min_length=1, description="Upstream article key")
    title: str = Field(min_length=1, description="Article title")
    url: str | None = Field(default=None, description="Article URL")
    pv: int = Field(default=0, ge=0)
    likes: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)


def first_present(record: Mapping[str, Any], candidates: Sequence[str]) -> Any:
    """Return the value of the first candidate field that is present.

    A field is present when the key exists and its value is not None.
    Zero, False and empty containers are present values.

    Args:
        record: Source mapping.
        candidates: Field names in priority order.

    Returns:
        The first present value, or None.
    """
    for name in candidates:
        value = record.get(name)
        if value is not None:
            return value
    return None


def coerce_count(value: Any) -> int | None:
    """Coerce an upstream counter value to a non-negative int.

    Returns:
        The count, or None when the value cannot be interpreted as a number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        count = int(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            count = int(float(text))
        except ValueError:
            return None
    else:
        return None
    return max(0, count)


def resolve_count(record: Mapping[str, Any], candidates: Sequence[str]) -> int:
    """Resolve a counter through its alias list.

    Values that cannot be coerced are treated as missing so that a lower
    priority alias may still supply the count.
    """
    for name in candidates:
        count = coerce_count(record.get(name))
        if count is not None:
            return count
    return 0


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _resolve_text(record: Mapping[str, Any], candidates: Sequence[str]) -> str | None:
    for name in candidates:
        text = _as_text(record.get(name))
        if text is not None:
            return text
    return None


def _resolve_urlname(record: Mapping[str, Any]) -> str | None:
    urlname = _resolve_text(record, URLNAME_FIELDS)
    if urlname is not None:
        return urlname
    user = record.get("user")
    if isinstance(user, Mapping):
        return _as_text(user.get("urlname"))
    return None


def build_article_url(record: Mapping[str, Any], external_key: str) -> str | None:
    """Return the article URL, reconstructing it from urlname and key if needed."""
    url = _resolve_text(record, URL_FIELDS)
    if url is not None:
        return url

    urlname = _resolve_urlname(record)
    if urlname is None:
        return None

    key = _resolve_text(record, URL_KEY_FIELDS) or external_key
    return NOTE_ARTICLE_URL_TEMPLATE.format(urlname=urlname, key=key)


def skip_reason(raw: Any) -> str | None:
    """Return why a raw record cannot be normalized, or None if it can."""
    if not isinstance(raw, Mapping):
        return SKIP_REASON_NOT_A_RECORD
    if _resolve_text(raw, EXTERNAL_KEY_FIELDS) is None:
        return SKIP_REASON_MISSING_KEY
    return None


def normalize_record(raw: Any) -> RawMetricRecord | None:
    """Normalize one upstream record.

    Args:
        raw: Decoded JSON object for a single article.

    Returns:
        The normalized record, or None when the record has no usable
        identity key (the skip is logged).
    """
    reason = skip_reason(raw)
    if reason is not None:
        logger.warning(
            "record_skipped",
            component="normalize",
            reason=reason,
            fields=sorted(str(k) for k in raw) if isinstance(raw, Mapping) else None,
        )
        return None

    external_key = str(_resolve_text(raw, EXTERNAL_KEY_FIELDS))
    return RawMetricRecord(
        external_key=external_key,
        title=_resolve_text(raw, TITLE_FIELDS) or DEFAULT_TITLE,
        url=build_article_url(raw, external_key),
        pv=resolve_count(raw, PV_FIELDS),
        likes=resolve_count(raw, LIKE_FIELDS),
        comments=resolve_count(raw, COMMENT_FIELDS),
    )
