"""Paginated client for the note stats endpoint.

Drives pages 1..max_pages sequentially, normalizes each page, and stops on
the first of: an empty page, an upstream last-page flag, or the page cap.
Any failed page aborts the whole fetch.
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any

import httpx
import structlog

from note_analytics.fetch.config import FetchConfig
from note_analytics.fetch.constants import (
    DEFAULT_MAX_PAGES,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    TRANSPORT_ERROR_STATUS,
)
from note_analytics.fetch.errors import FetchFailedError
from note_analytics.fetch.metrics import FetchMetrics
from note_analytics.fetch.models import (
    FetchedSnapshot,
    FetchSession,
    NoteCredentials,
    PageResult,
    SkippedRecord,
    TerminationReason,
)
from note_analytics.fetch.redact import redact_headers
from note_analytics.normalize.fields import (
    ENVELOPE_FIELD,
    LAST_PAGE_FIELDS,
    RECORD_LIST_FIELDS,
)
from note_analytics.normalize.normalizer import (
    RawMetricRecord,
    first_present,
    normalize_record,
    skip_reason,
)


logger = structlog.get_logger()

SleepFunc = Callable[[float], Awaitable[None]]

_TRUE_STRINGS = frozenset({"true", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "0", "no", ""})


def parse_flag(value: Any) -> bool | None:
    """Interpret a boolean-like upstream flag.

    Returns:
        True/False, or None when the value is not boolean-like.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None


def extract_envelope(payload: Any) -> Mapping[str, Any] | None:
    """Return the data envelope, or the payload itself when there is none."""
    if not isinstance(payload, Mapping):
        return None
    envelope = payload.get(ENVELOPE_FIELD)
    if isinstance(envelope, Mapping):
        return envelope
    return payload


def extract_record_list(envelope: Mapping[str, Any]) -> list[Any] | None:
    """Return the record list under the first present candidate field.

    Returns:
        The list, or None when no candidate field is present or the
        authoritative field holds something other than a list. Only a
        present, empty list means the upstream ran out of records.
    """
    records = first_present(envelope, RECORD_LIST_FIELDS)
    if not isinstance(records, list):
        return None
    return records


def extract_last_page_flag(
    envelope: Mapping[str, Any], payload: Mapping[str, Any]
) -> bool | None:
    """Look up the last-page signal in the envelope, then the top level."""
    for container in (envelope, payload):
        value = first_present(container, LAST_PAGE_FIELDS)
        if value is not None:
            return parse_flag(value)
    return None


def decide_termination(
    page_result: PageResult, max_pages: int
) -> TerminationReason | None:
    """Decide whether pagination stops after this page.

    An empty page always stops, even when a last-page flag says there is
    more to come.
    """
    if page_result.raw_count == 0:
        return TerminationReason.EMPTY_PAGE
    if page_result.last_page_flag:
        return TerminationReason.LAST_PAGE_FLAG
    if page_result.page >= max_pages:
        return TerminationReason.MAX_PAGES
    return None


class NoteStatsFetcher:
    """Async paginated fetcher for per-article stats.

    Each call re-drives pagination from page 1. Waits between pages are
    awaited, so other coroutines keep running while a fetch is throttled.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        run_id: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            config: Fetch configuration.
            run_id: Run identifier for logging.
            transport: Optional httpx transport (tests inject a mock).
            sleep: Awaitable used for the inter-page delay.
        """
        self._config = config or FetchConfig()
        self._transport = transport
        self._sleep = sleep
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch", run_id=run_id)

    async def fetch(
        self,
        credentials: NoteCredentials,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> AsyncIterator[RawMetricRecord]:
        """Yield normalized records page by page.

        Records from earlier pages may already have been consumed when a
        later page raises FetchFailedError; use fetch_snapshot() when the
        result must be all-or-nothing.

        Raises:
            FetchFailedError: If any page fails.
        """
        session = FetchSession()
        async for page_result in self._paginate(credentials, max_pages, session):
            for record in page_result.records:
                yield record

    async def fetch_snapshot(
        self,
        credentials: NoteCredentials,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> FetchedSnapshot:
        """Fetch every page and return the complete snapshot.

        Raises:
            FetchFailedError: If any page fails. Nothing is returned in that
                case.
        """
        start_ns = time.perf_counter_ns()
        session = FetchSession()

        async for page_result in self._paginate(credentials, max_pages, session):
            session.accumulated_records.extend(page_result.records)

        reason = session.termination_reason or TerminationReason.MAX_PAGES
        snapshot = FetchedSnapshot(
            records=tuple(session.accumulated_records),
            termination_reason=reason,
            pages_fetched=session.page,
            skipped=tuple(session.skipped),
        )

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_completion(reason.value, duration_ms)
        self._log.info(
            "fetch_complete",
            record_count=snapshot.record_count,
            skipped_count=snapshot.skipped_count,
            pages_fetched=snapshot.pages_fetched,
            termination_reason=reason.value,
            duration_ms=round(duration_ms, 2),
        )
        return snapshot

    async def _paginate(
        self,
        credentials: NoteCredentials,
        max_pages: int,
        session: FetchSession,
    ) -> AsyncIterator[PageResult]:
        if max_pages < 1:
            msg = f"max_pages must be >= 1, got {max_pages}"
            raise ValueError(msg)

        headers = self._build_headers(credentials)
        self._log.info(
            "fetch_started",
            url=self._config.base_url,
            max_pages=max_pages,
            headers=redact_headers(headers),
        )

        try:
            async with httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                for page in range(1, max_pages + 1):
                    if page > 1 and self._config.page_delay_seconds > 0:
                        await self._sleep(self._config.page_delay_seconds)

                    session.page = page
                    page_result = await self._fetch_page(client, page, headers)
                    session.skipped.extend(
                        SkippedRecord(reason=reason, page=page)
                        for reason in page_result.skip_reasons
                    )
                    self._metrics.record_page(
                        len(page_result.records), page_result.skipped
                    )

                    self._log.debug(
                        "page_fetched",
                        page=page,
                        raw_count=page_result.raw_count,
                        records=len(page_result.records),
                        skipped=page_result.skipped,
                        last_page_flag=page_result.last_page_flag,
                    )

                    reason = decide_termination(page_result, max_pages)
                    if reason is not None:
                        session.termination_reason = reason
                    yield page_result
                    if reason is not None:
                        return

        except FetchFailedError as e:
            session.discard()
            self._metrics.record_failure(e.status)
            self._log.warning(
                "fetch_failed",
                page=e.page,
                status=e.status,
                detail=e.detail,
            )
            raise

    def _build_headers(self, credentials: NoteCredentials) -> dict[str, str]:
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/json",
        }
        headers.update(credentials.cookie_header())
        return headers

    async def _fetch_page(
        self,
        client: httpx.AsyncClient,
        page: int,
        headers: dict[str, str],
    ) -> PageResult:
        try:
            response = await client.get(
                self._config.base_url,
                params=self._config.page_params(page),
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise FetchFailedError(
                page, TRANSPORT_ERROR_STATUS, f"{type(e).__name__}: {e}"
            ) from e

        status = response.status_code
        if not HTTP_STATUS_OK_MIN <= status < HTTP_STATUS_OK_MAX:
            raise FetchFailedError(page, status)

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailedError(page, status, "response body is not JSON") from e

        return self.parse_page(page, status, payload)

    @staticmethod
    def parse_page(page: int, status: int, payload: Any) -> PageResult:
        """Decode one page payload into normalized records.

        Raises:
            FetchFailedError: If the payload has no usable shape.
        """
        envelope = extract_envelope(payload)
        if envelope is None:
            raise FetchFailedError(page, status, "response is not a JSON object")

        raw_records = extract_record_list(envelope)
        if raw_records is None:
            raise FetchFailedError(page, status, "no record list in response")

        records: list[RawMetricRecord] = []
        skip_reasons: list[str] = []
        for raw in raw_records:
            record = normalize_record(raw)
            if record is None:
                skip_reasons.append(skip_reason(raw) or "unknown")
            else:
                records.append(record)

        return PageResult(
            page=page,
            raw_count=len(raw_records),
            records=records,
            skip_reasons=skip_reasons,
            last_page_flag=extract_last_page_flag(envelope, payload),
        )
