"""Realize Reporter — Report Fetcher.

Builds report requests for an account/date-range/breakdown, issues them and
normalizes the result into typed rows plus the dynamic metric captions.

The site breakdown has a streamed variant: the ``results`` array is parsed
incrementally with ijson and the connection is torn down as soon as the
row cap is buffered.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

import httpx
import ijson

from realize.config import settings
from realize.connectors.backstage.client import BackstageClient
from realize.connectors.backstage.transformer import (
    dynamic_field_captions,
    normalize_row,
    normalize_rows,
)
from realize.core.breakdowns import Breakdown
from realize.core.errors import PageOutOfRangeError, RealizeAPIError
from realize.core.logging import get_logger
from realize.models.account_models import SubAccountReportRow
from realize.models.report_models import ReportResult, ReportRow, SiteBreakdownPage

logger = get_logger("backstage.reports")

CONTENT_ENDPOINT = "top-campaign-content"
SUMMARY_ENDPOINT = "campaign-summary"

DateLike = Union[date, str]


def _date_param(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else value


def build_report_request(
    account_slug: str,
    breakdown: Breakdown,
    start_date: DateLike,
    end_date: DateLike,
    conversion_rule_id: Optional[str] = None,
    include_multi_conversions: bool = False,
) -> Tuple[str, Dict[str, str]]:
    """Return the API path and query parameters for a report."""
    is_by_ad = breakdown is Breakdown.ITEM
    endpoint = CONTENT_ENDPOINT if is_by_ad else SUMMARY_ENDPOINT
    params = {
        "start_date": _date_param(start_date),
        "end_date": _date_param(end_date),
    }
    if is_by_ad:
        params["dimensions"] = breakdown.value
    if conversion_rule_id:
        params["conversion_rule_id"] = str(conversion_rule_id)
        if include_multi_conversions:
            params["include_multi_conversions"] = "true"
    path = f"{account_slug}/reports/{endpoint}/dimensions/{breakdown.value}"
    return path, params


class _StreamReader:
    """File-like adapter so ijson can pull bytes from a streamed response."""

    def __init__(self, response: httpx.Response):
        self._chunks = response.aiter_bytes()
        self._pending = b""
        self._exhausted = False

    async def read(self, size: int = -1) -> bytes:
        # ijson probes with read(0) to detect bytes vs str; that must not consume data.
        if size == 0:
            return b""
        while not self._pending and not self._exhausted:
            try:
                self._pending = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
        if size < 0:
            data, self._pending = self._pending, b""
        else:
            data, self._pending = self._pending[:size], self._pending[size:]
        return data

    async def aclose(self) -> None:
        await self._chunks.aclose()


class ReportFetcher:
    """Fetch and normalize report data for one account at a time."""

    def __init__(
        self,
        client: BackstageClient,
        max_rows: int | None = None,
        site_row_cap: int | None = None,
        site_page_size: int | None = None,
    ):
        self.client = client
        self.max_rows = max_rows or settings.max_report_rows
        self.site_row_cap = site_row_cap or settings.site_breakdown_row_cap
        self.site_page_size = site_page_size or settings.site_breakdown_page_size

    @property
    def site_max_page(self) -> int:
        return -(-self.site_row_cap // self.site_page_size)

    # ── Buffered Reports ──

    async def fetch_report(
        self,
        account_slug: str,
        breakdown: Breakdown,
        start_date: DateLike,
        end_date: DateLike,
        conversion_rule_id: Optional[str] = None,
        include_multi_conversions: bool = False,
    ) -> ReportResult:
        """Fetch one report and normalize its rows and dynamic field captions."""
        path, params = build_report_request(
            account_slug,
            breakdown,
            start_date,
            end_date,
            conversion_rule_id,
            include_multi_conversions,
        )
        payload = await self.client.get_json(path, params)
        if not isinstance(payload, dict):
            raise RealizeAPIError(f"Unexpected report response shape from {path}", 200)

        raw_rows = payload.get("results") or []
        rows, dropped, truncated = normalize_rows(raw_rows, breakdown, self.max_rows)
        if truncated:
            logger.warning(
                f"Report truncated to {self.max_rows} rows",
                extra={
                    "account_id": account_slug,
                    "breakdown": breakdown.value,
                    "row_count": len(raw_rows),
                },
            )
        logger.info(
            f"Fetched {len(rows)} report rows",
            extra={
                "account_id": account_slug,
                "breakdown": breakdown.value,
                "row_count": len(rows),
            },
        )
        return ReportResult(
            breakdown=breakdown,
            rows=rows,
            dynamic_field_captions=dynamic_field_captions(payload),
            total_rows=len(raw_rows),
            dropped_rows=dropped,
            truncated=truncated,
        )

    # ── Streamed Site Breakdown ──

    async def fetch_site_breakdown_page(
        self,
        account_slug: str,
        start_date: DateLike,
        end_date: DateLike,
        conversion_rule_id: Optional[str] = None,
        include_multi_conversions: bool = False,
        page: int = 1,
    ) -> SiteBreakdownPage:
        """Serve one page of the site breakdown from a capped, streamed buffer."""
        if page < 1 or page > self.site_max_page:
            raise PageOutOfRangeError(page, self.site_max_page)

        path, params = build_report_request(
            account_slug,
            Breakdown.SITE,
            start_date,
            end_date,
            conversion_rule_id,
            include_multi_conversions,
        )
        buffer, dropped, capped = await self._stream_rows(path, params, Breakdown.SITE)

        start = (page - 1) * self.site_page_size
        rows = buffer[start : start + self.site_page_size]
        logger.info(
            f"Site breakdown page {page}: {len(rows)} of {len(buffer)} buffered rows",
            extra={"account_id": account_slug, "breakdown": Breakdown.SITE.value},
        )
        return SiteBreakdownPage(
            page=page,
            page_size=self.site_page_size,
            rows=rows,
            buffered_rows=len(buffer),
            dropped_rows=dropped,
            capped=capped,
        )

    async def _stream_rows(
        self, path: str, params: Dict[str, Any], breakdown: Breakdown
    ) -> Tuple[List[ReportRow], int, bool]:
        buffer: List[ReportRow] = []
        dropped = 0
        capped = False
        async with self.client.stream(path, params) as resp:
            reader = _StreamReader(resp)
            try:
                async for raw in ijson.items(reader, "results.item", use_float=True):
                    row = normalize_row(raw, breakdown)
                    if row is None:
                        dropped += 1
                        continue
                    buffer.append(row)
                    if len(buffer) >= self.site_row_cap:
                        capped = True
                        break
            except ijson.JSONError as e:
                logger.error(
                    f"Malformed streamed report body: {e}",
                    extra={"endpoint": path, "breakdown": breakdown.value},
                )
                raise RealizeAPIError(f"Malformed JSON in streamed response from {path}", 200) from e
            finally:
                await reader.aclose()
        return buffer, dropped, capped

    # ── Sub-Account Spend ──

    async def fetch_sub_account_breakdown(
        self, network_account_slug: str, start_date: DateLike, end_date: DateLike
    ) -> List[SubAccountReportRow]:
        """Spend per sub-account of a network, highest spend first."""
        breakdown = Breakdown.CONTENT_PROVIDER
        path = f"{network_account_slug}/reports/{SUMMARY_ENDPOINT}/dimensions/{breakdown.value}"
        params = {
            "start_date": _date_param(start_date),
            "end_date": _date_param(end_date),
            "orderBy": "-spent",
        }
        payload = await self.client.get_json(path, params)
        results = payload.get("results") if isinstance(payload, dict) else None
        return [
            SubAccountReportRow.model_validate(r)
            for r in results or []
            if isinstance(r, dict) and r.get("content_provider") is not None
        ]
