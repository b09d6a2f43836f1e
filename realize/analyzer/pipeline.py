"""Realize Reporter — Report Pipeline Orchestrator.

Runs the full data flow for one report request:
  validate → persist CPA goal → fetch → reconcile metrics → project → render / export

Input validation happens before any network call. The site breakdown is
served from the capped streaming fetch, one page at a time.
"""

import re
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from realize.analyzer.projector import ProjectedTable, project_table
from realize.analyzer.reconciler import MetricResolution, resolve_metrics
from realize.connectors.backstage.endpoints import BackstageEndpoints
from realize.connectors.backstage.reports import ReportFetcher
from realize.core.breakdowns import EXPORT_BREAKDOWNS, Breakdown
from realize.core.errors import PageOutOfRangeError, ReportValidationError
from realize.core.logging import get_logger
from realize.models.account_models import Account
from realize.models.report_models import ReportResult
from realize.models.rule_models import ConversionRule, selectable_rules
from realize.reporting.markdown import build_markdown
from realize.reporting.xlsx_exporter import write_workbook
from realize.storage.preferences import PrimaryRuleStore

logger = get_logger("analyzer.pipeline")

CPA_GOAL_MIN = 10
CPA_GOAL_MAX = 1000
_DIGITS = re.compile(r"^\d+$")


# ── Request / Result Models ──


class ReportRequest(BaseModel):
    account: Account
    breakdown: Breakdown = Breakdown.DAY
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    include_conversion_data: bool = False
    conversion_rule_id: Optional[str] = None
    cpa_goal: Optional[str] = None
    """Raw CPA goal input. Omitted: use the stored goal. Empty string: clear it."""
    include_clicks: bool = False
    include_ctr: bool = False
    include_url: bool = False
    include_thumbnail: bool = False
    page: int = 1
    """Page of the site breakdown to render."""


class ReportOutput(BaseModel):
    markdown: str
    gui_link: str
    table: ProjectedTable
    resolution: Optional[MetricResolution] = None
    warnings: List[str] = []
    truncated: bool = False
    dropped_rows: int = 0
    page: Optional[int] = None


class ExportOutput(BaseModel):
    path: str
    sheets: List[str]
    warnings: List[str] = []


# ── Validation ──


def validate_report_inputs(
    start_date: Optional[date],
    end_date: Optional[date],
    cpa_goal_input: Optional[str],
    today: date,
) -> Optional[float]:
    """Reject bad dates or CPA goal; returns the parsed goal (None if blank)."""
    if start_date is None or end_date is None:
        raise ReportValidationError("Missing Dates", "Please select start and end dates.")
    if end_date > today - timedelta(days=1):
        raise ReportValidationError(
            "Invalid End Date", "End date cannot be later than yesterday."
        )
    if start_date > end_date:
        raise ReportValidationError(
            "Invalid Date Range", "Start date cannot be after end date."
        )

    raw = (cpa_goal_input or "").strip()
    if not raw:
        return None
    if not _DIGITS.match(raw) or not CPA_GOAL_MIN <= int(raw) < CPA_GOAL_MAX:
        raise ReportValidationError(
            "Invalid CPA Goal",
            f"CPA Goal must be a positive integer between {CPA_GOAL_MIN} and {CPA_GOAL_MAX}",
        )
    return float(raw)


# ── Pipeline ──


class ReportPipeline:
    """Orchestrates fetching, reconciling, projecting and rendering reports."""

    def __init__(
        self,
        fetcher: ReportFetcher,
        endpoints: BackstageEndpoints,
        rule_store: PrimaryRuleStore,
        today: Callable[[], date] = date.today,
    ):
        self.fetcher = fetcher
        self.endpoints = endpoints
        self.rule_store = rule_store
        self.today = today

    async def _resolve_rule(self, request: ReportRequest) -> Optional[ConversionRule]:
        if not request.include_conversion_data or not request.conversion_rule_id:
            return None
        slug = request.account.account_id
        rules = selectable_rules(await self.endpoints.fetch_conversion_rules(slug))
        rule = next((r for r in rules if r.id == str(request.conversion_rule_id)), None)
        if rule is None:
            raise ReportValidationError(
                "Invalid Rule",
                "This rule is not valid for the current account. Please select a valid rule.",
            )
        stored = self.rule_store.load(slug)
        if stored and stored.id == rule.id:
            rule = rule.with_cpa_goal(stored.cpa_goal)
        return rule

    def _apply_cpa_goal(
        self, request: ReportRequest, rule: Optional[ConversionRule], goal: Optional[float]
    ) -> Optional[ConversionRule]:
        """Input goal wins over the stored one; a changed goal is persisted."""
        if rule is None:
            return None
        if request.cpa_goal is None:
            return rule
        if rule.cpa_goal != goal:
            rule = rule.with_cpa_goal(goal)
            self.rule_store.save(request.account.account_id, rule)
        return rule

    async def _fetch(
        self, request: ReportRequest, breakdown: Breakdown, rule: Optional[ConversionRule], paged: bool
    ) -> ReportResult:
        slug = request.account.account_id
        rule_id = rule.id if rule else None
        include_multi = rule is not None
        if paged and breakdown is Breakdown.SITE:
            page = await self.fetcher.fetch_site_breakdown_page(
                slug, request.start_date, request.end_date, rule_id, include_multi, request.page
            )
            return ReportResult(
                breakdown=breakdown,
                rows=page.rows,
                total_rows=page.buffered_rows,
                dropped_rows=page.dropped_rows,
                truncated=page.capped,
            )
        return await self.fetcher.fetch_report(
            slug, breakdown, request.start_date, request.end_date, rule_id, include_multi
        )

    def _project(
        self,
        request: ReportRequest,
        result: ReportResult,
        rule: Optional[ConversionRule],
    ) -> tuple[ProjectedTable, Optional[MetricResolution]]:
        resolution = None
        if rule is not None:
            resolution = resolve_metrics(rule, result.dynamic_field_captions, result.rows)
        table = project_table(
            result.rows,
            result.breakdown,
            resolution,
            cpa_goal=rule.cpa_goal if rule else None,
            include_clicks=request.include_clicks,
            include_ctr=request.include_ctr,
            include_url=request.include_url,
            include_thumbnail=request.include_thumbnail,
        )
        return table, resolution

    async def _prepare(
        self, request: ReportRequest, paged: bool = False
    ) -> Optional[ConversionRule]:
        goal = validate_report_inputs(
            request.start_date, request.end_date, request.cpa_goal, self.today()
        )
        if paged and request.breakdown is Breakdown.SITE:
            max_page = self.fetcher.site_max_page
            if request.page < 1 or request.page > max_page:
                raise PageOutOfRangeError(request.page, max_page)
        rule = await self._resolve_rule(request)
        return self._apply_cpa_goal(request, rule, goal)

    async def run_report(self, request: ReportRequest) -> ReportOutput:
        """Fetch one report and render it as Markdown."""
        rule = await self._prepare(request, paged=True)
        account = request.account
        result = await self._fetch(request, request.breakdown, rule, paged=True)
        table, resolution = self._project(request, result, rule)

        warnings = list(resolution.warnings) if resolution else []
        notes = []
        page = None
        if request.breakdown is Breakdown.SITE:
            page = request.page
            notes.append(
                f"Page {page} of {self.fetcher.site_max_page} "
                f"({result.total_rows} top sites buffered)"
            )
        if result.truncated and request.breakdown is not Breakdown.SITE:
            notes.append(f"Showing the first {len(result.rows)} rows of a larger report.")

        start, end = request.start_date.isoformat(), request.end_date.isoformat()
        markdown, gui_link = build_markdown(
            account.name,
            account.id,
            table,
            start,
            end,
            currency=account.currency,
            conversion_rule_name=rule.display_name if rule else None,
            cpa_goal=rule.cpa_goal if rule else None,
            warnings=warnings,
            notes=notes,
        )
        logger.info(
            "Report ready",
            extra={
                "account_id": account.account_id,
                "breakdown": request.breakdown.value,
                "row_count": len(result.rows),
            },
        )
        return ReportOutput(
            markdown=markdown,
            gui_link=gui_link,
            table=table,
            resolution=resolution,
            warnings=warnings,
            truncated=result.truncated,
            dropped_rows=result.dropped_rows,
            page=page,
        )

    async def export_report(self, request: ReportRequest) -> ExportOutput:
        """Export the requested breakdown to a single-sheet workbook."""
        return await self._export(request, [request.breakdown], tag=request.breakdown.value)

    async def export_multi_breakdown(self, request: ReportRequest) -> ExportOutput:
        """Export every standard breakdown, one sheet each, in a single write."""
        return await self._export(request, EXPORT_BREAKDOWNS, tag="all")

    async def _export(
        self, request: ReportRequest, breakdowns: List[Breakdown], tag: str
    ) -> ExportOutput:
        rule = await self._prepare(request)
        tables: Dict[str, ProjectedTable] = {}
        warnings: List[str] = []
        for breakdown in breakdowns:
            result = await self._fetch(request, breakdown, rule, paged=False)
            table, resolution = self._project(request, result, rule)
            tables[breakdown.value] = table
            if resolution:
                warnings.extend(w for w in resolution.warnings if w not in warnings)

        path = write_workbook(
            tables,
            request.account.name,
            request.start_date.isoformat(),
            request.end_date.isoformat(),
            tag=tag,
        )
        return ExportOutput(path=str(path), sheets=list(tables), warnings=warnings)
