"""Realize Reporter — Row/Table Projector.

Turns normalized report rows plus a metric resolution into a display table:
the column schema for the breakdown, one value map per row (with CTR
computed and CPA classified against the goal) and the aggregate totals.
The same ProjectedTable feeds the Markdown renderer and the XLSX writer.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from realize.connectors.backstage.transformer import is_number
from realize.core.breakdowns import Breakdown
from realize.core.metric_registry import CLICKS_METRIC_ID, IMPRESSIONS_METRIC_ID
from realize.analyzer.reconciler import MetricResolution
from realize.models.report_models import DateRow, ReportRow

# A CPA above goal × this factor is flagged as bad
CPA_BAD_FACTOR = 1.5

_NON_NUMERIC = re.compile(r"[^0-9.\-]+")


class Column(BaseModel):
    """One output column. ``kind`` drives number formatting downstream."""

    key: str
    header: str
    kind: str = "text"  # text | currency | count | percent
    width: int = 15


class ProjectedRow(BaseModel):
    values: Dict[str, Any] = {}
    cpa_flag: Optional[str] = None  # "good" | "bad"


class Totals(BaseModel):
    spent: float = 0.0
    conversions: Optional[float] = None
    active_count: Optional[int] = None


class ProjectedTable(BaseModel):
    breakdown: Breakdown
    columns: List[Column]
    rows: List[ProjectedRow] = []
    totals: Totals = Totals()
    conversion_caption: Optional[str] = None
    cpa_caption: Optional[str] = None

    @property
    def column_keys(self) -> List[str]:
        return [c.key for c in self.columns]


# ── Columns ──


def _supports_clicks(breakdown: Breakdown) -> bool:
    return breakdown.is_date or breakdown in (Breakdown.ITEM, Breakdown.CAMPAIGN)


def build_columns(
    breakdown: Breakdown,
    include_clicks: bool = False,
    include_ctr: bool = False,
    include_url: bool = False,
    include_thumbnail: bool = False,
    conversion_caption: Optional[str] = None,
    cpa_caption: Optional[str] = None,
) -> List[Column]:
    """Column schema for a breakdown, in display order."""
    if breakdown is Breakdown.ITEM:
        columns = [
            Column(key="item", header="Item ID", width=15),
            Column(key="item_name", header="Item Name", width=40),
        ]
    elif breakdown is Breakdown.CAMPAIGN:
        columns = [
            Column(key="campaign", header="Campaign ID", width=15),
            Column(key="campaign_name", header="Campaign Name", width=40),
        ]
    elif breakdown.is_date:
        columns = [Column(key="date", header="Date", width=12)]
    else:
        columns = [Column(key=breakdown.dimension_key, header=breakdown.pretty, width=30)]

    columns.append(Column(key="spent", header="Spent", kind="currency", width=12))

    if _supports_clicks(breakdown):
        if include_clicks:
            columns.append(Column(key="clicks", header="Clicks", kind="count", width=10))
        if include_ctr:
            columns.append(Column(key="ctr", header="CTR", kind="percent", width=10))
    if breakdown is Breakdown.ITEM:
        if include_url:
            columns.append(Column(key="url", header="URL", width=50))
        if include_thumbnail:
            columns.append(Column(key="thumbnail_url", header="Thumbnail URL", width=50))

    if conversion_caption:
        columns.append(
            Column(key="conversions", header=conversion_caption, kind="count", width=20)
        )
    if cpa_caption:
        columns.append(Column(key="cpa", header=cpa_caption, kind="currency", width=15))
    return columns


# ── Values ──


def to_number(value: Any) -> Optional[float]:
    """Numbers pass through; strings are stripped of currency symbols and parsed."""
    if is_number(value):
        return value
    if isinstance(value, str):
        cleaned = _NON_NUMERIC.sub("", value)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def metric_value(row: ReportRow, metric_id: Optional[str]) -> Optional[float]:
    """Dynamic metric first, then the row's own field; None when absent."""
    if not metric_id:
        return None
    raw = row.dynamic_metrics.get(metric_id)
    if raw is None:
        raw = row.get(metric_id)
    return to_number(raw)


def compute_ctr(clicks: Optional[float], impressions: Optional[float]) -> Optional[float]:
    if clicks is None or impressions is None or impressions <= 0:
        return None
    return clicks / impressions


def classify_cpa(
    cpa: Optional[float], conversions: Optional[float], cpa_goal: Optional[float]
) -> Optional[str]:
    """Flag a CPA against the goal: "good" below it, "bad" above 1.5× it."""
    if cpa is None or cpa_goal is None or not is_number(cpa_goal):
        return None
    if conversions is None or conversions <= 0:
        return None
    if cpa < cpa_goal:
        return "good"
    if cpa > cpa_goal * CPA_BAD_FACTOR:
        return "bad"
    return None


def _dimension_value(row: ReportRow, breakdown: Breakdown) -> Any:
    if breakdown.is_date:
        return row.day if isinstance(row, DateRow) else row.get("date")
    return row.get(breakdown.dimension_key)


def project_row(
    row: ReportRow,
    columns: Sequence[Column],
    breakdown: Breakdown,
    conversion_metric_id: Optional[str] = None,
    cpa_metric_id: Optional[str] = None,
    cpa_goal: Optional[float] = None,
) -> ProjectedRow:
    conversions = metric_value(row, conversion_metric_id)
    cpa = metric_value(row, cpa_metric_id)
    clicks = metric_value(row, CLICKS_METRIC_ID)

    values: Dict[str, Any] = {}
    for column in columns:
        key = column.key
        if key == "spent":
            values[key] = row.spent
        elif key == "clicks":
            values[key] = clicks
        elif key == "ctr":
            values[key] = compute_ctr(clicks, metric_value(row, IMPRESSIONS_METRIC_ID))
        elif key == "conversions":
            values[key] = conversions
        elif key == "cpa":
            values[key] = cpa
        elif key == "date" or key == breakdown.dimension_key:
            values[key] = _dimension_value(row, breakdown)
        else:
            values[key] = row.get(key)

    return ProjectedRow(values=values, cpa_flag=classify_cpa(cpa, conversions, cpa_goal))


# ── Totals ──


def compute_totals(
    rows: Sequence[ReportRow],
    breakdown: Breakdown,
    conversion_metric_id: Optional[str] = None,
) -> Totals:
    """Aggregate spend, conversions and (for entity breakdowns) the active count."""
    spent = sum(r.spent for r in rows)
    conversions = None
    if conversion_metric_id:
        conversions = sum(metric_value(r, conversion_metric_id) or 0 for r in rows)
    active = None
    if breakdown.counts_active:
        active = sum(1 for r in rows if r.spent > 0)
    return Totals(spent=spent, conversions=conversions, active_count=active)


def project_table(
    rows: Sequence[ReportRow],
    breakdown: Breakdown,
    resolution: Optional[MetricResolution] = None,
    cpa_goal: Optional[float] = None,
    include_clicks: bool = False,
    include_ctr: bool = False,
    include_url: bool = False,
    include_thumbnail: bool = False,
) -> ProjectedTable:
    """Project every row of a report into the display table."""
    conversion = resolution.conversion if resolution else None
    cpa = resolution.cpa if resolution else None
    conversion_id = conversion.metric_id if conversion else None
    cpa_id = cpa.metric_id if cpa else None

    columns = build_columns(
        breakdown,
        include_clicks=include_clicks,
        include_ctr=include_ctr,
        include_url=include_url,
        include_thumbnail=include_thumbnail,
        conversion_caption=conversion.caption if conversion else None,
        cpa_caption=cpa.caption if cpa else None,
    )
    projected = [
        project_row(row, columns, breakdown, conversion_id, cpa_id, cpa_goal) for row in rows
    ]
    return ProjectedTable(
        breakdown=breakdown,
        columns=columns,
        rows=projected,
        totals=compute_totals(rows, breakdown, conversion_id),
        conversion_caption=conversion.caption if conversion else None,
        cpa_caption=cpa.caption if cpa else None,
    )
