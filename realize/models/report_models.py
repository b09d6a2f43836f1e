"""Realize Reporter — Report Row & Result Models.

Report rows are tagged by breakdown. Every variant shares ``spent``,
``currency`` and ``dynamic_metrics``; breakdown-specific fields are typed on
the variant, and any other field the API attaches is preserved as extra data
and readable through ``ReportRow.get``.
"""

from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from realize.core.breakdowns import Breakdown

MetricValue = Union[int, float, str]


class ReportRow(BaseModel):
    """Common base of every report row."""

    model_config = ConfigDict(extra="allow")

    spent: float
    currency: Optional[str] = None
    dynamic_metrics: Dict[str, MetricValue] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a typed or extra field by its API name."""
        if key in type(self).model_fields:
            value = getattr(self, key)
            return default if value is None else value
        return (self.model_extra or {}).get(key, default)

    def has(self, key: str) -> bool:
        return self.get(key) is not None


class DateRow(ReportRow):
    """Row of a day, week or month breakdown."""

    date: Optional[str] = None

    @property
    def day(self) -> Optional[str]:
        """The calendar date without the time part the API appends."""
        return self.date.split(" ")[0] if self.date else None


class CampaignRow(ReportRow):
    campaign: Optional[Union[int, str]] = None
    campaign_name: Optional[str] = None


class ItemRow(ReportRow):
    """Row of the ad (item) breakdown."""

    item: Optional[Union[int, str]] = None
    item_name: Optional[str] = None
    url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    campaign: Optional[Union[int, str]] = None
    campaign_name: Optional[str] = None


class DimensionRow(ReportRow):
    """Row of any breakdown keyed by a single dimension field (site, country, ...)."""


def row_model_for(breakdown: Breakdown) -> Type[ReportRow]:
    if breakdown.is_date:
        return DateRow
    if breakdown is Breakdown.CAMPAIGN:
        return CampaignRow
    if breakdown is Breakdown.ITEM:
        return ItemRow
    return DimensionRow


class DynamicFieldMeta(BaseModel):
    """Self-describing schema entry for a rule-dependent metric column."""

    model_config = ConfigDict(extra="ignore")

    id: str
    caption: str = ""
    format: Optional[str] = None
    data_type: Optional[str] = None


class ReportResult(BaseModel):
    """Normalized output of one report fetch."""

    breakdown: Breakdown
    rows: List[ReportRow] = []
    dynamic_field_captions: Dict[str, str] = {}
    total_rows: int = 0
    dropped_rows: int = 0
    truncated: bool = False


class SiteBreakdownPage(BaseModel):
    """One fixed-size page sliced from the capped site-breakdown buffer."""

    page: int
    page_size: int
    rows: List[ReportRow] = []
    buffered_rows: int = 0
    dropped_rows: int = 0
    capped: bool = False
