"""Realize Reporter — Report Breakdown Registry.

A breakdown is the dimension a report is grouped by. Each one knows its
display label, the report id used by the Realize GUI deep link, and the row
field that carries its dimension value.
"""

from enum import Enum
from typing import Optional


class Breakdown(str, Enum):
    """Report breakdowns understood by the campaign-summary endpoints."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    HOUR_OF_DAY = "by_hour_of_day"
    CAMPAIGN = "campaign_breakdown"
    SITE = "site_breakdown"
    COUNTRY = "country_breakdown"
    PLATFORM = "platform_breakdown"
    ITEM = "item_breakdown"
    CONTENT_PROVIDER = "content_provider_breakdown"

    @property
    def pretty(self) -> str:
        return PRETTY_DIMENSION[self]

    @property
    def link_id(self) -> str:
        return LINK_ID.get(self, "campaigns")

    @property
    def is_date(self) -> bool:
        return self in DATE_BREAKDOWNS

    @property
    def counts_active(self) -> bool:
        """Whether "rows with spend" is a meaningful count for this breakdown."""
        return self in ACTIVE_COUNT_BREAKDOWNS

    @property
    def dimension_key(self) -> str:
        """Row field holding the dimension value for generic breakdowns."""
        return self.value.replace("_breakdown", "").lower()


PRETTY_DIMENSION = {
    Breakdown.DAY: "Day",
    Breakdown.WEEK: "Week",
    Breakdown.MONTH: "Month",
    Breakdown.HOUR_OF_DAY: "Hour of Day",
    Breakdown.CAMPAIGN: "Campaign",
    Breakdown.SITE: "Site",
    Breakdown.COUNTRY: "Country",
    Breakdown.PLATFORM: "Platform",
    Breakdown.ITEM: "Ad",
    Breakdown.CONTENT_PROVIDER: "Sub-Account",
}

LINK_ID = {
    Breakdown.DAY: "day",
    Breakdown.WEEK: "week",
    Breakdown.MONTH: "month",
    Breakdown.HOUR_OF_DAY: "hour-of-day",
    Breakdown.CAMPAIGN: "campaigns",
    Breakdown.SITE: "sites",
    Breakdown.COUNTRY: "country",
    Breakdown.PLATFORM: "platform",
    Breakdown.ITEM: "creative",
}

DATE_BREAKDOWNS = frozenset({Breakdown.DAY, Breakdown.WEEK, Breakdown.MONTH})

ACTIVE_COUNT_BREAKDOWNS = frozenset(
    {Breakdown.CAMPAIGN, Breakdown.SITE, Breakdown.ITEM}
)

# Breakdowns offered by the report form, in display order
BREAKDOWN_OPTIONS = [
    Breakdown.DAY,
    Breakdown.WEEK,
    Breakdown.MONTH,
    Breakdown.CAMPAIGN,
    Breakdown.ITEM,
    Breakdown.SITE,
    Breakdown.COUNTRY,
    Breakdown.PLATFORM,
]

# Sheets written by the multi-breakdown export, in workbook order
EXPORT_BREAKDOWNS = [
    Breakdown.DAY,
    Breakdown.CAMPAIGN,
    Breakdown.ITEM,
    Breakdown.COUNTRY,
    Breakdown.PLATFORM,
]


def parse_breakdown(value: str) -> Optional[Breakdown]:
    """Look up a breakdown by its API value."""
    try:
        return Breakdown(value)
    except ValueError:
        return None
