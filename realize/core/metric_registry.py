"""Realize Reporter — Standard Metric Registry.

Realize reports carry two kinds of metric columns: dynamic fields whose id
and caption depend on the conversion rule attached to the request, and flat
fields with fixed names. The flat ones registered here are what the
reconciler falls back to when dynamic metadata is absent, and what the
projector reads for clicks and impressions.
"""

from enum import Enum
from typing import Dict, List


class MetricType(str, Enum):
    """How a metric is categorised."""

    VOLUME = "volume"  # Raw counts: impressions, clicks
    COST = "cost"  # Monetary: spent
    CONVERSION = "conversion"  # Attributed actions
    DERIVED = "derived"  # Ratios reported by the API or computed here: cpa, ctr


class MetricDefinition:
    """Describes a single flat metric field."""

    def __init__(
        self, name: str, metric_type: MetricType, caption: str, unit: str = ""
    ):
        self.name = name
        self.metric_type = metric_type
        self.caption = caption
        self.unit = unit

    def __repr__(self) -> str:
        return f"<Metric {self.name} ({self.metric_type.value})>"


STANDARD_METRICS: Dict[str, MetricDefinition] = {
    # Volume
    "impressions": MetricDefinition(
        "impressions", MetricType.VOLUME, "Impressions", "count"
    ),
    "clicks": MetricDefinition("clicks", MetricType.VOLUME, "Clicks", "count"),
    # Cost
    "spent": MetricDefinition("spent", MetricType.COST, "Spent", "currency"),
    # Conversions
    "cpa_actions_num_from_clicks": MetricDefinition(
        "cpa_actions_num_from_clicks",
        MetricType.CONVERSION,
        "Conversions (Clicks)",
        "count",
    ),
    "cpa_actions_num": MetricDefinition(
        "cpa_actions_num", MetricType.CONVERSION, "Conversions", "count"
    ),
    "actions_num_from_clicks": MetricDefinition(
        "actions_num_from_clicks", MetricType.CONVERSION, "Actions (Clicks)", "count"
    ),
    "actions": MetricDefinition("actions", MetricType.CONVERSION, "Actions", "count"),
    # Derived
    "cpa_clicks": MetricDefinition(
        "cpa_clicks", MetricType.DERIVED, "CPA (Clicks)", "currency"
    ),
    "cpa": MetricDefinition("cpa", MetricType.DERIVED, "CPA", "currency"),
    "ctr": MetricDefinition("ctr", MetricType.DERIVED, "CTR", "%"),
}

# Priority order when no dynamic caption names the rule's metrics
CONVERSION_FALLBACK_FIELDS: List[str] = [
    "cpa_actions_num_from_clicks",
    "cpa_actions_num",
    "actions_num_from_clicks",
    "actions",
]
CPA_FALLBACK_FIELDS: List[str] = ["cpa_clicks", "cpa"]

# Caption suffixes the API appends to a rule's display name
CONVERSION_CAPTION_MARKER = ": conversions (clicks)"
CPA_CAPTION_MARKER = ": cpa (clicks)"

CLICKS_METRIC_ID = "clicks"
IMPRESSIONS_METRIC_ID = "impressions"


def get_metric(name: str) -> MetricDefinition | None:
    """Look up a metric by name."""
    return STANDARD_METRICS.get(name)


def caption_for(name: str) -> str:
    """Human caption of a flat metric, or the raw field name."""
    metric = get_metric(name)
    return metric.caption if metric else name
