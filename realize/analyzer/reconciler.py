"""Realize Reporter — Metric Reconciler.

Resolves which metric column holds a conversion rule's conversion count and
which holds its CPA.

Dynamic captions are searched first: the API names rule metrics
"<rule display name>: Conversions (Clicks)" and "<rule>: CPA (Clicks)".
When a caption match is missing (some endpoints omit the metadata), the first
row is probed for well-known flat fields in priority order. Whatever stays
unresolved yields a warning naming the rule; the report still renders.
"""

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from realize.connectors.backstage.transformer import is_number
from realize.core.logging import get_logger
from realize.core.metric_registry import (
    CONVERSION_CAPTION_MARKER,
    CONVERSION_FALLBACK_FIELDS,
    CPA_CAPTION_MARKER,
    CPA_FALLBACK_FIELDS,
    caption_for,
)
from realize.models.report_models import ReportRow
from realize.models.rule_models import ConversionRule

logger = get_logger("analyzer.reconciler")


class ResolvedMetric(BaseModel):
    metric_id: str
    caption: str
    source: str  # "dynamic" | "fallback"


class MetricResolution(BaseModel):
    """Outcome of reconciling one rule against one report."""

    rule_name: str
    conversion: Optional[ResolvedMetric] = None
    cpa: Optional[ResolvedMetric] = None
    conversion_warning: Optional[str] = None
    cpa_warning: Optional[str] = None

    @property
    def warnings(self) -> List[str]:
        return [w for w in (self.conversion_warning, self.cpa_warning) if w]


def match_caption(
    captions: Dict[str, str], display_name: str, marker: str
) -> Optional[ResolvedMetric]:
    """First caption containing both the rule name and ``marker`` (case-insensitive)."""
    name = display_name.lower()
    if not name:
        return None
    for metric_id, caption in captions.items():
        lowered = (caption or "").lower()
        if name in lowered and marker in lowered:
            return ResolvedMetric(metric_id=metric_id, caption=caption, source="dynamic")
    return None


def match_fallback(
    rows: Sequence[ReportRow], fields: Sequence[str]
) -> Optional[ResolvedMetric]:
    """First well-known field holding a number in the first row."""
    if not rows:
        return None
    first = rows[0]
    for field in fields:
        if is_number(first.get(field)):
            return ResolvedMetric(metric_id=field, caption=caption_for(field), source="fallback")
    return None


def resolve_metrics(
    rule: ConversionRule,
    dynamic_field_captions: Dict[str, str],
    rows: Sequence[ReportRow],
) -> MetricResolution:
    """Resolve the conversion and CPA metric ids for ``rule``."""
    conversion = cpa = None
    if dynamic_field_captions:
        conversion = match_caption(
            dynamic_field_captions, rule.display_name, CONVERSION_CAPTION_MARKER
        )
        cpa = match_caption(dynamic_field_captions, rule.display_name, CPA_CAPTION_MARKER)

    if conversion is None:
        conversion = match_fallback(rows, CONVERSION_FALLBACK_FIELDS)
    if cpa is None:
        cpa = match_fallback(rows, CPA_FALLBACK_FIELDS)

    resolution = MetricResolution(rule_name=rule.display_name, conversion=conversion, cpa=cpa)
    if conversion is None:
        resolution.conversion_warning = (
            f'⚠️ No "Conversions (Clicks)" metric found for "{rule.display_name}". '
            "Please check API mapping."
        )
    if cpa is None:
        resolution.cpa_warning = (
            f'⚠️ No "CPA" metric found for "{rule.display_name}". Please check API mapping.'
        )

    logger.info(
        f"Metric mapping for rule {rule.id}: conversion="
        f"{conversion.metric_id if conversion else None}, cpa={cpa.metric_id if cpa else None}"
    )
    return resolution
