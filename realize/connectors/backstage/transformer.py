"""Realize Reporter — Backstage Raw → Typed Transformer.

Converts raw report, account, campaign and rule payloads into the typed models.
Records that fail shape validation are dropped and counted, never raised.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from realize.core.breakdowns import Breakdown
from realize.core.logging import get_logger
from realize.models.account_models import Account
from realize.models.campaign_models import CampaignSetting
from realize.models.report_models import DynamicFieldMeta, ReportRow, row_model_for
from realize.models.rule_models import ConversionRule, parse_rule

logger = get_logger("backstage.transformer")


def is_number(value: Any) -> bool:
    """True for int/float values (bools excluded)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def extract_results(payload: Any) -> Optional[List[Any]]:
    """Return the list of records from ``{"results": [...]}`` or a bare array."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        return payload["results"]
    return None


def dynamic_field_captions(payload: Dict[str, Any]) -> Dict[str, str]:
    """Build the ``metric id → caption`` lookup from the response metadata."""
    metadata = payload.get("metadata") or {}
    fields = metadata.get("dynamic_fields") or []
    captions: Dict[str, str] = {}
    for raw in fields:
        if not isinstance(raw, dict) or raw.get("id") is None:
            continue
        meta = DynamicFieldMeta.model_validate({**raw, "id": str(raw["id"])})
        captions[meta.id] = meta.caption
    return captions


def normalize_row(raw: Any, breakdown: Breakdown) -> Optional[ReportRow]:
    """Flatten ``dynamic_fields`` into ``dynamic_metrics``; None for malformed rows."""
    if not isinstance(raw, dict) or not is_number(raw.get("spent")):
        return None

    dynamic_metrics: Dict[str, Any] = {}
    fields = raw.get("dynamic_fields")
    if isinstance(fields, list):
        for field in fields:
            if isinstance(field, dict) and field.get("id") is not None:
                dynamic_metrics[str(field["id"])] = field.get("value")

    data = {k: v for k, v in raw.items() if k != "dynamic_fields"}
    data["dynamic_metrics"] = {
        k: v for k, v in dynamic_metrics.items() if is_number(v) or isinstance(v, str)
    }
    try:
        return row_model_for(breakdown).model_validate(data)
    except ValidationError:
        return None


def normalize_rows(
    raw_rows: Iterable[Any], breakdown: Breakdown, max_rows: int
) -> Tuple[List[ReportRow], int, bool]:
    """Normalize rows, keeping at most ``max_rows`` valid ones.

    Returns ``(rows, dropped_count, truncated)``.
    """
    rows: List[ReportRow] = []
    dropped = 0
    truncated = False
    for raw in raw_rows:
        row = normalize_row(raw, breakdown)
        if row is None:
            dropped += 1
            continue
        if len(rows) >= max_rows:
            truncated = True
            break
        rows.append(row)
    if dropped:
        logger.warning(
            f"Dropped {dropped} malformed report rows",
            extra={"breakdown": breakdown.value, "row_count": dropped},
        )
    return rows, dropped, truncated


def transform_accounts(raw_accounts: Iterable[Dict[str, Any]]) -> List[Account]:
    """Validate account records; ``is_network`` is derived from ``type``.

    Records that fail validation are dropped and counted.
    """
    accounts: List[Account] = []
    dropped = 0
    for raw in raw_accounts:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        try:
            accounts.append(Account.model_validate({"type": None, **raw}))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.warning(f"Dropped {dropped} malformed account records", extra={"row_count": dropped})
    return accounts


def transform_campaigns(raw_campaigns: Iterable[Dict[str, Any]]) -> List[CampaignSetting]:
    campaigns: List[CampaignSetting] = []
    dropped = 0
    for raw in raw_campaigns:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        try:
            campaigns.append(CampaignSetting.from_api(raw))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.warning(f"Dropped {dropped} malformed campaign records", extra={"row_count": dropped})
    return campaigns


def transform_rules(items: Iterable[Dict[str, Any]]) -> List[ConversionRule]:
    return [parse_rule(item) for item in items if isinstance(item, dict)]
