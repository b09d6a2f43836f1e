"""Realize Reporter — Conversion Rule Models."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Rule categories that make sense to attribute spend against
RELEVANT_CATEGORIES = ("MAKE_PURCHASE", "LEAD", "APP_INSTALL")


class ConversionRule(BaseModel):
    """A server-side tracked goal event, plus the locally entered CPA goal.

    ``cpaGoal`` is the only field mutated locally; it is persisted together
    with the rule when the rule is pinned as an account's primary rule.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    display_name: str
    category: Optional[str] = None
    status: Optional[str] = None
    rule_type: Optional[str] = None
    event_name: Optional[str] = None
    last_received: Optional[str] = None
    total_received: Optional[int] = None
    include_in_total_conversions: Optional[bool] = None
    advertiser_id: Optional[Union[str, int]] = None
    cpa_goal: Optional[float] = Field(default=None, alias="cpaGoal")

    @property
    def is_selectable(self) -> bool:
        return (
            self.status == "ACTIVE"
            and self.category in RELEVANT_CATEGORIES
            and self.include_in_total_conversions is True
        )

    def belongs_to(self, account_slug: str) -> bool:
        """False when the rule is owned by another (sub-)account."""
        if self.advertiser_id is None or self.advertiser_id == "":
            return True
        return str(self.advertiser_id) == str(account_slug)

    def with_cpa_goal(self, cpa_goal: Optional[float]) -> "ConversionRule":
        return self.model_copy(update={"cpa_goal": cpa_goal})


def parse_rule(item: Dict[str, Any]) -> ConversionRule:
    """Flatten one ``{last_received, total_received, unip_conversion_rule}`` wrapper."""
    rule = item.get("unip_conversion_rule") or {}
    return ConversionRule(
        id=str(rule.get("id")),
        display_name=rule.get("display_name") or "",
        category=rule.get("category"),
        status=rule.get("status"),
        rule_type=rule.get("type"),
        event_name=rule.get("event_name"),
        last_received=item.get("last_received"),
        total_received=item.get("total_received"),
        include_in_total_conversions=rule.get("include_in_total_conversions"),
        advertiser_id=rule.get("advertiser_id"),
    )


def selectable_rules(rules: List[ConversionRule]) -> List[ConversionRule]:
    """Rules an operator may pick: active, relevant category, counted in totals."""
    return [r for r in rules if r.is_selectable]
