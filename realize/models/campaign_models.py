"""Realize Reporter — Campaign Models."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

INACTIVE_STATUSES = ("ENDED", "ARCHIVED")


class TargetingRule(BaseModel):
    """``{type, value}`` pair used by the targeting sections."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    value: Optional[Any] = None


class CampaignSetting(BaseModel):
    """Campaign configuration as returned by ``/campaigns/``.

    Only the fields read by the service are typed; everything else the API
    returns is kept as extra data.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    advertiser_id: Optional[str] = None
    name: str = ""
    branding_text: Optional[str] = None
    status: Optional[str] = None
    is_active: bool = False
    cpc: Optional[float] = None
    daily_cap: Optional[float] = None
    spending_limit: Optional[float] = None
    spending_limit_model: Optional[str] = None
    spent: Optional[float] = None
    cpa_goal: Optional[float] = None
    target_cpa: Optional[float] = None
    pricing_model: Optional[str] = None
    bid_type: Optional[str] = None
    bid_strategy: Optional[str] = None
    marketing_objective: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    country_targeting: Optional[TargetingRule] = None
    platform_targeting: Optional[TargetingRule] = None
    conversion_rules: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        if self.status == "RUNNING":
            return True
        return self.status not in INACTIVE_STATUSES and self.is_active

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CampaignSetting":
        data = dict(data)
        for key in ("id", "advertiser_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        return cls.model_validate(data)


def running_campaigns(campaigns: List[CampaignSetting]) -> List[CampaignSetting]:
    """Campaigns that are RUNNING, or active and not ended/archived."""
    return [c for c in campaigns if c.is_running]


def campaign_gui_url(gui_base_url: str, account_numeric_id: Union[int, str], campaign_id: str) -> str:
    return (
        f"{gui_base_url}/campaigns?locale=en&accountId={account_numeric_id}"
        f"&dimension=SPONSORED&reportEntityIds={campaign_id}"
        f"&reportEntityType=CAMPAIGN&reportId=campaign"
    )
