"""Realize Reporter — Account Models."""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator


class Account(BaseModel):
    """Snapshot of an advertiser/network account from a search result.

    ``id`` is the numeric identifier used in GUI links; ``account_id`` is the
    string slug every API path needs.
    """

    model_config = ConfigDict(extra="ignore")

    id: Union[int, float]
    account_id: str
    name: str
    currency: Optional[str] = None
    type: Optional[str] = None  # NETWORK | PARTNER | ADVERTISER | ...
    is_network: bool = False
    network_account_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_network_flag(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            if data.get("account_id") is not None:
                data["account_id"] = str(data["account_id"])
            if data.get("network_account_id") is not None:
                data["network_account_id"] = str(data["network_account_id"])
            if "type" in data:
                data["is_network"] = data.get("type") == "NETWORK"
        return data


class AccountSearchResult(BaseModel):
    """One page of account search results."""

    accounts: List[Account] = []
    total: int = 0
    count: int = 0


class SubAccountReportRow(BaseModel):
    """Spend of one sub-account (content provider) of a network."""

    model_config = ConfigDict(extra="ignore")

    content_provider: str
    content_provider_id: str
    spent: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _stringify_id(cls, data):
        if isinstance(data, dict) and data.get("content_provider_id") is not None:
            data = {**data, "content_provider_id": str(data["content_provider_id"])}
        return data

    def to_account(self, network_account_id: str) -> Account:
        """Build the Account a report for this sub-account is requested with."""
        try:
            numeric_id: Union[int, float] = int(self.content_provider_id)
        except ValueError:
            numeric_id = 0
        return Account(
            id=numeric_id,
            name=self.content_provider,
            account_id=self.content_provider,
            network_account_id=network_account_id,
            type="ADVERTISER",
        )
