"""Realize Reporter — Conversion Rule API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from realize.analyzer.rule_selection import RuleSelection
from realize.api.errors import http_error
from realize.connectors.backstage.endpoints import BackstageEndpoints
from realize.core.errors import RealizeError
from realize.core.logging import get_logger
from realize.dependencies import get_endpoints, get_rule_store
from realize.models.account_models import Account
from realize.models.rule_models import selectable_rules
from realize.storage.preferences import PrimaryRuleStore

logger = get_logger("api.rules")

router = APIRouter(prefix="/accounts", tags=["Conversion Rules"])


# ── Request Models ──


class SelectRuleRequest(BaseModel):
    """Request body for POST /accounts/{slug}/primary-rule."""

    rule_id: str
    account: Optional[Account] = None
    """Full account snapshot; needed to explain network/sub-account context."""


def _account_for(
    slug: str,
    account: Optional[Account],
    is_network: bool = False,
    network_account_id: Optional[str] = None,
) -> Account:
    if account is not None:
        return account
    return Account(
        id=0,
        account_id=slug,
        name=slug,
        is_network=is_network,
        network_account_id=network_account_id,
    )


async def _selection(
    endpoints: BackstageEndpoints, rule_store: PrimaryRuleStore, account: Account
) -> RuleSelection:
    slug = account.account_id
    rules = await endpoints.fetch_conversion_rules(slug)
    sub_accounts = []
    if account.is_network:
        sub_accounts = await endpoints.get_sub_accounts_for_network(slug)
    return RuleSelection(account, rule_store, rules, sub_accounts)


# ── Endpoints ──


@router.get("/{slug}/conversion-rules")
async def list_conversion_rules(
    slug: str,
    selectable_only: bool = Query(True, description="Only rules that can be reported on"),
    endpoints: BackstageEndpoints = Depends(get_endpoints),
):
    """Conversion rules of an account."""
    try:
        rules = await endpoints.fetch_conversion_rules(slug)
    except RealizeError as e:
        raise http_error(e, "Conversion rule fetch")
    if selectable_only:
        rules = selectable_rules(rules)
    return {
        "status": "success",
        "count": len(rules),
        "rules": [r.model_dump(by_alias=True) for r in rules],
    }


@router.get("/{slug}/primary-rule")
async def get_primary_rule(
    slug: str,
    is_network: bool = Query(False),
    network_account_id: Optional[str] = Query(None),
    endpoints: BackstageEndpoints = Depends(get_endpoints),
    rule_store: PrimaryRuleStore = Depends(get_rule_store),
):
    """The stored primary rule if still valid, else guidance on where rules live."""
    account = _account_for(slug, None, is_network, network_account_id)
    try:
        selection = await _selection(endpoints, rule_store, account)
    except RealizeError as e:
        raise http_error(e, "Primary rule lookup")
    return {"status": "success", **selection.load().model_dump(mode="json", by_alias=True)}


@router.post("/{slug}/primary-rule")
async def select_primary_rule(
    slug: str,
    request: SelectRuleRequest,
    endpoints: BackstageEndpoints = Depends(get_endpoints),
    rule_store: PrimaryRuleStore = Depends(get_rule_store),
):
    """Select a conversion rule as the account's primary rule."""
    account = _account_for(slug, request.account)
    try:
        selection = await _selection(endpoints, rule_store, account)
    except RealizeError as e:
        raise http_error(e, "Rule selection")
    selection.load()
    outcome = selection.select(request.rule_id)
    return {"status": "success", **outcome.model_dump(mode="json", by_alias=True)}


@router.delete("/{slug}/primary-rule")
async def clear_primary_rule(
    slug: str, rule_store: PrimaryRuleStore = Depends(get_rule_store)
):
    """Forget the account's primary rule."""
    account = _account_for(slug, None)
    outcome = RuleSelection(account, rule_store).clear()
    return {"status": "success", **outcome.model_dump(mode="json", by_alias=True)}
