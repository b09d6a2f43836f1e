"""Realize Reporter — Account API Routes."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from realize.api.errors import http_error
from realize.config import settings
from realize.connectors.backstage.endpoints import BackstageEndpoints
from realize.connectors.backstage.reports import ReportFetcher
from realize.core.errors import RealizeError
from realize.core.logging import get_logger
from realize.dependencies import get_endpoints, get_fetcher, get_recent_accounts
from realize.models.account_models import Account
from realize.models.campaign_models import campaign_gui_url, running_campaigns
from realize.storage.preferences import RecentAccounts

logger = get_logger("api.accounts")

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.get("/search")
async def search_accounts(
    q: str = Query("", description="Account name or id (2+ characters)"),
    endpoints: BackstageEndpoints = Depends(get_endpoints),
):
    """Search advertisers and networks by name or id."""
    try:
        result = await endpoints.search_accounts(q)
    except RealizeError as e:
        raise http_error(e, "Account search")
    return {
        "status": "success",
        "total": result.total,
        "count": result.count,
        "accounts": [a.model_dump() for a in result.accounts],
    }


@router.get("/recent")
async def list_recent_accounts(recents: RecentAccounts = Depends(get_recent_accounts)):
    """Recently opened accounts, newest first."""
    return {"status": "success", "accounts": [a.model_dump() for a in recents.list()]}


@router.post("/recent")
async def add_recent_account(
    account: Account, recents: RecentAccounts = Depends(get_recent_accounts)
):
    """Record an opened account at the top of the recents list."""
    updated = recents.add(account)
    return {"status": "success", "accounts": [a.model_dump() for a in updated]}


@router.get("/{slug}/sub-accounts")
async def list_sub_accounts(
    slug: str, endpoints: BackstageEndpoints = Depends(get_endpoints)
):
    """Accounts that belong to the network ``slug``."""
    try:
        accounts = await endpoints.get_sub_accounts_for_network(slug)
    except RealizeError as e:
        raise http_error(e, "Sub-account lookup")
    return {"status": "success", "accounts": [a.model_dump() for a in accounts]}


@router.get("/{slug}/sub-account-breakdown")
async def sub_account_breakdown(
    slug: str,
    start_date: date = Query(..., description="YYYY-MM-DD"),
    end_date: date = Query(..., description="YYYY-MM-DD"),
    fetcher: ReportFetcher = Depends(get_fetcher),
):
    """Spend per sub-account of a network, highest first."""
    if start_date > end_date:
        raise HTTPException(
            status_code=400, detail="Invalid Date Range: Start date cannot be after end date."
        )
    try:
        rows = await fetcher.fetch_sub_account_breakdown(slug, start_date, end_date)
    except RealizeError as e:
        raise http_error(e, "Sub-account breakdown")
    return {
        "status": "success",
        "count": len(rows),
        "sub_accounts": [
            {**row.model_dump(), "account": row.to_account(slug).model_dump()} for row in rows
        ],
    }


@router.get("/{slug}/campaigns")
async def list_campaigns(
    slug: str,
    running_only: bool = Query(True, description="Only RUNNING or active campaigns"),
    account_numeric_id: str | None = Query(None, description="Numeric id for GUI links"),
    endpoints: BackstageEndpoints = Depends(get_endpoints),
):
    """Campaigns of an account, running ones by default."""
    try:
        campaigns = await endpoints.fetch_campaigns(slug)
    except RealizeError as e:
        raise http_error(e, "Campaign fetch")
    if running_only:
        campaigns = running_campaigns(campaigns)

    items = []
    for campaign in campaigns:
        item = campaign.model_dump()
        item["is_running"] = campaign.is_running
        if account_numeric_id:
            item["gui_url"] = campaign_gui_url(
                settings.realize_gui_url, account_numeric_id, campaign.id
            )
        items.append(item)
    return {"status": "success", "count": len(items), "campaigns": items}
