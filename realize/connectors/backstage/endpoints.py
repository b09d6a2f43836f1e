"""Realize Reporter — Backstage Resource Endpoints.

Fetch functions for accounts, sub-accounts, campaigns and conversion rules.
Account lookups are served from a TTL cache; concurrent conversion-rule
requests for the same account share one in-flight call.
"""

from typing import List, Optional

from realize.config import settings
from realize.connectors.backstage.client import BackstageClient
from realize.connectors.backstage.transformer import (
    extract_results,
    transform_accounts,
    transform_campaigns,
    transform_rules,
)
from realize.core.cache import InflightRequests, TTLCache
from realize.core.errors import RealizeAPIError
from realize.core.logging import get_logger
from realize.models.account_models import Account, AccountSearchResult
from realize.models.campaign_models import CampaignSetting
from realize.models.rule_models import ConversionRule

logger = get_logger("backstage.endpoints")

NETWORK_ADVERTISERS_PATH = "taboola-network/advertisers"
MIN_SEARCH_LENGTH = 2
SEARCH_PAGE_SIZE = 10
NETWORK_PAGE_SIZE = 100


class BackstageEndpoints:
    """Typed access to the non-report Backstage resources."""

    def __init__(
        self,
        client: BackstageClient,
        account_cache: Optional[TTLCache[AccountSearchResult]] = None,
        sub_account_cache: Optional[TTLCache[List[Account]]] = None,
        rule_requests: Optional[InflightRequests[List[ConversionRule]]] = None,
    ):
        self.client = client
        self.account_cache = (
            account_cache
            if account_cache is not None
            else TTLCache(settings.account_cache_ttl_seconds)
        )
        self.sub_account_cache = (
            sub_account_cache
            if sub_account_cache is not None
            else TTLCache(settings.account_cache_ttl_seconds)
        )
        self.rule_requests = rule_requests if rule_requests is not None else InflightRequests()

    # ── Accounts ──

    async def search_accounts(self, search_text: str) -> AccountSearchResult:
        """Search advertisers by name or id; terms under 2 chars return nothing."""
        term = search_text.strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return AccountSearchResult()

        cached = self.account_cache.get(term)
        if cached is not None:
            logger.info(f'Account search cache hit for "{term}"')
            return cached

        params = {"search_text": term, "page_size": SEARCH_PAGE_SIZE, "page": 1}
        try:
            payload = await self.client.get_json(NETWORK_ADVERTISERS_PATH, params)
        except RealizeAPIError as e:
            if e.status_code in (400, 404):
                return AccountSearchResult()
            raise

        accounts = transform_accounts(extract_results(payload) or [])
        metadata = (payload.get("metadata") if isinstance(payload, dict) else None) or {}
        result = AccountSearchResult(
            accounts=accounts,
            total=metadata.get("total", len(accounts)),
            count=metadata.get("count", len(accounts)),
        )
        self.account_cache.set(term, result)
        logger.info(
            f'Found {result.total} accounts for "{term}"', extra={"row_count": len(accounts)}
        )
        return result

    async def get_sub_accounts_for_network(self, network_account_id: str) -> List[Account]:
        """Accounts whose parent network is ``network_account_id``."""
        params = {
            "network_account_id": network_account_id,
            "page_size": NETWORK_PAGE_SIZE,
            "page": 1,
        }
        try:
            payload = await self.client.get_json(NETWORK_ADVERTISERS_PATH, params)
        except RealizeAPIError as e:
            if e.status_code in (400, 404):
                return []
            raise
        return transform_accounts(extract_results(payload) or [])

    async def fetch_advertisers(self, account_id: str) -> List[Account]:
        """Advertisers listed under an account (cached per account)."""
        account_id = str(account_id)
        cached = self.sub_account_cache.get(account_id)
        if cached is not None:
            return cached

        payload = await self.client.get_json(f"{account_id}/advertisers")
        if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
            raise RealizeAPIError(
                f"API did not return a results array for {account_id}/advertisers", 200
            )
        accounts = transform_accounts(payload["results"])
        self.sub_account_cache.set(account_id, accounts)
        return accounts

    # ── Campaigns ──

    async def fetch_campaigns(self, account_slug: str) -> List[CampaignSetting]:
        if not account_slug:
            raise ValueError("Account ID slug is required to fetch campaigns")
        payload = await self.client.get_json(f"{account_slug}/campaigns/")
        items = extract_results(payload)
        if items is None:
            logger.warning(
                "Unexpected campaign response structure", extra={"account_id": account_slug}
            )
            return []
        campaigns = transform_campaigns(items)
        logger.info(
            f"Fetched {len(campaigns)} campaigns",
            extra={"account_id": account_slug, "row_count": len(campaigns)},
        )
        return campaigns

    # ── Conversion Rules ──

    async def fetch_conversion_rules(self, account_slug: str) -> List[ConversionRule]:
        """All conversion rules of an account; a 404 means the account has none."""
        return await self.rule_requests.run(
            account_slug, lambda: self._load_conversion_rules(account_slug)
        )

    async def _load_conversion_rules(self, account_slug: str) -> List[ConversionRule]:
        logger.info("Fetching conversion rules", extra={"account_id": account_slug})
        try:
            payload = await self.client.get_json(
                f"{account_slug}/universal_pixel/conversion_rule/data"
            )
        except RealizeAPIError as e:
            if e.status_code == 404:
                logger.info("No conversion rules (404)", extra={"account_id": account_slug})
                return []
            raise

        items = extract_results(payload)
        if items is None:
            logger.error(
                "Unexpected conversion rule response", extra={"account_id": account_slug}
            )
            return []
        rules = transform_rules(items)
        logger.info(
            f"Processed {len(rules)} conversion rules",
            extra={"account_id": account_slug, "row_count": len(rules)},
        )
        return rules
