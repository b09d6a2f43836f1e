"""Realize Reporter — Service Wiring.

Process-wide service instances handed to the routes through FastAPI
``Depends``. Tests swap them with ``app.dependency_overrides``.
"""

from functools import lru_cache

from realize.analyzer.pipeline import ReportPipeline
from realize.connectors.backstage.auth import TokenProvider
from realize.connectors.backstage.client import BackstageClient
from realize.connectors.backstage.endpoints import BackstageEndpoints
from realize.connectors.backstage.reports import ReportFetcher
from realize.database import engine
from realize.storage.preferences import KeyValueStore, PrimaryRuleStore, RecentAccounts


@lru_cache
def get_store() -> KeyValueStore:
    return KeyValueStore(engine)


@lru_cache
def get_token_provider() -> TokenProvider:
    return TokenProvider(get_store())


@lru_cache
def get_client() -> BackstageClient:
    return BackstageClient(get_token_provider())


@lru_cache
def get_endpoints() -> BackstageEndpoints:
    return BackstageEndpoints(get_client())


@lru_cache
def get_fetcher() -> ReportFetcher:
    return ReportFetcher(get_client())


@lru_cache
def get_rule_store() -> PrimaryRuleStore:
    return PrimaryRuleStore(get_store())


@lru_cache
def get_recent_accounts() -> RecentAccounts:
    return RecentAccounts(get_store())


@lru_cache
def get_pipeline() -> ReportPipeline:
    return ReportPipeline(get_fetcher(), get_endpoints(), get_rule_store())


async def close_services() -> None:
    """Close the shared HTTP client if one was opened."""
    if get_client.cache_info().currsize:
        await get_client().close()
