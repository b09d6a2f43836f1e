import asyncio

import httpx
import pytest

from conftest import RecordingHandler, json_response, make_client
from realize.connectors.backstage.endpoints import BackstageEndpoints
from realize.core.cache import TTLCache
from realize.core.errors import RealizeAPIError
from realize.models.campaign_models import running_campaigns
from realize.models.rule_models import selectable_rules


def _rule(rule_id, **overrides):
    rule = {
        "id": rule_id,
        "display_name": f"Rule {rule_id}",
        "category": "MAKE_PURCHASE",
        "status": "ACTIVE",
        "type": "EVENT_BASED",
        "include_in_total_conversions": True,
        "advertiser_id": "acme",
    }
    rule.update(overrides)
    return {"last_received": "2024-05-01", "total_received": 10, "unip_conversion_rule": rule}


# ── Accounts ──


def test_short_search_terms_make_no_request():
    handler = RecordingHandler(lambda request: json_response({"results": []}))
    endpoints = BackstageEndpoints(make_client(handler))

    result = asyncio.run(endpoints.search_accounts(" a "))

    assert result.accounts == []
    assert handler.requests == []


def test_search_results_are_cached_per_term():
    payload = {
        "results": [
            {"id": 1, "account_id": "acme", "name": "Acme", "type": "NETWORK", "currency": "USD"},
            {"id": 2, "account_id": 555, "name": "Acme UK", "type": "ADVERTISER"},
        ],
        "metadata": {"total": 2, "count": 2},
    }
    handler = RecordingHandler(lambda request: json_response(payload))
    endpoints = BackstageEndpoints(make_client(handler))

    async def run():
        first = await endpoints.search_accounts("acme")
        second = await endpoints.search_accounts(" acme ")
        return first, second

    first, second = asyncio.run(run())

    assert len(handler.requests) == 1
    params = handler.requests[0].url.params
    assert params["search_text"] == "acme"
    assert params["page_size"] == "10"
    assert first is second
    assert first.accounts[0].is_network is True
    assert first.accounts[1].account_id == "555"
    assert first.accounts[1].is_network is False


def test_search_cache_expires():
    now = [0.0]
    handler = RecordingHandler(lambda request: json_response({"results": []}))
    endpoints = BackstageEndpoints(
        make_client(handler), account_cache=TTLCache(60, clock=lambda: now[0])
    )

    asyncio.run(endpoints.search_accounts("acme"))
    now[0] = 61.0
    asyncio.run(endpoints.search_accounts("acme"))

    assert len(handler.requests) == 2


def test_empty_injected_caches_are_kept():
    cache = TTLCache(60)
    sub_cache = TTLCache(60)
    endpoints = BackstageEndpoints(
        make_client(lambda request: json_response({"results": []})),
        account_cache=cache,
        sub_account_cache=sub_cache,
    )
    assert endpoints.account_cache is cache
    assert endpoints.sub_account_cache is sub_cache


def test_accounts_without_id_are_dropped():
    payload = {
        "results": [
            {"id": 1, "account_id": "acme", "name": "Acme"},
            {"account_id": "ghost", "name": "No id"},
        ]
    }
    endpoints = BackstageEndpoints(make_client(lambda request: json_response(payload)))

    result = asyncio.run(endpoints.search_accounts("acme"))

    assert [a.account_id for a in result.accounts] == ["acme"]


@pytest.mark.parametrize("status", [400, 404])
def test_search_client_errors_mean_no_results(status):
    endpoints = BackstageEndpoints(
        make_client(lambda request: httpx.Response(status, text="nope"))
    )
    result = asyncio.run(endpoints.search_accounts("acme"))
    assert result.accounts == []
    assert result.total == 0


def test_sub_accounts_for_network_query():
    payload = {"results": [{"id": 9, "account_id": "acme-uk", "name": "Acme UK", "network_account_id": "acme"}]}
    handler = RecordingHandler(lambda request: json_response(payload))
    endpoints = BackstageEndpoints(make_client(handler))

    accounts = asyncio.run(endpoints.get_sub_accounts_for_network("acme"))

    params = handler.requests[0].url.params
    assert params["network_account_id"] == "acme"
    assert params["page_size"] == "100"
    assert accounts[0].network_account_id == "acme"


def test_advertisers_require_results_array():
    endpoints = BackstageEndpoints(make_client(lambda request: json_response({"data": []})))
    with pytest.raises(RealizeAPIError):
        asyncio.run(endpoints.fetch_advertisers("acme"))


# ── Campaigns ──


def test_campaigns_accept_bare_array_and_filter_running():
    payload = [
        {"id": 1, "name": "Running", "status": "RUNNING", "is_active": False},
        {"id": 2, "name": "Paused but active", "status": "PAUSED", "is_active": True},
        {"id": 3, "name": "Ended", "status": "ENDED", "is_active": True},
        {"id": 4, "name": "Inactive", "status": "PAUSED", "is_active": False},
    ]
    handler = RecordingHandler(lambda request: json_response(payload))
    endpoints = BackstageEndpoints(make_client(handler))

    campaigns = asyncio.run(endpoints.fetch_campaigns("acme"))

    assert handler.paths == ["/backstage/api/1.0/acme/campaigns/"]
    assert [c.id for c in running_campaigns(campaigns)] == ["1", "2"]


def test_malformed_campaigns_are_dropped():
    payload = {
        "results": [
            {"id": 1, "name": "Good", "status": "RUNNING", "is_active": True},
            {"id": 2, "name": "Null flag", "status": "RUNNING", "is_active": None},
        ]
    }
    endpoints = BackstageEndpoints(make_client(lambda request: json_response(payload)))

    campaigns = asyncio.run(endpoints.fetch_campaigns("acme"))

    assert [c.id for c in campaigns] == ["1"]


# ── Conversion Rules ──


def test_rules_filter_keeps_only_selectable():
    payload = {
        "results": [
            _rule(1),
            _rule(2, status="PAUSED"),
            _rule(3, category="PAGE_VIEW"),
            _rule(4, include_in_total_conversions=False),
            _rule(5, category="LEAD"),
            _rule(6, category="APP_INSTALL"),
        ]
    }
    endpoints = BackstageEndpoints(make_client(lambda request: json_response(payload)))

    rules = asyncio.run(endpoints.fetch_conversion_rules("acme"))

    assert len(rules) == 6
    assert rules[0].rule_type == "EVENT_BASED"
    assert rules[0].total_received == 10
    assert [r.id for r in selectable_rules(rules)] == ["1", "5", "6"]


def test_rules_404_means_none():
    endpoints = BackstageEndpoints(make_client(lambda request: httpx.Response(404)))
    assert asyncio.run(endpoints.fetch_conversion_rules("acme")) == []


def test_concurrent_rule_requests_share_one_call():
    handler = RecordingHandler(lambda request: json_response([_rule(1)]))
    endpoints = BackstageEndpoints(make_client(handler))

    async def run():
        return await asyncio.gather(
            endpoints.fetch_conversion_rules("acme"),
            endpoints.fetch_conversion_rules("acme"),
            endpoints.fetch_conversion_rules("acme"),
        )

    results = asyncio.run(run())

    assert len(handler.requests) == 1
    assert all(r == results[0] for r in results)


def test_failed_rule_request_is_retried_on_next_call():
    responses = [httpx.Response(500, text="down"), json_response([_rule(1)])]
    handler = RecordingHandler(lambda request: responses.pop(0))
    endpoints = BackstageEndpoints(make_client(handler, max_retries=1))

    async def run():
        with pytest.raises(RealizeAPIError):
            await endpoints.fetch_conversion_rules("acme")
        assert "acme" not in endpoints.rule_requests
        return await endpoints.fetch_conversion_rules("acme")

    rules = asyncio.run(run())

    assert len(handler.requests) == 2
    assert rules[0].id == "1"
