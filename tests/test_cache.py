import asyncio

import pytest

from realize.core.cache import InflightRequests, TTLCache


def test_ttl_cache_expires_entries():
    now = [100.0]
    cache = TTLCache(10, clock=lambda: now[0])
    cache.set("acme", [1])

    now[0] = 109.9
    assert cache.get("acme") == [1]
    now[0] = 110.0
    assert cache.get("acme") is None
    assert "acme" not in cache


def test_ttl_cache_invalidate_and_clear():
    cache = TTLCache(60)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    cache.clear()
    assert len(cache) == 0


def test_inflight_successful_result_is_memoized():
    calls = []

    async def load():
        calls.append(1)
        await asyncio.sleep(0)
        return "rules"

    async def run():
        inflight = InflightRequests()
        first = await asyncio.gather(inflight.run("acme", load), inflight.run("acme", load))
        later = await inflight.run("acme", load)
        return first, later

    first, later = asyncio.run(run())
    assert first == ["rules", "rules"]
    assert later == "rules"
    assert len(calls) == 1


def test_inflight_failure_is_shared_then_evicted():
    calls = []

    async def fail():
        calls.append(1)
        await asyncio.sleep(0)
        raise RuntimeError("boom")

    async def run():
        inflight = InflightRequests()
        results = await asyncio.gather(
            inflight.run("acme", fail), inflight.run("acme", fail), return_exceptions=True
        )
        assert "acme" not in inflight
        with pytest.raises(RuntimeError):
            await inflight.run("acme", fail)
        return results

    results = asyncio.run(run())
    assert all(isinstance(r, RuntimeError) for r in results)
    assert len(calls) == 2
