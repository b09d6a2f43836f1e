"""Realize Reporter — In-Process Caches.

Two injectable caches shared by the connector layer:

* ``TTLCache`` — flat key → value map with a fixed time-to-live, used for
  account search results and sub-account lists.
* ``InflightRequests`` — memoized pending results keyed by a string, so that
  concurrent callers asking for the same resource share one request. Failed
  results are evicted so a later retry issues a fresh call.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Tuple, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Key → value map whose entries expire ``ttl_seconds`` after being set."""

    def __init__(
        self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock(), value)

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


class InflightRequests(Generic[V]):
    """Share one pending result per key between concurrent callers."""

    def __init__(self) -> None:
        self._pending: Dict[str, "asyncio.Future[V]"] = {}

    async def run(self, key: str, factory: Callable[[], Awaitable[V]]) -> V:
        """Return the memoized result for ``key``, starting ``factory`` if needed."""
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done: self._evict_failed(key, done))
        # A cancelled caller must not cancel the shared request
        return await asyncio.shield(task)

    def _evict_failed(self, key: str, task: "asyncio.Future[Any]") -> None:
        if task.cancelled() or task.exception() is not None:
            if self._pending.get(key) is task:
                del self._pending[key]

    def invalidate(self, key: str) -> None:
        self._pending.pop(key, None)

    def clear(self) -> None:
        self._pending.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._pending
