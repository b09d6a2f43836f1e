"""Realize Reporter — Backstage API Client.

Handles authentication headers, retry logic, rate limiting, response size
limits and streaming for the Realize (Taboola Backstage) REST API.
"""

import asyncio
import json
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol

import httpx

from realize.config import settings
from realize.connectors.backstage.auth import describe_transport_error
from realize.core.errors import PayloadTooLargeError, RealizeAPIError
from realize.core.logging import get_logger

logger = get_logger("backstage.client")

API_PREFIX = "/api/1.0"


class AuthHeaderProvider(Protocol):
    async def get_auth_header(self) -> Dict[str, str]: ...


class BackstageClient:
    """Async HTTP client for the Backstage API."""

    def __init__(
        self,
        token_provider: AuthHeaderProvider,
        base_url: str | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
        max_response_bytes: int | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self.base_url = (base_url or settings.realize_base_url).rstrip("/")
        self.max_retries = max_retries or settings.max_retries
        self.retry_base_delay = (
            settings.retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        self.max_response_bytes = max_response_bytes or settings.max_response_bytes
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def api_url(self, path: str) -> str:
        return f"{self.base_url}{API_PREFIX}/{path.lstrip('/')}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=settings.request_timeout, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _api_error(self, resp: httpx.Response, path: str) -> RealizeAPIError:
        body = resp.text or f"HTTP {resp.status_code}"
        logger.error(
            f"API error {resp.status_code} for {path}: {body[:500]}",
            extra={"endpoint": path, "status_code": resp.status_code},
        )
        return RealizeAPIError(f"API {resp.status_code} ({path})", resp.status_code, body)

    def _backoff(self, attempt: int) -> float:
        return self.retry_base_delay * (2 ** (attempt - 1))

    async def _read_bounded(self, resp: httpx.Response, path: str) -> bytes:
        """Read the body, refusing anything above the byte ceiling."""
        limit = self.max_response_bytes
        declared = resp.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise PayloadTooLargeError(
                f"Response from {path} is {int(declared)} bytes, above the {limit} byte limit",
                limit,
                int(declared),
            )
        chunks = []
        received = 0
        async for chunk in resp.aiter_bytes():
            received += len(chunk)
            if received > limit:
                raise PayloadTooLargeError(
                    f"Response from {path} exceeded the {limit} byte limit", limit
                )
            chunks.append(chunk)
        return b"".join(chunks)

    # ── Core Request Method ──

    async def get_json(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        """GET an API path with retry + rate-limit handling and return parsed JSON."""
        url = self.api_url(path)
        headers = await self.token_provider.get_auth_header()
        client = await self._get_client()

        for attempt in range(1, self.max_retries + 1):
            wait: Optional[float] = None
            started = time.perf_counter()
            try:
                async with client.stream("GET", url, params=params, headers=headers) as resp:
                    if resp.status_code == 429 and attempt < self.max_retries:
                        wait = self._backoff(attempt)
                        logger.warning(
                            f"Rate limited (429). Retrying in {wait}s (attempt {attempt}/{self.max_retries})"
                        )
                    elif resp.is_error:
                        await resp.aread()
                        if resp.status_code >= 500 and attempt < self.max_retries:
                            wait = self._backoff(attempt)
                            logger.warning(
                                f"Server error {resp.status_code}. Retrying in {wait}s"
                            )
                        else:
                            raise self._api_error(resp, path)
                    else:
                        body = await self._read_bounded(resp, path)
                        logger.info(
                            f"GET {path} -> {resp.status_code}",
                            extra={
                                "endpoint": path,
                                "status_code": resp.status_code,
                                "duration_ms": round((time.perf_counter() - started) * 1000),
                            },
                        )
                        try:
                            return json.loads(body)
                        except ValueError as e:
                            raise RealizeAPIError(
                                f"Invalid JSON from {path}", resp.status_code
                            ) from e

            except httpx.RequestError as e:
                if attempt < self.max_retries:
                    wait = self._backoff(attempt)
                    logger.warning(f"Request error: {e}. Retrying in {wait}s")
                else:
                    raise describe_transport_error(e) from e

            await asyncio.sleep(wait or 0)

        raise RealizeAPIError("Max retries exhausted")

    # ── Streaming ──

    @asynccontextmanager
    async def stream(
        self, path: str, params: Dict[str, Any] | None = None
    ) -> AsyncIterator[httpx.Response]:
        """Open a streamed GET; leaving the block closes the connection."""
        url = self.api_url(path)
        headers = await self.token_provider.get_auth_header()
        client = await self._get_client()
        try:
            async with client.stream("GET", url, params=params, headers=headers) as resp:
                if resp.is_error:
                    await resp.aread()
                    raise self._api_error(resp, path)
                yield resp
        except httpx.RequestError as e:
            raise describe_transport_error(e) from e
