"""Realize Reporter — OAuth Token Provider.

Exchanges client credentials for a bearer token and keeps it, minus a safety
buffer, both in memory and in the local store so later runs skip the exchange.
"""

import time
from typing import Callable, Dict, Optional

import httpx

from realize.config import settings
from realize.core.errors import AuthenticationError, ConfigurationError, TransportError
from realize.core.logging import get_logger
from realize.storage.preferences import KeyValueStore

logger = get_logger("backstage.auth")

TOKEN_KEY = "access_token_json"
DEFAULT_EXPIRES_IN = 3600  # seconds


def describe_transport_error(error: httpx.RequestError) -> TransportError:
    """Map a connection-level failure to a user-facing TransportError."""
    text = f"{error} {error.__cause__ or ''} {error.__context__ or ''}".lower()
    dns_markers = (
        "name or service not known",
        "nodename nor servname",
        "getaddrinfo failed",
        "temporary failure in name resolution",
        "no address associated",
        "enotfound",
    )
    host = error.request.url.host if _has_request(error) else "the server"
    if any(marker in text for marker in dns_markers):
        return TransportError(
            f"Network error: Host {host} not found. Check your internet connection/VPN.",
            host_not_found=True,
        )
    if isinstance(error, httpx.TimeoutException):
        return TransportError(f"Network error: Request to {host} timed out.")
    return TransportError(
        f"Network error: Could not connect to {host}. Check your internet connection."
    )


def _has_request(error: httpx.RequestError) -> bool:
    try:
        error.request
    except RuntimeError:
        return False
    return True


class TokenProvider:
    """Supplies ``Authorization`` headers for Realize API requests."""

    def __init__(
        self,
        store: KeyValueStore,
        client_id: str | None = None,
        client_secret: str | None = None,
        token_url: str | None = None,
        debug_token: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.client_id = client_id if client_id is not None else settings.realize_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.realize_client_secret
        )
        self.token_url = token_url or settings.realize_token_url
        self.debug_token = (
            debug_token if debug_token is not None else settings.realize_debug_token
        )
        self._transport = transport
        self._clock = clock
        self._in_memory: Optional[Dict[str, float | str]] = None

    async def get_auth_header(self) -> Dict[str, str]:
        """Return ``{"Authorization": "Bearer <token>"}``, fetching a token if needed."""
        cached = self._cached_token()
        if cached:
            return {"Authorization": f"Bearer {cached}"}

        if self.debug_token:
            logger.info("Using configured debug token")
            return {"Authorization": f"Bearer {self.debug_token}"}

        token = await self._fetch_token()
        return {"Authorization": f"Bearer {token}"}

    def _cached_token(self) -> Optional[str]:
        now_ms = self._clock() * 1000
        if self._in_memory and now_ms < float(self._in_memory["expires"]):
            return str(self._in_memory["value"])

        stored = self.store.get_json(TOKEN_KEY)
        if isinstance(stored, dict) and "value" in stored and "expires" in stored:
            try:
                expires = float(stored["expires"])
            except (TypeError, ValueError):
                return None
            if now_ms < expires:
                self._in_memory = {"value": str(stored["value"]), "expires": expires}
                return str(stored["value"])
        return None

    def invalidate(self) -> None:
        """Forget the cached token so the next call performs a new exchange."""
        self._in_memory = None
        self.store.remove(TOKEN_KEY)

    async def _fetch_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Missing credentials: set REALIZE_CLIENT_ID and REALIZE_CLIENT_SECRET."
            )

        logger.info(f"Requesting new token from {self.token_url}")
        try:
            async with httpx.AsyncClient(
                timeout=settings.request_timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self.token_url,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                )
        except httpx.RequestError as e:
            raise describe_transport_error(e) from e

        if resp.is_error:
            details = f"HTTP {resp.status_code} {resp.reason_phrase}"
            if resp.text:
                details += f" - {resp.text[:500]}"
            logger.error(f"Token request failed: {details}", extra={"status_code": resp.status_code})
            raise AuthenticationError(f"Token request failed: {details}")

        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthenticationError("Token response is not valid JSON") from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise AuthenticationError("Token response missing access_token")

        expires_in = payload.get("expires_in") or DEFAULT_EXPIRES_IN
        expires_ms = (
            self._clock() * 1000
            + float(expires_in) * 1000
            - settings.token_safety_seconds * 1000
        )
        self._in_memory = {"value": access_token, "expires": expires_ms}
        self.store.set_json(TOKEN_KEY, self._in_memory)
        logger.info("New token obtained and cached")
        return access_token
