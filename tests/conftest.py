import json
from typing import Callable, Dict, List

import httpx
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from realize.connectors.backstage.client import BackstageClient
from realize.database import init_db
from realize.storage.preferences import KeyValueStore, PrimaryRuleStore, RecentAccounts

BASE_URL = "https://backstage.test/backstage"


class FakeTokenProvider:
    """Hands out a fixed bearer token and counts how often it was asked."""

    def __init__(self, token: str = "test-token"):
        self.token = token
        self.calls = 0

    async def get_auth_header(self) -> Dict[str, str]:
        self.calls += 1
        return {"Authorization": f"Bearer {self.token}"}


class RecordingHandler:
    """MockTransport handler that records requests and delegates to ``respond``."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def make_client(respond, **kwargs) -> BackstageClient:
    """BackstageClient wired to a MockTransport; retries sleep zero seconds."""
    handler = respond if isinstance(respond, RecordingHandler) else RecordingHandler(respond)
    kwargs.setdefault("retry_base_delay", 0)
    return BackstageClient(
        FakeTokenProvider(),
        base_url=BASE_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())


def report_row(spent, **fields):
    return {"spent": spent, "currency": "USD", **fields}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    return eng


@pytest.fixture
def store(engine):
    return KeyValueStore(engine)


@pytest.fixture
def rule_store(store):
    return PrimaryRuleStore(store)


@pytest.fixture
def recents(store):
    return RecentAccounts(store)
