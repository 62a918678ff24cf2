"""
Shared fixtures for edge gateway tests.
"""

from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from shared.config import GatewayConfig
from service_edge.app.adapters import KeyValueStore, UpstreamClient
from service_edge.app.main import create_app


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store that honours TTLs against a fake clock."""

    def __init__(self, namespace: str = "TEST", clock: Optional[FakeClock] = None):
        self.namespace = namespace
        self.clock = clock or FakeClock()
        self.data: Dict[str, Tuple[str, Optional[float]]] = {}
        self.get_calls = 0
        self.put_calls = 0

    async def get(self, key: str) -> Optional[str]:
        self.get_calls += 1
        entry = self.data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self.data[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self.put_calls += 1
        expires_at = self.clock() + ttl_seconds if ttl_seconds else None
        self.data[key] = (value, expires_at)

    async def ping(self) -> bool:
        return True


class UpstreamRecorder:
    """httpx.MockTransport handler that records every forwarded request."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.payload: object = {"chapter": 1, "verses": {"1:1": {"w": ["bismi"]}}}
        self.headers = {"content-type": "application/json", "etag": '"v1"'}
        self.responder: Optional[Callable[[httpx.Request], httpx.Response]] = None

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responder is not None:
            return self.responder(request)
        return httpx.Response(self.status_code, json=self.payload, headers=self.headers)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def record_backend(clock):
    return InMemoryKeyValueStore("KV_QURAN_DATA", clock)


@pytest.fixture
def cache_backend(clock):
    return InMemoryKeyValueStore("CACHE_KV", clock)


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def config():
    return GatewayConfig(env="test", log_level="warning", allowed_origins="*", cache_ttl_seconds=3600)


@pytest.fixture
def app(config, record_backend, cache_backend, upstream):
    upstream_client = UpstreamClient(timeout=2.0, transport=httpx.MockTransport(upstream))
    return create_app(
        config,
        record_backend=record_backend,
        cache_backend=cache_backend,
        upstream_client=upstream_client,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def service(app):
    return app.state.gateway_service


@pytest.fixture
def chapter_body():
    return {
        "verses": {
            "1:1": {"meta": {"chapter": 1, "verse": 1}, "words": {"arabic": "بِسْمِ"}},
            "1:2": {"meta": {"chapter": 1, "verse": 2}, "words": {"arabic": "ٱلْحَمْدُ"}},
        },
        "metadata": {"totalVerses": 2, "source": "jsdelivr"},
    }
