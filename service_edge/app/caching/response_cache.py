"""
Response cache for proxied upstream GET responses.

Entries are keyed by the fully resolved target URL, as given; two URLs that
differ only in query-parameter order are cached separately. Expiry is handled
by the backing store (``SETEX``), never by this class.
"""

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

from shared.errors import StorageError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..adapters.kv_store import KeyValueStore
from ..adapters.upstream_client import UpstreamResponse


DEFAULT_CACHE_TTL = 3600

CACHED_HEADER_NAMES = ("content-type", "etag", "last-modified", "content-language")


@dataclass(frozen=True)
class CachedResponse:
    """Stored copy of a successful upstream response.

    ``content`` holds the upstream body bytes exactly as received. In storage
    a UTF-8 body is kept as text and anything else as base64, so a hit serves
    the same bytes the miss did.
    """

    content: bytes
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    timestamp: int = 0

    @classmethod
    def from_upstream(cls, response: UpstreamResponse) -> "CachedResponse":
        headers = {name: response.headers[name] for name in CACHED_HEADER_NAMES if name in response.headers}
        return cls(
            content=response.content,
            status=response.status_code,
            headers=headers,
            timestamp=int(time.time() * 1000),
        )

    @classmethod
    def from_json(cls, raw: str) -> "CachedResponse":
        payload = json.loads(raw)
        data = payload.get("data")
        if not isinstance(data, str):
            raise ValueError("cached body must be a string")
        if payload.get("encoding") == "base64":
            content = base64.b64decode(data, validate=True)
        else:
            content = data.encode("utf-8")
        return cls(
            content=content,
            status=int(payload.get("status", 200)),
            headers=dict(payload.get("headers") or {}),
            timestamp=int(payload.get("timestamp", 0)),
        )

    def to_json(self) -> str:
        try:
            data, encoding = self.content.decode("utf-8"), "utf-8"
        except UnicodeDecodeError:
            data, encoding = base64.b64encode(self.content).decode("ascii"), "base64"
        return json.dumps({
            "data": data,
            "encoding": encoding,
            "status": self.status,
            "headers": self.headers,
            "timestamp": self.timestamp,
        }, ensure_ascii=False)

    def body(self) -> bytes:
        """Response body as served on a cache hit."""
        return self.content

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "application/json")


class ResponseCache:
    """Best-effort URL-keyed cache; storage failures degrade to misses."""

    KEY_PREFIX = "proxy"

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        default_ttl: int = DEFAULT_CACHE_TTL,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.backend = backend
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.logger = get_logger("edge.response_cache")

    def make_key(self, target_url: str) -> str:
        return f"{self.KEY_PREFIX}:{target_url}"

    async def get(self, target_url: str) -> Optional[CachedResponse]:
        """Return the cached response for a target URL, or None on miss."""
        try:
            raw = await self.backend.get(self.make_key(target_url))
        except StorageError as exc:
            self.logger.error("Cache fetch error", url=target_url, error=exc.message)
            raw = None

        if raw is None:
            self._record("miss")
            return None

        try:
            cached = CachedResponse.from_json(raw)
        except (ValueError, TypeError, AttributeError):
            self.logger.warning("Discarding undecodable cache entry", url=target_url)
            self._record("miss")
            return None

        self._record("hit")
        return cached

    async def put(self, target_url: str, response: CachedResponse, ttl_seconds: Optional[int] = None) -> bool:
        """Store a response with a TTL; returns False instead of raising."""
        ttl = ttl_seconds or self.default_ttl
        try:
            await self.backend.put(self.make_key(target_url), response.to_json(), ttl_seconds=ttl)
        except StorageError as exc:
            self.logger.error("Cache set error", url=target_url, error=exc.message)
            return False

        self.logger.debug("Cached upstream response", url=target_url, ttl=ttl, status=response.status)
        return True

    def _record(self, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(result)
