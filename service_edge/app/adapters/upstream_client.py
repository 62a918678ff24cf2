"""
HTTP client for the proxied upstream hosts.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
from urllib.parse import urlsplit
import time

import httpx

from shared.errors import UpstreamError, UpstreamTimeoutError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


# Client request headers never forwarded upstream.
STRIPPED_REQUEST_HEADERS = frozenset({
    "host", "origin", "referer", "content-length", "connection",
    "accept-encoding", "transfer-encoding", "keep-alive", "upgrade",
})

# Hop-by-hop or invalidated by httpx decoding the body.
STRIPPED_RESPONSE_HEADERS = frozenset({
    "connection", "keep-alive", "transfer-encoding", "content-encoding",
    "content-length", "upgrade", "proxy-authenticate", "trailer", "te",
})


@dataclass
class UpstreamResponse:
    """Buffered upstream response."""

    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "application/json")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def passthrough_headers(self) -> Dict[str, str]:
        return {k: v for k, v in self.headers.items() if k not in STRIPPED_RESPONSE_HEADERS}


class UpstreamClient:
    """Single-attempt forwarder with a bounded timeout."""

    def __init__(
        self,
        *,
        timeout: float = 5.0,
        user_agent: str = "Quran-WordByWord-Proxy/1.0",
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.metrics = metrics
        self.logger = get_logger("edge.upstream")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=False,
            )
        return self._client

    def build_headers(self, client_headers: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        for name, value in (client_headers or {}).items():
            if name.lower() in STRIPPED_REQUEST_HEADERS:
                continue
            headers[name] = value
        return headers

    async def fetch(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[bytes] = None,
    ) -> UpstreamResponse:
        """Forward one request; upstream 4xx/5xx statuses are returned, not raised."""
        host = urlsplit(url).hostname or "unknown"
        start = time.perf_counter()
        try:
            response = await self._get_client().request(
                method,
                url,
                headers=self.build_headers(headers),
                content=body if method not in ("GET", "HEAD") else None,
            )
        except httpx.TimeoutException as exc:
            self.logger.warning("Upstream timeout", url=url, timeout=self.timeout)
            self._record(host, "timeout", start)
            raise UpstreamTimeoutError(url, self.timeout) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Upstream request failed", url=url, error=str(exc))
            self._record(host, "error", start)
            raise UpstreamError(url, str(exc) or type(exc).__name__) from exc

        self._record(host, str(response.status_code), start)
        self.logger.debug("Upstream responded", url=url, status_code=response.status_code)
        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    def _record(self, host: str, status: str, start: float) -> None:
        if self.metrics:
            self.metrics.record_upstream_request(host, status, time.perf_counter() - start)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
