"""
Edge gateway service: CORS proxy with response caching plus a chapter record store.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.background import BackgroundTask

from shared.base_service import BaseService
from shared.config import GatewayConfig
from shared.errors import (
    InvalidHostError,
    MethodNotAllowedError,
    StorageError,
    ValidationError,
    utc_now_iso,
)
from shared.logging import set_target_host
from service_edge.app.adapters import KeyValueStore, RedisKeyValueStore, UpstreamClient
from service_edge.app.caching import CachedResponse, RecordStore, ResponseCache
from service_edge.app.domain import CORSPolicyMiddleware, HostAllowlist, PopulateRequest


# OPTIONS never reaches the router; the CORS middleware answers it.
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


class EdgeGatewayService(BaseService):
    """Edge gateway service implementation."""

    features = ["cors-proxy", "kv-storage", "response-cache"]

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        *,
        record_backend: Optional[KeyValueStore] = None,
        cache_backend: Optional[KeyValueStore] = None,
        upstream_client: Optional[UpstreamClient] = None,
    ):
        super().__init__(config)

        self.allowlist = HostAllowlist(self.config.allowed_host_set)
        self.record_store = RecordStore(
            record_backend or RedisKeyValueStore(self.config.redis_url, self.config.record_namespace),
            min_id=self.config.record_min_id,
            max_id=self.config.record_max_id,
            metrics=self.metrics,
        )
        self.response_cache = ResponseCache(
            cache_backend or RedisKeyValueStore(self.config.redis_url, self.config.cache_namespace),
            default_ttl=self.config.cache_ttl_seconds,
            metrics=self.metrics,
        )
        self.upstream = upstream_client or UpstreamClient(
            timeout=self.config.upstream_timeout_seconds,
            user_agent=self.config.upstream_user_agent,
            metrics=self.metrics,
        )

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.upstream.close()
            await self.record_store.backend.close()
            await self.response_cache.backend.close()

        self._setup_record_routes()
        self._setup_proxy_routes()
        self._setup_cors_middleware()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_cors_middleware(self):
        """Outermost middleware, so error responses carry CORS headers too."""
        self.app.add_middleware(
            CORSPolicyMiddleware,
            allowed_origins=self.config.allowed_origin_set,
            max_age=self.config.cors_max_age,
        )

    @staticmethod
    def _require_method(request: Request, *allowed: str) -> None:
        if request.method not in allowed:
            raise MethodNotAllowedError(request.method, [m for m in allowed if m != "HEAD"])

    @staticmethod
    async def _read_json(request: Request, *, error: str) -> Any:
        try:
            return await request.json()
        except ValueError as exc:
            raise ValidationError("Request body must be valid JSON", error=error) from exc

    def _setup_record_routes(self):
        """Set up chapter record store routes."""

        @self.app.api_route("/kv/chapter/{chapter_id}", methods=ALL_METHODS)
        async def kv_chapter(chapter_id: str, request: Request):
            """Read (GET) or write (PUT) one chapter record."""
            self._require_method(request, "GET", "HEAD", "PUT")
            chapter = self.record_store.parse_id(chapter_id).unwrap()

            if request.method == "PUT":
                body = await self._read_json(request, error="Invalid chapter data")
                return (await self.record_store.put_record(chapter, body)).unwrap()

            record = (await self.record_store.get_record(chapter)).unwrap()
            return {**record, "source": "kv", "retrievedAt": utc_now_iso()}

        @self.app.api_route("/kv/populate", methods=ALL_METHODS)
        async def kv_populate(request: Request):
            """Bulk-store chapters; per-entry failures are reported, never fatal."""
            self._require_method(request, "POST")
            body = await self._read_json(request, error="Invalid request")
            try:
                payload = PopulateRequest.model_validate(body)
            except PydanticValidationError as exc:
                raise ValidationError("Request must include chapters object") from exc

            results = await self.record_store.bulk_put(payload.chapters)
            return {
                "message": "Bulk population completed",
                "results": results,
                "timestamp": utc_now_iso(),
            }

        @self.app.api_route("/kv/status", methods=ALL_METHODS)
        async def kv_status(request: Request):
            """Probe a fixed sample of chapters."""
            self._require_method(request, "GET", "HEAD")
            try:
                sample = await self.record_store.get_status(self.config.status_sample)
            except StorageError as exc:
                self.logger.error("KV status check error", error=exc.message)
                return JSONResponse(
                    status_code=500,
                    content={
                        "kvStatus": "error",
                        "error": exc.error,
                        "message": exc.message,
                        "timestamp": utc_now_iso(),
                    },
                )
            return {
                "kvStatus": "healthy",
                "namespace": self.record_store.namespace,
                "sampleStatus": sample,
                "timestamp": utc_now_iso(),
            }

        @self.app.api_route("/kv/raw/{key:path}", methods=ALL_METHODS)
        async def kv_raw(key: str, request: Request):
            """Return the stored text for a record-namespace key as is."""
            self._require_method(request, "GET", "HEAD")
            if not key:
                raise ValidationError("Please provide a key to retrieve", error="Key required")

            value = await self.record_store.get_raw(key)
            if value is None:
                return Response("null", status_code=404, media_type="text/plain")
            return Response(value, media_type="application/json")

    def _setup_proxy_routes(self):
        """Set up root status and proxy routes; the host-prefixed routes must stay last."""

        @self.app.get("/")
        async def root():
            """Gateway status and allowlist."""
            return {
                "status": "OK",
                "message": "Edge gateway with KV caching is running",
                "timestamp": utc_now_iso(),
                "allowedHosts": sorted(self.allowlist.hosts),
                "version": "2.0",
            }

        @self.app.api_route("/proxy/{target:path}", methods=ALL_METHODS)
        async def proxy(target: str, request: Request):
            """Proxy to a URL-encoded absolute target."""
            target_url = target
            if request.url.query:
                target_url += ("&" if "?" in target_url else "?") + request.url.query

            parts = urlsplit(target_url)
            if parts.scheme not in ("http", "https") or not parts.hostname:
                raise ValidationError(
                    "Target URL must be provided and start with http",
                    {"target": target},
                    error="Invalid URL",
                )
            return await self._forward(request, target_url)

        @self.app.api_route("/{target_host}/{target_path:path}", methods=ALL_METHODS)
        async def host_prefixed_proxy(target_host: str, target_path: str, request: Request):
            """Proxy ``/{host}/{path}`` to ``https://{host}/{path}``."""
            if "." not in target_host:
                raise self._route_not_found(request)

            target_url = f"https://{target_host}/{target_path}"
            if request.url.query:
                target_url += f"?{request.url.query}"
            return await self._forward(request, target_url)

        @self.app.api_route("/{target_host}", methods=ALL_METHODS)
        async def bare_host_proxy(target_host: str, request: Request):
            """Proxy ``/{host}`` to the upstream root ``https://{host}/``."""
            return await host_prefixed_proxy(target_host, "", request)

    async def _forward(self, request: Request, target_url: str) -> Response:
        """Allowlist check, cache lookup, upstream fetch, background cache fill."""
        host = urlsplit(target_url).hostname or ""
        set_target_host(host)
        if not self.allowlist.is_allowed(host):
            raise InvalidHostError(host, self.allowlist.hosts, path=request.url.path)

        cacheable = request.method == "GET"
        if cacheable:
            cached = await self.response_cache.get(target_url)
            if cached is not None:
                self.logger.info("Cache hit", url=target_url)
                headers = dict(cached.headers)
                headers.setdefault("content-type", "application/json")
                headers["x-cache"] = "HIT"
                return Response(content=cached.body(), status_code=cached.status, headers=headers)

        body = None
        if request.method not in ("GET", "HEAD"):
            body = await request.body()

        self.logger.info("Proxying request", method=request.method, url=target_url)
        upstream = await self.upstream.fetch(
            request.method,
            target_url,
            headers=dict(request.headers),
            body=body,
        )

        headers: Dict[str, str] = upstream.passthrough_headers()
        headers.setdefault("content-type", "application/json")
        headers["x-cache"] = "MISS"

        response = Response(content=upstream.content, status_code=upstream.status_code, headers=headers)
        if cacheable and upstream.is_success:
            ttl = self.config.cache_ttl_seconds
            response.headers["cache-control"] = f"public, max-age={ttl}"
            # Runs after the response has been sent.
            response.background = BackgroundTask(
                self.response_cache.put,
                target_url,
                CachedResponse.from_upstream(upstream),
                ttl,
            )
        return response

    async def _check_dependencies(self) -> Dict[str, str]:
        """Report backing store reachability."""
        record_ok = await self.record_store.backend.ping()
        cache_ok = await self.response_cache.backend.ping()
        return {
            "record_store": "ok" if record_ok else "error",
            "response_cache": "ok" if cache_ok else "error",
        }


def create_app(config: Optional[GatewayConfig] = None, **kwargs):
    """Create FastAPI application."""
    service = EdgeGatewayService(config, **kwargs)
    return service.app


if __name__ == "__main__":
    service = EdgeGatewayService()
    service.run()
