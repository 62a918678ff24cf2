"""
Base service class for the edge gateway.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Dict, List, Optional
import time

from shared.config import GatewayConfig, get_config
from shared.errors import (
    GatewayException,
    InternalError,
    MethodNotAllowedError,
    NotFoundError,
    utc_now_iso,
)
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector


def error_response(exc: GatewayException, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render a gateway exception as its JSON error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(),
        headers=headers,
    )


class BaseService:
    """Base service class with common functionality."""

    features: List[str] = []

    def __init__(self, config: Optional[GatewayConfig] = None):
        self.config = config or get_config()
        self.service_name = self.config.service_name
        self.port = self.config.port
        self.logger = get_logger(f"{self.service_name}.service")
        self.metrics = get_metrics_collector(self.service_name)
        self._start_time = time.time()

        configure_logging(self.service_name, self.config.log_level)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Gateway",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
        )

    def _setup_middleware(self):
        """Set up request context, timing and the top-level error boundary."""

        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            try:
                response = await call_next(request)
            except Exception as exc:
                self.logger.error(
                    "Unhandled exception",
                    method=request.method,
                    path=request.url.path,
                    error=str(exc),
                    exc_info=True,
                )
                self.metrics.record_error(type(exc).__name__)
                response = error_response(InternalError())

            duration = time.time() - start_time
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)

            self.metrics.record_http_request(
                method=request.method,
                endpoint=endpoint,
                status_code=response.status_code,
                duration=duration,
            )
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )

            response.headers["X-Request-ID"] = request_id
            clear_context()
            return response

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            dependencies = await self._check_dependencies()
            return {
                "status": "healthy",
                "timestamp": utc_now_iso(),
                "features": list(self.features),
                "worker": self.service_name,
                "dependencies": dependencies,
                "uptime_seconds": round(self._get_uptime(), 3),
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(self.metrics.registry),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(GatewayException)
        async def gateway_exception_handler(request: Request, exc: GatewayException):
            """Handle GatewayException."""
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log(
                "Gateway error",
                code=exc.code,
                message=exc.message,
                status_code=exc.status_code,
                path=request.url.path,
            )
            if exc.status_code >= 500:
                self.metrics.record_error(exc.code)
            return error_response(exc)

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(request: Request, exc: StarletteHTTPException):
            """Render router-level 404/405 in the gateway error format."""
            if exc.status_code == 405:
                allowed = exc.headers.get("Allow", "") if exc.headers else ""
                return error_response(
                    MethodNotAllowedError(request.method, [m.strip() for m in allowed.split(",") if m.strip()])
                )
            if exc.status_code == 404:
                return error_response(self._route_not_found(request))
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": str(exc.detail), "message": str(exc.detail), "timestamp": utc_now_iso()},
            )

    def _route_not_found(self, request: Request) -> NotFoundError:
        return NotFoundError(
            f"No route matches {request.url.path}",
            {"availableRoutes": self.available_routes()},
        )

    def available_routes(self) -> List[str]:
        """Paths registered on the application, in match order."""
        routes = []
        for route in self.app.router.routes:
            if not isinstance(route, APIRoute):
                continue
            if route.path.startswith("/openapi") or route.path.startswith("/docs"):
                continue
            routes.append(route.path)
        return routes

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check service dependencies. Override in subclasses."""
        return {}

    def _get_uptime(self) -> float:
        """Get service uptime in seconds."""
        return time.time() - self._start_time

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
