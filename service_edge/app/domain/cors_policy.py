"""
CORS policy for gateway responses.

``resolve_cors_headers`` is a pure header computation. When the request origin
is not on the configured list the gateway answers with ``*`` rather than some
other origin, and credentials stay disabled in every case.
"""

from typing import AbstractSet, Dict, Optional
from urllib.parse import urlsplit

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


ALLOWED_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"
EXPOSED_HEADERS = "X-Cache, X-Request-ID"
DEFAULT_MAX_AGE = 86400


def _host_of(value: str) -> str:
    """Hostname of an origin or allowlist entry; the scheme is optional."""
    candidate = value.strip().lower()
    if "://" not in candidate:
        candidate = f"//{candidate}"
    return (urlsplit(candidate).hostname or "").lstrip(".")


def origin_matches(origin: str, allowed_origins: AbstractSet[str]) -> bool:
    """Exact match, or the origin host equals / is a subdomain of an entry host."""
    if origin in allowed_origins:
        return True
    origin_host = _host_of(origin)
    if not origin_host:
        return False
    for entry in allowed_origins:
        entry_host = _host_of(entry.replace("*.", ""))
        if not entry_host:
            continue
        if origin_host == entry_host or origin_host.endswith(f".{entry_host}"):
            return True
    return False


def resolve_cors_headers(
    request_origin: Optional[str],
    allowed_origins: AbstractSet[str],
    *,
    preflight: bool = False,
    max_age: int = DEFAULT_MAX_AGE,
) -> Dict[str, str]:
    """Compute the CORS response headers for a request origin."""
    headers = {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Credentials": "false",
        "Access-Control-Expose-Headers": EXPOSED_HEADERS,
    }

    # file:// pages and sandboxed frames send the literal "null"
    no_origin = not request_origin or request_origin == "null"
    if not no_origin and "*" not in allowed_origins and origin_matches(request_origin, allowed_origins):
        headers["Access-Control-Allow-Origin"] = request_origin
        headers["Vary"] = "Origin"

    if preflight:
        headers["Access-Control-Max-Age"] = str(max_age)
    return headers


class CORSPolicyMiddleware(BaseHTTPMiddleware):
    """Answers preflight requests and decorates every response with CORS headers."""

    def __init__(self, app, allowed_origins: AbstractSet[str], max_age: int = DEFAULT_MAX_AGE):
        super().__init__(app)
        self.allowed_origins = frozenset(allowed_origins)
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("Origin")

        if request.method == "OPTIONS":
            return Response(
                status_code=200,
                headers=resolve_cors_headers(origin, self.allowed_origins, preflight=True, max_age=self.max_age),
            )

        response = await call_next(request)
        for name, value in resolve_cors_headers(origin, self.allowed_origins).items():
            existing = response.headers.get(name)
            if name == "Vary" and existing and value not in existing:
                value = f"{existing}, {value}"
            response.headers[name] = value
        return response
