"""
Shared error handling for the edge gateway.

Every error leaves the gateway as a JSON body carrying at least ``error`` and
``message``; contextual fields (``chapter``, ``requestedHost`` ...) are merged
in from ``details``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(extra="allow")

    error: str
    message: str
    code: str
    timestamp: str


class GatewayException(Exception):
    """Base exception for the edge gateway."""

    status_code = 500
    default_error = "Internal Server Error"

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        error: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.error = error or self.default_error
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.error,
            message=self.message,
            code=self.code,
            timestamp=utc_now_iso(),
            **self.details,
        )


class InvalidHostError(GatewayException):
    """Requested upstream host is not on the allowlist."""

    status_code = 403
    default_error = "Forbidden: Invalid target host"

    def __init__(self, host: str, allowed_hosts: Iterable[str], path: Optional[str] = None):
        details: Dict[str, Any] = {
            "requestedHost": host,
            "allowedHosts": sorted(allowed_hosts),
        }
        if path is not None:
            details["path"] = path
        super().__init__("INVALID_HOST", f"Host '{host}' is not allowed", details)


class OutOfRangeIdError(GatewayException):
    """Record identifier outside the valid bound."""

    status_code = 400
    default_error = "Invalid chapter number"

    def __init__(self, value: Any, min_id: int, max_id: int):
        super().__init__(
            "OUT_OF_RANGE_ID",
            f"Chapter number must be between {min_id} and {max_id}",
            {"chapter": value},
        )


class ValidationError(GatewayException):
    """Malformed or empty request body."""

    status_code = 400
    default_error = "Invalid request"

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        *,
        error: Optional[str] = None,
    ):
        super().__init__("VALIDATION_ERROR", message, details, error=error)


class NotFoundError(GatewayException):
    """Missing record, key or route."""

    status_code = 404
    default_error = "Not Found"

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        *,
        error: Optional[str] = None,
    ):
        super().__init__("NOT_FOUND", message, details, error=error)


class MethodNotAllowedError(GatewayException):
    """HTTP method not supported on a route."""

    status_code = 405
    default_error = "Method not allowed"

    def __init__(self, method: str, allowed: Iterable[str]):
        allowed = list(allowed)
        super().__init__(
            "METHOD_NOT_ALLOWED",
            f"Method {method} is not allowed; use {', '.join(allowed)}",
            {"allowed": allowed},
        )


class UpstreamTimeoutError(GatewayException):
    """Upstream did not answer within the configured timeout."""

    status_code = 502
    default_error = "Upstream timeout"

    def __init__(self, target_url: str, timeout: float):
        super().__init__(
            "UPSTREAM_TIMEOUT",
            f"Upstream did not respond within {timeout:g}s",
            {"targetUrl": target_url},
        )


class UpstreamError(GatewayException):
    """Upstream request failed before a response was received."""

    status_code = 500
    default_error = "Proxy request failed"

    def __init__(self, target_url: str, message: str = "Upstream request failed"):
        super().__init__("UPSTREAM_ERROR", message, {"targetUrl": target_url})


class StorageError(GatewayException):
    """Backing key-value store operation failed."""

    status_code = 500
    default_error = "KV operation failed"

    def __init__(self, message: str = "Storage operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORAGE_ERROR", message, details)


class InternalError(GatewayException):
    """Any uncaught exception, as seen by the client."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__("INTERNAL_ERROR", message)
