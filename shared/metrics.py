"""
Shared metrics configuration for the edge gateway.

Each collector owns its registry, so several app instances (one per test)
can coexist in a process.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, Info
from typing import Any, Dict, Optional


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up request-level metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics, labelled by route template rather than raw path
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Errors answered with a 5xx status",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_edge_metrics()

    def _setup_edge_metrics(self):
        """Set up proxy, cache and record store metrics."""
        self._metrics["proxy_cache_requests_total"] = Counter(
            "proxy_cache_requests_total",
            "Proxy response cache lookups",
            ["result"],
            registry=self.registry
        )

        self._metrics["upstream_requests_total"] = Counter(
            "upstream_requests_total",
            "Requests forwarded to upstream hosts",
            ["host", "status_code"],
            registry=self.registry
        )

        self._metrics["upstream_request_duration_seconds"] = Histogram(
            "upstream_request_duration_seconds",
            "Upstream request duration in seconds",
            ["host"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
            registry=self.registry
        )

        self._metrics["record_store_operations_total"] = Counter(
            "record_store_operations_total",
            "Record store operations",
            ["operation", "result"],
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_cache_lookup(self, result: str):
        """Count a response cache lookup; ``result`` is ``hit`` or ``miss``."""
        self._metrics["proxy_cache_requests_total"].labels(result=result).inc()

    def record_upstream_request(self, host: str, outcome: str, duration: float):
        """Count one forwarded request.

        ``outcome`` is the upstream status code, or ``timeout`` / ``error``
        when no response arrived.
        """
        self._metrics["upstream_requests_total"].labels(host=host, status_code=outcome).inc()
        self._metrics["upstream_request_duration_seconds"].labels(host=host).observe(duration)

    def record_store_operation(self, operation: str, result: str):
        self._metrics["record_store_operations_total"].labels(operation=operation, result=result).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
