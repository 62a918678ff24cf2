"""
Shared utilities for the edge gateway.

- config: Gateway configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and JSON error bodies
- result: Ok/Err result types for store lookups
- base_service: FastAPI service scaffold (middleware, health, metrics)

Do not import from service_* packages into shared/.
"""
