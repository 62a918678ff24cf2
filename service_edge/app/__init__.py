"""
Edge gateway service package.

The gateway fronts browser clients, providing:
- A CORS-enabled proxy to a fixed allowlist of upstream hosts
- A TTL response cache for successful upstream GETs
- A key-value record store for pre-transformed chapter documents

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: Redis key-value backend and upstream HTTP client.
- app.caching: Record store and response cache.
- app.domain: Host allowlist, CORS policy and record models.
"""
