"""
Adapters package for the edge gateway.

- kv_store: key-value backend (Redis) shared by the record store and the
  response cache
- upstream_client: httpx forwarder for allowlisted upstream hosts

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .kv_store import KeyValueStore, RedisKeyValueStore
from .upstream_client import UpstreamClient, UpstreamResponse

__all__ = [
    "KeyValueStore",
    "RedisKeyValueStore",
    "UpstreamClient",
    "UpstreamResponse",
]
