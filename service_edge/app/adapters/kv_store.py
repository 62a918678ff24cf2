"""
Key-value storage backing the record store and the response cache.
"""

from abc import ABC, abstractmethod
from typing import Optional

import redis.asyncio as redis

from shared.errors import StorageError
from shared.logging import get_logger


class KeyValueStore(ABC):
    """Minimal string key-value contract; expiry is left to the backend."""

    namespace: str

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store a value, overwriting any previous one."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend is reachable."""

    async def close(self) -> None:
        return None


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store; keys live under ``{namespace}:``."""

    def __init__(self, redis_url: str, namespace: str):
        self.redis_url = redis_url
        self.namespace = namespace
        self.logger = get_logger("edge.kv_store")
        self._redis: Optional[redis.Redis] = None

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._get_redis().get(self._make_key(key))
        except redis.RedisError as exc:
            self.logger.error("KV get failed", namespace=self.namespace, key=key, error=str(exc))
            raise StorageError(f"Failed to read '{key}'", {"key": key}) from exc

    async def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        redis_client = self._get_redis()
        try:
            if ttl_seconds:
                await redis_client.setex(self._make_key(key), ttl_seconds, value)
            else:
                await redis_client.set(self._make_key(key), value)
        except redis.RedisError as exc:
            self.logger.error("KV put failed", namespace=self.namespace, key=key, error=str(exc))
            raise StorageError(f"Failed to write '{key}'", {"key": key}) from exc
        self.logger.debug("KV value stored", namespace=self.namespace, key=key, ttl=ttl_seconds)

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except redis.RedisError:
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
