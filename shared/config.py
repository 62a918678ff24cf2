"""
Shared configuration management for the edge gateway.
"""

from typing import FrozenSet, List, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_HOSTS = "api.quranwbw.com,static.quranwbw.com,audios.quranwbw.com,everyayah.com"


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")


class GatewayConfig(BaseConfig):
    """Edge gateway configuration, built once at process start."""

    service_name: str = "edge"
    host: str = "0.0.0.0"
    port: int = 8787

    # CORS
    allowed_origins: str = Field(default="*")
    cors_max_age: int = Field(default=86400, ge=0)

    # Proxy + response cache
    allowed_hosts: str = Field(default=DEFAULT_ALLOWED_HOSTS)
    cache_ttl_seconds: int = Field(default=3600, gt=0)
    cache_namespace: str = Field(default="CACHE_KV")
    upstream_timeout_seconds: float = Field(default=5.0, gt=0)
    upstream_user_agent: str = Field(default="Quran-WordByWord-Proxy/1.0")

    # Record store
    record_namespace: str = Field(default="KV_QURAN_DATA")
    record_min_id: int = Field(default=1)
    record_max_id: int = Field(default=114)
    status_sample_ids: str = Field(default="1,2,18,67,114")

    @property
    def allowed_origin_set(self) -> FrozenSet[str]:
        """Configured origins; an empty setting means wildcard."""
        origins = _split_csv(self.allowed_origins)
        return frozenset(origins or ["*"])

    @property
    def allowed_host_set(self) -> FrozenSet[str]:
        return frozenset(host.lower() for host in _split_csv(self.allowed_hosts))

    @property
    def status_sample(self) -> Tuple[int, ...]:
        return tuple(int(item) for item in _split_csv(self.status_sample_ids))


def get_config(**overrides) -> GatewayConfig:
    """Build the gateway configuration from the environment plus overrides."""
    return GatewayConfig(**overrides)
