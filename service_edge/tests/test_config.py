"""
Tests for environment-driven gateway configuration.
"""

import pytest

from shared.config import GatewayConfig, get_config


def test_defaults(monkeypatch):
    monkeypatch.delenv("GATEWAY_ALLOWED_ORIGINS", raising=False)
    config = GatewayConfig(_env_file=None)

    assert config.allowed_origin_set == frozenset({"*"})
    assert config.cache_ttl_seconds == 3600
    assert config.allowed_host_set == frozenset({
        "api.quranwbw.com",
        "static.quranwbw.com",
        "audios.quranwbw.com",
        "everyayah.com",
    })
    assert config.record_namespace == "KV_QURAN_DATA"
    assert config.cache_namespace == "CACHE_KV"
    assert config.status_sample == (1, 2, 18, 67, 114)
    assert config.upstream_timeout_seconds == 5.0
    assert config.port == 8787


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("GATEWAY_ALLOWED_ORIGINS", "https://quranwbw.com, https://beta.quranwbw.com")
    monkeypatch.setenv("GATEWAY_CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("GATEWAY_ALLOWED_HOSTS", "API.example.org")
    monkeypatch.setenv("GATEWAY_STATUS_SAMPLE_IDS", "1,7")

    config = get_config(_env_file=None)

    assert config.allowed_origin_set == frozenset({"https://quranwbw.com", "https://beta.quranwbw.com"})
    assert config.cache_ttl_seconds == 60
    assert config.allowed_host_set == frozenset({"api.example.org"})
    assert config.status_sample == (1, 7)


def test_blank_origins_mean_wildcard():
    config = GatewayConfig(_env_file=None, allowed_origins=" , ")

    assert config.allowed_origin_set == frozenset({"*"})


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        GatewayConfig(_env_file=None, cache_ttl_seconds=0)
