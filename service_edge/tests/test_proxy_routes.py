"""
Tests for the proxy routes: allowlist, response cache and upstream failures.
"""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from shared.errors import StorageError


TARGET_PATH = "/api.quranwbw.com/v2/chapter?chapter=1"
TARGET_URL = "https://api.quranwbw.com/v2/chapter?chapter=1"


class TestAllowlistEnforcement:
    """Forbidden hosts never reach upstream."""

    @pytest.mark.parametrize("method", ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"])
    def test_unlisted_host_is_forbidden(self, client, upstream, method):
        response = client.request(method, "/evil.example.com/steal?x=1")

        assert response.status_code == 403
        assert upstream.call_count == 0
        if method != "HEAD":
            body = response.json()
            assert body["error"] == "Forbidden: Invalid target host"
            assert body["requestedHost"] == "evil.example.com"
            assert "api.quranwbw.com" in body["allowedHosts"]

    def test_encoded_target_is_checked_too(self, client, upstream):
        response = client.get("/proxy/https%3A%2F%2Fevil.example.com%2Fx")

        assert response.status_code == 403
        assert upstream.call_count == 0

    def test_forbidden_response_carries_cors(self, client):
        response = client.get("/evil.example.com/x", headers={"Origin": "https://quranwbw.com"})

        assert response.headers["access-control-allow-origin"] == "*"


class TestResponseCaching:
    """MISS, HIT and expiry through the host-prefixed route."""

    def test_miss_hit_expire(self, client, upstream, clock):
        first = client.get(TARGET_PATH)

        assert first.status_code == 200
        assert first.headers["x-cache"] == "MISS"
        assert first.headers["cache-control"] == "public, max-age=3600"
        assert first.json() == upstream.payload
        assert upstream.call_count == 1
        assert str(upstream.requests[0].url) == TARGET_URL

        second = client.get(TARGET_PATH)

        assert second.status_code == 200
        assert second.headers["x-cache"] == "HIT"
        assert second.headers["etag"] == '"v1"'
        assert second.headers["content-type"].startswith("application/json")
        assert second.content == first.content
        assert upstream.call_count == 1

        clock.advance(3601)
        third = client.get(TARGET_PATH)

        assert third.headers["x-cache"] == "MISS"
        assert upstream.call_count == 2

    def test_hit_serves_upstream_bytes_unchanged(self, client, upstream):
        compact = b'{"a":1,"b":[1,2]}'
        upstream.responder = lambda request: httpx.Response(
            200, content=compact, headers={"content-type": "application/json"}
        )

        first = client.get(TARGET_PATH)
        second = client.get(TARGET_PATH)

        assert first.content == compact
        assert second.headers["x-cache"] == "HIT"
        assert second.content == compact

    def test_binary_audio_is_cached_intact(self, client, upstream):
        audio = bytes(range(256))
        upstream.responder = lambda request: httpx.Response(
            200, content=audio, headers={"content-type": "audio/mpeg"}
        )

        first = client.get("/everyayah.com/data/001001.mp3")
        second = client.get("/everyayah.com/data/001001.mp3")

        assert first.headers["x-cache"] == "MISS"
        assert second.headers["x-cache"] == "HIT"
        assert second.headers["content-type"] == "audio/mpeg"
        assert len(second.content) == 256
        assert second.content == first.content == audio
        assert upstream.call_count == 1

    def test_cache_key_is_the_resolved_url(self, client, cache_backend):
        client.get(TARGET_PATH)

        assert f"proxy:{TARGET_URL}" in cache_backend.data

    def test_error_statuses_are_not_cached(self, client, upstream, cache_backend):
        upstream.status_code = 404
        upstream.payload = {"error": "not found"}

        first = client.get(TARGET_PATH)
        second = client.get(TARGET_PATH)

        assert first.status_code == 404
        assert first.headers["x-cache"] == "MISS"
        assert "cache-control" not in first.headers
        assert second.headers["x-cache"] == "MISS"
        assert upstream.call_count == 2
        assert cache_backend.put_calls == 0

    def test_upstream_5xx_is_passed_through(self, client, upstream):
        upstream.status_code = 503
        upstream.payload = {"error": "maintenance"}

        response = client.get(TARGET_PATH)

        assert response.status_code == 503
        assert response.json() == {"error": "maintenance"}

    def test_writes_are_forwarded_and_not_cached(self, client, upstream, cache_backend):
        for _ in range(2):
            response = client.post("/api.quranwbw.com/v2/search", json={"q": "mercy"})
            assert response.status_code == 200
            assert response.headers["x-cache"] == "MISS"

        assert upstream.call_count == 2
        sent = upstream.requests[0]
        assert sent.method == "POST"
        assert json.loads(sent.content) == {"q": "mercy"}
        assert cache_backend.put_calls == 0

    def test_head_is_not_cached(self, client, upstream, cache_backend):
        client.head(TARGET_PATH)
        client.head(TARGET_PATH)

        assert upstream.call_count == 2
        assert cache_backend.put_calls == 0

    def test_cache_write_failure_still_serves(self, client, upstream, cache_backend, monkeypatch):
        monkeypatch.setattr(cache_backend, "put", AsyncMock(side_effect=StorageError("redis down")))

        first = client.get(TARGET_PATH)
        second = client.get(TARGET_PATH)

        assert first.status_code == 200
        assert second.headers["x-cache"] == "MISS"
        assert upstream.call_count == 2

    def test_cache_read_failure_falls_through(self, client, upstream, cache_backend, monkeypatch):
        monkeypatch.setattr(cache_backend, "get", AsyncMock(side_effect=StorageError("redis down")))

        response = client.get(TARGET_PATH)

        assert response.status_code == 200
        assert response.headers["x-cache"] == "MISS"
        assert upstream.call_count == 1

    def test_client_identity_headers_are_stripped(self, client, upstream):
        client.get(TARGET_PATH, headers={"Origin": "https://quranwbw.com", "Referer": "https://quranwbw.com/1"})

        sent = upstream.requests[0]
        assert "origin" not in sent.headers
        assert "referer" not in sent.headers
        assert sent.headers["host"] == "api.quranwbw.com"
        assert sent.headers["user-agent"] == "Quran-WordByWord-Proxy/1.0"


class TestBareHostRoute:
    """``/{host}`` with no path forwards to the upstream root."""

    def test_bare_host_is_proxied_to_root(self, client, upstream):
        response = client.get("/api.quranwbw.com?lang=en")

        assert response.status_code == 200
        assert response.headers["x-cache"] == "MISS"
        assert str(upstream.requests[0].url) == "https://api.quranwbw.com/?lang=en"

    def test_bare_unlisted_host_is_forbidden(self, client, upstream):
        response = client.get("/evil.example.com")

        assert response.status_code == 403
        assert upstream.call_count == 0

    def test_bare_segment_without_dot_is_unmatched(self, client, upstream):
        response = client.get("/nothing")

        assert response.status_code == 404
        assert "availableRoutes" in response.json()
        assert upstream.call_count == 0


class TestEncodedProxyRoute:
    """``/proxy/{encoded absolute URL}``."""

    def test_encoded_target(self, client, upstream):
        response = client.get("/proxy/https%3A%2F%2Fapi.quranwbw.com%2Fv2%2Fchapter%3Fchapter%3D2")

        assert response.status_code == 200
        assert str(upstream.requests[0].url) == "https://api.quranwbw.com/v2/chapter?chapter=2"

    def test_query_string_is_appended(self, client, upstream):
        client.get("/proxy/https%3A%2F%2Feveryayah.com%2Fdata%2Fx.mp3?bitrate=64")

        assert str(upstream.requests[0].url) == "https://everyayah.com/data/x.mp3?bitrate=64"

    @pytest.mark.parametrize("target", ["not-a-url", "ftp%3A%2F%2Fapi.quranwbw.com%2Fx", ""])
    def test_invalid_target(self, client, upstream, target):
        response = client.get(f"/proxy/{target}")

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid URL"
        assert upstream.call_count == 0


class TestUpstreamFailures:
    """Transport failures map to gateway errors."""

    def test_timeout_is_502(self, client, upstream):
        def responder(request):
            raise httpx.ReadTimeout("timed out", request=request)

        upstream.responder = responder

        response = client.get(TARGET_PATH)

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "Upstream timeout"
        assert body["targetUrl"] == TARGET_URL
        assert upstream.call_count == 1

    def test_connection_failure_is_500(self, client, upstream, cache_backend):
        def responder(request):
            raise httpx.ConnectError("connection refused", request=request)

        upstream.responder = responder

        response = client.get(TARGET_PATH)

        assert response.status_code == 500
        assert response.json()["error"] == "Proxy request failed"
        assert response.headers["access-control-allow-origin"] == "*"
        assert cache_backend.put_calls == 0
