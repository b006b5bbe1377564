"""Tests for CORS, security headers, and rate limiting middleware."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from voter_analytics.api.middleware import (
    InMemoryRateLimitStore,
    RateLimitMiddleware,
    SecurityHeadersMiddleware,
    get_client_ip,
    setup_cors,
)
from voter_analytics.api.router import setup_middleware
from voter_analytics.core.config import Settings


def _create_test_app() -> FastAPI:
    """Create a minimal FastAPI app for middleware testing."""
    app = FastAPI()

    @app.get("/test")
    async def test_route() -> dict:
        return {"ok": True}

    return app


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingStore:
    """Store double that remembers every key it was asked about."""

    def __init__(self, counts: int = 1) -> None:
        self.counts = counts
        self.keys: list[str] = []

    def hit(self, key: str, now: float, window: float) -> int:
        self.keys.append(key)
        return self.counts


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = _create_test_app()
        app.add_middleware(SecurityHeadersMiddleware)
        return TestClient(app)

    def test_x_content_type_options(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_x_frame_options(self, client: TestClient) -> None:
        response = client.get("/test")
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_strict_transport_security(self, client: TestClient) -> None:
        response = client.get("/test")
        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]
        assert "includeSubDomains" in response.headers["Strict-Transport-Security"]


class TestInMemoryRateLimitStore:
    def test_counts_hits_within_window(self) -> None:
        store = InMemoryRateLimitStore()
        assert store.hit("a", 100.0, 60.0) == 1
        assert store.hit("a", 110.0, 60.0) == 2
        assert store.hit("b", 110.0, 60.0) == 1

    def test_drops_hits_outside_window(self) -> None:
        store = InMemoryRateLimitStore()
        store.hit("a", 100.0, 60.0)
        store.hit("a", 130.0, 60.0)
        assert store.hit("a", 161.0, 60.0) == 2


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, requests_per_minute=5)
        return TestClient(app)

    def test_requests_within_limit_succeed(self, client: TestClient) -> None:
        for _ in range(5):
            response = client.get("/test")
            assert response.status_code == 200

    def test_request_over_limit_returns_429(self, client: TestClient) -> None:
        for _ in range(5):
            client.get("/test")

        response = client.get("/test")
        assert response.status_code == 429
        assert response.json() == {"detail": "Rate limit exceeded"}
        assert "application/json" in response.headers.get("content-type", "")

    def test_rate_limit_window_expires(self) -> None:
        """Old requests outside the 60s window no longer count."""
        clock = FakeClock()
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, requests_per_minute=2, clock=clock)
        client = TestClient(app)

        assert client.get("/test").status_code == 200
        assert client.get("/test").status_code == 200
        assert client.get("/test").status_code == 429

        clock.now += 61
        assert client.get("/test").status_code == 200

    def test_uses_injected_store(self) -> None:
        store = RecordingStore(counts=3)
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, requests_per_minute=2, store=store)
        client = TestClient(app)

        response = client.get("/test", headers={"X-Real-IP": "203.0.113.9"})
        assert response.status_code == 429
        assert store.keys == ["203.0.113.9"]

    def test_shared_store_spans_app_instances(self) -> None:
        """Two workers sharing one store enforce a single limit."""
        store = InMemoryRateLimitStore()
        clients = []
        for _ in range(2):
            app = _create_test_app()
            app.add_middleware(RateLimitMiddleware, requests_per_minute=2, store=store)
            clients.append(TestClient(app))

        assert clients[0].get("/test").status_code == 200
        assert clients[1].get("/test").status_code == 200
        assert clients[0].get("/test").status_code == 429

    def test_different_proxy_ips_have_separate_limits(self) -> None:
        app = _create_test_app()
        app.add_middleware(RateLimitMiddleware, requests_per_minute=2)
        client = TestClient(app)

        for _ in range(2):
            resp = client.get("/test", headers={"CF-Connecting-IP": "203.0.113.1"})
            assert resp.status_code == 200

        resp = client.get("/test", headers={"CF-Connecting-IP": "203.0.113.1"})
        assert resp.status_code == 429

        resp = client.get("/test", headers={"CF-Connecting-IP": "203.0.113.2"})
        assert resp.status_code == 200


def _make_request(headers: dict[str, str] | None = None, client_host: str | None = "127.0.0.1") -> Request:
    """Build a minimal Starlette Request with given headers and client address."""
    scope: dict = {
        "type": "http",
        "method": "GET",
        "path": "/test",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    if client_host is not None:
        scope["client"] = (client_host, 0)
    return Request(scope)


class TestGetClientIp:
    """Tests for the get_client_ip helper function."""

    def test_cf_connecting_ip_takes_priority(self) -> None:
        request = _make_request(
            headers={
                "CF-Connecting-IP": "203.0.113.1",
                "X-Forwarded-For": "198.51.100.1, 10.0.0.1",
                "X-Real-IP": "192.0.2.1",
            }
        )
        assert get_client_ip(request) == "203.0.113.1"

    def test_x_forwarded_for_uses_leftmost_ip(self) -> None:
        request = _make_request(headers={"X-Forwarded-For": "203.0.113.1, 10.0.0.1, 10.0.0.2"})
        assert get_client_ip(request) == "203.0.113.1"

    def test_falls_back_to_client_host(self) -> None:
        request = _make_request(client_host="10.0.0.1")
        assert get_client_ip(request) == "10.0.0.1"

    def test_returns_unknown_when_no_client(self) -> None:
        request = _make_request(headers={}, client_host=None)
        assert get_client_ip(request) == "unknown"

    def test_custom_header_order(self) -> None:
        request = _make_request(headers={"CF-Connecting-IP": "203.0.113.1", "X-Real-IP": "192.0.2.1"})
        assert get_client_ip(request, ["X-Real-IP", "CF-Connecting-IP"]) == "192.0.2.1"

    def test_empty_header_value_skipped(self) -> None:
        request = _make_request(headers={"CF-Connecting-IP": "  ", "X-Real-IP": "203.0.113.1"})
        assert get_client_ip(request) == "203.0.113.1"


class TestCors:
    def test_allowed_origin_gets_cors_headers(self, settings: Settings) -> None:
        app = _create_test_app()
        setup_cors(app, settings.model_copy(update={"cors_origins": "https://charts.example.org"}))
        client = TestClient(app)

        response = client.get("/test", headers={"Origin": "https://charts.example.org"})
        assert response.headers["access-control-allow-origin"] == "https://charts.example.org"

    def test_unlisted_origin_gets_no_cors_headers(self, settings: Settings) -> None:
        app = _create_test_app()
        setup_cors(app, settings.model_copy(update={"cors_origins": "https://charts.example.org"}))
        client = TestClient(app)

        response = client.get("/test", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers


class TestSetupMiddleware:
    def test_rate_limit_store_is_injected(self, settings: Settings) -> None:
        store = RecordingStore()
        app = _create_test_app()
        setup_middleware(app, settings, rate_limit_store=store)
        client = TestClient(app)

        response = client.get("/test", headers={"X-Real-IP": "198.51.100.7"})
        assert response.status_code == 200
        assert response.headers["X-Frame-Options"] == "DENY"
        assert store.keys == ["198.51.100.7"]
