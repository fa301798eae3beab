"""
Authentication Middleware Unit Tests
=====================================

Tests for middleware components including:
- AuthMiddleware
- SecurityHeadersMiddleware
- SlidingWindowLimiter
- RateLimitMiddleware
"""

from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.envelope import ok
from app.middleware.auth_middleware import RateLimitMiddleware, SlidingWindowLimiter
from app.services.auth_service import AuthService


pytestmark = pytest.mark.middleware


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    def test_request_id_header_added(self, client: TestClient):
        """Test that X-Request-ID header is added to responses."""
        # Act
        response = client.get("/")

        # Assert
        assert "X-Request-ID" in response.headers
        assert len(response.headers["X-Request-ID"]) > 0

    def test_request_id_is_propagated(self, client: TestClient):
        """Test that a caller-supplied X-Request-ID is echoed back."""
        # Act
        response = client.get("/", headers={"X-Request-ID": "trace-123"})

        # Assert
        assert response.headers["X-Request-ID"] == "trace-123"

    def test_process_time_header_added(self, client: TestClient):
        """Test that X-Process-Time header is added to responses."""
        # Act
        response = client.get("/")

        # Assert
        assert "X-Process-Time" in response.headers

    def test_public_paths_accessible_without_auth(self, client: TestClient):
        """Test that public paths are accessible without authentication."""
        # Act & Assert
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["ok"] is True

        response = client.get("/health")
        assert response.status_code == 200

    def test_protected_paths_require_auth(self, client: TestClient):
        """Test that protected paths answer with the UNAUTHORIZED envelope."""
        # Act
        response = client.get("/auth/me")

        # Assert
        assert response.status_code == 401
        assert response.json() == {
            "ok": False,
            "error": {"code": "UNAUTHORIZED", "message": "Not authenticated"},
        }

    def test_valid_token_allows_access(self, client: TestClient, owner_headers: dict):
        """Test that valid token allows access to protected routes."""
        # Act
        response = client.get("/auth/me", headers=owner_headers)

        # Assert
        assert response.status_code == 200

    def test_invalid_token_returns_401(self, client: TestClient):
        """Test that invalid token returns 401."""
        # Arrange
        headers = {"Authorization": "Bearer invalid.token.here"}

        # Act
        response = client.get("/auth/me", headers=headers)

        # Assert
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_malformed_auth_header_returns_401(self, client: TestClient):
        """Test that malformed authorization header returns 401."""
        # Arrange
        headers = {"Authorization": "InvalidFormat"}

        # Act
        response = client.get("/auth/me", headers=headers)

        # Assert
        assert response.status_code == 401

    def test_expired_token_returns_401(self, client: TestClient, owner_user):
        """Test that an expired token returns 401."""
        # Arrange
        token = AuthService.create_access_token(
            user_id=owner_user.id,
            org_id=owner_user.org_id,
            token_version=owner_user.token_version,
            expires_delta=timedelta(seconds=-1),
        )

        # Act
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        # Assert
        assert response.status_code == 401


class TestSecurityHeadersMiddleware:
    """Tests for SecurityHeadersMiddleware."""

    def test_x_content_type_options_header(self, client: TestClient):
        """Test X-Content-Type-Options header is set."""
        response = client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_x_frame_options_header(self, client: TestClient):
        """Test X-Frame-Options header is set."""
        response = client.get("/")
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_referrer_policy_header(self, client: TestClient):
        """Test Referrer-Policy header is set."""
        response = client.get("/")
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_content_security_policy_header(self, client: TestClient):
        """Test Content-Security-Policy header is set."""
        response = client.get("/")
        assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]


class TestSlidingWindowLimiter:
    """Tests for the in-memory limiter."""

    def test_allows_up_to_limit(self):
        """Test that the limit is inclusive."""
        # Arrange
        limiter = SlidingWindowLimiter(limit=2, window_seconds=60, clock=FakeClock())

        # Act / Assert
        assert limiter.hit("1.2.3.4") == (True, 0)
        assert limiter.hit("1.2.3.4") == (True, 0)
        allowed, retry_after = limiter.hit("1.2.3.4")
        assert allowed is False
        assert retry_after == 61

    def test_keys_are_independent(self):
        """Test that different clients do not share counters."""
        # Arrange
        limiter = SlidingWindowLimiter(limit=1, window_seconds=60, clock=FakeClock())

        # Act / Assert
        assert limiter.hit("a")[0] is True
        assert limiter.hit("b")[0] is True
        assert limiter.hit("a")[0] is False

    def test_window_slides(self):
        """Test that old hits fall out of the window."""
        # Arrange
        clock = FakeClock()
        limiter = SlidingWindowLimiter(limit=1, window_seconds=60, clock=clock)
        limiter.hit("a")

        # Act
        clock.now += 30
        blocked, retry_after = limiter.hit("a")
        clock.now += 30
        allowed, _ = limiter.hit("a")

        # Assert
        assert blocked is False
        assert retry_after == 31
        assert allowed is True

    def test_idle_keys_are_dropped(self):
        """Test that clients with only expired hits stop being tracked."""
        # Arrange
        clock = FakeClock()
        limiter = SlidingWindowLimiter(limit=5, window_seconds=60, clock=clock)
        for address in ("10.0.0.1", "10.0.0.2", "10.0.0.3"):
            limiter.hit(address)

        # Act
        clock.now += 61
        limiter.hit("10.0.0.9")

        # Assert
        assert limiter.tracked_keys() == 1

    def test_active_keys_survive_purge(self):
        clock = FakeClock()
        limiter = SlidingWindowLimiter(limit=1, window_seconds=60, clock=clock)
        limiter.hit("a")
        clock.now += 59
        limiter.hit("b")

        clock.now += 2
        allowed, _ = limiter.hit("b")

        assert allowed is False
        assert limiter.tracked_keys() == 1


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware on a minimal app."""

    @pytest.fixture
    def limited_client(self, monkeypatch):
        monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
        monkeypatch.setattr(settings, "LOGIN_RATE_LIMIT", 2)
        monkeypatch.setattr(settings, "TRAVEL_TIME_RATE_LIMIT", 1)

        app = FastAPI()

        @app.post("/auth/login")
        def login():
            return ok({"logged_in": True})

        @app.post("/api/travel-time")
        def travel_time():
            return ok({"duration_minutes": 5})

        @app.post("/other")
        def other():
            return ok()

        app.add_middleware(RateLimitMiddleware)
        with TestClient(app) as test_client:
            yield test_client

    def test_login_is_throttled(self, limited_client: TestClient):
        """Test that the third login inside the window is rejected."""
        # Act
        responses = [limited_client.post("/auth/login") for _ in range(3)]

        # Assert
        assert [r.status_code for r in responses] == [200, 200, 429]
        body = responses[-1].json()
        assert body["error"]["code"] == "RATE_LIMITED"
        assert body["error"]["details"]["retry_after_seconds"] >= 1
        assert "Retry-After" in responses[-1].headers

    def test_travel_time_has_its_own_budget(self, limited_client: TestClient):
        """Test that travel time and login are limited separately."""
        # Act
        first = limited_client.post("/api/travel-time")
        second = limited_client.post("/api/travel-time")
        login = limited_client.post("/auth/login")

        # Assert
        assert first.status_code == 200
        assert second.status_code == 429
        assert login.status_code == 200

    def test_other_paths_are_not_limited(self, limited_client: TestClient):
        """Test that unlisted paths pass through."""
        responses = [limited_client.post("/other") for _ in range(5)]
        assert all(r.status_code == 200 for r in responses)

    def test_disabled_limiter_passes_everything(self, client: TestClient):
        """Test that the app under test has rate limiting switched off."""
        responses = [client.post("/api/travel-time", json={}) for _ in range(3)]
        assert all(r.status_code != 429 for r in responses)
