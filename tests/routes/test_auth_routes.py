"""
Authentication Routes Integration Tests
========================================

Tests for authentication endpoints:
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET /auth/me
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.auth_service import AuthService

from tests.conftest import TEST_PASSWORD


pytestmark = pytest.mark.integration


def _login(client: TestClient, email: str, password: str = TEST_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


class TestLoginEndpoint:
    """Tests for POST /auth/login endpoint."""

    def test_login_success(self, client: TestClient, staff_user: User):
        """Test successful login returns tokens inside the envelope."""
        # Act
        response = _login(client, staff_user.email)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["data"]["token_type"] == "bearer"
        assert body["data"]["access_token"]
        assert body["data"]["refresh_token"]

    def test_login_invalid_email(self, client: TestClient):
        """Test login with unknown email."""
        # Act
        response = _login(client, "nobody@example.com")

        # Assert
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_login_invalid_password(self, client: TestClient, staff_user: User):
        """Test login with wrong password."""
        # Act
        response = _login(client, staff_user.email, "WrongPassword1!")

        # Assert
        assert response.status_code == 401

    def test_login_locked_account(self, client: TestClient, locked_user: User):
        """Test login with locked account."""
        # Act
        response = _login(client, locked_user.email)

        # Assert
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_login_disabled_account(self, client: TestClient, inactive_user: User):
        """Test login with disabled account."""
        # Act
        response = _login(client, inactive_user.email)

        # Assert
        assert response.status_code == 403

    def test_login_missing_fields(self, client: TestClient):
        """Test login with missing fields."""
        # Act
        response = client.post("/auth/login", json={})

        # Assert
        assert response.status_code == 422
        body = response.json()
        assert body["ok"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["errors"]

    def test_login_case_insensitive_email(self, client: TestClient, staff_user: User):
        """Test that email matching ignores case."""
        # Act
        response = _login(client, staff_user.email.upper())

        # Assert
        assert response.status_code == 200

    def test_login_locks_after_max_attempts(self, client: TestClient, db_session: Session, staff_user: User):
        """Test that repeated failures lock the account."""
        # Act
        for _ in range(5):
            _login(client, staff_user.email, "WrongPassword1!")
        response = _login(client, staff_user.email)

        # Assert
        db_session.refresh(staff_user)
        assert staff_user.is_locked is True
        assert response.status_code == 403


class TestRefreshTokenEndpoint:
    """Tests for POST /auth/refresh endpoint."""

    def test_refresh_success(self, client: TestClient, staff_user: User):
        """Test successful token refresh."""
        # Arrange
        refresh_token = AuthService.create_refresh_token(
            user_id=staff_user.id, org_id=staff_user.org_id, token_version=staff_user.token_version
        )

        # Act
        response = client.post("/auth/refresh", json={"refresh_token": refresh_token})

        # Assert
        assert response.status_code == 200
        assert "access_token" in response.json()["data"]

    def test_refresh_with_invalid_token(self, client: TestClient):
        """Test refresh with an invalid token."""
        response = client.post("/auth/refresh", json={"refresh_token": "invalid.token"})
        assert response.status_code == 401

    def test_refresh_with_access_token_fails(self, client: TestClient, staff_headers: dict):
        """Test that an access token cannot be used to refresh."""
        # Arrange
        access_token = staff_headers["Authorization"].split(" ", 1)[1]

        # Act
        response = client.post("/auth/refresh", json={"refresh_token": access_token})

        # Assert
        assert response.status_code == 401


class TestLogoutEndpoint:
    """Tests for POST /auth/logout endpoint."""

    def test_logout_invalidates_tokens(self, client: TestClient, staff_headers: dict):
        """Test that tokens stop working after logout."""
        # Act
        logout = client.post("/auth/logout", headers=staff_headers)
        me = client.get("/auth/me", headers=staff_headers)

        # Assert
        assert logout.status_code == 200
        assert logout.json()["data"]["message"] == "Successfully logged out"
        assert me.status_code == 401

    def test_logout_without_auth(self, client: TestClient):
        """Test logout without a token."""
        response = client.post("/auth/logout")
        assert response.status_code == 401


class TestMeEndpoint:
    """Tests for GET /auth/me endpoint."""

    def test_me_returns_capabilities(self, client: TestClient, staff_headers: dict, staff_user: User):
        """Test that /auth/me includes the role's capabilities."""
        # Act
        response = client.get("/auth/me", headers=staff_headers)

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(staff_user.id)
        assert data["org_id"] == str(staff_user.org_id)
        assert data["role_key"] == "staff"
        assert set(data["capabilities"]) == {"view_jobs", "update_jobs", "view_schedule"}
        assert "hashed_password" not in data

    def test_me_for_owner(self, client: TestClient, owner_headers: dict):
        """Test that owners resolve to the admin capability."""
        response = client.get("/auth/me", headers=owner_headers)
        assert response.json()["data"]["capabilities"] == ["admin"]


class TestAuthFlowIntegration:
    """Full login, use and logout flow."""

    def test_complete_login_logout_flow(self, client: TestClient, manager_user: User):
        """Test the token lifecycle end to end."""
        # Login
        tokens = _login(client, manager_user.email).json()["data"]
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}

        # Use
        assert client.get("/auth/me", headers=headers).status_code == 200

        # Logout
        assert client.post("/auth/logout", headers=headers).status_code == 200

        # Old refresh token is revoked too
        response = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401
