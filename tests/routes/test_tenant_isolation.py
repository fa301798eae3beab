"""
Cross-Tenant Access Prevention Integration Tests
=================================================

Integration tests for multi-tenant data isolation including:
- Cross-org reads and writes reported as NOT_FOUND
- Org-filtered list endpoints
- Identity resolved to the caller's own org
"""

import pytest
from fastapi.testclient import TestClient

from app.models.user import User


pytestmark = [pytest.mark.integration, pytest.mark.tenant]


@pytest.fixture
def first_org_contact(client: TestClient, owner_headers: dict) -> dict:
    response = client.post("/api/contacts", json={"full_name": "First Org Vendor"}, headers=owner_headers)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def first_org_job(client: TestClient, owner_headers: dict) -> dict:
    response = client.post("/api/jobs", json={"title": "First Org Job"}, headers=owner_headers)
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def first_org_invoice(client: TestClient, owner_headers: dict, first_org_job: dict) -> dict:
    response = client.post(
        f"/api/jobs/{first_org_job['id']}/invoices",
        json={"amount_cents": 10000},
        headers=owner_headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


class TestCrossOrgReads:
    """Records of another org are invisible."""

    def test_contact_not_found_across_orgs(
        self, client: TestClient, second_org_headers: dict, first_org_contact: dict
    ):
        """Test that a contact id from another org returns 404."""
        # Act
        response = client.get(f"/api/contacts/{first_org_contact['id']}", headers=second_org_headers)

        # Assert
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_job_not_found_across_orgs(
        self, client: TestClient, second_org_headers: dict, first_org_job: dict
    ):
        """Test that a job id from another org returns 404."""
        response = client.get(f"/api/jobs/{first_org_job['id']}", headers=second_org_headers)
        assert response.status_code == 404

    def test_invoice_not_found_across_orgs(
        self, client: TestClient, second_org_headers: dict, first_org_invoice: dict
    ):
        """Test that an invoice id from another org returns 404."""
        response = client.get(f"/api/invoices/{first_org_invoice['id']}", headers=second_org_headers)
        assert response.status_code == 404

    def test_job_profitability_not_found_across_orgs(
        self, client: TestClient, second_org_headers: dict, first_org_job: dict
    ):
        """Test that derived job data is also hidden."""
        response = client.get(f"/api/jobs/{first_org_job['id']}/profitability", headers=second_org_headers)
        assert response.status_code == 404


class TestCrossOrgWrites:
    """Writes to another org's records never reach them."""

    def test_update_contact_across_orgs(
        self, client: TestClient, second_org_headers: dict, owner_headers: dict, first_org_contact: dict
    ):
        """Test that a cross-org update is rejected and nothing changes."""
        # Act
        response = client.patch(
            f"/api/contacts/{first_org_contact['id']}",
            json={"full_name": "Hijacked"},
            headers=second_org_headers,
        )

        # Assert
        assert response.status_code == 404
        own = client.get(f"/api/contacts/{first_org_contact['id']}", headers=owner_headers)
        assert own.json()["data"]["full_name"] == "First Org Vendor"

    def test_delete_job_across_orgs(
        self, client: TestClient, second_org_headers: dict, owner_headers: dict, first_org_job: dict
    ):
        """Test that a cross-org delete is rejected."""
        # Act
        response = client.delete(f"/api/jobs/{first_org_job['id']}", headers=second_org_headers)

        # Assert
        assert response.status_code == 404
        assert client.get(f"/api/jobs/{first_org_job['id']}", headers=owner_headers).status_code == 200

    def test_payment_across_orgs(
        self, client: TestClient, second_org_headers: dict, first_org_invoice: dict
    ):
        """Test that payments cannot be recorded on another org's invoice."""
        response = client.post(
            f"/api/invoices/{first_org_invoice['id']}/payments",
            json={"amount_cents": 100, "method": "cash"},
            headers=second_org_headers,
        )
        assert response.status_code == 404


class TestListFiltering:
    """List endpoints only return the caller's org."""

    def test_contact_list_is_org_filtered(
        self, client: TestClient, second_org_headers: dict, first_org_contact: dict
    ):
        """Test that the second org sees an empty contact list."""
        # Act
        response = client.get("/api/contacts", headers=second_org_headers)

        # Assert
        assert response.status_code == 200
        assert response.json()["data"]["total"] == 0
        assert response.json()["data"]["items"] == []

    def test_job_list_is_org_filtered(
        self, client: TestClient, owner_headers: dict, second_org_headers: dict, first_org_job: dict
    ):
        """Test that each org only lists its own jobs."""
        # Arrange
        client.post("/api/jobs", json={"title": "Second Org Job"}, headers=second_org_headers)

        # Act
        first = client.get("/api/jobs", headers=owner_headers).json()["data"]
        second = client.get("/api/jobs", headers=second_org_headers).json()["data"]

        # Assert
        assert [job["title"] for job in first] == ["First Org Job"]
        assert [job["title"] for job in second] == ["Second Org Job"]

    def test_members_list_is_org_filtered(
        self, client: TestClient, second_org_headers: dict, owner_user: User, second_org_owner: User
    ):
        """Test that member listings never include other orgs' users."""
        response = client.get("/api/org/members", headers=second_org_headers)
        emails = [member["email"] for member in response.json()["data"]]
        assert emails == [second_org_owner.email]


class TestIdentity:
    """The caller's org comes from their own token."""

    def test_me_returns_own_org(
        self, client: TestClient, second_org_headers: dict, second_org_owner: User
    ):
        """Test that /auth/me reports the second org."""
        response = client.get("/auth/me", headers=second_org_headers)
        assert response.json()["data"]["org_id"] == str(second_org_owner.org_id)
