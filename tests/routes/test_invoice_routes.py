"""
Invoice Routes Integration Tests
================================

Tests for invoice endpoints including:
- Draft creation with line item totals
- Issuing and invoice numbering
- Manual payments and derived status
- Overdue detection, idempotent per day
- PDF download
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.core.clock import utcnow


pytestmark = pytest.mark.integration

LINE_ITEMS = [{"description": "Labour", "quantity": 3, "unit_price_cents": 9500, "tax_rate": 10}]


@pytest.fixture
def job(client: TestClient, owner_headers: dict) -> dict:
    response = client.post(
        "/api/jobs",
        json={"title": "Bathroom refit", "estimated_revenue_cents": 31350},
        headers=owner_headers,
    )
    return response.json()["data"]


def _create_invoice(client: TestClient, headers: dict, job_id: str, **body) -> dict:
    response = client.post(f"/api/jobs/{job_id}/invoices", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _issue(client: TestClient, headers: dict, invoice_id: str, **body):
    return client.post(f"/api/invoices/{invoice_id}/issue", json=body, headers=headers)


class TestCreateInvoice:
    """Tests for POST /api/jobs/{job_id}/invoices."""

    def test_totals_from_line_items(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that totals and summary are derived from line items."""
        # Act
        invoice = _create_invoice(client, owner_headers, job["id"], line_items=LINE_ITEMS)

        # Assert
        assert invoice["status"] == "draft"
        assert invoice["invoice_number"] is None
        assert invoice["subtotal_cents"] == 28500
        assert invoice["tax_cents"] == 2850
        assert invoice["total_cents"] == 31350
        assert invoice["summary"] == "Labour"
        assert invoice["currency"] == "AUD"
        assert invoice["outstanding_cents"] == 31350

    def test_invalid_line_item(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that line items without a description are rejected."""
        # Act
        response = client.post(
            f"/api/jobs/{job['id']}/invoices",
            json={"line_items": [{"description": " ", "quantity": 1, "unit_price_cents": 100}]},
            headers=owner_headers,
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Line item description is required."

    def test_duplicate_manual_number(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that invoice numbers are unique within the org."""
        # Arrange
        _create_invoice(client, owner_headers, job["id"], amount_cents=100, invoice_number="INV-7")

        # Act
        response = client.post(
            f"/api/jobs/{job['id']}/invoices",
            json={"amount_cents": 100, "invoice_number": "INV-7"},
            headers=owner_headers,
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Invoice number already in use"

    def test_staff_cannot_create(
        self, client: TestClient, staff_headers: dict, job: dict
    ):
        """Test that manage_jobs is required."""
        response = client.post(f"/api/jobs/{job['id']}/invoices", json={"amount_cents": 100}, headers=staff_headers)
        assert response.status_code == 403

    def test_list_job_invoices(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that a job's invoices are listed with payments."""
        # Arrange
        _create_invoice(client, owner_headers, job["id"], amount_cents=500)

        # Act
        response = client.get(f"/api/jobs/{job['id']}/invoices", headers=owner_headers)

        # Assert
        rows = response.json()["data"]
        assert len(rows) == 1
        assert rows[0]["payments"] == []


class TestIssueInvoice:
    """Tests for POST /api/invoices/{id}/issue."""

    def test_issue_assigns_number_and_due_date(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that issuing numbers the invoice and defaults the due date."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], line_items=LINE_ITEMS)

        # Act
        response = _issue(client, owner_headers, invoice["id"])

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "issued"
        assert data["invoice_number"] == "INV-1"
        assert data["issued_at"] is not None
        assert data["due_at"] is not None

    def test_sequence_skips_manual_numbers(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that a manual number pushes the sequence forward."""
        # Arrange
        _create_invoice(client, owner_headers, job["id"], amount_cents=100, invoice_number="INV-42")
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=100)

        # Act
        data = _issue(client, owner_headers, invoice["id"]).json()["data"]

        # Assert
        assert data["invoice_number"] == "INV-43"

    def test_issue_twice_conflicts(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that an issued invoice cannot be issued again."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=100)
        _issue(client, owner_headers, invoice["id"])

        # Act
        response = _issue(client, owner_headers, invoice["id"])

        # Assert
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_issue_zero_total(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that empty invoices cannot be issued."""
        invoice = _create_invoice(client, owner_headers, job["id"])
        response = _issue(client, owner_headers, invoice["id"])
        assert response.status_code == 422


class TestPayments:
    """Tests for POST /api/invoices/{id}/payments."""

    def test_partial_then_full_payment(self, client: TestClient, owner_headers: dict, job: dict):
        """Test derived status through partial and full payment."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=10000)
        _issue(client, owner_headers, invoice["id"])

        # Act
        first = client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 4000, "method": "EFT"},
            headers=owner_headers,
        )
        second = client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 6000, "method": "cash", "reference": "Till 2"},
            headers=owner_headers,
        )

        # Assert
        assert first.status_code == 201
        assert first.json()["data"]["payment"]["method"] == "eft"
        assert first.json()["data"]["invoice"]["status"] == "partially_paid"
        assert first.json()["data"]["invoice"]["outstanding_cents"] == 6000
        paid = second.json()["data"]["invoice"]
        assert paid["status"] == "paid"
        assert paid["paid_at"] is not None
        assert len(paid["payments"]) == 2

    def test_payment_on_paid_invoice(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that a paid invoice rejects further payments."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        _issue(client, owner_headers, invoice["id"])
        client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 500, "method": "card"},
            headers=owner_headers,
        )

        # Act
        response = client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 1, "method": "card"},
            headers=owner_headers,
        )

        # Assert
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Invoice is already paid"

    def test_payment_on_draft(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that drafts cannot take payments."""
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        response = client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 500, "method": "cash"},
            headers=owner_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Invoice must be issued before recording payment"

    def test_invalid_payment_method(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that unknown methods are rejected."""
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        _issue(client, owner_headers, invoice["id"])
        response = client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 500, "method": "bitcoin"},
            headers=owner_headers,
        )
        assert response.status_code == 422

    def test_payments_feed_profitability(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that payments become the actual revenue."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=20000)
        _issue(client, owner_headers, invoice["id"])
        client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 20000, "method": "eft"},
            headers=owner_headers,
        )

        # Act
        data = client.get(f"/api/jobs/{job['id']}/profitability", headers=owner_headers).json()["data"]

        # Assert
        assert data["revenue"]["source"] == "payments"
        assert data["revenue"]["actual_cents"] == 20000


class TestUpdateInvoice:
    """Tests for PATCH /api/invoices/{id}."""

    def test_void_invoice(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that invoices can be voided."""
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        response = client.patch(f"/api/invoices/{invoice['id']}", json={"status": "void"}, headers=owner_headers)
        assert response.json()["data"]["status"] == "void"

    def test_cannot_set_paid_directly(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that paid is only reached through payments."""
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        response = client.patch(f"/api/invoices/{invoice['id']}", json={"status": "paid"}, headers=owner_headers)
        assert response.status_code == 422

    def test_amounts_locked_after_payment(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that paid invoices cannot change amounts."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        _issue(client, owner_headers, invoice["id"])
        client.post(
            f"/api/invoices/{invoice['id']}/payments",
            json={"amount_cents": 500, "method": "pos"},
            headers=owner_headers,
        )

        # Act
        response = client.patch(f"/api/invoices/{invoice['id']}", json={"amount_cents": 900}, headers=owner_headers)

        # Assert
        assert response.status_code == 409


class TestOverdueCheck:
    """Tests for POST /api/invoices/overdue-check."""

    def test_overdue_emitted_once_per_day(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that a past-due invoice is flagged and deduped."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], amount_cents=500)
        past = utcnow() - timedelta(days=30)
        _issue(
            client,
            owner_headers,
            invoice["id"],
            issued_at=past.isoformat(),
            due_at=(past + timedelta(days=14)).isoformat(),
        )

        # Act
        first = client.post("/api/invoices/overdue-check", headers=owner_headers).json()["data"]
        second = client.post("/api/invoices/overdue-check", headers=owner_headers).json()["data"]
        detail = client.get(f"/api/invoices/{invoice['id']}", headers=owner_headers).json()["data"]

        # Assert
        assert first == {"scanned": 1, "emitted": 1}
        assert second == {"scanned": 1, "emitted": 0}
        assert detail["status"] == "overdue"
        assert detail["is_overdue"] is True

    def test_requires_manage_org(self, client: TestClient, manager_headers: dict):
        """Test that managers cannot run the overdue check."""
        response = client.post("/api/invoices/overdue-check", headers=manager_headers)
        assert response.status_code == 403


class TestInvoicePdf:
    """Tests for GET /api/invoices/{id}/pdf."""

    def test_download_pdf(self, client: TestClient, owner_headers: dict, job: dict):
        """Test that the invoice renders to a PDF attachment."""
        # Arrange
        invoice = _create_invoice(client, owner_headers, job["id"], line_items=LINE_ITEMS)
        _issue(client, owner_headers, invoice["id"])

        # Act
        response = client.get(f"/api/invoices/{invoice['id']}/pdf", headers=owner_headers)

        # Assert
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "INV-1" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")
