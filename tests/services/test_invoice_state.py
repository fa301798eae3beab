"""
Invoice Totals and State Unit Tests
===================================

Tests for the pure invoice derivations:
- Line item normalization and validation
- Totals with and without line items
- Summary derivation
- Status derivation from payments
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.services.invoice_state import (
    compute_invoice_totals,
    derive_invoice_status,
    derive_invoice_summary,
    normalize_line_items,
    validate_invoice_line_items,
)


pytestmark = pytest.mark.unit

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _invoice(status="issued", total_cents=10000, due_at=None, paid_at=None):
    return SimpleNamespace(status=status, total_cents=total_cents, due_at=due_at, paid_at=paid_at)


def _payment(amount_cents, status="paid", paid_at=None):
    return SimpleNamespace(status=status, amount_cents=amount_cents, paid_at=paid_at, created_at=NOW)


class TestNormalizeLineItems:
    """Tests for normalize_line_items."""

    def test_derives_amount_and_tax_from_unit_price(self):
        items = normalize_line_items([
            {"description": "Labour", "quantity": 3, "unit_price_cents": 9500, "tax_rate": 10},
        ])

        assert items == [{
            "description": "Labour",
            "quantity": 3.0,
            "unit_price_cents": 9500,
            "amount_cents": 28500,
            "tax_rate": 10.0,
            "tax_cents": 2850,
            "total_cents": 31350,
            "job_link_type": None,
        }]

    def test_tax_rounds_half_up(self):
        items = normalize_line_items([{"description": "Part", "amount_cents": 125, "tax_rate": 10}])

        assert items[0]["tax_cents"] == 13

    def test_derives_unit_price_and_rate_from_amounts(self):
        items = normalize_line_items([
            {"description": "Callout", "quantity": 2, "amount_cents": 1000, "tax_cents": 100},
        ])

        assert items[0]["unit_price_cents"] == 500
        assert items[0]["tax_rate"] == 10.0

    def test_quantity_defaults_to_one(self):
        items = normalize_line_items([{"description": "Fee", "unit_price_cents": 700}])

        assert items[0]["quantity"] == 1.0
        assert items[0]["amount_cents"] == 700

    def test_drops_items_without_description_or_amount(self):
        items = normalize_line_items([
            {"description": "  ", "amount_cents": 100},
            {"description": "No price"},
            "not a dict",
        ])

        assert items == []

    def test_non_list_input_is_empty(self):
        assert normalize_line_items(None) == []
        assert normalize_line_items({"description": "x"}) == []


class TestValidateLineItems:
    """Tests for validate_invoice_line_items."""

    def test_valid_items_have_no_errors(self):
        assert validate_invoice_line_items([{"description": "Labour", "unit_price_cents": 100}]) == []

    def test_missing_description_with_values(self):
        errors = validate_invoice_line_items([{"unit_price_cents": 100}])

        assert errors == ["Line item description is required."]

    def test_reports_every_problem(self):
        errors = validate_invoice_line_items([
            {"description": "A", "quantity": 0},
            {"description": "B", "unit_price_cents": -1, "amount_cents": -5},
        ])

        assert "Line item quantity must be greater than zero." in errors
        assert "Line item unit price cannot be negative." in errors
        assert "Line item amount cannot be negative." in errors

    def test_blank_rows_are_ignored(self):
        assert validate_invoice_line_items([{}, {"description": ""}]) == []


class TestComputeTotals:
    """Tests for compute_invoice_totals."""

    def test_sums_line_items(self):
        totals = compute_invoice_totals([
            {"description": "Labour", "quantity": 3, "unit_price_cents": 9500, "tax_rate": 10},
            {"description": "Parts", "unit_price_cents": 42000, "tax_rate": 10},
        ])

        assert totals.subtotal_cents == 70500
        assert totals.tax_cents == 7050
        assert totals.total_cents == 77550
        assert len(totals.line_items) == 2

    def test_falls_back_to_explicit_amounts(self):
        totals = compute_invoice_totals(None, amount_cents=11000, tax_cents=1000)

        assert totals.total_cents == 11000
        assert totals.tax_cents == 1000
        assert totals.subtotal_cents == 10000
        assert totals.line_items is None

    def test_explicit_total_wins_over_amount(self):
        totals = compute_invoice_totals([], amount_cents=500, total_cents=800)

        assert totals.total_cents == 800


class TestDeriveSummary:
    """Tests for derive_invoice_summary."""

    def test_explicit_summary_is_trimmed(self):
        assert derive_invoice_summary("  Kitchen  ") == "Kitchen"

    def test_single_item_uses_description(self):
        assert derive_invoice_summary(None, [{"description": "Labour"}]) == "Labour"

    def test_multiple_items(self):
        items = [{"description": "Labour"}, {"description": "Parts"}, {"description": "Travel"}]

        assert derive_invoice_summary(None, items) == "Labour + 2 more"

    def test_falls_back_to_job_title(self):
        assert derive_invoice_summary(None, [], "Bathroom reno") == "Bathroom reno"
        assert derive_invoice_summary(None, [], None) is None


class TestDeriveStatus:
    """Tests for derive_invoice_status."""

    def test_fully_paid(self):
        paid_at = NOW - timedelta(days=1)
        derived = derive_invoice_status(_invoice(), [_payment(10000, paid_at=paid_at)], NOW)

        assert derived.status == "paid"
        assert derived.paid_at == paid_at
        assert derived.outstanding_cents == 0
        assert derived.is_overdue is False

    def test_partial_payment(self):
        derived = derive_invoice_status(_invoice(), [_payment(4000)], NOW)

        assert derived.status == "partially_paid"
        assert derived.paid_cents == 4000
        assert derived.outstanding_cents == 6000
        assert derived.paid_at is None

    def test_failed_payments_do_not_count(self):
        derived = derive_invoice_status(_invoice(), [_payment(10000, status="failed")], NOW)

        assert derived.status == "issued"
        assert derived.paid_cents == 0

    def test_overdue_when_past_due_with_balance(self):
        derived = derive_invoice_status(_invoice(due_at=NOW - timedelta(days=2)), [], NOW)

        assert derived.status == "overdue"
        assert derived.is_overdue is True

    def test_void_is_terminal(self):
        derived = derive_invoice_status(
            _invoice(status="void", due_at=NOW - timedelta(days=2)), [_payment(10000)], NOW
        )

        assert derived.status == "void"
        assert derived.is_overdue is False

    def test_draft_kept_until_money_arrives(self):
        assert derive_invoice_status(_invoice(status="draft"), [], NOW).status == "draft"
        assert derive_invoice_status(_invoice(status="draft"), [_payment(100)], NOW).status == "partially_paid"

    def test_zero_total_is_never_paid(self):
        derived = derive_invoice_status(_invoice(total_cents=0), [], NOW)

        assert derived.status == "issued"
        assert derived.outstanding_cents == 0

    def test_naive_due_date_is_treated_as_utc(self):
        due = (NOW - timedelta(hours=1)).replace(tzinfo=None)

        assert derive_invoice_status(_invoice(due_at=due), [], NOW).status == "overdue"
