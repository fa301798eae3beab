"""
Invoice Totals and State
========================

Pure derivations over invoice line items and payment records. All
amounts are integer cents; nothing here touches the database.

Status rules:
- void is terminal
- fully paid (total > 0) -> paid, stamped with the latest payment time
- any successful payment -> partially_paid
- draft and sent are kept until money arrives
- everything else is issued, or overdue once past due with a balance
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.core.clock import as_utc
from app.core.money import round_half_up, round_half_up_to

SUCCESS_PAYMENT_STATUSES = frozenset({"paid", "succeeded"})
MIN_QUANTITY = 0.0001


# ==========================
# Coercion helpers
# ==========================

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _percent(value: Any) -> Optional[float]:
    parsed = _number(value)
    return None if parsed is None else max(0.0, parsed)


def _cents(value: Any) -> Optional[int]:
    parsed = _number(value)
    return None if parsed is None else max(0, round_half_up(parsed))


def _as_dict(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, dict):
        return raw
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    return None


# ==========================
# Line items
# ==========================

def normalize_line_items(items: Any) -> List[Dict[str, Any]]:
    """
    Fill in the derivable fields of each line item.

    Items without a description, or without any way to derive an amount,
    are dropped.
    """
    if not isinstance(items, (list, tuple)):
        return []

    normalized: List[Dict[str, Any]] = []
    for raw in items:
        item = _as_dict(raw)
        if not item:
            continue
        description = item.get("description")
        description = description.strip() if isinstance(description, str) else ""
        if not description:
            continue

        quantity = _number(item.get("quantity"))
        quantity = max(MIN_QUANTITY, 1.0 if quantity is None else quantity)
        unit_price = _cents(item.get("unit_price_cents"))
        amount = _cents(item.get("amount_cents"))
        tax_rate = _percent(item.get("tax_rate"))
        tax = _cents(item.get("tax_cents"))
        link_type = item.get("job_link_type")
        link_type = link_type.strip() if isinstance(link_type, str) else ""

        if amount is None and unit_price is not None:
            amount = round_half_up(unit_price * quantity)
        if amount is None:
            continue
        if unit_price is None:
            unit_price = round_half_up(amount / quantity)

        if tax is None and tax_rate is not None:
            tax = round_half_up(amount * tax_rate / 100)
        if tax is None:
            tax = 0
        if tax_rate is None and amount > 0 and tax > 0:
            tax_rate = round_half_up_to(tax / amount * 100, 3)
        if tax_rate is None:
            tax_rate = 0.0

        normalized.append({
            "description": description,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "amount_cents": amount,
            "tax_rate": tax_rate,
            "tax_cents": tax,
            "total_cents": amount + tax,
            "job_link_type": link_type or None,
        })
    return normalized


def validate_invoice_line_items(items: Any) -> List[str]:
    """Return the validation messages for raw line items; empty when valid."""
    if not isinstance(items, (list, tuple)):
        return []

    errors: List[str] = []
    for raw in items:
        item = _as_dict(raw)
        if not item:
            continue
        description = item.get("description")
        description = description.strip() if isinstance(description, str) else ""
        has_values = bool(description) or any(
            item.get(key) is not None for key in ("quantity", "unit_price_cents", "amount_cents")
        )
        if not has_values:
            continue
        if not description:
            errors.append("Line item description is required.")
            continue

        quantity = _number(item.get("quantity"))
        if (1.0 if quantity is None else quantity) <= 0:
            errors.append("Line item quantity must be greater than zero.")
        unit_price = _number(item.get("unit_price_cents"))
        if unit_price is not None and unit_price < 0:
            errors.append("Line item unit price cannot be negative.")
        amount = _number(item.get("amount_cents"))
        if amount is not None and amount < 0:
            errors.append("Line item amount cannot be negative.")
    return errors


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    line_items: Optional[List[Dict[str, Any]]]


def compute_invoice_totals(
    line_items: Any = None,
    amount_cents: Optional[int] = None,
    subtotal_cents: Optional[int] = None,
    tax_cents: Optional[int] = None,
    total_cents: Optional[int] = None,
) -> InvoiceTotals:
    """Sum line items, or fall back to the explicit amounts without any."""
    items = normalize_line_items(line_items)
    if items:
        subtotal = sum(item["amount_cents"] for item in items)
        tax = sum(item["tax_cents"] for item in items)
        return InvoiceTotals(subtotal, tax, subtotal + tax, items)

    total = _cents(total_cents if total_cents is not None else amount_cents) or 0
    tax = _cents(tax_cents) or 0
    subtotal = _cents(subtotal_cents)
    if subtotal is None:
        subtotal = max(0, total - tax)
    return InvoiceTotals(subtotal, tax, total, None)


def derive_invoice_summary(
    summary: Optional[str] = None,
    line_items: Optional[Sequence[Dict[str, Any]]] = None,
    job_title: Optional[str] = None,
) -> Optional[str]:
    if summary and summary.strip():
        return summary.strip()
    items = list(line_items or [])
    if len(items) == 1:
        return items[0].get("description")
    if len(items) > 1:
        first = items[0].get("description") or "Invoice items"
        return f"{first} + {len(items) - 1} more"
    if job_title and job_title.strip():
        return job_title.strip()
    return None


# ==========================
# Status derivation
# ==========================

def is_successful_payment_status(status: Optional[str]) -> bool:
    if not status:
        return False
    return str(status).lower() in SUCCESS_PAYMENT_STATUSES


def is_invoice_overdue(
    status: Optional[str],
    due_at: Optional[datetime],
    outstanding_cents: int,
    now: datetime,
) -> bool:
    if not due_at or outstanding_cents <= 0:
        return False
    if (status or "").lower() in ("void", "paid"):
        return False
    return as_utc(due_at) < as_utc(now)


@dataclass(frozen=True)
class DerivedInvoiceStatus:
    status: str
    paid_at: Optional[datetime]
    paid_cents: int
    outstanding_cents: int
    is_overdue: bool


def derive_invoice_status(invoice: Any, payments: Iterable[Any], now: datetime) -> DerivedInvoiceStatus:
    """
    Derive the payment status of an invoice.

    ``invoice`` needs ``status``, ``total_cents``, ``due_at`` and
    ``paid_at``; each payment needs ``status``, ``amount_cents``,
    ``paid_at`` and ``created_at``.
    """
    previous = str(invoice.status or "")
    normalized = previous.lower()
    total = int(invoice.total_cents or 0)

    paid_cents = 0
    last_paid_at: Optional[datetime] = None
    for payment in payments:
        if not is_successful_payment_status(payment.status):
            continue
        paid_cents += int(payment.amount_cents or 0)
        candidate = as_utc(payment.paid_at or getattr(payment, "created_at", None))
        if candidate and (last_paid_at is None or candidate > last_paid_at):
            last_paid_at = candidate

    outstanding = max(0, total - paid_cents)
    status = previous
    paid_at = as_utc(invoice.paid_at)

    if normalized != "void":
        if total > 0 and paid_cents >= total:
            status, paid_at = "paid", last_paid_at or as_utc(now)
        elif paid_cents > 0:
            status, paid_at = "partially_paid", None
        elif normalized in ("draft", "sent"):
            status, paid_at = normalized, None
        else:
            status, paid_at = "issued", None

        if status == "issued" and is_invoice_overdue(status, invoice.due_at, outstanding, now):
            status = "overdue"

    return DerivedInvoiceStatus(
        status=status,
        paid_at=paid_at,
        paid_cents=paid_cents,
        outstanding_cents=outstanding,
        is_overdue=is_invoice_overdue(status, invoice.due_at, outstanding, now),
    )
