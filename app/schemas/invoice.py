"""
Invoice Schemas Module
======================

Line items stay loosely typed here; ``app.services.invoice_state``
validates them and reports every problem at once.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceCreate(BaseModel):
    line_items: Optional[List[Dict[str, Any]]] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    subtotal_cents: Optional[int] = Field(default=None, ge=0)
    tax_cents: Optional[int] = Field(default=None, ge=0)
    total_cents: Optional[int] = Field(default=None, ge=0)
    invoice_number: Optional[str] = Field(default=None, max_length=50)
    summary: Optional[str] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    due_at: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "line_items": [
                    {"description": "Labour", "quantity": 3, "unit_price_cents": 9500, "tax_rate": 10},
                    {"description": "Parts", "quantity": 1, "unit_price_cents": 42000, "tax_rate": 10},
                ],
                "due_at": "2026-11-01T00:00:00Z",
            }
        }
    )


class InvoiceUpdate(BaseModel):
    line_items: Optional[List[Dict[str, Any]]] = None
    amount_cents: Optional[int] = Field(default=None, ge=0)
    subtotal_cents: Optional[int] = Field(default=None, ge=0)
    tax_cents: Optional[int] = Field(default=None, ge=0)
    total_cents: Optional[int] = Field(default=None, ge=0)
    invoice_number: Optional[str] = Field(default=None, max_length=50)
    summary: Optional[str] = None
    status: Optional[str] = Field(default=None, description="sent or void")
    due_at: Optional[datetime] = None
    notes: Optional[str] = None


class InvoiceIssue(BaseModel):
    issued_at: Optional[datetime] = None
    due_at: Optional[datetime] = None


class PaymentCreate(BaseModel):
    amount_cents: int
    method: str = Field(..., description="eft, cash, cheque, card, pos or other")
    paid_at: Optional[datetime] = None
    reference: Optional[str] = Field(default=None, max_length=255)
