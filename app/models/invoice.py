"""
Invoice and Payment Models
==========================

Money is stored in integer cents. ``line_items`` holds normalized line
item dicts (see ``app.services.invoice_state.normalize_line_items``);
the cent columns are recomputed from them on every write.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
)

INVOICE_STATUSES = ("draft", "sent", "issued", "partially_paid", "paid", "overdue", "void")
PAYMENT_STATUSES = ("pending", "paid", "succeeded", "failed", "refunded")


class JobInvoice(Base):
    __tablename__ = "job_invoices"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )

    invoice_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="AUD")

    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    line_items: Mapped[list] = json_list_column()

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        UniqueConstraint("org_id", "invoice_number", name="uq_job_invoices_org_number"),
    )

    def __repr__(self) -> str:
        return f"<JobInvoice(id={self.id}, number={self.invoice_number}, status={self.status})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "job_id": str(self.job_id),
            "invoice_number": self.invoice_number,
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "due_at": self.due_at.isoformat() if self.due_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }


class JobPayment(Base):
    __tablename__ = "job_payments"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invoice_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("job_invoices.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
