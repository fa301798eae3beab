"""
Contact Models
==============

People the org works with: sellers, buyers and everyone in between.
Seller-intent scoring reads ``role``, ``temperature``, ``seller_stage``,
``tags`` and the touch timestamps.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
)

CONTACT_ROLES = ("seller", "buyer", "both", "unknown")
CONTACT_TEMPERATURES = ("hot", "warm", "cold", "unknown")


class Contact(Base):
    """
    Contact entity.

    Attributes:
        role: seller, buyer, both or unknown
        temperature: hot, warm, cold or unknown
        seller_stage: free-text pipeline stage, e.g. "appraisal booked"
        tags: lower-cased tag names
        last_touch_at: most recent logged touch
        next_touch_at: when the next follow-up is due
    """

    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # ==========================
    # Identity
    # ==========================
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    # ==========================
    # Prospecting
    # ==========================
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    temperature: Mapped[str] = mapped_column(String(20), nullable=False, default="unknown")
    lead_source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    seller_stage: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tags: Mapped[list] = json_list_column()
    last_touch_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    next_touch_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    do_not_contact: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    __table_args__ = (
        Index("ix_contacts_org_next_touch", "org_id", "next_touch_at"),
    )

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, full_name={self.full_name})>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "temperature": self.temperature,
            "lead_source": self.lead_source,
            "seller_stage": self.seller_stage,
            "tags": list(self.tags or []),
            "last_touch_at": self.last_touch_at.isoformat() if self.last_touch_at else None,
            "next_touch_at": self.next_touch_at.isoformat() if self.next_touch_at else None,
            "do_not_contact": self.do_not_contact,
        }


class ContactActivity(Base):
    """A logged touch (call, email, meeting) against a contact."""

    __tablename__ = "contact_activities"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    contact_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="call")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
