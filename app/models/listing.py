"""
Listing Models
==============

A listing is a property on the market. Campaign health is derived from
its child rows (checklist, milestones, enquiries, inspections, buyers,
vendor communications) and cached on the listing row.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import (
    Base,
    uuid_pk,
    org_fk,
    created_at_column,
    updated_at_column,
    json_list_column,
)

LISTING_STATUSES = ("draft", "active", "under_offer", "sold", "withdrawn")
BUYER_STATUSES = ("new", "interested", "inspected", "offer_made", "not_interested", "purchased")


def _listing_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid(as_uuid=True), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True
    )


class Listing(Base):
    """
    Listing entity.

    Attributes:
        status: draft, active, under_offer, sold or withdrawn
        listed_at: when the campaign went live (days on market anchor)
        report_cadence_enabled: vendor reports are scheduled
        report_next_due_at: next scheduled vendor report
        campaign_health_score: last computed score, 0..100
        campaign_health_reasons: top contributing signals
    """

    __tablename__ = "listings"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    vendor_contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )

    address_line1: Mapped[str] = mapped_column(String(255), nullable=False)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    price_guide: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    listed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    report_cadence_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    report_cadence_days: Mapped[int] = mapped_column(Integer, nullable=False, default=7)
    report_next_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    report_last_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    campaign_health_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    campaign_health_band: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    campaign_health_reasons: Mapped[list] = json_list_column()
    campaign_health_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    def __repr__(self) -> str:
        return f"<Listing(id={self.id}, address={self.address_line1}, status={self.status})>"

    @property
    def display_address(self) -> str:
        return ", ".join(part for part in (self.address_line1, self.suburb) if part)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "address_line1": self.address_line1,
            "suburb": self.suburb,
            "status": self.status,
            "listed_at": self.listed_at.isoformat() if self.listed_at else None,
            "report_cadence_enabled": self.report_cadence_enabled,
            "campaign_health_score": self.campaign_health_score,
        }


class ListingChecklistItem(Base):
    __tablename__ = "listing_checklist_items"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class ListingMilestone(Base):
    __tablename__ = "listing_milestones"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_due_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()


class ListingEnquiry(Base):
    __tablename__ = "listing_enquiries"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    buyer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = created_at_column()


class ListingInspection(Base):
    __tablename__ = "listing_inspections"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    attendee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = created_at_column()


class ListingBuyer(Base):
    __tablename__ = "listing_buyers"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="new")
    next_follow_up_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()


class ListingVendorComm(Base):
    __tablename__ = "listing_vendor_comms"

    id: Mapped[uuid.UUID] = uuid_pk()
    org_id: Mapped[uuid.UUID] = org_fk()
    listing_id: Mapped[uuid.UUID] = _listing_fk()
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="call")
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = created_at_column()
