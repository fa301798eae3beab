"""
Listing Schemas Module
======================

Listings plus one permissive body shared by every child collection;
which fields apply and which are required depends on the collection.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ListingCreate(BaseModel):
    address_line1: str = Field(..., min_length=1, max_length=255)
    suburb: Optional[str] = Field(default=None, max_length=120)
    status: Optional[str] = Field(default=None, description="draft, active, under_offer, sold or withdrawn")
    price_guide: Optional[str] = Field(default=None, max_length=120)
    listed_at: Optional[datetime] = None
    owner_user_id: Optional[UUID] = None
    vendor_contact_id: Optional[UUID] = None
    report_cadence_enabled: bool = False
    report_cadence_days: int = Field(default=7, gt=0)
    report_next_due_at: Optional[datetime] = None


class ListingUpdate(BaseModel):
    address_line1: Optional[str] = Field(default=None, max_length=255)
    suburb: Optional[str] = None
    status: Optional[str] = None
    price_guide: Optional[str] = None
    listed_at: Optional[datetime] = None
    owner_user_id: Optional[UUID] = None
    vendor_contact_id: Optional[UUID] = None
    report_cadence_enabled: Optional[bool] = None
    report_cadence_days: Optional[int] = Field(default=None, gt=0)
    report_next_due_at: Optional[datetime] = None


class ListingChildPayload(BaseModel):
    # checklist
    title: Optional[str] = None
    is_done: Optional[bool] = None
    due_at: Optional[datetime] = None
    # milestones
    name: Optional[str] = None
    target_due_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    # enquiries
    buyer_name: Optional[str] = None
    source: Optional[str] = None
    occurred_at: Optional[datetime] = None
    # inspections
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    attendee_count: Optional[int] = Field(default=None, ge=0)
    # buyers
    contact_id: Optional[UUID] = None
    status: Optional[str] = None
    next_follow_up_at: Optional[datetime] = None
    # vendor comms
    type: Optional[str] = None
    summary: Optional[str] = None
