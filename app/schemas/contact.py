"""
Contact Schemas Module
======================

Request bodies for contacts and logged touches. Enumerated fields are
checked by the service so every caller gets the same error message.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ContactCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=255)
    suburb: Optional[str] = Field(default=None, max_length=120)
    role: Optional[str] = Field(default=None, description="seller, buyer, both or unknown")
    temperature: Optional[str] = Field(default=None, description="hot, warm, cold or unknown")
    lead_source: Optional[str] = Field(default=None, max_length=100)
    seller_stage: Optional[str] = Field(default=None, max_length=100)
    tags: List[str] = Field(default_factory=list)
    owner_user_id: Optional[UUID] = None
    last_touch_at: Optional[datetime] = None
    next_touch_at: Optional[datetime] = None
    do_not_contact: bool = False
    notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "full_name": "Jordan Vendor",
                "phone": "0400 000 000",
                "role": "seller",
                "temperature": "warm",
                "tags": ["past client"],
            }
        }
    )


class ContactUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None, max_length=255)
    suburb: Optional[str] = Field(default=None, max_length=120)
    role: Optional[str] = None
    temperature: Optional[str] = None
    lead_source: Optional[str] = None
    seller_stage: Optional[str] = None
    tags: Optional[List[str]] = None
    owner_user_id: Optional[UUID] = None
    last_touch_at: Optional[datetime] = None
    next_touch_at: Optional[datetime] = None
    do_not_contact: Optional[bool] = None
    notes: Optional[str] = None


class ContactActivityCreate(BaseModel):
    """A logged touch; ``next_touch_at`` reschedules the follow-up when given."""

    type: str = Field(default="call", min_length=1, max_length=50)
    summary: Optional[str] = None
    occurred_at: Optional[datetime] = None
    next_touch_at: Optional[datetime] = None
