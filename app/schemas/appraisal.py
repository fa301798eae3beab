"""
Appraisal Schemas Module
========================
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AppraisalCreate(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    suburb: Optional[str] = Field(default=None, max_length=120)
    contact_id: Optional[UUID] = None
    owner_user_id: Optional[UUID] = None
    stage: Optional[str] = None
    appointment_at: Optional[datetime] = None
    lead_source: Optional[str] = None
    decision_makers: Optional[str] = None
    motivation: Optional[str] = None
    timeline: Optional[str] = Field(default=None, description="asap, days_30, days_60_90 or unknown")
    price_expectation_min_cents: Optional[int] = Field(default=None, ge=0)
    price_expectation_max_cents: Optional[int] = Field(default=None, ge=0)
    objections: Optional[str] = None


class AppraisalUpdate(BaseModel):
    address: Optional[str] = Field(default=None, max_length=255)
    suburb: Optional[str] = None
    contact_id: Optional[UUID] = None
    owner_user_id: Optional[UUID] = None
    stage: Optional[str] = None
    appointment_at: Optional[datetime] = None
    outcome: Optional[str] = None
    lead_source: Optional[str] = None
    decision_makers: Optional[str] = None
    motivation: Optional[str] = None
    timeline: Optional[str] = None
    price_expectation_min_cents: Optional[int] = Field(default=None, ge=0)
    price_expectation_max_cents: Optional[int] = Field(default=None, ge=0)
    objections: Optional[str] = None


class ChecklistItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    is_done: bool = False
    due_at: Optional[datetime] = None
    sort_order: int = 0


class ChecklistItemUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    is_done: Optional[bool] = None
    due_at: Optional[datetime] = None
    sort_order: Optional[int] = None


class FollowupCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    due_at: datetime


class FollowupComplete(BaseModel):
    is_done: bool = True
