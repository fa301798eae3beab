"""
Job Schemas Module
==================

Jobs and the cost inputs logged against them: hours, manual costs and
material usage.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    client_name: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = Field(default=None, max_length=255)
    suburb: Optional[str] = Field(default=None, max_length=120)
    notes: Optional[str] = None
    status: Optional[str] = Field(default=None, description="unassigned, scheduled, in_progress or completed")
    priority: Optional[str] = Field(default=None, description="low, normal, high or urgent")
    tags: List[str] = Field(default_factory=list)
    crew_id: Optional[UUID] = None
    owner_user_id: Optional[UUID] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    estimated_revenue_cents: Optional[int] = Field(default=None, ge=0)
    estimated_cost_cents: Optional[int] = Field(default=None, ge=0)
    target_margin_percent: Optional[float] = None
    revenue_override_cents: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Hot water system replacement",
                "client_name": "R. Client",
                "estimated_revenue_cents": 250000,
                "estimated_cost_cents": 150000,
            }
        }
    )


class JobUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    client_name: Optional[str] = None
    address: Optional[str] = None
    suburb: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    tags: Optional[List[str]] = None
    crew_id: Optional[UUID] = None
    owner_user_id: Optional[UUID] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    estimated_revenue_cents: Optional[int] = Field(default=None, ge=0)
    estimated_cost_cents: Optional[int] = Field(default=None, ge=0)
    target_margin_percent: Optional[float] = None
    revenue_override_cents: Optional[int] = Field(default=None, ge=0)


class HoursLogCreate(BaseModel):
    minutes: int = Field(..., gt=0)
    crew_member_id: Optional[UUID] = None
    work_date: Optional[date] = None
    note: Optional[str] = None


class JobCostCreate(BaseModel):
    amount_cents: int = Field(..., ge=0)
    cost_type: str = Field(default="other", description="labour, material, subcontract, travel or other")
    description: Optional[str] = None
    incurred_at: Optional[datetime] = None


class MaterialUsageCreate(BaseModel):
    material_id: UUID
    quantity: float = Field(..., gt=0)
    unit_cost_cents: Optional[int] = Field(default=None, ge=0)
