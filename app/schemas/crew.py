"""
Crew Schemas Module
===================

Pydantic models for crew members and their cost rates.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CrewMemberCreate(BaseModel):
    """New crew member; a missing cost rate leaves their hours uncosted."""

    display_name: str = Field(..., min_length=1, max_length=255)
    cost_rate_cents: Optional[int] = Field(default=None, ge=0)
    cost_rate_type: Literal["hourly", "daily"] = "hourly"
    daily_capacity_minutes: Optional[int] = Field(default=None, ge=0, le=24 * 60)
    active: bool = True

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "display_name": "Sam Carter",
                "cost_rate_cents": 6000,
                "cost_rate_type": "hourly",
            }
        }
    )


class CrewMemberUpdate(BaseModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    cost_rate_cents: Optional[int] = Field(default=None, ge=0)
    cost_rate_type: Optional[Literal["hourly", "daily"]] = None
    daily_capacity_minutes: Optional[int] = Field(default=None, ge=0, le=24 * 60)
    active: Optional[bool] = None
