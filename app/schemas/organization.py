"""
Organization Schemas Module
===========================

Pydantic models for org settings and roles.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OrgSettingsUpdate(BaseModel):
    """Partial update of the org settings row; null resets to the default."""

    company_name: Optional[str] = Field(default=None, max_length=255)
    timezone: Optional[str] = Field(default=None, max_length=64)
    default_daily_capacity_minutes: Optional[int] = Field(default=None, gt=0)
    margin_warning_percent: Optional[float] = Field(default=None, ge=0, le=100)
    margin_critical_percent: Optional[float] = Field(default=None, ge=0, le=100)
    variance_threshold_percent: Optional[float] = Field(default=None, ge=0)
    automations_disabled: Optional[bool] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "company_name": "Acme Plumbing",
                "margin_warning_percent": 30,
                "margin_critical_percent": 20,
            }
        }
    )


class RoleUpsert(BaseModel):
    """Create or replace one org role."""

    key: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=100)
    capabilities: List[str] = Field(default_factory=list)
