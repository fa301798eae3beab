"""
User Schemas Module
===================

Pydantic models for org members.

Benefits:
- Request validation
- Sensitive data exclusion
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class MemberCreate(BaseModel):
    """Schema for adding a member to the caller's org."""

    email: EmailStr = Field(..., description="Member email address")
    password: str = Field(..., min_length=8, max_length=128, description="Initial password")
    full_name: Optional[str] = Field(default=None, max_length=255)
    role_key: str = Field(default="staff", min_length=1, max_length=50, description="Org role key")
    crew_member_id: Optional[UUID] = Field(default=None, description="Crew member the user works as")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "tech@example.com",
                "password": "SecureP@ss123",
                "full_name": "Sam Tech",
                "role_key": "staff",
            }
        }
    )


class MemberResponse(BaseModel):
    """User response schema (excludes sensitive data)."""

    id: UUID
    org_id: UUID
    email: str
    full_name: Optional[str] = None
    role_key: str
    crew_member_id: Optional[UUID] = None
    is_active: bool
    is_locked: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CurrentUserResponse(MemberResponse):
    """The authenticated user plus resolved capabilities."""

    capabilities: List[str] = Field(default_factory=list)


class MemberUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)
    role_key: Optional[str] = Field(default=None, min_length=1, max_length=50)
    crew_member_id: Optional[UUID] = None
    is_active: Optional[bool] = None
