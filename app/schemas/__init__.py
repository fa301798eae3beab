"""
Schemas Package Initialization
==============================

Exports the Pydantic schemas shared across routers.

Usage:
    from app.schemas import LoginRequest, TokenResponse, ErrorResponse
"""

# Auth schemas
from app.schemas.auth import (
    Envelope,
    ErrorBody,
    ErrorResponse,
    LoginRequest,
    RefreshTokenRequest,
    TokenPayload,
    TokenResponse,
)

# User schemas
from app.schemas.user import (
    CurrentUserResponse,
    MemberCreate,
    MemberResponse,
    MemberUpdate,
)

# Organization schemas
from app.schemas.organization import (
    OrgSettingsUpdate,
    RoleUpsert,
)

__all__ = [
    # Auth
    "Envelope",
    "ErrorBody",
    "ErrorResponse",
    "LoginRequest",
    "RefreshTokenRequest",
    "TokenPayload",
    "TokenResponse",
    # User
    "CurrentUserResponse",
    "MemberCreate",
    "MemberResponse",
    "MemberUpdate",
    # Organization
    "OrgSettingsUpdate",
    "RoleUpsert",
]
