"""
Authentication Schemas Module
=============================

Pydantic models for authentication request/response validation and the
shared response envelope.

Benefits:
- Request validation
- OpenAPI documentation
- Type safety
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ==========================
# Envelope Schemas
# ==========================

class ErrorBody(BaseModel):
    """Error payload inside a failed envelope."""

    code: str = Field(..., description="Stable error code", examples=["NOT_FOUND"])
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    ok: bool = Field(default=False)
    error: ErrorBody

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": False,
                "error": {"code": "NOT_FOUND", "message": "Job not found"},
            }
        }
    )


class Envelope(BaseModel):
    """Successful response wrapper."""

    ok: bool = Field(default=True)
    data: Any = None


# ==========================
# Login Schemas
# ==========================

class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(
        ...,
        description="User email address",
        examples=["user@example.com"]
    )
    password: str = Field(
        ...,
        min_length=1,
        description="User password",
        examples=["SecureP@ss123"]
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "user@example.com",
                "password": "SecureP@ss123"
            }
        }
    )


class TokenResponse(BaseModel):
    """Token response schema for login/refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: Optional[int] = Field(default=None, description="Access token expiration in seconds")


class RefreshTokenRequest(BaseModel):
    """Refresh token request schema."""

    refresh_token: str = Field(..., description="Valid refresh token")


# ==========================
# Token Payload Schemas
# ==========================

class TokenPayload(BaseModel):
    """JWT token payload schema (for internal use)."""

    sub: str  # User ID
    org_id: str
    token_version: int
    type: str  # "access" or "refresh"
    exp: int
    iat: Optional[int] = None
    iss: Optional[str] = None
    aud: Optional[str] = None
