"""
Authentication Routes Module
============================

Handles:
- User login with account lockout protection
- Token refresh
- Logout (token invalidation)
- Current user and capabilities

Security Features:
- Account lockout handling
- Token version validation
- Rate limiting (middleware)
- Security logging

Errors raised by ``AuthService`` propagate to the envelope handlers.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.dependencies.auth import get_current_actor, get_current_user
from app.core.envelope import ok
from app.core.logging import get_logger
from app.db.session import get_db
from app.models.user import User
from app.schemas import CurrentUserResponse, ErrorResponse, LoginRequest, MemberResponse, RefreshTokenRequest
from app.services.auth_service import AuthService

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Router Setup
# =====================================

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
        403: {"model": ErrorResponse, "description": "Access forbidden"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)


# =====================================
# Login Endpoint
# =====================================

@router.post(
    "/login",
    summary="User Login",
    description="""
    Authenticate user with email and password.

    Returns JWT access and refresh tokens on success.

    Security features:
    - Account locks after MAX_LOGIN_ATTEMPTS failed attempts
    - Rate limited per IP
    - All attempts are logged
    """,
    responses={429: {"model": ErrorResponse, "description": "Too many requests"}},
)
def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db),
) -> dict:
    client_ip = request.client.host if request.client else "unknown"
    user, tokens = AuthService(db).authenticate_user(
        email=login_data.email,
        password=login_data.password,
        ip_address=client_ip,
    )
    logger.info(
        "User logged in successfully",
        extra={"user_id": str(user.id), "org_id": str(user.org_id), "ip_address": client_ip},
    )
    return ok(tokens)


# =====================================
# Refresh Token Endpoint
# =====================================

@router.post(
    "/refresh",
    summary="Refresh Access Token",
    description="Exchange a valid refresh token for a new token pair.",
)
def refresh_token(
    refresh_data: RefreshTokenRequest,
    db: Session = Depends(get_db),
) -> dict:
    return ok(AuthService(db).refresh_tokens(refresh_data.refresh_token))


# =====================================
# Logout Endpoint
# =====================================

@router.post(
    "/logout",
    summary="User Logout",
    description="""
    Logout the current user by invalidating all tokens.

    This increments the user's token version, making all
    existing tokens invalid.
    """,
)
def logout(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    AuthService(db).logout(current_user)
    return ok({"message": "Successfully logged out"})


# =====================================
# Get Current User Endpoint
# =====================================

@router.get(
    "/me",
    summary="Get Current User",
    description="The authenticated user with the capabilities of their org role.",
)
def get_me(
    current_user: User = Depends(get_current_user),
    actor: Actor = Depends(get_current_actor),
) -> dict:
    data = MemberResponse.model_validate(current_user).model_dump()
    return ok(CurrentUserResponse(**data, capabilities=list(actor.capabilities)))
