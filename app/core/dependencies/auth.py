"""
Authentication Dependencies Module
==================================

FastAPI dependencies for authentication and actor resolution.

Features:
- JWT token validation
- User extraction from token
- Actor (org + capabilities) resolution
- Log context binding

Usage:
    @router.get("/protected")
    def protected_route(actor: Actor = Depends(get_current_actor)):
        ...
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.exceptions import AuthenticationError, TokenVersionMismatchError
from app.core.logging import get_logger, security_logger, org_id_context, user_id_context
from app.db.session import get_db
from app.models.user import User
from app.services.auth_service import AuthService

# Initialize logger
logger = get_logger(__name__)


# =====================================
# OAuth2 Scheme
# =====================================

# auto_error is off so a missing token goes through the envelope handler
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/auth/login",
    auto_error=False,
    description="OAuth2 token for authentication",
)


# =====================================
# Get Current User
# =====================================

def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate JWT and return current user from database.

    Security checks performed:
    - Token signature, expiry and type
    - Token version (revocation)
    - Account status (locked/disabled)

    Raises:
        AuthenticationError: missing or invalid token
        AuthorizationError: locked or disabled account
    """
    if not token:
        raise AuthenticationError("Not authenticated")

    auth_service = AuthService(db)
    try:
        user = auth_service.validate_access_token(token)
    except TokenVersionMismatchError:
        security_logger.log_token_invalid(
            reason="token_version_mismatch",
            ip_address=request.client.host if request.client else "unknown",
        )
        raise

    request.state.user_id = str(user.id)
    request.state.org_id = str(user.org_id)
    user_id_context.set(str(user.id))
    org_id_context.set(str(user.org_id))
    return user


# =====================================
# Get Current Actor
# =====================================

def get_current_actor(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    """
    Resolve the request actor: user, org and role capabilities.
    """
    return AuthService(db).build_actor(current_user)
