"""
Authentication Service Module
=============================

Consolidated authentication service handling:
- Password hashing using Argon2
- JWT access & refresh token creation with type discrimination
- Token decoding and validation
- Token version tracking for forced logout
- Account lockout management
- Capability resolution for the request actor
"""

from datetime import datetime, timedelta, UTC
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session
from jose import jwt, JWTError
from jose.exceptions import ExpiredSignatureError
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, Argon2Error

from app.core.authz import Actor, DEFAULT_ROLE_CAPABILITIES
from app.core.config import settings
from app.core.exceptions import (
    TokenExpiredError,
    TokenInvalidError,
    TokenVersionMismatchError,
    AccountLockedError,
    AccountDisabledError,
    InvalidCredentialsError,
)
from app.core.logging import get_logger, security_logger
from app.models.role import OrgRole
from app.models.user import User

# Initialize logger
logger = get_logger(__name__)


# ==========================
# Password Hasher Configuration
# ==========================

ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)


class TokenType:
    """Token type constants for discrimination."""
    ACCESS = "access"
    REFRESH = "refresh"


class AuthService:
    """
    Authentication service handling all auth-related operations.

    Usage:
        auth_service = AuthService(db)
        user, tokens = auth_service.authenticate_user(email, password)
    """

    def __init__(self, db: Session):
        self.db = db

    # --------------------------
    # Password Utilities
    # --------------------------

    @staticmethod
    def hash_password(password: str) -> str:
        return ph.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        try:
            ph.verify(hashed_password, plain_password)
            return True
        except VerifyMismatchError:
            return False
        except Argon2Error as e:
            logger.warning("Password verification error", extra={"error": str(e)})
            return False

    # --------------------------
    # Token Creation
    # --------------------------

    @staticmethod
    def _create_token(
        user_id: UUID,
        org_id: UUID,
        token_version: int,
        token_type: str,
        expires_delta: timedelta,
    ) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "org_id": str(org_id),
            "token_version": token_version,
            "type": token_type,
            "exp": now + expires_delta,
            "iat": now,
            "iss": settings.ISSUER,
            "aud": settings.AUDIENCE,
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(
        user_id: UUID,
        org_id: UUID,
        token_version: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """
        Create a JWT access token.

        Args:
            user_id: User's UUID
            org_id: Organization's UUID
            token_version: Current token version for revocation
            expires_delta: Custom expiration time
        """
        return AuthService._create_token(
            user_id,
            org_id,
            token_version,
            TokenType.ACCESS,
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @staticmethod
    def create_refresh_token(
        user_id: UUID,
        org_id: UUID,
        token_version: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        return AuthService._create_token(
            user_id,
            org_id,
            token_version,
            TokenType.REFRESH,
            expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    # --------------------------
    # Token Decoding & Validation
    # --------------------------

    @staticmethod
    def decode_token(token: str, expected_type: Optional[str] = None) -> dict:
        """
        Decode and validate a JWT token.

        Raises:
            TokenExpiredError: If token has expired
            TokenInvalidError: If token is invalid
        """
        try:
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                issuer=settings.ISSUER,
                audience=settings.AUDIENCE,
            )
        except ExpiredSignatureError:
            raise TokenExpiredError(token_type=expected_type or "unknown")
        except JWTError as e:
            logger.warning("Token decode error", extra={"error": str(e)})
            raise TokenInvalidError(reason=str(e))

        if expected_type and payload.get("type") != expected_type:
            raise TokenInvalidError(
                reason=f"Expected {expected_type} token, got {payload.get('type')}"
            )
        return payload

    def get_tokens_for_user(self, user: User) -> dict:
        return {
            "access_token": self.create_access_token(user.id, user.org_id, user.token_version),
            "refresh_token": self.create_refresh_token(user.id, user.org_id, user.token_version),
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    # --------------------------
    # Authentication Methods
    # --------------------------

    def authenticate_user(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, dict]:
        """
        Authenticate a user with email and password.

        Raises:
            InvalidCredentialsError: If credentials are invalid
            AccountLockedError: If account is locked
            AccountDisabledError: If account is disabled
        """
        ip = ip_address or "unknown"
        user = self.db.query(User).filter(User.email == email.lower()).first()

        if not user:
            security_logger.log_login_failure(email=email, ip_address=ip, reason="user_not_found")
            raise InvalidCredentialsError()

        if user.is_locked:
            security_logger.log_login_failure(email=email, ip_address=ip, reason="account_locked")
            raise AccountLockedError()

        if not user.is_active:
            security_logger.log_login_failure(email=email, ip_address=ip, reason="account_disabled")
            raise AccountDisabledError()

        if not self.verify_password(password, user.hashed_password):
            user.failed_attempts += 1
            if user.failed_attempts >= settings.MAX_LOGIN_ATTEMPTS:
                user.lock_account()
                security_logger.log_account_locked(
                    user_id=str(user.id), org_id=str(user.org_id), ip_address=ip
                )
            self.db.commit()
            security_logger.log_login_failure(email=email, ip_address=ip, reason="invalid_password")
            raise InvalidCredentialsError()

        user.failed_attempts = 0
        self.db.commit()

        tokens = self.get_tokens_for_user(user)
        security_logger.log_login_success(user_id=str(user.id), org_id=str(user.org_id), ip_address=ip)
        return user, tokens

    def _load_user_for_token(self, payload: dict) -> User:
        user_id = payload.get("sub")
        token_version = payload.get("token_version")
        if not user_id or token_version is None:
            raise TokenInvalidError(reason="Invalid token payload")

        try:
            user_uuid = UUID(user_id)
        except ValueError:
            raise TokenInvalidError(reason="Invalid user ID format")

        user = self.db.get(User, user_uuid)
        if not user:
            raise TokenInvalidError(reason="User not found")
        if user.token_version != token_version:
            raise TokenVersionMismatchError()
        if user.is_locked:
            raise AccountLockedError()
        if not user.is_active:
            raise AccountDisabledError()
        return user

    def refresh_tokens(self, refresh_token: str) -> dict:
        payload = self.decode_token(refresh_token, expected_type=TokenType.REFRESH)
        user = self._load_user_for_token(payload)
        security_logger.log_token_refresh(user_id=str(user.id), org_id=str(user.org_id))
        return self.get_tokens_for_user(user)

    def logout(self, user: User) -> None:
        """Invalidate every outstanding token for the user."""
        user.invalidate_tokens()
        self.db.commit()
        security_logger.log_logout(user_id=str(user.id), org_id=str(user.org_id))

    def validate_access_token(self, token: str) -> User:
        payload = self.decode_token(token, expected_type=TokenType.ACCESS)
        return self._load_user_for_token(payload)

    # --------------------------
    # Actor Resolution
    # --------------------------

    def resolve_capabilities(self, user: User) -> List[str]:
        """Capabilities of the user's org role, or the built-in template."""
        role = (
            self.db.query(OrgRole)
            .filter(OrgRole.org_id == user.org_id, OrgRole.key == user.role_key)
            .first()
        )
        if role is not None:
            return list(role.capabilities or [])
        return list(DEFAULT_ROLE_CAPABILITIES.get(user.role_key, []))

    def build_actor(self, user: User) -> Actor:
        return Actor(
            user_id=user.id,
            org_id=user.org_id,
            crew_member_id=user.crew_member_id,
            role_key=user.role_key,
            capabilities=tuple(self.resolve_capabilities(user)),
        )
