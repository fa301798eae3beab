"""
Centralized Exception Handling Module
=====================================

Defines the application exception hierarchy.

Every exception carries a stable error code from the fixed set exposed
in the API envelope::

    {"ok": false, "error": {"code": "NOT_FOUND", "message": "Job not found"}}

Usage:
    raise NotFoundError("Job", identifier=str(job_id))
    raise AuthorizationError("Insufficient permissions")
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ErrorCode(str, Enum):
    """Error codes returned in the response envelope."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_TO_ERROR_CODE: Dict[int, ErrorCode] = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMITED,
}


def error_code_for_status(status_code: int) -> ErrorCode:
    """Map an HTTP status to the closest envelope error code."""
    return STATUS_TO_ERROR_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)


class AppException(Exception):
    """
    Base exception class for the application.

    All custom exceptions should inherit from this class.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)

    def to_error(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


# ==========================
# Authentication Exceptions
# ==========================

class AuthenticationError(AppException):
    """Raised when authentication fails."""

    code = ErrorCode.UNAUTHORIZED

    def __init__(
        self,
        message: str = "Could not validate credentials",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when login credentials are invalid."""

    def __init__(self):
        super().__init__(message="Invalid email or password")


class TokenExpiredError(AuthenticationError):
    """Raised when a JWT token has expired."""

    def __init__(self, token_type: str = "access"):
        super().__init__(
            message=f"{token_type.capitalize()} token has expired",
            details={"token_type": token_type},
        )


class TokenInvalidError(AuthenticationError):
    """Raised when a JWT token is invalid."""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(message="Invalid token", details={"reason": reason})


class TokenVersionMismatchError(AuthenticationError):
    """Raised when token version doesn't match user's current version."""

    def __init__(self):
        super().__init__(message="Token has been invalidated. Please log in again.")


# ==========================
# Authorization Exceptions
# ==========================

class AuthorizationError(AppException):
    """Raised when the actor lacks a required capability."""

    code = ErrorCode.FORBIDDEN

    def __init__(
        self,
        message: str = "Insufficient permissions",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details,
        )


class AccountLockedError(AuthorizationError):
    """Raised when account is locked due to failed attempts."""

    def __init__(self):
        super().__init__(
            message="Account is locked due to multiple failed login attempts. "
                    "Please contact your administrator."
        )


class AccountDisabledError(AuthorizationError):
    """Raised when account is disabled."""

    def __init__(self):
        super().__init__(message="Account has been disabled. Please contact your administrator.")


# ==========================
# Resource Exceptions
# ==========================

class NotFoundError(AppException):
    """Raised when a resource is not found (or belongs to another org)."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None):
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ConflictError(AppException):
    """Raised when a write collides with existing state."""

    code = ErrorCode.CONFLICT

    def __init__(
        self,
        message: str = "Resource already exists",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


# ==========================
# Validation Exceptions
# ==========================

class ValidationError(AppException):
    """Raised when validation fails."""

    code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class EmailAlreadyExistsError(ConflictError):
    """Raised when attempting to add a member with an existing email."""

    def __init__(self):
        super().__init__(message="An account with this email already exists")


# ==========================
# Rate Limiting Exceptions
# ==========================

class RateLimitError(AppException):
    """Raised when rate limit is exceeded."""

    code = ErrorCode.RATE_LIMITED

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message="Too many requests. Please try again later.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details={"retry_after_seconds": retry_after},
        )
