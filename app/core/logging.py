"""
Logging Infrastructure
======================

Structured logging with support for:
- JSON formatted logs for production
- Console formatted logs for development
- Context binding for request tracing (request, org, user)
- Dedicated security and audit event loggers
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar, ParamSpec

import structlog
from structlog.types import Processor

from app.core.config import get_settings

# Context variables for request tracing
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
org_id_context: ContextVar[Optional[str]] = ContextVar("org_id", default=None)
user_id_context: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

P = ParamSpec("P")
R = TypeVar("R")


def add_context_variables(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Add context variables to log entries.

    This processor adds request_id, org_id, and user_id from
    context variables to every log entry.
    """
    request_id = request_id_context.get()
    if request_id:
        event_dict["request_id"] = request_id

    org_id = org_id_context.get()
    if org_id:
        event_dict["org_id"] = org_id

    user_id = user_id_context.get()
    if user_id:
        event_dict["user_id"] = user_id

    return event_dict


def get_log_level(settings: Any) -> int:
    """Convert string log level to logging constant."""
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(settings.LOG_LEVEL.upper(), logging.INFO)


def get_processors(settings: Any) -> list[Processor]:
    """Get structlog processors based on settings."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_context_variables,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=not settings.is_production))

    return processors


def configure_logging() -> None:
    """
    Configure structured logging for the application.

    This should be called once at application startup.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=get_log_level(settings),
    )

    structlog.configure(
        processors=get_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name. If None, uses the calling module's name.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("job_created", job_id="123")
    """
    return structlog.get_logger(name)


def log_execution_time(
    log: structlog.stdlib.BoundLogger,
    operation: str,
    **extra_fields: Any
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to log execution time of a function.

    Example:
        >>> @log_execution_time(log, "notification_sweep")
        ... def run_sweep(...):
        ...     ...
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                duration_ms = (time.perf_counter() - start_time) * 1000
                log.info(
                    f"{operation}_completed",
                    duration_ms=round(duration_ms, 2),
                    success=True,
                    **extra_fields
                )
                return result
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                log.error(
                    f"{operation}_failed",
                    duration_ms=round(duration_ms, 2),
                    success=False,
                    error=str(e),
                    error_type=type(e).__name__,
                    **extra_fields
                )
                raise
        return wrapper
    return decorator


class SecurityLogger:
    """
    Specialized logger for authentication and authorization events.
    """

    def __init__(self) -> None:
        self.log = get_logger("security")

    def log_login_success(self, user_id: str, org_id: str, ip_address: str) -> None:
        self.log.info("login_success", user_id=user_id, org_id=org_id, ip_address=ip_address)

    def log_login_failure(self, email: str, ip_address: str, reason: str) -> None:
        self.log.warning("login_failure", email=email, ip_address=ip_address, reason=reason)

    def log_account_locked(self, user_id: str, org_id: str, ip_address: str) -> None:
        self.log.warning("account_locked", user_id=user_id, org_id=org_id, ip_address=ip_address)

    def log_token_invalid(self, reason: str, ip_address: str) -> None:
        self.log.warning("token_invalid", reason=reason, ip_address=ip_address)

    def log_token_refresh(self, user_id: str, org_id: str) -> None:
        self.log.info("token_refreshed", user_id=user_id, org_id=org_id)

    def log_logout(self, user_id: str, org_id: str) -> None:
        self.log.info("logout", user_id=user_id, org_id=org_id)

    def log_forbidden(self, user_id: str, resource: str, action: str, permission: str) -> None:
        self.log.warning(
            "permission_denied",
            user_id=user_id,
            resource=resource,
            action=action,
            permission=permission,
        )

    def log_cross_org_access(self, user_id: str, user_org: str, resource: str) -> None:
        self.log.warning(
            "cross_org_access_attempt",
            user_id=user_id,
            user_org=user_org,
            resource=resource,
        )

    def log_rate_limit_exceeded(self, key: str, endpoint: str) -> None:
        self.log.warning("rate_limit_exceeded", key=key, endpoint=endpoint)


class AuditLogger:
    """
    Structured mirror of the persisted audit log.
    """

    def __init__(self) -> None:
        self.log = get_logger("audit")

    def log_event(
        self,
        action: str,
        org_id: str,
        actor_user_id: Optional[str],
        entity_type: str,
        entity_id: Optional[str],
        **fields: Any,
    ) -> None:
        self.log.info(
            "audit_event",
            action=action,
            org_id=org_id,
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            **fields,
        )


security_logger = SecurityLogger()
audit_logger = AuditLogger()
