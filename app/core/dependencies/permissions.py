"""
Permission Dependencies Module
==============================

FastAPI dependencies for capability-based authorization.

Features:
- Any ``app.core.authz`` predicate can guard a route
- Security logging for denied access

Usage:
    @router.post("/contacts")
    def create_contact(actor: Actor = Depends(require_permission(can_manage_contacts))):
        ...
"""

from typing import Callable

from fastapi import Depends, Request

from app.core.authz import Actor, Permission
from app.core.dependencies.auth import get_current_actor
from app.core.exceptions import AuthorizationError
from app.core.logging import get_logger, security_logger

# Initialize logger
logger = get_logger(__name__)


def require_permission(predicate: Permission) -> Callable[..., Actor]:
    """
    Create a dependency that requires ``predicate(actor)`` to hold.

    Args:
        predicate: Permission function from ``app.core.authz``

    Returns:
        Dependency function resolving to the actor
    """
    def permission_checker(
        request: Request,
        actor: Actor = Depends(get_current_actor),
    ) -> Actor:
        if not predicate(actor):
            security_logger.log_forbidden(
                user_id=str(actor.user_id),
                resource=request.url.path,
                action=request.method,
                permission=predicate.__name__,
            )
            raise AuthorizationError("Insufficient permissions")
        return actor

    permission_checker.__name__ = f"require_{predicate.__name__}"
    return permission_checker
