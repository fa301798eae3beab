"""
Organization Routes Module
==========================

Org settings, members and roles for the caller's organization.

Security:
- Every endpoint is scoped to the actor's org
- Settings and roles require manage_org; members require manage_staff
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_org_settings, can_manage_staff
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.core.logging import audit_logger, get_logger
from app.db.session import get_db
from app.schemas import ErrorResponse, MemberCreate, MemberResponse, MemberUpdate, OrgSettingsUpdate, RoleUpsert
from app.services import org_service

# Initialize logger
logger = get_logger(__name__)


# =====================================
# Router Setup
# =====================================

router = APIRouter(
    prefix="/api/org",
    tags=["Organization"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


# =====================================
# Settings
# =====================================

@router.get("/settings", summary="Get org settings")
def get_settings_route(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    row = org_service.get_org_settings(db, actor.org_id)
    db.commit()
    return ok(org_service.serialize_org_settings(row))


@router.patch("/settings", summary="Update org settings")
def update_settings_route(
    body: OrgSettingsUpdate,
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    changes = body.model_dump(exclude_unset=True)
    row = org_service.update_org_settings(db, actor.org_id, changes)
    audit_logger.log_event(
        action="ORG_SETTINGS_UPDATED",
        org_id=str(actor.org_id),
        actor_user_id=str(actor.user_id),
        entity_type="org_settings",
        entity_id=str(actor.org_id),
    )
    return ok(org_service.serialize_org_settings(row))


# =====================================
# Members
# =====================================

@router.get("/members", summary="List org members")
def list_members_route(
    actor: Actor = Depends(require_permission(can_manage_staff)),
    db: Session = Depends(get_db),
) -> dict:
    users = org_service.list_members(db, actor.org_id)
    return ok([MemberResponse.model_validate(user) for user in users])


@router.post("/members", status_code=201, summary="Add an org member")
def create_member_route(
    body: MemberCreate,
    actor: Actor = Depends(require_permission(can_manage_staff)),
    db: Session = Depends(get_db),
) -> dict:
    user = org_service.create_member(
        db,
        actor.org_id,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        role_key=body.role_key,
        crew_member_id=body.crew_member_id,
    )
    return ok(MemberResponse.model_validate(user))


@router.patch("/members/{user_id}", summary="Update an org member")
def update_member_route(
    user_id: UUID,
    body: MemberUpdate,
    actor: Actor = Depends(require_permission(can_manage_staff)),
    db: Session = Depends(get_db),
) -> dict:
    user = org_service.update_member(db, actor.org_id, user_id, body.model_dump(exclude_unset=True))
    return ok(MemberResponse.model_validate(user))


# =====================================
# Roles
# =====================================

@router.get("/roles", summary="List org roles")
def list_roles_route(
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(org_service.list_roles(db, actor.org_id))


@router.put("/roles", summary="Create or replace org roles")
def upsert_roles_route(
    body: List[RoleUpsert],
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    for role in body:
        org_service.upsert_role(db, actor.org_id, role.key, role.name, role.capabilities)
    return ok(org_service.list_roles(db, actor.org_id))
