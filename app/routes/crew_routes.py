"""
Crew Routes Module
==================

Crew members and the cost rates used for labour costing.

Security:
- Any member can list crews; create and update require manage_staff
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_staff
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.crew import CrewMemberCreate, CrewMemberUpdate
from app.services import crew_service

router = APIRouter(
    prefix="/api/crews",
    tags=["Crews"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


@router.get("", summary="List crew members")
def list_crews_route(
    active_only: bool = False,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = crew_service.list_crew_members(db, actor.org_id, active_only=active_only)
    return ok([row.to_dict() for row in rows])


@router.post("", status_code=201, summary="Create a crew member")
def create_crew_route(
    body: CrewMemberCreate,
    actor: Actor = Depends(require_permission(can_manage_staff)),
    db: Session = Depends(get_db),
) -> dict:
    crew = crew_service.create_crew_member(db, actor, body.model_dump())
    return ok(crew.to_dict())


@router.patch("/{crew_member_id}", summary="Update a crew member")
def update_crew_route(
    crew_member_id: UUID,
    body: CrewMemberUpdate,
    actor: Actor = Depends(require_permission(can_manage_staff)),
    db: Session = Depends(get_db),
) -> dict:
    crew = crew_service.update_crew_member(db, actor, crew_member_id, body.model_dump(exclude_unset=True))
    return ok(crew.to_dict())
