"""
Appraisal Routes Module
=======================

Appraisals, their prep checklist and follow-ups. Writes use the same
capability as contacts.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_contacts
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.appraisal import (
    AppraisalCreate,
    AppraisalUpdate,
    ChecklistItemCreate,
    ChecklistItemUpdate,
    FollowupComplete,
    FollowupCreate,
)
from app.services import appraisal_service

router = APIRouter(
    prefix="/api/appraisals",
    tags=["Appraisals"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Appraisal not found"},
    },
)


@router.get("", summary="List appraisals")
def list_appraisals_route(
    stage: Optional[str] = None,
    contact_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = appraisal_service.list_appraisals(db, actor.org_id, stage=stage, contact_id=contact_id)
    return ok([appraisal_service.serialize_appraisal(row) for row in rows])


@router.post("", status_code=201, summary="Create an appraisal")
def create_appraisal_route(
    body: AppraisalCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    appraisal = appraisal_service.create_appraisal(db, actor, body.model_dump())
    return ok(appraisal_service.serialize_appraisal(appraisal))


@router.get("/{appraisal_id}", summary="Get an appraisal")
def get_appraisal_route(
    appraisal_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    appraisal = appraisal_service.get_appraisal(db, actor.org_id, appraisal_id)
    data = appraisal_service.serialize_appraisal(appraisal)
    data["checklist"] = [
        appraisal_service.serialize_checklist_item(item)
        for item in appraisal_service.list_checklist(db, actor.org_id, appraisal_id)
    ]
    data["followups"] = [
        appraisal_service.serialize_followup(item)
        for item in appraisal_service.list_followups(db, actor.org_id, appraisal_id)
    ]
    return ok(data)


@router.patch("/{appraisal_id}", summary="Update an appraisal")
def update_appraisal_route(
    appraisal_id: UUID,
    body: AppraisalUpdate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    appraisal = appraisal_service.update_appraisal(db, actor, appraisal_id, body.model_dump(exclude_unset=True))
    return ok(appraisal_service.serialize_appraisal(appraisal))


# =====================================
# Checklist
# =====================================

@router.get("/{appraisal_id}/checklist", summary="List prep checklist items")
def list_checklist_route(
    appraisal_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = appraisal_service.list_checklist(db, actor.org_id, appraisal_id)
    return ok([appraisal_service.serialize_checklist_item(row) for row in rows])


@router.post("/{appraisal_id}/checklist", status_code=201, summary="Add a checklist item")
def add_checklist_item_route(
    appraisal_id: UUID,
    body: ChecklistItemCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    item = appraisal_service.add_checklist_item(db, actor, appraisal_id, body.model_dump())
    return ok(appraisal_service.serialize_checklist_item(item))


@router.patch("/{appraisal_id}/checklist/{item_id}", summary="Update a checklist item")
def update_checklist_item_route(
    appraisal_id: UUID,
    item_id: UUID,
    body: ChecklistItemUpdate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    item = appraisal_service.update_checklist_item(
        db, actor, appraisal_id, item_id, body.model_dump(exclude_unset=True)
    )
    return ok(appraisal_service.serialize_checklist_item(item))


# =====================================
# Follow-ups
# =====================================

@router.get("/{appraisal_id}/followups", summary="List follow-ups")
def list_followups_route(
    appraisal_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = appraisal_service.list_followups(db, actor.org_id, appraisal_id)
    return ok([appraisal_service.serialize_followup(row) for row in rows])


@router.post("/{appraisal_id}/followups", status_code=201, summary="Add a follow-up")
def add_followup_route(
    appraisal_id: UUID,
    body: FollowupCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    followup = appraisal_service.add_followup(db, actor, appraisal_id, body.model_dump())
    return ok(appraisal_service.serialize_followup(followup))


@router.post("/{appraisal_id}/followups/{followup_id}/complete", summary="Complete or reopen a follow-up")
def complete_followup_route(
    appraisal_id: UUID,
    followup_id: UUID,
    body: FollowupComplete,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    followup = appraisal_service.complete_followup(db, actor, appraisal_id, followup_id, is_done=body.is_done)
    return ok(appraisal_service.serialize_followup(followup))
