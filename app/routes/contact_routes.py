"""
Contact Routes Module
=====================

Contacts with seller-intent scores, plus logged touches. Any org member
can read; writes require ``can_manage_contacts``.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_contacts
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.contact import ContactActivityCreate, ContactCreate, ContactUpdate
from app.services import contact_service
from app.services.contact_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(
    prefix="/api/contacts",
    tags=["Contacts"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Contact not found"},
    },
)


@router.get("", summary="List contacts")
def list_contacts_route(
    q: Optional[str] = None,
    role: Optional[str] = None,
    seller_stage: Optional[str] = None,
    lead_source: Optional[str] = None,
    tag: Optional[str] = None,
    overdue: bool = False,
    due_today: bool = False,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows, total = contact_service.list_contacts(
        db,
        actor.org_id,
        q=q,
        role=role,
        seller_stage=seller_stage,
        lead_source=lead_source,
        tag=tag,
        overdue=overdue,
        due_today=due_today,
        page=page,
        page_size=page_size,
    )
    return ok({
        "items": contact_service.serialize_contacts(db, actor.org_id, rows),
        "total": total,
        "page": page,
        "page_size": page_size,
    })


@router.post("", status_code=201, summary="Create a contact")
def create_contact_route(
    body: ContactCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    contact = contact_service.create_contact(db, actor, body.model_dump())
    return ok(contact_service.serialize_contacts(db, actor.org_id, [contact])[0])


@router.get("/{contact_id}", summary="Get a contact")
def get_contact_route(
    contact_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    contact = contact_service.get_contact(db, actor.org_id, contact_id)
    return ok(contact_service.serialize_contacts(db, actor.org_id, [contact])[0])


@router.patch("/{contact_id}", summary="Update a contact")
def update_contact_route(
    contact_id: UUID,
    body: ContactUpdate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    contact = contact_service.update_contact(db, actor, contact_id, body.model_dump(exclude_unset=True))
    return ok(contact_service.serialize_contacts(db, actor.org_id, [contact])[0])


@router.delete("/{contact_id}", summary="Delete a contact")
def delete_contact_route(
    contact_id: UUID,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    contact_service.delete_contact(db, actor, contact_id)
    return ok({"deleted": True})


# =====================================
# Activities
# =====================================

@router.get("/{contact_id}/activities", summary="List logged touches")
def list_activities_route(
    contact_id: UUID,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = contact_service.list_contact_activities(db, actor.org_id, contact_id, limit=limit)
    return ok([contact_service.serialize_activity(row) for row in rows])


@router.post("/{contact_id}/activities", status_code=201, summary="Log a touch")
def record_activity_route(
    contact_id: UUID,
    body: ContactActivityCreate,
    actor: Actor = Depends(require_permission(can_manage_contacts)),
    db: Session = Depends(get_db),
) -> dict:
    activity = contact_service.record_activity(
        db,
        actor,
        contact_id,
        type=body.type,
        summary=body.summary,
        occurred_at=body.occurred_at,
        next_touch_at=body.next_touch_at,
    )
    return ok(contact_service.serialize_activity(activity))
