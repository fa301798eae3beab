"""
Prospecting Routes Module
=========================

The call queue: contacts ranked by seller intent with a suggested next
action. Any org member can read it.
"""

from typing import List, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.dependencies.auth import get_current_actor
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.services import contact_service
from app.services.contact_service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(
    prefix="/api/prospecting",
    tags=["Prospecting"],
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)


@router.get("/queue", summary="Contacts ranked by seller intent")
def queue_route(
    q: Optional[str] = None,
    owner_user_id: Optional[UUID] = None,
    role: Optional[str] = None,
    seller_stage: Optional[str] = None,
    tag: List[str] = Query(default=[]),
    band: Optional[Literal["hot", "warm", "cold"]] = None,
    overdue: bool = False,
    due_today: bool = False,
    due_within_days: Optional[int] = Query(default=None, ge=1),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    items, total = contact_service.prospecting_queue(
        db,
        actor.org_id,
        q=q,
        owner_user_id=owner_user_id,
        role=role,
        seller_stage=seller_stage,
        tags=tag,
        band=band,
        overdue=overdue,
        due_today=due_today,
        due_within_days=due_within_days,
        page=page,
        page_size=page_size,
    )
    return ok({"items": items, "total": total, "page": page, "page_size": page_size})
