"""
Notification Routes Module
==========================

In-app notifications for the caller, and the org-wide sweep that
generates them.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_org_settings
from app.core.dependencies.auth import get_current_actor
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.notification import MarkReadRequest, SweepRequest
from app.services.notification_service import (
    list_notifications,
    mark_notifications_read,
    run_notification_sweep,
)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"],
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)


@router.get("", summary="List my notifications")
def list_notifications_route(
    unread_only: bool = False,
    unread_count_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    return ok(
        list_notifications(
            db,
            actor.org_id,
            actor.user_id,
            unread_only=unread_only,
            limit=limit,
            unread_count_only=unread_count_only,
        )
    )


@router.post("/read", summary="Mark notifications read")
def mark_read_route(
    body: MarkReadRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    updated = mark_notifications_read(db, actor.org_id, actor.user_id, ids=body.ids)
    return ok({"updated": updated})


@router.post("/sweep", summary="Run the notification sweep")
def sweep_route(
    body: SweepRequest,
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(run_notification_sweep(db, actor, actor.org_id, dry_run=body.dry_run))
