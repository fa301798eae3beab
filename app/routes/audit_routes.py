"""
Audit Routes Module
===================

Read-only views over the persisted audit log and integration events.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_org_settings, can_view_audit_logs
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.services.audit_service import list_audit_logs
from app.services.event_service import list_app_events

router = APIRouter(
    tags=["Audit"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


@router.get("/api/audit-logs", summary="List audit log entries")
def list_audit_logs_route(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=100),
    actor: Actor = Depends(require_permission(can_view_audit_logs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(
        list_audit_logs(
            db,
            actor.org_id,
            entity_type=entity_type,
            entity_id=entity_id,
            page=page,
            page_size=page_size,
        )
    )


@router.get("/api/integrations/events", summary="Recent integration events")
def list_events_route(
    event_type: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(list_app_events(db, actor.org_id, event_type=event_type, limit=limit))
