"""
Dashboard Routes Module
=======================

Org rollups for the home dashboard. Job rows respect the caller's
visibility, so crew-scoped users only see their crew's numbers.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_view_jobs
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.services.dashboard_service import profitability_dashboard

router = APIRouter(
    prefix="/api/dashboard",
    tags=["Dashboard"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
    },
)


@router.get("/profitability", summary="Profitability rollup for a date range")
def profitability_route(
    start_date: date,
    end_date: date,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(profitability_dashboard(db, actor, start_date, end_date))
