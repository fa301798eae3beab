"""
Job Routes Module
=================

Jobs and everything logged against them.

Security:
- Crew-scoped actors only see their crew's jobs; others are NOT_FOUND
- Writes additionally assert job write access in the service layer
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.authz import (
    Actor,
    can_log_material_usage,
    can_manage_jobs,
    can_update_jobs,
    can_view_jobs,
    can_write_job_artifacts,
)
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.job import HoursLogCreate, JobCostCreate, JobCreate, JobUpdate, MaterialUsageCreate
from app.services import job_service, material_service
from app.services.job_activity import list_job_activity
from app.services.job_profitability import compute_job_profitability

router = APIRouter(
    prefix="/api/jobs",
    tags=["Jobs"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Insufficient permissions"},
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)


def _serialize_row(row) -> dict:
    data = {column.name: getattr(row, column.name) for column in row.__table__.columns}
    data.pop("org_id", None)
    return data


@router.get("", summary="List visible jobs")
def list_jobs_route(
    status: Optional[str] = None,
    crew_id: Optional[UUID] = None,
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    rows = job_service.list_jobs(db, actor, status=status, crew_id=crew_id, limit=limit)
    return ok([job_service.serialize_job(row) for row in rows])


@router.post("", status_code=201, summary="Create a job")
def create_job_route(
    body: JobCreate,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    job = job_service.create_job(db, actor, body.model_dump())
    return ok(job_service.serialize_job(job))


@router.get("/{job_id}", summary="Get a job")
def get_job_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(job_service.serialize_job(job_service.get_job_for_actor(db, actor, job_id)))


@router.patch("/{job_id}", summary="Update a job")
def update_job_route(
    job_id: UUID,
    body: JobUpdate,
    actor: Actor = Depends(require_permission(can_update_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    job = job_service.update_job(db, actor, job_id, body.model_dump(exclude_unset=True))
    return ok(job_service.serialize_job(job))


@router.delete("/{job_id}", summary="Delete a job")
def delete_job_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    job_service.delete_job(db, actor, job_id)
    return ok({"deleted": True})


# =====================================
# Hours and costs
# =====================================

@router.get("/{job_id}/hours", summary="List hours logs")
def list_hours_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok([_serialize_row(row) for row in job_service.list_job_hours(db, actor, job_id)])


@router.post("/{job_id}/hours", status_code=201, summary="Log hours")
def log_hours_route(
    job_id: UUID,
    body: HoursLogCreate,
    actor: Actor = Depends(require_permission(can_write_job_artifacts)),
    db: Session = Depends(get_db),
) -> dict:
    row = job_service.log_job_hours(
        db,
        actor,
        job_id,
        minutes=body.minutes,
        crew_member_id=body.crew_member_id,
        work_date=body.work_date,
        note=body.note,
    )
    return ok(_serialize_row(row))


@router.get("/{job_id}/costs", summary="List manual costs")
def list_costs_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok([_serialize_row(row) for row in job_service.list_job_costs(db, actor, job_id)])


@router.post("/{job_id}/costs", status_code=201, summary="Add a manual cost")
def add_cost_route(
    job_id: UUID,
    body: JobCostCreate,
    actor: Actor = Depends(require_permission(can_write_job_artifacts)),
    db: Session = Depends(get_db),
) -> dict:
    row = job_service.add_job_cost(
        db,
        actor,
        job_id,
        amount_cents=body.amount_cents,
        cost_type=body.cost_type,
        description=body.description,
        incurred_at=body.incurred_at,
    )
    return ok(_serialize_row(row))


# =====================================
# Material usage
# =====================================

@router.get("/{job_id}/materials", summary="List material usage")
def list_material_usage_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    return ok([_serialize_row(row) for row in material_service.list_material_usage(db, actor, job_id)])


@router.post("/{job_id}/materials", status_code=201, summary="Log material usage")
def log_material_usage_route(
    job_id: UUID,
    body: MaterialUsageCreate,
    actor: Actor = Depends(require_permission(can_log_material_usage)),
    db: Session = Depends(get_db),
) -> dict:
    row = material_service.log_material_usage(
        db,
        actor,
        job_id,
        material_id=body.material_id,
        quantity=body.quantity,
        unit_cost_cents=body.unit_cost_cents,
    )
    return ok(_serialize_row(row))


# =====================================
# Activity and profitability
# =====================================

@router.get("/{job_id}/activity", summary="Job activity feed")
def activity_route(
    job_id: UUID,
    limit: int = Query(default=100, ge=1, le=500),
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    job = job_service.get_job_for_actor(db, actor, job_id)
    return ok(list_job_activity(db, actor.org_id, job.id, limit=limit))


@router.get("/{job_id}/profitability", summary="Job profitability")
def profitability_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    job = job_service.get_job_for_actor(db, actor, job_id)
    return ok(compute_job_profitability(db, actor.org_id, job.id).to_dict())
