"""
Job Service Module
==================

Job CRUD with crew-scoped visibility, plus the cost inputs (hours logs
and manual costs) that feed profitability.

Events:
- ``job.created`` on create
- ``job.status_updated`` on any status change
- ``job.completed`` when the status becomes completed
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor, apply_job_visibility, assert_job_write_access
from app.core.clock import utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.job import COST_TYPES, JOB_PRIORITIES, JOB_STATUSES, Job, JobCost, JobHoursLog
from app.models.role import CrewMember
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.job_activity import create_job_activity_event_best_effort
from app.services.job_profitability import evaluate_job_guardrails_best_effort

# Initialize logger
logger = get_logger(__name__)

REQUIRED_JOB_FIELDS = ("title", "status", "priority", "tags")

JOB_FIELDS = (
    "title",
    "client_name",
    "address",
    "suburb",
    "notes",
    "status",
    "priority",
    "tags",
    "crew_id",
    "owner_user_id",
    "scheduled_start",
    "scheduled_end",
    "estimated_revenue_cents",
    "estimated_cost_cents",
    "target_margin_percent",
    "revenue_override_cents",
)


def _validate_job_fields(db: Session, org_id: UUID, data: Dict[str, Any]) -> None:
    if "title" in data and not (data["title"] or "").strip():
        raise ValidationError("Job title is required")
    if data.get("status") is not None and data["status"] not in JOB_STATUSES:
        raise ValidationError(f"Invalid job status: {data['status']}")
    if data.get("priority") is not None and data["priority"] not in JOB_PRIORITIES:
        raise ValidationError(f"Invalid job priority: {data['priority']}")
    if data.get("crew_id") is not None:
        OrgQuery(db, CrewMember, org_id).get_or_404(data["crew_id"], "Crew member")
    for field in ("estimated_revenue_cents", "estimated_cost_cents", "revenue_override_cents"):
        if data.get(field) is not None and data[field] < 0:
            raise ValidationError(f"{field} cannot be negative")


def serialize_job(job: Job) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "client_name": job.client_name,
        "address": job.address,
        "suburb": job.suburb,
        "notes": job.notes,
        "status": job.status,
        "priority": job.priority,
        "tags": list(job.tags or []),
        "flags": list(job.flags or []),
        "crew_id": job.crew_id,
        "owner_user_id": job.owner_user_id,
        "scheduled_start": job.scheduled_start,
        "scheduled_end": job.scheduled_end,
        "completed_at": job.completed_at,
        "estimated_revenue_cents": job.estimated_revenue_cents,
        "estimated_cost_cents": job.estimated_cost_cents,
        "target_margin_percent": job.target_margin_percent,
        "revenue_override_cents": job.revenue_override_cents,
        "profitability_status": job.profitability_status,
        "created_at": job.created_at,
        "updated_at": job.updated_at,
    }


# =====================================
# Queries
# =====================================

def get_job_for_actor(db: Session, actor: Actor, job_id: UUID) -> Job:
    """
    Load a job the actor can see.

    Jobs of other orgs and jobs outside a crew-scoped actor's crew are
    both reported as not found.
    """
    query = apply_job_visibility(OrgQuery(db, Job, actor.org_id).query(), actor, Job)
    job = query.filter(Job.id == job_id).first()
    if job is None:
        raise NotFoundError("Job", identifier=str(job_id))
    return job


def list_jobs(
    db: Session,
    actor: Actor,
    status: Optional[str] = None,
    crew_id: Optional[UUID] = None,
    limit: int = 100,
) -> List[Job]:
    query = apply_job_visibility(OrgQuery(db, Job, actor.org_id).query(), actor, Job)
    if status:
        query = query.filter(Job.status == status)
    if crew_id:
        query = query.filter(Job.crew_id == crew_id)
    return query.order_by(Job.scheduled_start.is_(None), Job.scheduled_start, Job.created_at.desc()).limit(limit).all()


# =====================================
# Mutations
# =====================================

def create_job(db: Session, actor: Actor, data: Dict[str, Any]) -> Job:
    _validate_job_fields(db, actor.org_id, data)
    values = {field: data[field] for field in JOB_FIELDS if data.get(field) is not None}
    values.setdefault("owner_user_id", actor.user_id)
    job = Job(org_id=actor.org_id, **values)
    if job.status == "completed":
        job.completed_at = utcnow()
    db.add(job)
    db.flush()

    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "JOB_CREATED", "job", job.id, after=job.to_dict()
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "job.created",
        payload={"job_id": str(job.id), "entity_id": str(job.id), "title": job.title, "status": job.status},
        actor_user_id=actor.user_id,
    )
    db.commit()
    db.refresh(job)
    logger.info("Job created", extra={"job_id": str(job.id), "org_id": str(actor.org_id)})
    return job


def update_job(db: Session, actor: Actor, job_id: UUID, changes: Dict[str, Any]) -> Job:
    job = get_job_for_actor(db, actor, job_id)
    assert_job_write_access(job, actor)
    _validate_job_fields(db, actor.org_id, changes)

    before = job.to_dict()
    previous_status = job.status
    for field in JOB_FIELDS:
        if field in changes and not (changes[field] is None and field in REQUIRED_JOB_FIELDS):
            setattr(job, field, changes[field])

    status_changed = job.status != previous_status
    if status_changed:
        job.completed_at = utcnow() if job.status == "completed" else None
    db.flush()

    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "JOB_UPDATED", "job", job.id, before=before, after=job.to_dict()
    )
    if status_changed:
        payload = {
            "job_id": str(job.id),
            "from_status": previous_status,
            "to_status": job.status,
        }
        create_job_activity_event_best_effort(
            db, actor.org_id, job.id, "status_changed", payload=payload, actor_user_id=actor.user_id
        )
        emit_app_event_best_effort(db, actor.org_id, "job.status_updated", payload=payload, actor_user_id=actor.user_id)
        if job.status == "completed":
            emit_app_event_best_effort(
                db,
                actor.org_id,
                "job.completed",
                payload={"job_id": str(job.id), "entity_id": str(job.id), "completed_at": job.completed_at},
                actor_user_id=actor.user_id,
            )
    db.commit()

    money_fields = {"estimated_revenue_cents", "estimated_cost_cents", "target_margin_percent", "revenue_override_cents"}
    if money_fields.intersection(changes):
        evaluate_job_guardrails_best_effort(db, actor.org_id, job.id, actor_user_id=actor.user_id)
    db.refresh(job)
    return job


def delete_job(db: Session, actor: Actor, job_id: UUID) -> None:
    job = get_job_for_actor(db, actor, job_id)
    before = job.to_dict()
    db.delete(job)
    log_audit_event_best_effort(db, actor.org_id, actor.user_id, "JOB_DELETED", "job", job_id, before=before)
    db.commit()


# =====================================
# Hours and costs
# =====================================

def log_job_hours(
    db: Session,
    actor: Actor,
    job_id: UUID,
    minutes: int,
    crew_member_id: Optional[UUID] = None,
    work_date: Optional[Any] = None,
    note: Optional[str] = None,
) -> JobHoursLog:
    job = get_job_for_actor(db, actor, job_id)
    assert_job_write_access(job, actor)
    if minutes is None or minutes <= 0:
        raise ValidationError("minutes must be greater than zero")

    crew_member_id = crew_member_id or actor.crew_member_id or job.crew_id
    if crew_member_id is not None:
        OrgQuery(db, CrewMember, actor.org_id).get_or_404(crew_member_id, "Crew member")

    row = JobHoursLog(
        org_id=actor.org_id,
        job_id=job.id,
        crew_member_id=crew_member_id,
        minutes=minutes,
        work_date=work_date,
        note=note,
    )
    db.add(row)
    db.flush()
    create_job_activity_event_best_effort(
        db,
        actor.org_id,
        job.id,
        "hours_logged",
        payload={"minutes": minutes, "crew_member_id": crew_member_id},
        actor_user_id=actor.user_id,
    )
    db.commit()
    evaluate_job_guardrails_best_effort(db, actor.org_id, job.id, actor_user_id=actor.user_id)
    return row


def list_job_hours(db: Session, actor: Actor, job_id: UUID) -> List[JobHoursLog]:
    job = get_job_for_actor(db, actor, job_id)
    return (
        db.query(JobHoursLog)
        .filter(JobHoursLog.org_id == actor.org_id, JobHoursLog.job_id == job.id)
        .order_by(JobHoursLog.created_at.desc())
        .all()
    )


def add_job_cost(
    db: Session,
    actor: Actor,
    job_id: UUID,
    amount_cents: int,
    cost_type: str = "other",
    description: Optional[str] = None,
    incurred_at: Optional[datetime] = None,
) -> JobCost:
    job = get_job_for_actor(db, actor, job_id)
    assert_job_write_access(job, actor)
    if cost_type not in COST_TYPES:
        raise ValidationError(f"Invalid cost type: {cost_type}")
    if amount_cents is None or amount_cents < 0:
        raise ValidationError("amount_cents cannot be negative")

    row = JobCost(
        org_id=actor.org_id,
        job_id=job.id,
        cost_type=cost_type,
        description=description,
        amount_cents=amount_cents,
        incurred_at=incurred_at,
    )
    db.add(row)
    db.flush()
    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "JOB_COST_ADDED",
        "job",
        job.id,
        after={"cost_type": cost_type, "amount_cents": amount_cents, "description": description},
    )
    db.commit()
    evaluate_job_guardrails_best_effort(db, actor.org_id, job.id, actor_user_id=actor.user_id)
    return row


def list_job_costs(db: Session, actor: Actor, job_id: UUID) -> List[JobCost]:
    job = get_job_for_actor(db, actor, job_id)
    return (
        db.query(JobCost)
        .filter(JobCost.org_id == actor.org_id, JobCost.job_id == job.id)
        .order_by(JobCost.created_at.desc())
        .all()
    )
