"""
Crew members and their cost rates.

A cost rate change re-runs margin guardrails on every job the crew
member is assigned to or has logged hours against.
"""

from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.job import Job, JobHoursLog
from app.models.role import CrewMember
from app.services.audit_service import log_audit_event_best_effort
from app.services.job_profitability import evaluate_job_guardrails_best_effort

# Initialize logger
logger = get_logger(__name__)

CREW_FIELDS = ("display_name", "cost_rate_cents", "cost_rate_type", "daily_capacity_minutes", "active")
RATE_FIELDS = ("cost_rate_cents", "cost_rate_type", "daily_capacity_minutes")


def list_crew_members(db: Session, org_id: UUID, active_only: bool = False) -> List[CrewMember]:
    query = OrgQuery(db, CrewMember, org_id).query()
    if active_only:
        query = query.filter(CrewMember.active.is_(True))
    return query.order_by(CrewMember.display_name).all()


def create_crew_member(db: Session, actor: Actor, data: Dict[str, Any]) -> CrewMember:
    name = (data.get("display_name") or "").strip()
    if not name:
        raise ValidationError("display_name is required")

    crew = CrewMember(
        org_id=actor.org_id,
        display_name=name,
        cost_rate_cents=data.get("cost_rate_cents"),
        cost_rate_type=data.get("cost_rate_type") or "hourly",
        daily_capacity_minutes=data.get("daily_capacity_minutes"),
        active=data.get("active", True),
    )
    db.add(crew)
    db.flush()
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "CREW_MEMBER_CREATED", "crew_member", crew.id, after=crew.to_dict()
    )
    db.commit()
    logger.info("Crew member created", extra={"org_id": str(actor.org_id), "crew_member_id": str(crew.id)})
    return crew


def job_ids_for_crew_member(db: Session, org_id: UUID, crew_member_id: UUID) -> List[UUID]:
    """Jobs assigned to the crew member or carrying their hours."""
    assigned = db.query(Job.id).filter(Job.org_id == org_id, Job.crew_id == crew_member_id).all()
    logged = (
        db.query(JobHoursLog.job_id)
        .filter(JobHoursLog.org_id == org_id, JobHoursLog.crew_member_id == crew_member_id)
        .distinct()
        .all()
    )
    return sorted({row[0] for row in assigned} | {row[0] for row in logged}, key=str)


def update_crew_member(db: Session, actor: Actor, crew_member_id: UUID, changes: Dict[str, Any]) -> CrewMember:
    """
    Raises:
        NotFoundError: the crew member is not in the actor's org
        ValidationError: display_name or cost_rate_type set to null
    """
    crew = OrgQuery(db, CrewMember, actor.org_id).get_or_404(crew_member_id, "Crew member")
    for field in ("display_name", "cost_rate_type", "active"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be null")

    before = crew.to_dict()
    for field in CREW_FIELDS:
        if field in changes:
            value = changes[field]
            setattr(crew, field, value.strip() if field == "display_name" else value)
    db.flush()
    after = crew.to_dict()
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "CREW_MEMBER_UPDATED", "crew_member", crew.id, before=before, after=after
    )
    db.commit()

    if any(before[field] != after[field] for field in RATE_FIELDS):
        job_ids = job_ids_for_crew_member(db, actor.org_id, crew.id)
        logger.info(
            "Crew cost rate changed",
            extra={"crew_member_id": str(crew.id), "jobs": len(job_ids)},
        )
        for job_id in job_ids:
            evaluate_job_guardrails_best_effort(db, actor.org_id, job_id, actor_user_id=actor.user_id)
    return crew
