"""
Job activity feed writes.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.logging import get_logger
from app.db.session import savepoint
from app.models.job import JobActivityEvent

# Initialize logger
logger = get_logger(__name__)


def create_job_activity_event_best_effort(
    db: Session,
    org_id: UUID,
    job_id: UUID,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
    actor_user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
) -> Optional[JobActivityEvent]:
    try:
        with savepoint(db):
            row = JobActivityEvent(
                org_id=org_id,
                job_id=job_id,
                type=type,
                payload=jsonable_encoder(payload or {}),
                actor_user_id=actor_user_id,
                created_at=now or utcnow(),
            )
            db.add(row)
            db.flush()
        return row
    except SQLAlchemyError as e:
        logger.warning("Job activity write failed", extra={"job_id": str(job_id), "type": type, "error": str(e)})
        return None


def latest_job_activity(db: Session, org_id: UUID, job_id: UUID, type: str) -> Optional[JobActivityEvent]:
    return (
        db.query(JobActivityEvent)
        .filter(
            JobActivityEvent.org_id == org_id,
            JobActivityEvent.job_id == job_id,
            JobActivityEvent.type == type,
        )
        .order_by(JobActivityEvent.created_at.desc())
        .first()
    )


def list_job_activity(db: Session, org_id: UUID, job_id: UUID, limit: int = 100) -> List[Dict[str, Any]]:
    rows = (
        db.query(JobActivityEvent)
        .filter(JobActivityEvent.org_id == org_id, JobActivityEvent.job_id == job_id)
        .order_by(JobActivityEvent.created_at.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": row.id,
            "type": row.type,
            "payload": row.payload,
            "actor_user_id": row.actor_user_id,
            "created_at": row.created_at,
        }
        for row in rows
    ]
