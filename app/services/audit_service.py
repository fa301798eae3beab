"""
Audit Log Service
=================

Persists who changed what. Writes are best effort: a failure is logged
and never propagates into the request that triggered it.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import audit_logger, get_logger
from app.db.session import savepoint
from app.models.event import AuditLog

# Initialize logger
logger = get_logger(__name__)


def log_audit_event_best_effort(
    db: Session,
    org_id: UUID,
    actor_user_id: Optional[UUID],
    action: str,
    entity_type: str,
    entity_id: Any = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Record an audit entry inside a savepoint.

    Returns the row, or None when the insert failed.
    """
    entity_ref = str(entity_id) if entity_id is not None else None
    audit_logger.log_event(
        action=action,
        org_id=str(org_id),
        actor_user_id=str(actor_user_id) if actor_user_id else None,
        entity_type=entity_type,
        entity_id=entity_ref,
    )
    try:
        with savepoint(db):
            row = AuditLog(
                org_id=org_id,
                actor_user_id=actor_user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_ref,
                before=jsonable_encoder(before) if before is not None else None,
                after=jsonable_encoder(after) if after is not None else None,
                meta=jsonable_encoder(metadata or {}),
            )
            db.add(row)
            db.flush()
        return row
    except SQLAlchemyError as e:
        logger.warning(
            "Audit log write failed",
            extra={"action": action, "entity_type": entity_type, "error": str(e)},
        )
        return None
    except Exception as e:
        logger.exception(
            "Audit log write failed unexpectedly",
            extra={"action": action, "entity_type": entity_type, "error": str(e)},
        )
        return None


def list_audit_logs(
    db: Session,
    org_id: UUID,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    query = db.query(AuditLog).filter(AuditLog.org_id == org_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)

    total = query.count()
    rows = (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return {
        "items": [serialize_audit_log(row) for row in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


def serialize_audit_log(row: AuditLog) -> Dict[str, Any]:
    return {
        "id": row.id,
        "actor_user_id": row.actor_user_id,
        "action": row.action,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "before": row.before,
        "after": row.after,
        "metadata": row.meta,
        "created_at": row.created_at,
    }
