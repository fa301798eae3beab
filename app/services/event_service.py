"""
Integration events.

Every domain change worth telling the outside world about is stored as
an ``AppEvent`` and handed to the automation dispatcher. Emission is
best effort.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.session import savepoint
from app.models.event import AppEvent
from app.services.automation_service import dispatch_event

# Initialize logger
logger = get_logger(__name__)


def emit_app_event_best_effort(
    db: Session,
    org_id: UUID,
    event_type: str,
    payload: Optional[Dict[str, Any]] = None,
    actor_user_id: Optional[UUID] = None,
    event_key: Optional[str] = None,
) -> Optional[AppEvent]:
    """
    Persist an event and run matching automation rules.

    An ``event_key`` makes the emit idempotent per org. Returns None when
    the event was a duplicate or could not be stored.
    """
    try:
        if event_key:
            exists = (
                db.query(AppEvent.id)
                .filter(AppEvent.org_id == org_id, AppEvent.event_key == event_key)
                .first()
            )
            if exists:
                return None

        with savepoint(db):
            event = AppEvent(
                org_id=org_id,
                event_type=event_type,
                payload=jsonable_encoder(payload or {}),
                actor_user_id=actor_user_id,
                event_key=event_key,
            )
            db.add(event)
            db.flush()
    except SQLAlchemyError as e:
        logger.warning("App event emit failed", extra={"event_type": event_type, "error": str(e)})
        return None
    except Exception as e:
        logger.exception("App event emit crashed", extra={"event_type": event_type, "error": str(e)})
        return None

    logger.info("App event emitted", extra={"event_type": event_type, "event_id": str(event.id)})

    try:
        with savepoint(db):
            dispatch_event(db, event)
    except Exception as e:
        logger.exception("Automation dispatch failed", extra={"event_id": str(event.id), "error": str(e)})
    return event


def list_app_events(db: Session, org_id: UUID, event_type: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    query = db.query(AppEvent).filter(AppEvent.org_id == org_id)
    if event_type:
        query = query.filter(AppEvent.event_type == event_type)
    rows = query.order_by(AppEvent.created_at.desc(), AppEvent.id).limit(limit).all()
    return [
        {
            "id": row.id,
            "event_type": row.event_type,
            "payload": row.payload,
            "actor_user_id": row.actor_user_id,
            "created_at": row.created_at,
        }
        for row in rows
    ]
