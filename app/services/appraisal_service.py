"""
Appraisal Service Module
========================

Appraisals with their prep checklist and follow-ups. The win
probability is recomputed after every mutation; stage changes notify
the owner and emit ``appraisal.stage_changed``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.clock import as_utc, utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.appraisal import (
    APPRAISAL_OUTCOMES,
    APPRAISAL_STAGES,
    APPRAISAL_TIMELINES,
    Appraisal,
    AppraisalChecklistItem,
    AppraisalFollowup,
)
from app.models.contact import Contact
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.notification_service import build_notification_key, create_notification_best_effort
from app.services.scoring.reasons import ScoreResult
from app.services.scoring.win_probability import score_appraisal_win_probability

# Initialize logger
logger = get_logger(__name__)

APPRAISAL_FIELDS = (
    "contact_id",
    "owner_user_id",
    "address",
    "suburb",
    "stage",
    "appointment_at",
    "outcome",
    "lead_source",
    "decision_makers",
    "motivation",
    "timeline",
    "price_expectation_min_cents",
    "price_expectation_max_cents",
    "objections",
)


def _validate_appraisal_fields(db: Session, org_id: UUID, data: Dict[str, Any]) -> None:
    if "address" in data and not (data["address"] or "").strip():
        raise ValidationError("Appraisal address is required")
    if data.get("stage") is not None and data["stage"] not in APPRAISAL_STAGES:
        raise ValidationError(f"Invalid appraisal stage: {data['stage']}")
    if data.get("outcome") is not None and data["outcome"] not in APPRAISAL_OUTCOMES:
        raise ValidationError(f"Invalid appraisal outcome: {data['outcome']}")
    if data.get("timeline") is not None and data["timeline"] not in APPRAISAL_TIMELINES:
        raise ValidationError(f"Invalid appraisal timeline: {data['timeline']}")
    low, high = data.get("price_expectation_min_cents"), data.get("price_expectation_max_cents")
    if low is not None and high is not None and low > high:
        raise ValidationError("Price expectation minimum cannot exceed the maximum")
    if data.get("contact_id") is not None:
        OrgQuery(db, Contact, org_id).get_or_404(data["contact_id"], "Contact")


def serialize_appraisal(appraisal: Appraisal) -> Dict[str, Any]:
    return {
        "id": appraisal.id,
        "contact_id": appraisal.contact_id,
        "owner_user_id": appraisal.owner_user_id,
        "address": appraisal.address,
        "suburb": appraisal.suburb,
        "stage": appraisal.stage,
        "appointment_at": appraisal.appointment_at,
        "outcome": appraisal.outcome,
        "lead_source": appraisal.lead_source,
        "decision_makers": appraisal.decision_makers,
        "motivation": appraisal.motivation,
        "timeline": appraisal.timeline,
        "price_expectation_min_cents": appraisal.price_expectation_min_cents,
        "price_expectation_max_cents": appraisal.price_expectation_max_cents,
        "objections": appraisal.objections,
        "win_probability": {
            "score": appraisal.win_probability_score,
            "band": appraisal.win_probability_band,
            "reasons": list(appraisal.win_probability_reasons or []),
        },
        "created_at": appraisal.created_at,
        "updated_at": appraisal.updated_at,
    }


def serialize_checklist_item(item: AppraisalChecklistItem) -> Dict[str, Any]:
    return {
        "id": item.id,
        "appraisal_id": item.appraisal_id,
        "title": item.title,
        "is_done": item.is_done,
        "due_at": item.due_at,
        "sort_order": item.sort_order,
    }


def serialize_followup(followup: AppraisalFollowup) -> Dict[str, Any]:
    return {
        "id": followup.id,
        "appraisal_id": followup.appraisal_id,
        "title": followup.title,
        "due_at": followup.due_at,
        "is_done": followup.is_done,
        "completed_at": followup.completed_at,
    }


# =====================================
# Win probability
# =====================================

def recompute_win_probability(
    db: Session,
    appraisal: Appraisal,
    now: Optional[datetime] = None,
) -> ScoreResult:
    checklist = (
        db.query(AppraisalChecklistItem)
        .filter(AppraisalChecklistItem.org_id == appraisal.org_id, AppraisalChecklistItem.appraisal_id == appraisal.id)
        .all()
    )
    followup_count = (
        db.query(AppraisalFollowup)
        .filter(AppraisalFollowup.org_id == appraisal.org_id, AppraisalFollowup.appraisal_id == appraisal.id)
        .count()
    )
    contact = OrgQuery(db, Contact, appraisal.org_id).get(appraisal.contact_id) if appraisal.contact_id else None

    result = score_appraisal_win_probability(
        appraisal,
        checklist=checklist,
        followup_count=followup_count,
        contact_tags=list(contact.tags or []) if contact else [],
        lead_source=appraisal.lead_source or (contact.lead_source if contact else None),
        now=now,
    )
    appraisal.win_probability_score = result.score
    appraisal.win_probability_band = result.band
    appraisal.win_probability_reasons = result.to_dict()["reasons"]
    db.flush()
    return result


# =====================================
# Appraisals
# =====================================

def list_appraisals(
    db: Session,
    org_id: UUID,
    stage: Optional[str] = None,
    contact_id: Optional[UUID] = None,
) -> List[Appraisal]:
    query = OrgQuery(db, Appraisal, org_id).query()
    if stage:
        query = query.filter(Appraisal.stage == stage)
    if contact_id:
        query = query.filter(Appraisal.contact_id == contact_id)
    return query.order_by(Appraisal.appointment_at.is_(None), Appraisal.appointment_at).all()


def get_appraisal(db: Session, org_id: UUID, appraisal_id: UUID) -> Appraisal:
    return OrgQuery(db, Appraisal, org_id).get_or_404(appraisal_id, "Appraisal")


def create_appraisal(db: Session, actor: Actor, data: Dict[str, Any]) -> Appraisal:
    if not data.get("address"):
        raise ValidationError("Appraisal address is required")
    _validate_appraisal_fields(db, actor.org_id, data)

    values = {field: data[field] for field in APPRAISAL_FIELDS if data.get(field) is not None}
    values.setdefault("owner_user_id", actor.user_id)
    appraisal = Appraisal(org_id=actor.org_id, **values)
    db.add(appraisal)
    db.flush()

    recompute_win_probability(db, appraisal)
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "APPRAISAL_CREATED", "appraisal", appraisal.id, after=appraisal.to_dict()
    )
    db.commit()
    return appraisal


def update_appraisal(db: Session, actor: Actor, appraisal_id: UUID, changes: Dict[str, Any]) -> Appraisal:
    appraisal = get_appraisal(db, actor.org_id, appraisal_id)
    merged_prices = {
        "price_expectation_min_cents": changes.get("price_expectation_min_cents", appraisal.price_expectation_min_cents),
        "price_expectation_max_cents": changes.get("price_expectation_max_cents", appraisal.price_expectation_max_cents),
    }
    _validate_appraisal_fields(db, actor.org_id, {**changes, **merged_prices})

    before = appraisal.to_dict()
    previous_stage = appraisal.stage
    for field in APPRAISAL_FIELDS:
        if field in changes:
            setattr(appraisal, field, changes[field])
    if appraisal.stage in ("won", "lost") and "outcome" not in changes:
        appraisal.outcome = appraisal.stage
    db.flush()

    recompute_win_probability(db, appraisal)
    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "APPRAISAL_UPDATED",
        "appraisal",
        appraisal.id,
        before=before,
        after=appraisal.to_dict(),
    )
    if appraisal.stage != previous_stage:
        _on_stage_changed(db, actor, appraisal, previous_stage)
    db.commit()
    return appraisal


def _on_stage_changed(db: Session, actor: Actor, appraisal: Appraisal, previous_stage: str) -> None:
    now = utcnow()
    stage_label = appraisal.stage.replace("_", " ")
    create_notification_best_effort(
        db,
        org_id=actor.org_id,
        type="appraisal_stage_changed",
        title=f"Appraisal moved to {stage_label}",
        body=f"{appraisal.address} moved from {previous_stage.replace('_', ' ')} to {stage_label}.",
        severity="info",
        recipient_user_id=appraisal.owner_user_id or actor.user_id,
        entity_type="appraisal",
        entity_id=appraisal.id,
        deeplink=f"/appraisals/{appraisal.id}",
        event_key=f"{build_notification_key('appraisal_stage_changed', 'appraisal', appraisal.id, now)}:{appraisal.stage}",
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "appraisal.stage_changed",
        payload={
            "appraisal_id": str(appraisal.id),
            "entity_id": f"{appraisal.id}:{appraisal.stage}",
            "from_stage": previous_stage,
            "to_stage": appraisal.stage,
            "win_probability_score": appraisal.win_probability_score,
        },
        actor_user_id=actor.user_id,
    )


# =====================================
# Checklist and follow-ups
# =====================================

def list_checklist(db: Session, org_id: UUID, appraisal_id: UUID) -> List[AppraisalChecklistItem]:
    appraisal = get_appraisal(db, org_id, appraisal_id)
    return (
        db.query(AppraisalChecklistItem)
        .filter(AppraisalChecklistItem.org_id == org_id, AppraisalChecklistItem.appraisal_id == appraisal.id)
        .order_by(AppraisalChecklistItem.sort_order, AppraisalChecklistItem.created_at)
        .all()
    )


def add_checklist_item(db: Session, actor: Actor, appraisal_id: UUID, data: Dict[str, Any]) -> AppraisalChecklistItem:
    appraisal = get_appraisal(db, actor.org_id, appraisal_id)
    if not (data.get("title") or "").strip():
        raise ValidationError("title is required")
    item = AppraisalChecklistItem(
        org_id=actor.org_id,
        appraisal_id=appraisal.id,
        title=data["title"].strip(),
        is_done=bool(data.get("is_done", False)),
        due_at=data.get("due_at"),
        sort_order=data.get("sort_order") or 0,
    )
    db.add(item)
    db.flush()
    recompute_win_probability(db, appraisal)
    db.commit()
    return item


def update_checklist_item(
    db: Session,
    actor: Actor,
    appraisal_id: UUID,
    item_id: UUID,
    changes: Dict[str, Any],
) -> AppraisalChecklistItem:
    appraisal = get_appraisal(db, actor.org_id, appraisal_id)
    item = OrgQuery(db, AppraisalChecklistItem, actor.org_id).get(item_id)
    if item is None or item.appraisal_id != appraisal.id:
        raise NotFoundError("Checklist item", identifier=str(item_id))
    if "title" in changes and not (changes["title"] or "").strip():
        raise ValidationError("title is required")
    for field in ("title", "is_done", "due_at", "sort_order"):
        if field in changes and changes[field] is not None:
            setattr(item, field, changes[field])
    if "due_at" in changes and changes["due_at"] is None:
        item.due_at = None
    db.flush()
    recompute_win_probability(db, appraisal)
    db.commit()
    return item


def list_followups(db: Session, org_id: UUID, appraisal_id: UUID) -> List[AppraisalFollowup]:
    appraisal = get_appraisal(db, org_id, appraisal_id)
    return (
        db.query(AppraisalFollowup)
        .filter(AppraisalFollowup.org_id == org_id, AppraisalFollowup.appraisal_id == appraisal.id)
        .order_by(AppraisalFollowup.due_at)
        .all()
    )


def add_followup(db: Session, actor: Actor, appraisal_id: UUID, data: Dict[str, Any]) -> AppraisalFollowup:
    appraisal = get_appraisal(db, actor.org_id, appraisal_id)
    if not (data.get("title") or "").strip():
        raise ValidationError("title is required")
    if data.get("due_at") is None:
        raise ValidationError("due_at is required")
    followup = AppraisalFollowup(
        org_id=actor.org_id,
        appraisal_id=appraisal.id,
        title=data["title"].strip(),
        due_at=data["due_at"],
    )
    db.add(followup)
    db.flush()
    recompute_win_probability(db, appraisal)
    db.commit()
    return followup


def complete_followup(
    db: Session,
    actor: Actor,
    appraisal_id: UUID,
    followup_id: UUID,
    is_done: bool = True,
    now: Optional[datetime] = None,
) -> AppraisalFollowup:
    appraisal = get_appraisal(db, actor.org_id, appraisal_id)
    followup = OrgQuery(db, AppraisalFollowup, actor.org_id).get(followup_id)
    if followup is None or followup.appraisal_id != appraisal.id:
        raise NotFoundError("Follow-up", identifier=str(followup_id))
    followup.is_done = is_done
    followup.completed_at = (as_utc(now) if now else utcnow()) if is_done else None
    db.flush()
    recompute_win_probability(db, appraisal)
    db.commit()
    return followup
