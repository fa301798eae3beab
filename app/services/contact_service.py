"""
Contact Service Module
======================

Prospecting contacts and their logged touches. Every list and detail
response carries the seller-intent score computed from the contact and
its 90-day touch count.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.clock import as_utc, utcnow
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.contact import CONTACT_ROLES, CONTACT_TEMPERATURES, Contact, ContactActivity
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.notification_service import touch_counts_90d
from app.services.scoring.reasons import normalize_tags
from app.services.scoring.seller_intent import score_seller_intent

# Initialize logger
logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

CONTACT_FIELDS = (
    "owner_user_id",
    "full_name",
    "email",
    "phone",
    "address",
    "suburb",
    "role",
    "temperature",
    "lead_source",
    "seller_stage",
    "tags",
    "last_touch_at",
    "next_touch_at",
    "do_not_contact",
    "notes",
)


def _validate_contact_fields(data: Dict[str, Any]) -> None:
    if "full_name" in data and not (data["full_name"] or "").strip():
        raise ValidationError("Contact name is required")
    if data.get("role") is not None and data["role"] not in CONTACT_ROLES:
        raise ValidationError(f"Invalid contact role: {data['role']}")
    if data.get("temperature") is not None and data["temperature"] not in CONTACT_TEMPERATURES:
        raise ValidationError(f"Invalid contact temperature: {data['temperature']}")


def serialize_contact(contact: Contact, touch_count_90d: int = 0, now: Optional[datetime] = None) -> Dict[str, Any]:
    intent = score_seller_intent(contact, touch_count_90d=touch_count_90d, now=now)
    return {
        "id": contact.id,
        "owner_user_id": contact.owner_user_id,
        "full_name": contact.full_name,
        "email": contact.email,
        "phone": contact.phone,
        "address": contact.address,
        "suburb": contact.suburb,
        "role": contact.role,
        "temperature": contact.temperature,
        "lead_source": contact.lead_source,
        "seller_stage": contact.seller_stage,
        "tags": list(contact.tags or []),
        "last_touch_at": contact.last_touch_at,
        "next_touch_at": contact.next_touch_at,
        "do_not_contact": contact.do_not_contact,
        "notes": contact.notes,
        "touch_count_90d": touch_count_90d,
        "seller_intent": intent.to_dict(),
        "created_at": contact.created_at,
        "updated_at": contact.updated_at,
    }


def serialize_contacts(db: Session, org_id: UUID, contacts: List[Contact], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = as_utc(now) if now else utcnow()
    counts = touch_counts_90d(db, org_id, [c.id for c in contacts], now)
    return [serialize_contact(c, counts.get(c.id, 0), now) for c in contacts]


def serialize_activity(row: ContactActivity) -> Dict[str, Any]:
    return {
        "id": row.id,
        "contact_id": row.contact_id,
        "type": row.type,
        "summary": row.summary,
        "occurred_at": row.occurred_at,
        "created_by_user_id": row.created_by_user_id,
        "created_at": row.created_at,
    }


# =====================================
# Queries
# =====================================

def _search_filter(q: str):
    pattern = f"%{q.strip().lower()}%"
    return or_(
        func.lower(Contact.full_name).like(pattern),
        func.lower(func.coalesce(Contact.email, "")).like(pattern),
        func.lower(func.coalesce(Contact.phone, "")).like(pattern),
        func.lower(func.coalesce(Contact.suburb, "")).like(pattern),
        func.lower(func.coalesce(Contact.address, "")).like(pattern),
    )


def list_contacts(
    db: Session,
    org_id: UUID,
    q: Optional[str] = None,
    role: Optional[str] = None,
    seller_stage: Optional[str] = None,
    lead_source: Optional[str] = None,
    tag: Optional[str] = None,
    overdue: bool = False,
    due_today: bool = False,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> Tuple[List[Contact], int]:
    """
    Filtered, paginated contacts ordered by next touch (unset last).

    Returns:
        (rows for the requested page, total matching count)
    """
    now = as_utc(now) if now else utcnow()
    page = max(1, page)
    page_size = max(1, min(page_size or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))

    query = OrgQuery(db, Contact, org_id).query()
    if q:
        query = query.filter(_search_filter(q))
    if role:
        query = query.filter(Contact.role == role)
    if seller_stage:
        query = query.filter(Contact.seller_stage == seller_stage)
    if lead_source:
        query = query.filter(Contact.lead_source == lead_source)
    if overdue:
        query = query.filter(Contact.next_touch_at.isnot(None), Contact.next_touch_at < now)
    if due_today:
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        query = query.filter(Contact.next_touch_at >= start, Contact.next_touch_at < start + timedelta(days=1))

    query = query.order_by(Contact.next_touch_at.is_(None), Contact.next_touch_at, Contact.full_name)

    if tag:
        # JSON list column, filtered after the query
        wanted = tag.strip().lower()
        rows = [c for c in query.all() if wanted in normalize_tags(c.tags)]
        total = len(rows)
        offset = (page - 1) * page_size
        return rows[offset:offset + page_size], total

    total = query.count()
    rows = query.offset((page - 1) * page_size).limit(page_size).all()
    return rows, total


def get_contact(db: Session, org_id: UUID, contact_id: UUID) -> Contact:
    return OrgQuery(db, Contact, org_id).get_or_404(contact_id, "Contact")


# =====================================
# Prospecting queue
# =====================================

INTENT_BANDS = ("hot", "warm", "cold")
FOLLOW_UP_WINDOW = timedelta(days=2)


def suggested_action(next_touch_at: Optional[datetime], band: str, now: datetime) -> str:
    next_touch = as_utc(next_touch_at)
    if next_touch is not None and next_touch <= now + FOLLOW_UP_WINDOW:
        return "Follow up"
    if band == "hot":
        return "Call today"
    if band == "warm":
        return "Plan follow-up"
    return "Review"


def prospecting_queue(
    db: Session,
    org_id: UUID,
    q: Optional[str] = None,
    owner_user_id: Optional[UUID] = None,
    role: Optional[str] = None,
    seller_stage: Optional[str] = None,
    tags: Optional[List[str]] = None,
    band: Optional[str] = None,
    overdue: bool = False,
    due_today: bool = False,
    due_within_days: Optional[int] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: Optional[datetime] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Contacts ranked by seller intent, highest first.

    Ties go to the earliest next touch, with unscheduled contacts last.
    Do-not-contact rows never appear. Scoring happens in memory, so the
    band filter and pagination apply after ranking.

    Returns:
        (serialized rows for the requested page, total ranked count)
    """
    if band is not None and band not in INTENT_BANDS:
        raise ValidationError(f"Invalid band: {band}")
    now = as_utc(now) if now else utcnow()
    page = max(1, page)
    page_size = max(1, min(page_size or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

    query = OrgQuery(db, Contact, org_id).query().filter(Contact.do_not_contact.is_(False))
    if q:
        query = query.filter(_search_filter(q))
    if owner_user_id:
        query = query.filter(Contact.owner_user_id == owner_user_id)
    if role in ("seller", "both"):
        query = query.filter(Contact.role == role)
    if seller_stage:
        stage_pattern = f"%{seller_stage.strip().lower()}%"
        query = query.filter(func.lower(func.coalesce(Contact.seller_stage, "")).like(stage_pattern))
    if overdue:
        query = query.filter(Contact.next_touch_at.isnot(None), Contact.next_touch_at < now)
    if due_today:
        query = query.filter(
            Contact.next_touch_at >= start_of_day,
            Contact.next_touch_at < start_of_day + timedelta(days=1),
        )
    if due_within_days and due_within_days > 0:
        query = query.filter(
            Contact.next_touch_at >= start_of_day,
            Contact.next_touch_at <= start_of_day + timedelta(days=due_within_days),
        )

    rows = query.all()
    wanted = set(normalize_tags(tags))
    if wanted:
        rows = [c for c in rows if wanted.intersection(normalize_tags(c.tags))]

    items = []
    for data in serialize_contacts(db, org_id, rows, now):
        intent = data["seller_intent"]
        if band and intent["band"] != band:
            continue
        data["suggested_action"] = suggested_action(data["next_touch_at"], intent["band"], now)
        items.append(data)

    items.sort(
        key=lambda item: (
            -item["seller_intent"]["score"],
            item["next_touch_at"] is None,
            as_utc(item["next_touch_at"]) or now,
        )
    )
    offset = (page - 1) * page_size
    return items[offset:offset + page_size], len(items)


def list_contact_activities(db: Session, org_id: UUID, contact_id: UUID, limit: int = 50) -> List[ContactActivity]:
    contact = get_contact(db, org_id, contact_id)
    return (
        db.query(ContactActivity)
        .filter(ContactActivity.org_id == org_id, ContactActivity.contact_id == contact.id)
        .order_by(ContactActivity.occurred_at.desc())
        .limit(limit)
        .all()
    )


# =====================================
# Mutations
# =====================================

def create_contact(db: Session, actor: Actor, data: Dict[str, Any]) -> Contact:
    if not (data.get("full_name") or "").strip():
        raise ValidationError("Contact name is required")
    _validate_contact_fields(data)

    values = {field: data[field] for field in CONTACT_FIELDS if data.get(field) is not None}
    values["full_name"] = values["full_name"].strip()
    values["tags"] = normalize_tags(values.get("tags"))
    values.setdefault("owner_user_id", actor.user_id)
    contact = Contact(org_id=actor.org_id, **values)
    db.add(contact)
    db.flush()

    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "CONTACT_CREATED", "contact", contact.id, after=contact.to_dict()
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "contact.created",
        payload={
            "contact_id": str(contact.id),
            "entity_id": str(contact.id),
            "role": contact.role,
            "lead_source": contact.lead_source,
            "tags": list(contact.tags or []),
        },
        actor_user_id=actor.user_id,
    )
    db.commit()
    logger.info("Contact created", extra={"org_id": str(actor.org_id), "contact_id": str(contact.id)})
    return contact


def update_contact(db: Session, actor: Actor, contact_id: UUID, changes: Dict[str, Any]) -> Contact:
    contact = get_contact(db, actor.org_id, contact_id)
    _validate_contact_fields(changes)

    before = contact.to_dict()
    for field in CONTACT_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if field == "tags":
            value = normalize_tags(value)
        elif field == "full_name":
            value = value.strip()
        elif field in ("role", "temperature", "do_not_contact") and value is None:
            continue
        setattr(contact, field, value)
    db.flush()

    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "CONTACT_UPDATED",
        "contact",
        contact.id,
        before=before,
        after=contact.to_dict(),
    )
    db.commit()
    return contact


def delete_contact(db: Session, actor: Actor, contact_id: UUID) -> None:
    contact = get_contact(db, actor.org_id, contact_id)
    before = contact.to_dict()
    db.delete(contact)
    db.flush()
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "CONTACT_DELETED", "contact", contact_id, before=before
    )
    db.commit()


def record_activity(
    db: Session,
    actor: Actor,
    contact_id: UUID,
    type: str = "call",
    summary: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
    next_touch_at: Optional[datetime] = None,
) -> ContactActivity:
    """
    Log a touch and move ``last_touch_at`` forward.

    ``next_touch_at`` is only changed when given.
    """
    contact = get_contact(db, actor.org_id, contact_id)
    if not (type or "").strip():
        raise ValidationError("Activity type is required")

    occurred = as_utc(occurred_at) if occurred_at else utcnow()
    activity = ContactActivity(
        org_id=actor.org_id,
        contact_id=contact.id,
        type=type.strip(),
        summary=summary,
        occurred_at=occurred,
        created_by_user_id=actor.user_id,
    )
    db.add(activity)

    last_touch = as_utc(contact.last_touch_at)
    if last_touch is None or occurred > last_touch:
        contact.last_touch_at = occurred
    if next_touch_at is not None:
        contact.next_touch_at = next_touch_at
    db.flush()
    db.commit()
    return activity
