"""
Listing Service Module
======================

Listings and their campaign child collections.

Every child mutation recomputes and caches the listing's campaign
health. Child collections share one code path, configured per kind in
``CHILD_KINDS``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.clock import as_utc, utcnow
from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.contact import Contact
from app.models.listing import (
    BUYER_STATUSES,
    LISTING_STATUSES,
    Listing,
    ListingBuyer,
    ListingChecklistItem,
    ListingEnquiry,
    ListingInspection,
    ListingMilestone,
    ListingVendorComm,
)
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.notification_service import build_notification_key, create_notification_best_effort
from app.services.scoring.campaign_health import CampaignHealthInput, score_campaign_health
from app.services.scoring.reasons import ScoreResult

# Initialize logger
logger = get_logger(__name__)

LISTING_FIELDS = (
    "address_line1",
    "suburb",
    "status",
    "price_guide",
    "listed_at",
    "owner_user_id",
    "vendor_contact_id",
    "report_cadence_enabled",
    "report_cadence_days",
    "report_next_due_at",
)


@dataclass(frozen=True)
class ChildKind:
    model: Type[Any]
    fields: Tuple[str, ...]
    required: Tuple[str, ...]
    order_by: str


CHILD_KINDS: Dict[str, ChildKind] = {
    "checklist": ChildKind(ListingChecklistItem, ("title", "is_done", "due_at"), ("title",), "created_at"),
    "milestones": ChildKind(ListingMilestone, ("name", "target_due_at", "completed_at"), ("name",), "target_due_at"),
    "enquiries": ChildKind(ListingEnquiry, ("buyer_name", "source", "occurred_at"), ("occurred_at",), "occurred_at"),
    "inspections": ChildKind(ListingInspection, ("starts_at", "ends_at", "attendee_count"), ("starts_at",), "starts_at"),
    "buyers": ChildKind(ListingBuyer, ("contact_id", "name", "status", "next_follow_up_at"), ("name",), "created_at"),
    "vendor-comms": ChildKind(ListingVendorComm, ("type", "summary", "occurred_at"), ("occurred_at",), "occurred_at"),
}


def _child_kind(kind: str) -> ChildKind:
    try:
        return CHILD_KINDS[kind]
    except KeyError:
        raise NotFoundError("Listing collection", identifier=kind)


def _validate_listing_fields(db: Session, org_id: UUID, data: Dict[str, Any]) -> None:
    if "address_line1" in data and not (data["address_line1"] or "").strip():
        raise ValidationError("Listing address is required")
    if data.get("status") is not None and data["status"] not in LISTING_STATUSES:
        raise ValidationError(f"Invalid listing status: {data['status']}")
    if data.get("report_cadence_days") is not None and data["report_cadence_days"] < 1:
        raise ValidationError("report_cadence_days must be at least 1")
    if data.get("vendor_contact_id") is not None:
        OrgQuery(db, Contact, org_id).get_or_404(data["vendor_contact_id"], "Contact")


def _validate_child(db: Session, org_id: UUID, kind: ChildKind, data: Dict[str, Any]) -> None:
    for field in kind.required:
        value = data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{field} is required")
    if kind.model is ListingBuyer:
        if data.get("status") is not None and data["status"] not in BUYER_STATUSES:
            raise ValidationError(f"Invalid buyer status: {data['status']}")
        if data.get("contact_id") is not None:
            OrgQuery(db, Contact, org_id).get_or_404(data["contact_id"], "Contact")
    if kind.model is ListingInspection and data.get("attendee_count") is not None and data["attendee_count"] < 0:
        raise ValidationError("attendee_count cannot be negative")


def serialize_listing(listing: Listing) -> Dict[str, Any]:
    return {
        "id": listing.id,
        "address_line1": listing.address_line1,
        "suburb": listing.suburb,
        "display_address": listing.display_address,
        "status": listing.status,
        "price_guide": listing.price_guide,
        "listed_at": listing.listed_at,
        "owner_user_id": listing.owner_user_id,
        "vendor_contact_id": listing.vendor_contact_id,
        "report_cadence_enabled": listing.report_cadence_enabled,
        "report_cadence_days": listing.report_cadence_days,
        "report_next_due_at": listing.report_next_due_at,
        "report_last_sent_at": listing.report_last_sent_at,
        "campaign_health": {
            "score": listing.campaign_health_score,
            "band": listing.campaign_health_band,
            "reasons": list(listing.campaign_health_reasons or []),
            "updated_at": listing.campaign_health_updated_at,
        },
        "created_at": listing.created_at,
        "updated_at": listing.updated_at,
    }


def serialize_child(row: Any) -> Dict[str, Any]:
    data = {column.name: getattr(row, column.name) for column in row.__table__.columns}
    data.pop("org_id", None)
    return data


# =====================================
# Campaign health
# =====================================

def load_campaign_health_input(db: Session, listing: Listing) -> CampaignHealthInput:
    def rows(model):
        return (
            db.query(model)
            .filter(model.org_id == listing.org_id, model.listing_id == listing.id)
            .all()
        )

    return CampaignHealthInput(
        listing=listing,
        checklist=rows(ListingChecklistItem),
        milestones=rows(ListingMilestone),
        enquiries=rows(ListingEnquiry),
        inspections=rows(ListingInspection),
        buyers=rows(ListingBuyer),
        vendor_comms=rows(ListingVendorComm),
    )


def recompute_listing_campaign_health(
    db: Session,
    org_id: UUID,
    listing_id: UUID,
    now: Optional[datetime] = None,
) -> ScoreResult:
    """Score the listing from its child rows and cache the result on it."""
    listing = OrgQuery(db, Listing, org_id).get_or_404(listing_id, "Listing")
    now = as_utc(now) if now else utcnow()
    result = score_campaign_health(load_campaign_health_input(db, listing), now=now)

    listing.campaign_health_score = result.score
    listing.campaign_health_band = result.band
    listing.campaign_health_reasons = result.to_dict()["reasons"]
    listing.campaign_health_updated_at = now
    db.flush()
    logger.info(
        "Campaign health recomputed",
        extra={"listing_id": str(listing_id), "score": result.score, "band": result.band},
    )
    return result


# =====================================
# Listings
# =====================================

def list_listings(db: Session, org_id: UUID, status: Optional[str] = None) -> List[Listing]:
    query = OrgQuery(db, Listing, org_id).query()
    if status:
        query = query.filter(Listing.status == status)
    return query.order_by(Listing.created_at.desc()).all()


def get_listing(db: Session, org_id: UUID, listing_id: UUID) -> Listing:
    return OrgQuery(db, Listing, org_id).get_or_404(listing_id, "Listing")


def create_listing(db: Session, actor: Actor, data: Dict[str, Any]) -> Listing:
    if not data.get("address_line1"):
        raise ValidationError("Listing address is required")
    _validate_listing_fields(db, actor.org_id, data)

    values = {field: data[field] for field in LISTING_FIELDS if data.get(field) is not None}
    values.setdefault("owner_user_id", actor.user_id)
    listing = Listing(org_id=actor.org_id, **values)
    if listing.status == "active" and listing.listed_at is None:
        listing.listed_at = utcnow()
    db.add(listing)
    db.flush()

    recompute_listing_campaign_health(db, actor.org_id, listing.id)
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "LISTING_CREATED", "listing", listing.id, after=listing.to_dict()
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "listing.created",
        payload={"listing_id": str(listing.id), "entity_id": str(listing.id), "address": listing.display_address},
        actor_user_id=actor.user_id,
    )
    db.commit()
    return listing


def update_listing(db: Session, actor: Actor, listing_id: UUID, changes: Dict[str, Any]) -> Listing:
    listing = get_listing(db, actor.org_id, listing_id)
    _validate_listing_fields(db, actor.org_id, changes)
    before = listing.to_dict()
    for field in LISTING_FIELDS:
        if field in changes:
            setattr(listing, field, changes[field])
    if listing.status == "active" and listing.listed_at is None:
        listing.listed_at = utcnow()
    if listing.report_cadence_enabled and listing.report_next_due_at is None:
        listing.report_next_due_at = utcnow() + timedelta(days=listing.report_cadence_days or 7)
    db.flush()

    recompute_listing_campaign_health(db, actor.org_id, listing.id)
    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "LISTING_UPDATED",
        "listing",
        listing.id,
        before=before,
        after=listing.to_dict(),
    )
    db.commit()
    return listing


# =====================================
# Child collections
# =====================================

def list_listing_children(db: Session, org_id: UUID, listing_id: UUID, kind: str) -> List[Any]:
    kind_def = _child_kind(kind)
    listing = get_listing(db, org_id, listing_id)
    model = kind_def.model
    return (
        db.query(model)
        .filter(model.org_id == org_id, model.listing_id == listing.id)
        .order_by(getattr(model, kind_def.order_by))
        .all()
    )


def add_listing_child(db: Session, actor: Actor, listing_id: UUID, kind: str, data: Dict[str, Any]) -> Any:
    kind_def = _child_kind(kind)
    listing = get_listing(db, actor.org_id, listing_id)
    _validate_child(db, actor.org_id, kind_def, data)

    values = {field: data[field] for field in kind_def.fields if data.get(field) is not None}
    row = kind_def.model(org_id=actor.org_id, listing_id=listing.id, **values)
    db.add(row)
    db.flush()

    if kind_def.model is ListingInspection:
        _notify_inspection_scheduled(db, actor, listing, row)
    if kind_def.model is ListingVendorComm and row.type == "report":
        _advance_report_cadence(listing, row.occurred_at)

    recompute_listing_campaign_health(db, actor.org_id, listing.id)
    db.commit()
    return row


def update_listing_child(
    db: Session,
    actor: Actor,
    listing_id: UUID,
    kind: str,
    child_id: UUID,
    changes: Dict[str, Any],
) -> Any:
    kind_def = _child_kind(kind)
    listing = get_listing(db, actor.org_id, listing_id)
    row = OrgQuery(db, kind_def.model, actor.org_id).get(child_id)
    if row is None or row.listing_id != listing.id:
        raise NotFoundError("Listing item", identifier=str(child_id))

    merged = {field: getattr(row, field) for field in kind_def.fields}
    merged.update({k: v for k, v in changes.items() if k in kind_def.fields})
    _validate_child(db, actor.org_id, kind_def, merged)
    for field in kind_def.fields:
        if field in changes:
            setattr(row, field, changes[field])
    db.flush()

    recompute_listing_campaign_health(db, actor.org_id, listing.id)
    db.commit()
    return row


def delete_listing_child(db: Session, actor: Actor, listing_id: UUID, kind: str, child_id: UUID) -> None:
    kind_def = _child_kind(kind)
    listing = get_listing(db, actor.org_id, listing_id)
    row = OrgQuery(db, kind_def.model, actor.org_id).get(child_id)
    if row is None or row.listing_id != listing.id:
        raise NotFoundError("Listing item", identifier=str(child_id))
    db.delete(row)
    db.flush()
    recompute_listing_campaign_health(db, actor.org_id, listing.id)
    db.commit()


def _advance_report_cadence(listing: Listing, sent_at: datetime) -> None:
    sent_at = as_utc(sent_at)
    listing.report_last_sent_at = sent_at
    if listing.report_cadence_enabled:
        listing.report_next_due_at = sent_at + timedelta(days=listing.report_cadence_days or 7)


def _notify_inspection_scheduled(db: Session, actor: Actor, listing: Listing, inspection: ListingInspection) -> None:
    starts_at = as_utc(inspection.starts_at)
    create_notification_best_effort(
        db,
        org_id=actor.org_id,
        type="inspection_scheduled",
        title="Inspection scheduled",
        body=f"{listing.display_address} on {starts_at:%d %b %H:%M}.",
        severity="info",
        recipient_user_id=listing.owner_user_id or actor.user_id,
        entity_type="listing",
        entity_id=listing.id,
        deeplink=f"/listings/{listing.id}?tab=inspections",
        event_key=build_notification_key("inspection_scheduled", "inspection", inspection.id, starts_at),
    )
