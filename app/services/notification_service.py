"""
Notification Service
====================

In-app notifications plus the periodic sweep that raises reminders for
overdue follow-ups, upcoming appraisals and neglected listings.

Features:
- Idempotent, best-effort creation keyed by ``event_key``
- Listing and mark-read scoped to the viewing user
- Sweep with dry-run support that only counts attempts
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.authz import Actor
from app.core.clock import as_utc, day_key, utcnow
from app.core.logging import get_logger, log_execution_time
from app.db.session import savepoint
from app.models.appraisal import Appraisal, AppraisalFollowup
from app.models.contact import Contact, ContactActivity
from app.models.listing import Listing, ListingMilestone, ListingVendorComm
from app.models.notification import Notification
from app.services.audit_service import log_audit_event_best_effort
from app.services.scoring.seller_intent import score_seller_intent

# Initialize logger
logger = get_logger(__name__)

SWEEP_LOOKAHEAD = timedelta(hours=24)
HOT_PROSPECT_THRESHOLD = 80
STALLING_THRESHOLD = 40
STALLING_CRITICAL_THRESHOLD = 25


def build_notification_key(type_: str, entity_type: str, entity_id: Any, when: datetime) -> str:
    """``{type}:{entity_type}:{entity_id}:{YYYY-MM-DD}``"""
    return f"{type_}:{entity_type}:{entity_id}:{day_key(when)}"


# ==========================
# Creation
# ==========================

def create_notification_best_effort(
    db: Session,
    org_id: UUID,
    type: str,
    title: str,
    body: Optional[str] = None,
    severity: str = "info",
    recipient_user_id: Optional[UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    deeplink: Optional[str] = None,
    event_key: Optional[str] = None,
) -> Optional[Notification]:
    """
    Insert a notification unless one with the same event key exists.

    Never raises; returns the new row or None when skipped or failed.
    """
    try:
        if event_key:
            exists = (
                db.query(Notification.id)
                .filter(Notification.org_id == org_id, Notification.event_key == event_key)
                .first()
            )
            if exists:
                return None

        with savepoint(db):
            row = Notification(
                org_id=org_id,
                recipient_user_id=recipient_user_id,
                type=type,
                severity=severity,
                title=title,
                body=body,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                deeplink=deeplink,
                event_key=event_key,
            )
            db.add(row)
            db.flush()
    except SQLAlchemyError as e:
        logger.warning(
            "Notification insert skipped",
            extra={"type": type, "event_key": event_key, "error": str(e)},
        )
        return None
    except Exception as e:
        logger.exception(
            "Notification insert failed",
            extra={"type": type, "event_key": event_key, "error": str(e)},
        )
        return None

    log_audit_event_best_effort(
        db,
        org_id=org_id,
        actor_user_id=None,
        action="NOTIFICATION_SENT",
        entity_type="notification",
        entity_id=event_key or row.id,
        after={"type": type, "title": title, "event_key": event_key},
        metadata={"source": "system"},
    )
    return row


# ==========================
# Queries
# ==========================

def _visible_to(query, user_id: Optional[UUID]):
    if user_id is None:
        return query
    return query.filter(
        or_(Notification.recipient_user_id.is_(None), Notification.recipient_user_id == user_id)
    )


def serialize_notification(row: Notification) -> Dict[str, Any]:
    return {
        "id": row.id,
        "type": row.type,
        "severity": row.severity,
        "title": row.title,
        "body": row.body,
        "entity_type": row.entity_type,
        "entity_id": row.entity_id,
        "deeplink": row.deeplink,
        "read_at": row.read_at,
        "created_at": row.created_at,
    }


def list_notifications(
    db: Session,
    org_id: UUID,
    user_id: Optional[UUID],
    unread_only: bool = False,
    limit: int = 50,
    unread_count_only: bool = False,
) -> Dict[str, Any]:
    base = _visible_to(db.query(Notification).filter(Notification.org_id == org_id), user_id)
    unread_count = base.filter(Notification.read_at.is_(None)).count()
    if unread_count_only:
        return {"unread_count": unread_count}

    query = base.filter(Notification.read_at.is_(None)) if unread_only else base
    rows = query.order_by(Notification.created_at.desc(), Notification.id).limit(limit).all()
    return {
        "items": [serialize_notification(row) for row in rows],
        "unread_count": unread_count,
    }


def mark_notifications_read(
    db: Session,
    org_id: UUID,
    user_id: Optional[UUID],
    ids: Optional[Iterable[UUID]] = None,
    now: Optional[datetime] = None,
) -> int:
    """Mark visible unread notifications read; all of them when ``ids`` is empty."""
    query = _visible_to(
        db.query(Notification).filter(
            Notification.org_id == org_id,
            Notification.read_at.is_(None),
        ),
        user_id,
    )
    id_list = list(ids or [])
    if id_list:
        query = query.filter(Notification.id.in_(id_list))

    updated = query.update({Notification.read_at: now or utcnow()}, synchronize_session=False)
    db.commit()
    return updated


# ==========================
# Sweep
# ==========================

class NotificationSweep:
    """
    One pass over the org's contacts, appraisals and listings.

    Every candidate is counted in ``attempted`` by type; rows are only
    written when ``dry_run`` is off. Recipients default to the row owner
    and fall back to the actor running the sweep.
    """

    def __init__(self, db: Session, actor: Actor, org_id: UUID, dry_run: bool = False, now: Optional[datetime] = None):
        self.db = db
        self.actor = actor
        self.org_id = org_id
        self.dry_run = dry_run
        self.now = as_utc(now) if now else utcnow()
        self.soon = self.now + SWEEP_LOOKAHEAD
        self.attempted: Counter = Counter()

    def _recipient(self, owner_user_id: Optional[UUID]) -> Optional[UUID]:
        return owner_user_id or self.actor.user_id

    def _notify(self, type_: str, entity_type: str, entity_id: Any, key_entity_id: Any, key_date: datetime, **fields) -> None:
        self.attempted[type_] += 1
        if self.dry_run:
            return
        create_notification_best_effort(
            self.db,
            org_id=self.org_id,
            type=type_,
            entity_type=entity_type,
            entity_id=entity_id,
            event_key=build_notification_key(type_, entity_type, key_entity_id, key_date),
            **fields,
        )

    @staticmethod
    def _days_between(now: datetime, then: datetime) -> int:
        return (now - as_utc(then)) // timedelta(days=1)

    # --------------------------
    # Contacts
    # --------------------------

    def contact_followups(self) -> None:
        rows = (
            self.db.query(Contact)
            .filter(
                Contact.org_id == self.org_id,
                Contact.next_touch_at.isnot(None),
                Contact.next_touch_at < self.now,
                Contact.do_not_contact.is_(False),
            )
            .all()
        )
        for contact in rows:
            recipient = self._recipient(contact.owner_user_id)
            if recipient is None:
                continue
            self._notify(
                "contact_followup_overdue",
                "contact",
                contact.id,
                contact.id,
                self.now,
                title="Contact follow-up overdue",
                body=f"{contact.full_name} was due {as_utc(contact.next_touch_at):%d %b}.",
                severity="critical",
                recipient_user_id=recipient,
                deeplink=f"/contacts/{contact.id}",
            )

    def hot_prospects(self) -> None:
        rows = (
            self.db.query(Contact)
            .filter(
                Contact.org_id == self.org_id,
                Contact.role.in_(("seller", "both")),
                Contact.do_not_contact.is_(False),
            )
            .all()
        )
        touch_counts = touch_counts_90d(self.db, self.org_id, [c.id for c in rows], self.now)
        for contact in rows:
            result = score_seller_intent(contact, touch_counts.get(contact.id, 0), now=self.now)
            if result.score < HOT_PROSPECT_THRESHOLD:
                continue
            recipient = self._recipient(contact.owner_user_id)
            if recipient is None:
                continue
            self._notify(
                "new_hot_prospect",
                "contact",
                contact.id,
                contact.id,
                self.now,
                title="Hot prospect surfaced",
                body=f"{contact.full_name} is trending hot for seller intent.",
                severity="info",
                recipient_user_id=recipient,
                deeplink=f"/contacts/{contact.id}",
            )

    # --------------------------
    # Appraisals
    # --------------------------

    def appraisals_upcoming(self) -> None:
        rows = (
            self.db.query(Appraisal)
            .filter(
                Appraisal.org_id == self.org_id,
                Appraisal.appointment_at >= self.now,
                Appraisal.appointment_at < self.soon,
            )
            .all()
        )
        for appraisal in rows:
            recipient = self._recipient(appraisal.owner_user_id)
            if recipient is None:
                continue
            self._notify(
                "appraisal_upcoming",
                "appraisal",
                appraisal.id,
                appraisal.id,
                appraisal.appointment_at,
                title="Appraisal upcoming",
                body=f"{appraisal.address} - {as_utc(appraisal.appointment_at):%d %b %H:%M}",
                severity="warn",
                recipient_user_id=recipient,
                deeplink=f"/appraisals/{appraisal.id}",
            )

    def appraisal_followups(self) -> None:
        rows = (
            self.db.query(AppraisalFollowup, Appraisal)
            .join(Appraisal, AppraisalFollowup.appraisal_id == Appraisal.id)
            .filter(
                AppraisalFollowup.org_id == self.org_id,
                AppraisalFollowup.is_done.is_(False),
                AppraisalFollowup.due_at < self.soon,
            )
            .all()
        )
        for followup, appraisal in rows:
            recipient = self._recipient(appraisal.owner_user_id)
            if recipient is None:
                continue
            overdue = as_utc(followup.due_at) < self.now
            self._notify(
                "appraisal_followup_due",
                "appraisal",
                appraisal.id,
                followup.id,
                followup.due_at,
                title="Appraisal follow-up due",
                body=f"{appraisal.address} - {followup.title} due {as_utc(followup.due_at):%d %b}",
                severity="critical" if overdue else "warn",
                recipient_user_id=recipient,
                deeplink=f"/appraisals/{appraisal.id}",
            )

    # --------------------------
    # Listings
    # --------------------------

    def listings(self) -> None:
        rows = self.db.query(Listing).filter(Listing.org_id == self.org_id).all()
        last_comms = dict(
            self.db.query(ListingVendorComm.listing_id, func.max(ListingVendorComm.occurred_at))
            .filter(ListingVendorComm.org_id == self.org_id)
            .group_by(ListingVendorComm.listing_id)
            .all()
        )

        for listing in rows:
            recipient = self._recipient(listing.owner_user_id)
            if recipient is None or listing.status != "active":
                continue
            label = listing.display_address

            due = as_utc(listing.report_next_due_at)
            if listing.report_cadence_enabled and due and due <= self.soon:
                overdue = due < self.now
                self._notify(
                    "vendor_report_due",
                    "listing",
                    listing.id,
                    listing.id,
                    due,
                    title="Vendor report overdue" if overdue else "Vendor report due soon",
                    body=f"Report for {label} due {due:%d %b}.",
                    severity="critical" if overdue else "warn",
                    recipient_user_id=recipient,
                    deeplink=f"/listings/{listing.id}?tab=reports",
                )

            baseline = (
                last_comms.get(listing.id)
                or listing.report_last_sent_at
                or listing.listed_at
                or listing.created_at
            )
            if baseline:
                days = self._days_between(self.now, baseline)
                if days > 7:
                    self._notify(
                        "vendor_update_overdue",
                        "listing",
                        listing.id,
                        listing.id,
                        self.now,
                        title="Vendor update overdue",
                        body=f"{label} has not been updated in {days} days.",
                        severity="critical" if days > 14 else "warn",
                        recipient_user_id=recipient,
                        deeplink=f"/listings/{listing.id}?tab=vendor-comms",
                    )

            score = listing.campaign_health_score
            if score is not None and score < STALLING_THRESHOLD:
                self._notify(
                    "listing_health_stalling",
                    "listing",
                    listing.id,
                    listing.id,
                    self.now,
                    title="Listing health stalling",
                    body=f"{label} health is {score}. Review milestones and activity.",
                    severity="critical" if score < STALLING_CRITICAL_THRESHOLD else "warn",
                    recipient_user_id=recipient,
                    deeplink=f"/listings/{listing.id}",
                )

    def milestones(self) -> None:
        rows = (
            self.db.query(ListingMilestone, Listing)
            .join(Listing, ListingMilestone.listing_id == Listing.id)
            .filter(
                ListingMilestone.org_id == self.org_id,
                ListingMilestone.completed_at.is_(None),
                ListingMilestone.target_due_at.isnot(None),
                ListingMilestone.target_due_at < self.now,
            )
            .all()
        )
        for milestone, listing in rows:
            recipient = self._recipient(listing.owner_user_id)
            if recipient is None:
                continue
            overdue_days = self._days_between(self.now, milestone.target_due_at)
            self._notify(
                "listing_milestone_overdue",
                "listing",
                listing.id,
                milestone.id,
                milestone.target_due_at,
                title="Listing milestone overdue",
                body=f"{listing.display_address} - {milestone.name} was due {as_utc(milestone.target_due_at):%d %b}.",
                severity="critical" if overdue_days > 7 else "warn",
                recipient_user_id=recipient,
                deeplink=f"/listings/{listing.id}?tab=milestones",
            )

    def run(self) -> Dict[str, Any]:
        self.contact_followups()
        self.hot_prospects()
        self.appraisals_upcoming()
        self.appraisal_followups()
        self.listings()
        self.milestones()
        if not self.dry_run:
            self.db.commit()
        logger.info(
            "Notification sweep finished",
            extra={"org_id": str(self.org_id), "dry_run": self.dry_run, "attempted": dict(self.attempted)},
        )
        return {"attempted": dict(self.attempted), "dry_run": self.dry_run}


def touch_counts_90d(db: Session, org_id: UUID, contact_ids: List[UUID], now: datetime) -> Dict[UUID, int]:
    """Contact activity counts over the trailing 90 days."""
    if not contact_ids:
        return {}
    since = now - timedelta(days=90)
    rows = (
        db.query(ContactActivity.contact_id, func.count(ContactActivity.id))
        .filter(
            ContactActivity.org_id == org_id,
            ContactActivity.contact_id.in_(contact_ids),
            ContactActivity.occurred_at >= since,
        )
        .group_by(ContactActivity.contact_id)
        .all()
    )
    return {contact_id: int(count) for contact_id, count in rows}


@log_execution_time(logger, "notification_sweep")
def run_notification_sweep(
    db: Session,
    actor: Actor,
    org_id: UUID,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    return NotificationSweep(db, actor, org_id, dry_run=dry_run, now=now).run()
