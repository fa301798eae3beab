"""
Invoice Service Module
======================

Persisted invoice workflow on top of the pure rules in
``app.services.invoice_state``.

Lifecycle:
    draft -> issue -> issued/overdue -> partially_paid -> paid
    any status -> void

Every write recomputes totals from the normalized line items and
re-runs the job's margin guardrails.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import Actor, assert_job_write_access
from app.core.clock import as_utc, day_key, utcnow
from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.tenant.org_query import OrgQuery
from app.models.invoice import JobInvoice, JobPayment
from app.models.job import Job
from app.services.audit_service import log_audit_event_best_effort
from app.services.event_service import emit_app_event_best_effort
from app.services.invoice_state import (
    compute_invoice_totals,
    derive_invoice_status,
    derive_invoice_summary,
    is_successful_payment_status,
    validate_invoice_line_items,
)
from app.services.job_activity import create_job_activity_event_best_effort
from app.services.job_profitability import evaluate_job_guardrails_best_effort
from app.services.job_service import get_job_for_actor
from app.services.org_service import get_org_settings

# Initialize logger
logger = get_logger(__name__)

PAYMENT_METHODS = ("eft", "cash", "cheque", "card", "pos", "other")
EDITABLE_STATUSES = ("draft", "sent", "issued", "overdue")


def _line_items_or_raise(line_items: Any) -> None:
    errors = validate_invoice_line_items(line_items)
    if errors:
        raise ValidationError(errors[0], details={"errors": errors})


def _normalize_number(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _ensure_number_available(db: Session, org_id: UUID, number: str, invoice_id: Optional[UUID] = None) -> None:
    query = db.query(JobInvoice.id).filter(JobInvoice.org_id == org_id, JobInvoice.invoice_number == number)
    if invoice_id is not None:
        query = query.filter(JobInvoice.id != invoice_id)
    if query.first():
        raise ValidationError("Invoice number already in use")


def _bump_sequence(db: Session, org_id: UUID, number: str) -> None:
    """Keep the sequence ahead of manually chosen numbers like ``INV-42`` or ``42``."""
    digits = number[len(settings.INVOICE_NUMBER_PREFIX):] if number.startswith(settings.INVOICE_NUMBER_PREFIX) else number
    if not digits.isdigit():
        return
    org_settings = get_org_settings(db, org_id)
    org_settings.invoice_next_number = max(org_settings.invoice_next_number or 1, int(digits) + 1)


def reserve_invoice_number(db: Session, org_id: UUID) -> str:
    org_settings = get_org_settings(db, org_id)
    sequence = org_settings.invoice_next_number or 1
    number = f"{settings.INVOICE_NUMBER_PREFIX}{sequence}"
    # skip numbers that were claimed manually
    while db.query(JobInvoice.id).filter(JobInvoice.org_id == org_id, JobInvoice.invoice_number == number).first():
        sequence += 1
        number = f"{settings.INVOICE_NUMBER_PREFIX}{sequence}"
    org_settings.invoice_next_number = sequence + 1
    db.flush()
    return number


def serialize_invoice(invoice: JobInvoice, payments: Optional[List[JobPayment]] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    data = {
        "id": invoice.id,
        "job_id": invoice.job_id,
        "invoice_number": invoice.invoice_number,
        "summary": invoice.summary,
        "currency": invoice.currency,
        "status": invoice.status,
        "amount_cents": invoice.amount_cents,
        "subtotal_cents": invoice.subtotal_cents,
        "tax_cents": invoice.tax_cents,
        "total_cents": invoice.total_cents,
        "line_items": list(invoice.line_items or []),
        "issued_at": invoice.issued_at,
        "sent_at": invoice.sent_at,
        "due_at": invoice.due_at,
        "paid_at": invoice.paid_at,
        "notes": invoice.notes,
        "created_at": invoice.created_at,
        "updated_at": invoice.updated_at,
    }
    if payments is not None:
        derived = derive_invoice_status(invoice, payments, now or utcnow())
        data["paid_cents"] = derived.paid_cents
        data["outstanding_cents"] = derived.outstanding_cents
        data["is_overdue"] = derived.is_overdue
        data["payments"] = [serialize_payment(p) for p in payments]
    return data


def serialize_payment(payment: JobPayment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "invoice_id": payment.invoice_id,
        "job_id": payment.job_id,
        "amount_cents": payment.amount_cents,
        "status": payment.status,
        "method": payment.method,
        "reference": payment.reference,
        "paid_at": payment.paid_at,
        "created_at": payment.created_at,
    }


# =====================================
# Queries
# =====================================

def get_invoice_for_actor(db: Session, actor: Actor, invoice_id: UUID) -> JobInvoice:
    """Invoice of a job visible to the actor; anything else is NOT_FOUND."""
    invoice = OrgQuery(db, JobInvoice, actor.org_id).get(invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice", identifier=str(invoice_id))
    try:
        get_job_for_actor(db, actor, invoice.job_id)
    except NotFoundError:
        raise NotFoundError("Invoice", identifier=str(invoice_id))
    return invoice


def list_invoice_payments(db: Session, invoice: JobInvoice) -> List[JobPayment]:
    return (
        db.query(JobPayment)
        .filter(JobPayment.org_id == invoice.org_id, JobPayment.invoice_id == invoice.id)
        .order_by(JobPayment.created_at)
        .all()
    )


def list_job_invoices(db: Session, actor: Actor, job_id: UUID) -> List[JobInvoice]:
    job = get_job_for_actor(db, actor, job_id)
    return (
        db.query(JobInvoice)
        .filter(JobInvoice.org_id == actor.org_id, JobInvoice.job_id == job.id)
        .order_by(JobInvoice.created_at.desc())
        .all()
    )


# =====================================
# Mutations
# =====================================

def create_invoice(db: Session, actor: Actor, job_id: UUID, data: Dict[str, Any]) -> JobInvoice:
    """
    Create a draft invoice for a job.

    Raises:
        ValidationError: invalid line items or a taken invoice number
    """
    job = get_job_for_actor(db, actor, job_id)
    assert_job_write_access(job, actor)
    _line_items_or_raise(data.get("line_items"))

    totals = compute_invoice_totals(
        data.get("line_items"),
        amount_cents=data.get("amount_cents"),
        subtotal_cents=data.get("subtotal_cents"),
        tax_cents=data.get("tax_cents"),
        total_cents=data.get("total_cents"),
    )
    number = _normalize_number(data.get("invoice_number"))
    if number:
        _ensure_number_available(db, actor.org_id, number)
        _bump_sequence(db, actor.org_id, number)

    invoice = JobInvoice(
        org_id=actor.org_id,
        job_id=job.id,
        invoice_number=number,
        summary=derive_invoice_summary(data.get("summary"), totals.line_items, job.title),
        currency=(data.get("currency") or "AUD").upper(),
        amount_cents=totals.total_cents,
        subtotal_cents=totals.subtotal_cents,
        tax_cents=totals.tax_cents,
        total_cents=totals.total_cents,
        line_items=totals.line_items or [],
        status="draft",
        due_at=data.get("due_at"),
        notes=data.get("notes"),
    )
    db.add(invoice)
    db.flush()

    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "INVOICE_CREATED", "invoice", invoice.id, after=invoice.to_dict()
    )
    create_job_activity_event_best_effort(
        db,
        actor.org_id,
        job.id,
        "invoice_created",
        payload={"invoice_id": invoice.id, "total_cents": invoice.total_cents},
        actor_user_id=actor.user_id,
    )
    db.commit()
    logger.info("Invoice created", extra={"invoice_id": str(invoice.id), "job_id": str(job.id)})
    evaluate_job_guardrails_best_effort(db, actor.org_id, job.id, actor_user_id=actor.user_id)
    return invoice


def update_invoice(db: Session, actor: Actor, invoice_id: UUID, changes: Dict[str, Any]) -> JobInvoice:
    invoice = get_invoice_for_actor(db, actor, invoice_id)
    job = db.get(Job, invoice.job_id)
    assert_job_write_access(job, actor)

    new_status = changes.get("status")
    if new_status is not None and new_status not in ("sent", "void"):
        raise ValidationError("Status can only be changed to sent or void; use issue or payments otherwise")

    amount_fields = ("line_items", "amount_cents", "subtotal_cents", "tax_cents", "total_cents")
    if any(field in changes for field in amount_fields) and invoice.status not in EDITABLE_STATUSES:
        raise ConflictError(f"Cannot edit amounts of a {invoice.status} invoice")

    before = invoice.to_dict()
    if "line_items" in changes or any(field in changes for field in amount_fields):
        line_items = changes.get("line_items", invoice.line_items)
        _line_items_or_raise(line_items)
        totals = compute_invoice_totals(
            line_items,
            amount_cents=changes.get("amount_cents", invoice.amount_cents),
            subtotal_cents=changes.get("subtotal_cents"),
            tax_cents=changes.get("tax_cents"),
            total_cents=changes.get("total_cents"),
        )
        invoice.line_items = totals.line_items or []
        invoice.amount_cents = totals.total_cents
        invoice.subtotal_cents = totals.subtotal_cents
        invoice.tax_cents = totals.tax_cents
        invoice.total_cents = totals.total_cents

    if "invoice_number" in changes:
        number = _normalize_number(changes["invoice_number"])
        if number:
            _ensure_number_available(db, actor.org_id, number, invoice.id)
            _bump_sequence(db, actor.org_id, number)
        invoice.invoice_number = number
    if "summary" in changes or "line_items" in changes:
        invoice.summary = derive_invoice_summary(changes.get("summary"), invoice.line_items, job.title)
    for field in ("due_at", "notes"):
        if field in changes:
            setattr(invoice, field, changes[field])
    if new_status == "sent":
        invoice.status = "sent"
        invoice.sent_at = utcnow()
    elif new_status == "void":
        invoice.status = "void"
    db.flush()

    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "INVOICE_UPDATED",
        "invoice",
        invoice.id,
        before=before,
        after=invoice.to_dict(),
    )
    if invoice.status != "void":
        recalculate_invoice_status(db, invoice, actor_user_id=actor.user_id)
    db.commit()
    evaluate_job_guardrails_best_effort(db, actor.org_id, invoice.job_id, actor_user_id=actor.user_id)
    return invoice


def issue_invoice(
    db: Session,
    actor: Actor,
    invoice_id: UUID,
    issued_at: Optional[datetime] = None,
    due_at: Optional[datetime] = None,
) -> JobInvoice:
    """
    Move a draft or sent invoice to issued, assigning its number.

    Raises:
        ConflictError: the invoice is already issued, paid or void
        ValidationError: the invoice total is zero
    """
    invoice = get_invoice_for_actor(db, actor, invoice_id)
    assert_job_write_access(db.get(Job, invoice.job_id), actor)
    if invoice.status not in ("draft", "sent"):
        raise ConflictError(f"Invoice is already {invoice.status}")
    if (invoice.total_cents or 0) <= 0:
        raise ValidationError("Invoice total must be greater than zero")

    issued_at = as_utc(issued_at) if issued_at else utcnow()
    if not invoice.invoice_number:
        invoice.invoice_number = reserve_invoice_number(db, actor.org_id)
    invoice.issued_at = issued_at
    invoice.due_at = as_utc(due_at) if due_at else (
        as_utc(invoice.due_at) or issued_at + timedelta(days=settings.INVOICE_DEFAULT_DUE_DAYS)
    )
    invoice.status = "issued"
    db.flush()

    recalculate_invoice_status(db, invoice, actor_user_id=actor.user_id, emit=False)
    log_audit_event_best_effort(
        db, actor.org_id, actor.user_id, "INVOICE_ISSUED", "invoice", invoice.id, after=invoice.to_dict()
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "invoice.issued",
        payload={
            "invoice_id": str(invoice.id),
            "entity_id": str(invoice.id),
            "job_id": str(invoice.job_id),
            "invoice_number": invoice.invoice_number,
            "total_cents": invoice.total_cents,
            "due_at": invoice.due_at,
        },
        actor_user_id=actor.user_id,
    )
    db.commit()
    logger.info("Invoice issued", extra={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number})
    evaluate_job_guardrails_best_effort(db, actor.org_id, invoice.job_id, actor_user_id=actor.user_id)
    return invoice


def record_payment(
    db: Session,
    actor: Actor,
    invoice_id: UUID,
    amount_cents: int,
    method: str,
    paid_at: Optional[datetime] = None,
    reference: Optional[str] = None,
) -> JobPayment:
    """
    Record a manual payment against an issued invoice.

    Raises:
        ValidationError: draft/void invoice, non-positive amount,
            unknown method or an invoice that is already paid
    """
    invoice = get_invoice_for_actor(db, actor, invoice_id)
    assert_job_write_access(db.get(Job, invoice.job_id), actor)

    if invoice.status in ("draft", "void"):
        raise ValidationError("Invoice must be issued before recording payment")
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("amount_cents must be greater than zero")
    method = (method or "").lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError("Invalid payment method")

    paid_cents = sum(
        p.amount_cents or 0 for p in list_invoice_payments(db, invoice) if is_successful_payment_status(p.status)
    )
    if invoice.status == "paid" and paid_cents >= (invoice.total_cents or 0):
        raise ValidationError("Invoice is already paid")

    payment = JobPayment(
        org_id=actor.org_id,
        job_id=invoice.job_id,
        invoice_id=invoice.id,
        amount_cents=amount_cents,
        status="succeeded",
        method=method,
        reference=reference,
        paid_at=as_utc(paid_at) if paid_at else utcnow(),
    )
    db.add(payment)
    db.flush()

    log_audit_event_best_effort(
        db,
        actor.org_id,
        actor.user_id,
        "PAYMENT_RECORDED",
        "invoice",
        invoice.id,
        after={"payment_id": payment.id, "amount_cents": amount_cents, "method": method},
    )
    emit_app_event_best_effort(
        db,
        actor.org_id,
        "payment.recorded",
        payload={
            "invoice_id": str(invoice.id),
            "entity_id": str(payment.id),
            "job_id": str(invoice.job_id),
            "payment_id": str(payment.id),
            "amount_cents": amount_cents,
            "method": method,
        },
        actor_user_id=actor.user_id,
    )
    recalculate_invoice_status(db, invoice, actor_user_id=actor.user_id)
    db.commit()
    evaluate_job_guardrails_best_effort(db, actor.org_id, invoice.job_id, actor_user_id=actor.user_id)
    return payment


def recalculate_invoice_status(
    db: Session,
    invoice: JobInvoice,
    actor_user_id: Optional[UUID] = None,
    now: Optional[datetime] = None,
    emit: bool = True,
) -> bool:
    """
    Persist the derived status when it differs from the stored one.

    Emits ``invoice.paid`` when the invoice enters paid. Returns whether
    anything changed.
    """
    derived = derive_invoice_status(invoice, list_invoice_payments(db, invoice), now or utcnow())
    stored_paid_at = as_utc(invoice.paid_at)
    if derived.status == invoice.status and derived.paid_at == stored_paid_at:
        return False

    previous = invoice.status
    invoice.status = derived.status
    invoice.paid_at = derived.paid_at
    db.flush()
    logger.info(
        "Invoice status recalculated",
        extra={"invoice_id": str(invoice.id), "from": previous, "to": derived.status},
    )

    if emit and derived.status == "paid" and previous != "paid":
        emit_app_event_best_effort(
            db,
            invoice.org_id,
            "invoice.paid",
            payload={
                "invoice_id": str(invoice.id),
                "entity_id": str(invoice.id),
                "job_id": str(invoice.job_id),
                "total_cents": invoice.total_cents,
                "paid_at": invoice.paid_at,
            },
            actor_user_id=actor_user_id,
        )
    return True


def check_overdue_invoices(db: Session, org_id: UUID, now: Optional[datetime] = None) -> Dict[str, int]:
    """
    Flag issued invoices past their due date and emit ``invoice.overdue``.

    Each invoice emits at most once per day.
    """
    now = as_utc(now) if now else utcnow()
    candidates = (
        db.query(JobInvoice)
        .filter(
            JobInvoice.org_id == org_id,
            JobInvoice.due_at.isnot(None),
            JobInvoice.due_at < now,
            JobInvoice.status.notin_(("paid", "void", "draft")),
        )
        .all()
    )

    emitted = 0
    for invoice in candidates:
        recalculate_invoice_status(db, invoice, now=now)
        derived = derive_invoice_status(invoice, list_invoice_payments(db, invoice), now)
        if not derived.is_overdue:
            continue
        event = emit_app_event_best_effort(
            db,
            org_id,
            "invoice.overdue",
            payload={
                "invoice_id": str(invoice.id),
                "entity_id": f"{invoice.id}:{day_key(now)}",
                "job_id": str(invoice.job_id),
                "amount_cents": invoice.total_cents,
                "outstanding_cents": derived.outstanding_cents,
                "currency": invoice.currency,
                "due_at": invoice.due_at,
                "status": invoice.status,
            },
            event_key=f"invoice.overdue:{invoice.id}:{day_key(now)}",
        )
        if event is not None:
            emitted += 1
    db.commit()
    logger.info("Overdue invoice check finished", extra={"org_id": str(org_id), "scanned": len(candidates), "emitted": emitted})
    return {"scanned": len(candidates), "emitted": emitted}
