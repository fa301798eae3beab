"""
Invoice Routes
==============

Invoices and payments for jobs the caller can see, plus the PDF download
and the overdue check.
"""

from io import BytesIO
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.authz import Actor, can_manage_jobs, can_manage_org_settings, can_view_jobs
from app.core.dependencies.permissions import require_permission
from app.core.envelope import ok
from app.core.exceptions import AppException
from app.core.logging import get_logger
from app.db.session import get_db
from app.schemas import ErrorResponse
from app.schemas.invoice import InvoiceCreate, InvoiceIssue, InvoiceUpdate, PaymentCreate
from app.services import invoice_service
from app.services.invoice_pdf import InvoicePDFError, InvoicePDFRenderer, invoice_filename
from app.services.job_service import get_job_for_actor
from app.services.org_service import get_org_settings

# Initialize logger
logger = get_logger(__name__)

router = APIRouter(
    tags=["Invoices"],
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        404: {"model": ErrorResponse, "description": "Invoice not found"},
    },
)


def _invoice_detail(db: Session, invoice) -> dict:
    payments = invoice_service.list_invoice_payments(db, invoice)
    return invoice_service.serialize_invoice(invoice, payments)


@router.get("/api/jobs/{job_id}/invoices", summary="List a job's invoices")
def list_job_invoices_route(
    job_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    rows = invoice_service.list_job_invoices(db, actor, job_id)
    return ok([_invoice_detail(db, row) for row in rows])


@router.post("/api/jobs/{job_id}/invoices", status_code=201, summary="Create a draft invoice")
def create_invoice_route(
    job_id: UUID,
    body: InvoiceCreate,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    invoice = invoice_service.create_invoice(db, actor, job_id, body.model_dump(exclude_unset=True))
    return ok(_invoice_detail(db, invoice))


@router.post("/api/invoices/overdue-check", summary="Flag overdue invoices")
def overdue_check_route(
    actor: Actor = Depends(require_permission(can_manage_org_settings)),
    db: Session = Depends(get_db),
) -> dict:
    return ok(invoice_service.check_overdue_invoices(db, actor.org_id))


@router.get("/api/invoices/{invoice_id}", summary="Get an invoice with payments")
def get_invoice_route(
    invoice_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    invoice = invoice_service.get_invoice_for_actor(db, actor, invoice_id)
    return ok(_invoice_detail(db, invoice))


@router.patch("/api/invoices/{invoice_id}", summary="Update an invoice")
def update_invoice_route(
    invoice_id: UUID,
    body: InvoiceUpdate,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    invoice = invoice_service.update_invoice(db, actor, invoice_id, body.model_dump(exclude_unset=True))
    return ok(_invoice_detail(db, invoice))


@router.post("/api/invoices/{invoice_id}/issue", summary="Issue a draft invoice")
def issue_invoice_route(
    invoice_id: UUID,
    body: InvoiceIssue,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    invoice = invoice_service.issue_invoice(db, actor, invoice_id, issued_at=body.issued_at, due_at=body.due_at)
    return ok(_invoice_detail(db, invoice))


@router.post("/api/invoices/{invoice_id}/payments", status_code=201, summary="Record a payment")
def record_payment_route(
    invoice_id: UUID,
    body: PaymentCreate,
    actor: Actor = Depends(require_permission(can_manage_jobs)),
    db: Session = Depends(get_db),
) -> dict:
    payment = invoice_service.record_payment(
        db,
        actor,
        invoice_id,
        amount_cents=body.amount_cents,
        method=body.method,
        paid_at=body.paid_at,
        reference=body.reference,
    )
    invoice = invoice_service.get_invoice_for_actor(db, actor, invoice_id)
    return ok({
        "payment": invoice_service.serialize_payment(payment),
        "invoice": _invoice_detail(db, invoice),
    })


@router.get(
    "/api/invoices/{invoice_id}/pdf",
    summary="Download invoice (PDF)",
    description="Renders the persisted invoice as a single-page PDF.",
)
def download_invoice_pdf(
    invoice_id: UUID,
    actor: Actor = Depends(require_permission(can_view_jobs)),
    db: Session = Depends(get_db),
):
    invoice = invoice_service.get_invoice_for_actor(db, actor, invoice_id)
    job = get_job_for_actor(db, actor, invoice.job_id)
    settings_row = get_org_settings(db, actor.org_id)

    try:
        pdf_bytes = InvoicePDFRenderer().render(invoice, job, company_name=settings_row.company_name)
    except InvoicePDFError as e:
        raise AppException("Invoice PDF could not be generated", details={"invoice_id": str(invoice_id)}) from e

    return StreamingResponse(
        BytesIO(pdf_bytes),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice_filename(invoice)}"},
    )
