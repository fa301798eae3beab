"""
Invoice PDF rendering.

Builds a single-page invoice document in memory with reportlab. The
renderer holds no business rules; totals and summaries come from the
persisted invoice.
"""

from collections import OrderedDict
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.core.clock import as_utc
from app.core.logging import get_logger
from app.models.invoice import JobInvoice
from app.models.job import Job

# Initialize logger
logger = get_logger(__name__)


class InvoicePDFError(Exception):
    """Raised when an invoice document cannot be built."""

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.original_error = original_error


def format_money(cents: Optional[int], currency: str = "AUD") -> str:
    value = (cents or 0) / 100
    return f"{currency} {value:,.2f}"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return as_utc(value).strftime("%d %b %Y")


def tax_breakdown(line_items: List[Dict[str, Any]]) -> List[Tuple[float, int]]:
    """Tax cents grouped by rate, in first-seen order; zero-tax rates are left out."""
    groups: "OrderedDict[float, int]" = OrderedDict()
    for item in line_items:
        tax = int(item.get("tax_cents") or 0)
        if tax <= 0:
            continue
        rate = float(item.get("tax_rate") or 0)
        groups[rate] = groups.get(rate, 0) + tax
    return list(groups.items())


class InvoicePDFRenderer:
    """
    Invoice document builder.

    Usage:
        pdf_bytes = InvoicePDFRenderer().render(invoice, job, company_name="Acme Plumbing")
    """

    def __init__(self) -> None:
        self._styles: Optional[Dict[str, ParagraphStyle]] = None

    def _get_styles(self) -> Dict[str, ParagraphStyle]:
        if self._styles is None:
            sample_styles = getSampleStyleSheet()
            self._styles = {
                "title": sample_styles["Heading1"],
                "heading2": sample_styles["Heading2"],
                "normal": sample_styles["Normal"],
            }
        return self._styles

    def _build_header(self, invoice: JobInvoice, job: Job, company_name: str, styles) -> list:
        number = invoice.invoice_number or "DRAFT"
        metadata = [
            ["Invoice:", number],
            ["Status:", invoice.status.replace("_", " ").title()],
            ["Issued:", format_date(invoice.issued_at)],
            ["Due:", format_date(invoice.due_at)],
            ["Job:", job.title],
        ]
        if job.client_name:
            metadata.append(["Bill to:", job.client_name])
        if job.address:
            metadata.append(["Site:", ", ".join(part for part in (job.address, job.suburb) if part)])

        table = Table(metadata, colWidths=[1.2 * inch, 4.5 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 10),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )
        return [
            Paragraph(escape(company_name), styles["title"]),
            Paragraph(f"Tax Invoice {escape(number)}", styles["heading2"]),
            Spacer(1, 0.2 * inch),
            table,
            Spacer(1, 0.3 * inch),
        ]

    def _build_line_items(self, invoice: JobInvoice, styles) -> list:
        currency = invoice.currency
        rows = [["Description", "Qty", "Unit", "Tax", "Amount"]]
        line_items = list(invoice.line_items or [])
        for item in line_items:
            rows.append([
                Paragraph(escape(item.get("description") or ""), styles["normal"]),
                f"{float(item.get('quantity') or 0):g}",
                format_money(item.get("unit_price_cents"), currency),
                format_money(item.get("tax_cents"), currency),
                format_money(item.get("total_cents"), currency),
            ])
        if not line_items:
            rows.append([invoice.summary or "Invoice total", "1", "", "", format_money(invoice.total_cents, currency)])

        table = Table(rows, colWidths=[2.6 * inch, 0.6 * inch, 1.1 * inch, 0.9 * inch, 1.2 * inch], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#EEEEEE")),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                    ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ]
            )
        )
        return [table, Spacer(1, 0.3 * inch)]

    def _build_totals(self, invoice: JobInvoice) -> list:
        currency = invoice.currency
        rows = [["Subtotal", format_money(invoice.subtotal_cents, currency)]]
        for rate, cents in tax_breakdown(list(invoice.line_items or [])):
            rows.append([f"Tax ({rate:g}%)", format_money(cents, currency)])
        if len(rows) == 1:
            rows.append(["Tax", format_money(invoice.tax_cents, currency)])
        rows.append(["Total", format_money(invoice.total_cents, currency)])

        table = Table(rows, colWidths=[4.9 * inch, 1.5 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                    ("LINEABOVE", (0, -1), (-1, -1), 0.5, colors.black),
                ]
            )
        )
        return [table]

    def render(self, invoice: JobInvoice, job: Job, company_name: Optional[str] = None) -> bytes:
        """
        Raises:
            InvoicePDFError: reportlab failed to lay out the document
        """
        styles = self._get_styles()
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            title=f"Invoice {invoice.invoice_number or invoice.id}",
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            leftMargin=0.75 * inch,
            rightMargin=0.75 * inch,
        )

        elements = []
        elements.extend(self._build_header(invoice, job, company_name or "Invoice", styles))
        elements.extend(self._build_line_items(invoice, styles))
        elements.extend(self._build_totals(invoice))
        if invoice.notes:
            elements.extend([Spacer(1, 0.3 * inch), Paragraph(escape(invoice.notes), styles["normal"])])

        try:
            doc.build(elements)
        except Exception as e:
            logger.error("Invoice PDF generation failed", extra={"invoice_id": str(invoice.id), "error": str(e)})
            raise InvoicePDFError("Invoice PDF generation failed", original_error=e) from e

        logger.info("Invoice PDF generated", extra={"invoice_id": str(invoice.id)})
        return buffer.getvalue()


def invoice_filename(invoice: JobInvoice) -> str:
    return f"invoice-{invoice.invoice_number or invoice.id}.pdf"
