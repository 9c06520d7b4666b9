"""
Invoice PDF rendering with ReportLab.
"""

import io
from datetime import datetime
from decimal import Decimal
from typing import Any
from xml.sax.saxutils import escape

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.platypus.flowables import HRFlowable

from ..currencies.registry import format_invoice_amount
from ..settings import settings
from .models import InvoiceDocument, InvoiceKind, InvoiceParty

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = A4
DEFAULT_MARGINS = (20 * mm, 20 * mm, 20 * mm, 20 * mm)  # left, top, right, bottom

PRIMARY_COLOR = colors.HexColor("#2563eb")
REFERRAL_COLOR = colors.HexColor("#7c3aed")
SECONDARY_COLOR = colors.HexColor("#6b7280")
SUCCESS_COLOR = colors.HexColor("#065f46")
WARNING_COLOR = colors.HexColor("#d97706")
DANGER_COLOR = colors.HexColor("#dc2626")
LIGHT_GRAY = colors.HexColor("#f3f4f6")
DARK_GRAY = colors.HexColor("#333333")

STATUS_COLORS = {
    "unpaid": WARNING_COLOR,
    "partial": WARNING_COLOR,
    "paid": SUCCESS_COLOR,
    "overdue": DANGER_COLOR,
}


def format_amount(amount: Decimal | None, currency: str) -> str:
    """``$12,500.00`` style amounts, ``-`` when missing."""
    if amount is None:
        return "-"
    return format_invoice_amount(amount, currency)


def _text(value: Any) -> str:
    return escape(str(value)) if value is not None else ""


class InvoicePDFRenderer:
    """Render deal and referral order invoices."""

    def __init__(
        self,
        page_size: tuple[float, float] = DEFAULT_PAGE_SIZE,
        margins: tuple[float, float, float, float] = DEFAULT_MARGINS,
        company_name: str | None = None,
        billing_email: str | None = None,
    ) -> None:
        self.page_size = page_size
        self.margins = margins
        self.company_name = company_name or settings.business.company_name
        self.billing_email = billing_email or settings.email.billing_address
        self.styles = self._create_styles()

    def _create_styles(self) -> dict[str, Any]:
        styles = getSampleStyleSheet()
        return {
            "SectionTitle": ParagraphStyle(
                "SectionTitle",
                parent=styles["Heading2"],
                fontSize=11,
                textColor=SECONDARY_COLOR,
                spaceAfter=6,
                spaceBefore=12,
                fontName="Helvetica-Bold",
            ),
            "Normal": ParagraphStyle(
                "Normal",
                parent=styles["Normal"],
                fontSize=10,
                textColor=DARK_GRAY,
                leading=14,
            ),
            "SmallText": ParagraphStyle(
                "SmallText",
                parent=styles["Normal"],
                fontSize=9,
                textColor=SECONDARY_COLOR,
            ),
            "FooterText": ParagraphStyle(
                "FooterText",
                parent=styles["Normal"],
                fontSize=9,
                textColor=SECONDARY_COLOR,
                alignment=1,  # CENTER
                spaceBefore=20,
            ),
        }

    def render(self, invoice: InvoiceDocument) -> bytes:
        """Build the PDF and return its bytes."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=self.page_size,
            leftMargin=self.margins[0],
            topMargin=self.margins[1],
            rightMargin=self.margins[2],
            bottomMargin=self.margins[3],
            title=f"Invoice {invoice.invoice_number}",
            author=self.company_name,
        )

        story: list[Any] = []
        story.extend(self._create_header(invoice))
        story.extend(self._create_parties_section(invoice))
        story.extend(self._create_lines_table(invoice))
        if invoice.kind == InvoiceKind.REFERRAL_ORDER:
            story.extend(self._create_commission_section(invoice))
        if invoice.notes:
            story.extend(self._create_notes_section(invoice.notes))
        story.extend(self._create_footer(invoice))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(
            "invoice.pdf.rendered",
            invoice_number=invoice.invoice_number,
            kind=invoice.kind.value,
            size=len(pdf_bytes),
        )
        return pdf_bytes

    def _create_header(self, invoice: InvoiceDocument) -> list[Any]:
        accent = REFERRAL_COLOR if invoice.kind == InvoiceKind.REFERRAL_ORDER else PRIMARY_COLOR
        title = (
            "REFERRAL ORDER INVOICE"
            if invoice.kind == InvoiceKind.REFERRAL_ORDER
            else "INVOICE"
        )

        company_text = f"<b>{_text(self.company_name)}</b><br/>Email: {_text(self.billing_email)}"

        status_color = STATUS_COLORS.get(invoice.payment_status, SECONDARY_COLOR).hexval()
        invoice_text = (
            f"<para align='right'><b>{title}</b><br/>"
            f"#{_text(invoice.invoice_number)}<br/>"
            f"Date: {invoice.issue_date.strftime('%B %d, %Y')}<br/>"
        )
        if invoice.expected_delivery_date:
            invoice_text += (
                f"Expected Delivery: {invoice.expected_delivery_date.strftime('%B %d, %Y')}<br/>"
            )
        invoice_text += (
            f"<font color='#{status_color[2:]}'><b>{invoice.payment_status.upper()}</b></font>"
            "</para>"
        )

        header_table = Table(
            [
                [
                    Paragraph(company_text, self.styles["Normal"]),
                    Paragraph(invoice_text, self.styles["Normal"]),
                ]
            ],
            colWidths=[None, None],
        )
        header_table.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("ALIGN", (0, 0), (0, 0), "LEFT"),
                    ("ALIGN", (1, 0), (1, 0), "RIGHT"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 20),
                ]
            )
        )
        return [
            header_table,
            HRFlowable(width="100%", thickness=2, color=accent),
            Spacer(1, 20),
        ]

    @staticmethod
    def _party_text(heading: str, party: InvoiceParty) -> str:
        text = f"<b>{heading}</b><br/><b>{_text(party.name)}</b><br/>"
        text += f"{_text(party.company or 'N/A')}<br/>"
        if party.email:
            text += f"{_text(party.email)}<br/>"
        if party.phone:
            text += _text(party.phone)
        return text

    def _create_parties_section(self, invoice: InvoiceDocument) -> list[Any]:
        partner_heading = (
            "REFERRING PARTNER" if invoice.kind == InvoiceKind.REFERRAL_ORDER else "PARTNER"
        )
        table = Table(
            [
                [
                    Paragraph(self._party_text("BILL TO", invoice.bill_to), self.styles["Normal"]),
                    Paragraph(
                        self._party_text(partner_heading, invoice.partner), self.styles["Normal"]
                    ),
                ]
            ],
            colWidths=[None, None],
        )
        table.setStyle(
            TableStyle(
                [
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 20),
                ]
            )
        )
        return [table]

    def _create_lines_table(self, invoice: InvoiceDocument) -> list[Any]:
        data: list[list[Any]] = [["Product/Service", "Description", "Amount"]]
        for line in invoice.lines:
            data.append(
                [
                    Paragraph(f"<b>{_text(line.title)}</b>", self.styles["Normal"]),
                    Paragraph(_text(line.description or "-"), self.styles["Normal"]),
                    format_amount(line.amount, invoice.currency),
                ]
            )
        data.append(["", "TOTAL", format_amount(invoice.total, invoice.currency)])

        table = Table(data, colWidths=[None, None, 110])
        table.setStyle(
            TableStyle(
                [
                    # Header row
                    ("BACKGROUND", (0, 0), (-1, 0), LIGHT_GRAY),
                    ("TEXTCOLOR", (0, 0), (-1, 0), SECONDARY_COLOR),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 9),
                    ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
                    # Total row
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                    ("TEXTCOLOR", (0, -1), (-1, -1), PRIMARY_COLOR),
                    ("LINEABOVE", (0, -1), (-1, -1), 2, PRIMARY_COLOR),
                    ("GRID", (0, 0), (-1, -2), 0.5, colors.lightgrey),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ("TOPPADDING", (0, 0), (-1, -1), 8),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ]
            )
        )
        return [table, Spacer(1, 30)]

    def _create_commission_section(self, invoice: InvoiceDocument) -> list[Any]:
        text = (
            f"Commission Rate: <b>{invoice.commission_percentage or 0}%</b><br/>"
            f"<b>{format_amount(invoice.commission_amount, invoice.currency)}</b><br/>"
            "<font size='8'>This commission is payable to the referring partner upon "
            "successful completion of the referral order.</font>"
        )
        table = Table([[Paragraph(text, self.styles["Normal"])]])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, -1), colors.HexColor("#f5f3ff")),
                    ("BOX", (0, 0), (-1, -1), 1, colors.HexColor("#ddd6fe")),
                    ("TOPPADDING", (0, 0), (-1, -1), 10),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
                    ("LEFTPADDING", (0, 0), (-1, -1), 10),
                ]
            )
        )
        return [
            Paragraph("<b>REFERRAL COMMISSION</b>", self.styles["SectionTitle"]),
            table,
            Spacer(1, 20),
        ]

    def _create_notes_section(self, notes: str) -> list[Any]:
        table = Table([[Paragraph(_text(notes), self.styles["Normal"])]])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, -1), LIGHT_GRAY),
                    ("LEFTPADDING", (0, 0), (-1, -1), 10),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 10),
                    ("TOPPADDING", (0, 0), (-1, -1), 10),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 10),
                    ("LINEBEFORE", (0, 0), (0, -1), 4, PRIMARY_COLOR),
                ]
            )
        )
        return [Paragraph("<b>NOTES</b>", self.styles["SectionTitle"]), table, Spacer(1, 20)]

    def _create_footer(self, invoice: InvoiceDocument) -> list[Any]:
        if invoice.kind == InvoiceKind.REFERRAL_ORDER:
            footer_text = "<b>Thank you for your referral partnership!</b>"
        else:
            footer_text = "<b>Payment Terms:</b> Net 30 days<br/>Thank you for your business!"
        generated = datetime.now().strftime("%B %d, %Y at %I:%M %p")
        footer_text += (
            f"<br/><font size='8' color='#9ca3af'>This invoice was generated on {generated}</font>"
        )
        return [
            HRFlowable(width="100%", thickness=0.5, color=colors.lightgrey),
            Paragraph(footer_text, self.styles["FooterText"]),
        ]


def render_invoice_pdf(invoice: InvoiceDocument) -> bytes:
    return InvoicePDFRenderer().render(invoice)
