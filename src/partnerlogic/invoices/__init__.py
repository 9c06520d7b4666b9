"""Invoices for closed-won deals and referral orders."""

from .models import InvoiceDocument, InvoiceKind, InvoiceList, InvoiceSummary
from .pdf import InvoicePDFRenderer, render_invoice_pdf

__all__ = [
    "InvoiceDocument",
    "InvoiceKind",
    "InvoiceList",
    "InvoiceSummary",
    "InvoicePDFRenderer",
    "render_invoice_pdf",
]
