"""
Invoice views over closed-won deals and completed referral orders.

Invoices are not stored separately. A deal becomes invoiceable when it is
closed won in either pipeline, and every completed referral order is one.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from ..deals.models import PaymentStatus


class InvoiceKind(str, Enum):
    DEAL = "deal"
    REFERRAL_ORDER = "referral_order"


class DateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"


class InvoiceParty(BaseModel):
    name: str
    company: str | None = None
    email: str | None = None
    phone: str | None = None


class InvoiceSummary(BaseModel):
    """One row of the invoice list."""

    kind: InvoiceKind
    record_id: UUID
    invoice_number: str
    partner_id: UUID
    partner_name: str
    organization_name: str | None = None
    organization_type: str | None = None
    customer: InvoiceParty
    description: str | None = None
    amount: Decimal
    currency: str
    formatted_amount: str
    commission_amount: Decimal | None = None
    payment_status: str
    # Closed-won time for deals, creation time for referral orders
    invoice_date: datetime


class InvoiceList(BaseModel):
    deals: list[InvoiceSummary]
    referral_orders: list[InvoiceSummary]
    total: int
    total_amount: Decimal


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus


class InvoiceLine(BaseModel):
    title: str
    description: str | None = None
    amount: Decimal


class InvoiceDocument(BaseModel):
    """Everything printed on an invoice PDF."""

    kind: InvoiceKind
    invoice_number: str
    issue_date: date
    payment_status: str
    currency: str
    bill_to: InvoiceParty
    partner: InvoiceParty
    lines: list[InvoiceLine] = Field(default_factory=list)
    total: Decimal
    commission_percentage: Decimal | None = None
    commission_amount: Decimal | None = None
    expected_delivery_date: date | None = None
    notes: str | None = None
