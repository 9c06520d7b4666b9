"""
Invoices API router.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.dependencies import get_current_user, require_accounts
from ..auth.models import CurrentUser
from ..communications import EmailGateway, get_email_gateway
from ..db import get_async_session
from ..deals.models import PaymentStatus
from .models import DateRange, InvoiceKind, InvoiceList, InvoiceSummary, PaymentStatusUpdate
from .service import InvoiceService

router = APIRouter(tags=["Invoices"])


def get_invoice_service(
    session: AsyncSession = Depends(get_async_session),
    email_gateway: EmailGateway = Depends(get_email_gateway),
) -> InvoiceService:
    return InvoiceService(session, email_gateway)


@router.get("", response_model=InvoiceList)
async def list_invoices(
    search: str | None = Query(None),
    date_range: DateRange = Query(DateRange.ALL),
    partner_id: UUID | None = Query(None),
    payment_status: PaymentStatus | None = Query(None),
    kind: InvoiceKind | None = Query(None),
    service: InvoiceService = Depends(get_invoice_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceList:
    return await service.list_invoices(
        current_user,
        search=search,
        date_range=date_range,
        partner_id=partner_id,
        payment_status=payment_status,
        kind=kind,
    )


@router.get("/{kind}/{record_id}", response_model=InvoiceSummary)
async def get_invoice(
    kind: InvoiceKind,
    record_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceSummary:
    return await service.get_invoice(kind, record_id, current_user)


@router.patch("/{kind}/{record_id}/payment-status", response_model=InvoiceSummary)
async def update_payment_status(
    kind: InvoiceKind,
    record_id: UUID,
    data: PaymentStatusUpdate,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: CurrentUser = Depends(require_accounts),
) -> InvoiceSummary:
    return await service.update_payment_status(kind, record_id, data.status, current_user)


@router.get("/{kind}/{record_id}/pdf")
async def download_invoice_pdf(
    kind: InvoiceKind,
    record_id: UUID,
    service: InvoiceService = Depends(get_invoice_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> Response:
    invoice_number, pdf_bytes = await service.render_pdf(kind, record_id, current_user)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice_number}.pdf"'},
    )
