"""
Referral orders: completed sales credited to referral partners.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ..deals.models import PaymentStatus, format_invoice_number
from ..partners.models import Partner
from ..settings import settings

ORDER_STATUS_COMPLETED = "completed"


class ReferralOrder(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "referral_orders"

    partner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Set when the order was produced by a closed-won deal
    source_deal_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    product_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    order_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    commission_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    commission_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ORDER_STATUS_COMPLETED)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.UNPAID.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    partner: Mapped[Partner] = relationship(lazy="selectin")

    @property
    def invoice_number(self) -> str:
        return format_invoice_number(settings.business.referral_invoice_prefix, self.id)


class ReferralOrderCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    client_name: str = ""
    client_email: str = ""
    client_company: str | None = None
    client_phone: str | None = None
    product_ids: list[UUID] = Field(default_factory=list)
    order_value: Decimal | None = None
    currency: str | None = None
    # Defaults to the partner's tier commission
    commission_percentage: Decimal | None = Field(None, ge=0, le=100)
    notes: str | None = None


class ReferralOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    partner_id: UUID
    source_deal_id: UUID | None
    client_name: str
    client_email: str
    client_company: str | None
    client_phone: str | None
    product_name: str
    product_description: str | None
    order_value: Decimal
    currency: str
    commission_percentage: Decimal
    commission_amount: Decimal
    expected_delivery_date: date | None
    status: str
    payment_status: str
    notes: str | None
    created_at: datetime
    invoice_number: str


class ReferralOrderList(BaseModel):
    orders: list[ReferralOrderResponse]
    total: int
    total_value: Decimal
    total_commission: Decimal
