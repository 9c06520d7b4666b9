"""
Deal registration tables, pipeline stages and API schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ..partners.models import Partner, PartnerResponse
from ..settings import settings


class PartnerStage(str, Enum):
    """Sales stages shown on the partner and partner-manager boards."""

    NEW_DEAL = "new_deal"
    NEED_ANALYSIS = "need_analysis"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class ImplementationStage(str, Enum):
    """Delivery stages an admin tracks after the sale."""

    URS = "urs"
    BASE_DEPLOYMENT = "base_deployment"
    GAP_ASSESSMENT = "gap_assessment"
    DEVELOPMENT = "development"
    UAT = "uat"
    IQ = "iq"
    OQ = "oq"
    DEPLOYMENT = "deployment"
    PQ = "pq"
    LIVE = "live"


PARTNER_STAGE_LABELS: dict[str, str] = {
    "new_deal": "New Deal",
    "need_analysis": "Need Analysis",
    "proposal": "Proposal",
    "negotiation": "Negotiation",
    "closed_won": "Closed Won",
    "closed_lost": "Closed Lost",
}

IMPLEMENTATION_STAGE_LABELS: dict[str, str] = {
    "urs": "URS",
    "base_deployment": "Base Deployment",
    "gap_assessment": "Gap Assessment",
    "development": "Development",
    "uat": "UAT",
    "iq": "IQ",
    "oq": "OQ",
    "deployment": "Deployment",
    "pq": "PQ",
    "live": "LIVE",
}

# The admin board uses the sales stages followed by the implementation stages.
ADMIN_STAGE_LABELS: dict[str, str] = {**PARTNER_STAGE_LABELS, **IMPLEMENTATION_STAGE_LABELS}

# A newly registered deal may only start in an open sales stage.
INITIAL_STAGES: tuple[str, ...] = ("new_deal", "need_analysis", "proposal", "negotiation")

CLOSED_WON = PartnerStage.CLOSED_WON.value
DEFAULT_ADMIN_STAGE = ImplementationStage.URS.value


def stage_label(stage: str | None) -> str:
    if not stage:
        return ""
    return ADMIN_STAGE_LABELS.get(stage, stage)


def format_invoice_number(prefix: str, record_id: Any) -> str:
    """Invoice number from a prefix and the first 8 characters of the record id."""
    return f"{prefix}-{str(record_id)[:8].upper()}"


class DealPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SupportType(str, Enum):
    SALES = "sales"
    PRESALES = "presales"
    TECHNICAL = "technical"
    ACCOUNTS = "accounts"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"


class BoardView(str, Enum):
    PARTNER = "partner"
    ADMIN = "admin"


class Deal(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A registered sales opportunity."""

    __tablename__ = "deals"

    partner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True
    )

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    customer_company: Mapped[str] = mapped_column(String(255), nullable=False)

    deal_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    commission_percentage: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    your_commission: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    price_to_vendor: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    stage: Mapped[str] = mapped_column(String(50), default=PartnerStage.NEW_DEAL.value, index=True)
    admin_stage: Mapped[str] = mapped_column(String(50), default=DEFAULT_ADMIN_STAGE, index=True)
    priority: Mapped[str] = mapped_column(String(20), default=DealPriority.MEDIUM.value)
    support_type_needed: Mapped[str | None] = mapped_column(String(20), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_close_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Opaque URLs returned by file storage
    attachments: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    invoice_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_won_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.UNPAID.value)

    partner: Mapped[Partner] = relationship(lazy="selectin")

    __table_args__ = (Index("ix_deals_partner_stage", "partner_id", "stage"),)

    @property
    def display_name(self) -> str:
        return self.customer_company or self.customer_name

    @property
    def invoice_number(self) -> str:
        return format_invoice_number(settings.business.deal_invoice_prefix, self.id)


class DealActivity(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Timeline entry for a deal."""

    __tablename__ = "deal_activities"

    deal_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Hosted auth user id of the actor, empty for system entries
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)


# Pydantic models for API


class DealCreate(BaseModel):
    """Deal registration form. Field rules are enforced by the service."""

    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str | None = None
    customer_company: str = ""
    deal_value: Decimal | None = None
    currency: str | None = None
    stage: str = PartnerStage.NEW_DEAL.value
    priority: DealPriority = DealPriority.MEDIUM
    support_type_needed: SupportType | None = None
    description: str | None = None
    notes: str | None = None
    expected_close_date: date | None = None
    product_id: UUID | None = None
    attachments: list[dict[str, Any]] | None = None
    # Staff may register on behalf of a partner
    partner_id: UUID | None = None


class DealUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_company: str | None = None
    deal_value: Decimal | None = None
    currency: str | None = None
    priority: DealPriority | None = None
    support_type_needed: SupportType | None = None
    description: str | None = None
    notes: str | None = None
    expected_close_date: date | None = None
    product_id: UUID | None = None
    attachments: list[dict[str, Any]] | None = None


class StageMove(BaseModel):
    """Drop a deal card on another column."""

    stage: str
    confirm: bool = Field(False, description="Required when a partner closes a deal as won")


class DealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    partner_id: UUID
    product_id: UUID | None
    customer_name: str
    customer_email: str
    customer_phone: str | None
    customer_company: str
    deal_value: Decimal | None
    currency: str
    commission_percentage: Decimal | None
    your_commission: Decimal | None
    price_to_vendor: Decimal | None
    stage: str
    admin_stage: str
    priority: str
    support_type_needed: str | None
    description: str | None
    notes: str | None
    expected_close_date: date | None
    attachments: list[dict[str, Any]] | None
    invoice_sent_at: datetime | None
    closed_won_at: datetime | None
    payment_status: str
    created_at: datetime
    updated_at: datetime
    invoice_number: str


class DealDetail(DealResponse):
    partner: PartnerResponse


class DealList(BaseModel):
    deals: list[DealResponse]
    total: int
    page: int = 1
    per_page: int = 50
    has_next: bool
    has_prev: bool


class DealActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    deal_id: UUID
    user_id: str | None
    activity_type: str
    description: str
    created_at: datetime


class BoardColumn(BaseModel):
    stage: str
    label: str
    count: int
    total_value: Decimal
    currency: str
    deals: list[DealResponse]


class Board(BaseModel):
    view: BoardView
    expanded: bool = False
    implementation_count: int = 0
    columns: list[BoardColumn]
