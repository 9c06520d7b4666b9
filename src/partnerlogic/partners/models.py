"""
Partner organizations, partner contacts and their product assignments.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin
from ..tiers.models import TierName, TierProgress


class OrganizationType(str, Enum):
    """How a partner organization sells."""

    RESELLER = "reseller"
    REFERRAL = "referral"
    FULL_CYCLE = "full_cycle"
    WHITE_LABEL = "white_label"


class Organization(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A partner company. Commission and MDF are derived from its tier."""

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), default=OrganizationType.RESELLER.value)
    tier: Mapped[str] = mapped_column(String(50), default=TierName.BRONZE.value, index=True)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    mdf_allocation: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    mdf_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    learning_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Partner(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A partner contact who signs in and registers deals."""

    __tablename__ = "partners"

    organization_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    partner_manager_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("partner_managers.id", ondelete="SET NULL"), nullable=True, index=True
    )
    auth_user_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    organization: Mapped[Organization] = relationship(lazy="selectin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PartnerProduct(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A product a partner is allowed to sell."""

    __tablename__ = "partner_products"
    __table_args__ = (UniqueConstraint("partner_id", "product_id", name="uq_partner_product"),)

    partner_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("partners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )


# Pydantic models for API


class PartnerCreate(BaseModel):
    """Register a partner together with its organization."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str | None = None
    organization_id: UUID | None = None
    organization_name: str = ""
    organization_type: OrganizationType = OrganizationType.RESELLER
    tier: TierName = TierName.BRONZE
    mdf_enabled: bool = False
    learning_enabled: bool = True
    partner_manager_id: UUID | None = None
    auth_user_id: str | None = None


class PartnerUpdate(BaseModel):
    """Partial update of a partner contact."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    partner_manager_id: UUID | None = None
    auth_user_id: str | None = None
    is_active: bool | None = None


class OrganizationUpdate(BaseModel):
    """Partial update of a partner organization."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = None
    type: OrganizationType | None = None
    tier: TierName | None = None
    mdf_enabled: bool | None = None
    learning_enabled: bool | None = None
    discount_percentage: Decimal | None = Field(None, ge=0, le=100)
    mdf_allocation: Decimal | None = Field(None, ge=0)


class OrganizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: str
    tier: str
    discount_percentage: Decimal
    mdf_allocation: Decimal
    mdf_enabled: bool
    learning_enabled: bool


class PartnerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None
    partner_manager_id: UUID | None
    auth_user_id: str | None
    is_active: bool
    created_at: datetime
    organization: OrganizationResponse


class PartnerList(BaseModel):
    """Paginated partners."""

    partners: list[PartnerResponse]
    total: int
    page: int = 1
    per_page: int = 50
    has_next: bool
    has_prev: bool


class ProductAssignment(BaseModel):
    """Replace the products assigned to a partner."""

    product_ids: list[UUID] = Field(default_factory=list)


class PartnerDashboard(BaseModel):
    """Headline numbers for the partner home page."""

    partner_id: UUID
    organization_name: str
    tier: str
    total_deals: int
    open_deals: int
    closed_won_deals: int
    pipeline_value: Decimal
    closed_won_revenue: Decimal
    mdf_allocation: Decimal
    mdf_used: Decimal
    mdf_remaining: Decimal
    tier_progress: TierProgress
