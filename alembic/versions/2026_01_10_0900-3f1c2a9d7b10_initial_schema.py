"""initial_schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-01-10 09:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "3f1c2a9d7b10"
down_revision = None
branch_labels = None
depends_on = None

PROFILE_TABLES = ("admins", "partner_managers", "account_users", "support_users")


def _id() -> sa.Column:
    return sa.Column("id", sa.Uuid(), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _partner_fk(**kwargs) -> sa.Column:
    return sa.Column(
        "partner_id",
        sa.Uuid(),
        sa.ForeignKey("partners.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        **kwargs,
    )


def upgrade() -> None:
    """Create every PartnerLogic table."""

    # Staff profiles
    for table in PROFILE_TABLES:
        op.create_table(
            table,
            _id(),
            sa.Column("auth_user_id", sa.String(255), nullable=False, unique=True, index=True),
            sa.Column("first_name", sa.String(100), nullable=False),
            sa.Column("last_name", sa.String(100), nullable=False),
            sa.Column("email", sa.String(255), nullable=False, unique=True),
            sa.Column("phone", sa.String(50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            *_timestamps(),
        )

    # Catalog and program settings
    op.create_table(
        "tier_settings",
        _id(),
        sa.Column("tier_name", sa.String(50), nullable=False, unique=True),
        sa.Column("tier_label", sa.String(100), nullable=False),
        sa.Column("min_revenue", sa.Numeric(14, 2), nullable=False),
        sa.Column("max_revenue", sa.Numeric(14, 2), nullable=True),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("mdf_allocation", sa.Numeric(14, 2), nullable=False),
        sa.Column("bonus_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("tier_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "products",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("short_name", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "currencies",
        _id(),
        sa.Column("code", sa.String(3), nullable=False, unique=True),
        sa.Column("symbol", sa.String(10), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )

    # Partners
    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("tier", sa.String(50), nullable=False, index=True),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("mdf_allocation", sa.Numeric(14, 2), nullable=False),
        sa.Column("mdf_enabled", sa.Boolean(), nullable=False),
        sa.Column("learning_enabled", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "partners",
        _id(),
        sa.Column(
            "organization_id",
            sa.Uuid(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "partner_manager_id",
            sa.Uuid(),
            sa.ForeignKey("partner_managers.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("auth_user_id", sa.String(255), nullable=True, unique=True, index=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "partner_products",
        _id(),
        _partner_fk(),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("partner_id", "product_id", name="uq_partner_product"),
    )

    # Deals
    op.create_table(
        "deals",
        _id(),
        _partner_fk(),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_company", sa.String(255), nullable=False),
        sa.Column("deal_value", sa.Numeric(14, 2), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("your_commission", sa.Numeric(14, 2), nullable=True),
        sa.Column("price_to_vendor", sa.Numeric(14, 2), nullable=True),
        sa.Column("stage", sa.String(50), nullable=False, index=True),
        sa.Column("admin_stage", sa.String(50), nullable=False, index=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("support_type_needed", sa.String(20), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("expected_close_date", sa.Date(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        sa.Column("invoice_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_won_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_deals_partner_stage", "deals", ["partner_id", "stage"])
    op.create_table(
        "deal_activities",
        _id(),
        sa.Column(
            "deal_id",
            sa.Uuid(),
            sa.ForeignKey("deals.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "referral_orders",
        _id(),
        _partner_fk(),
        sa.Column(
            "source_deal_id",
            sa.Uuid(),
            sa.ForeignKey("deals.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("client_email", sa.String(255), nullable=False),
        sa.Column("client_company", sa.String(255), nullable=True),
        sa.Column("client_phone", sa.String(50), nullable=True),
        sa.Column("product_name", sa.Text(), nullable=False),
        sa.Column("product_description", sa.Text(), nullable=True),
        sa.Column("order_value", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Funds and bonuses
    op.create_table(
        "mdf_requests",
        _id(),
        _partner_fk(),
        sa.Column("campaign_name", sa.String(255), nullable=False),
        sa.Column("requested_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("approved_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("roi_metrics", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "partner_bonuses",
        _id(),
        _partner_fk(),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    # Knowledge base
    op.create_table(
        "knowledge_collections",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("access_level", sa.String(20), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "knowledge_articles",
        _id(),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("access_level", sa.String(20), nullable=False, index=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False),
        sa.Column(
            "collection_id",
            sa.Uuid(),
            sa.ForeignKey("knowledge_collections.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("attachments", sa.JSON(), nullable=True),
        *_timestamps(),
    )

    # Support
    op.create_table(
        "support_tickets",
        _id(),
        _partner_fk(),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column(
            "assigned_to",
            sa.Uuid(),
            sa.ForeignKey("support_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "support_ticket_messages",
        _id(),
        sa.Column(
            "ticket_id",
            sa.Uuid(),
            sa.ForeignKey("support_tickets.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("sender_type", sa.String(20), nullable=False),
        sa.Column("sender_id", sa.String(255), nullable=False),
        sa.Column("sender_name", sa.String(255), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        *_timestamps(),
    )

    # Notifications
    op.create_table(
        "notifications",
        _id(),
        sa.Column("user_id", sa.String(255), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("reference_id", sa.String(255), nullable=True),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    """Drop every PartnerLogic table."""
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("support_ticket_messages")
    op.drop_table("support_tickets")
    op.drop_table("knowledge_articles")
    op.drop_table("knowledge_collections")
    op.drop_table("partner_bonuses")
    op.drop_table("mdf_requests")
    op.drop_table("referral_orders")
    op.drop_table("deal_activities")
    op.drop_index("ix_deals_partner_stage", table_name="deals")
    op.drop_table("deals")
    op.drop_table("partner_products")
    op.drop_table("partners")
    op.drop_table("organizations")
    op.drop_table("currencies")
    op.drop_table("products")
    op.drop_table("tier_settings")
    for table in reversed(PROFILE_TABLES):
        op.drop_table(table)
