"""
Import every table so it registers on ``Base.metadata``.

Used by ``db.create_all_tables_async`` and the Alembic environment.
"""

from partnerlogic.auth.models import (
    AccountUserProfile,
    AdminProfile,
    PartnerManagerProfile,
    SupportUserProfile,
)
from partnerlogic.bonuses.models import PartnerBonus
from partnerlogic.currencies.models import Currency
from partnerlogic.db import Base
from partnerlogic.deals.models import Deal, DealActivity
from partnerlogic.knowledge.models import KnowledgeArticle, KnowledgeCollection
from partnerlogic.mdf.models import MDFRequest
from partnerlogic.notifications.models import Notification
from partnerlogic.partners.models import Organization, Partner, PartnerProduct
from partnerlogic.products.models import Product
from partnerlogic.referrals.models import ReferralOrder
from partnerlogic.support.models import SupportTicket, SupportTicketMessage
from partnerlogic.tiers.models import TierSetting

__all__ = [
    "Base",
    "AccountUserProfile",
    "AdminProfile",
    "PartnerManagerProfile",
    "SupportUserProfile",
    "Currency",
    "Deal",
    "DealActivity",
    "KnowledgeArticle",
    "KnowledgeCollection",
    "MDFRequest",
    "Notification",
    "Organization",
    "Partner",
    "PartnerBonus",
    "PartnerProduct",
    "Product",
    "ReferralOrder",
    "SupportTicket",
    "SupportTicketMessage",
    "TierSetting",
]
