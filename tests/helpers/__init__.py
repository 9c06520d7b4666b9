"""
Shared helpers for PartnerLogic tests: caller headers, a recording HTTP
transport and factories for partners and deals.
"""

import json
from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from partnerlogic.deals.models import Deal
from partnerlogic.partners.models import Organization, Partner
from partnerlogic.settings import settings

USER_HEADER = settings.auth.user_id_header


def as_user(auth_user_id: str) -> dict[str, str]:
    """Request headers identifying the caller."""
    return {USER_HEADER: auth_user_id}


class RecordingTransport:
    """``httpx.MockTransport`` handler that records every request."""

    def __init__(self, status_code: int = 200, body: dict | None = None):
        self.status_code = status_code
        self.body = body if body is not None else {"success": True}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    def payloads(self, function_name: str) -> list[dict]:
        """JSON bodies posted to one hosted function."""
        return [
            json.loads(r.content)
            for r in self.requests
            if r.url.path.rstrip("/").endswith(function_name)
        ]


async def make_partner(
    session: AsyncSession,
    auth_user_id: str | None,
    email: str,
    *,
    tier: str = "gold",
    organization_type: str = "reseller",
    organization_name: str = "Acme Resellers",
    partner_manager_id=None,
    mdf_enabled: bool = True,
    mdf_allocation: Decimal = Decimal("25000"),
    learning_enabled: bool = True,
) -> Partner:
    organization = Organization(
        name=organization_name,
        type=organization_type,
        tier=tier,
        discount_percentage=Decimal("15"),
        mdf_allocation=mdf_allocation,
        mdf_enabled=mdf_enabled,
        learning_enabled=learning_enabled,
    )
    session.add(organization)
    await session.flush()
    partner = Partner(
        organization_id=organization.id,
        first_name="Pat",
        last_name="Partner",
        email=email,
        auth_user_id=auth_user_id,
        partner_manager_id=partner_manager_id,
    )
    session.add(partner)
    await session.commit()
    # Load the organization relationship outside of a lazy load
    await session.refresh(partner, ["organization"])
    return partner


def deal_payload(**overrides) -> dict:
    payload = {
        "customer_name": "Jane Buyer",
        "customer_email": "jane@buyer.example",
        "customer_company": "Buyer Corp",
        "deal_value": "12500",
        "currency": "usd",
        "stage": "new_deal",
        "priority": "high",
        "description": "Site licence",
    }
    payload.update(overrides)
    return payload


async def make_deal(session: AsyncSession, partner: Partner, **overrides) -> Deal:
    values = {
        "partner_id": partner.id,
        "customer_name": "Jane Buyer",
        "customer_email": "jane@buyer.example",
        "customer_company": "Buyer Corp",
        "deal_value": Decimal("12500"),
        "currency": "USD",
        "stage": "new_deal",
    }
    values.update(overrides)
    deal = Deal(**values)
    session.add(deal)
    await session.commit()
    return deal


