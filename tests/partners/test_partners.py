"""
Tests for partner registration, organizations, product assignment and dashboards.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from partnerlogic.notifications.models import Notification

from tests.helpers import as_user, make_deal

pytestmark = pytest.mark.integration


def partner_payload(**overrides) -> dict:
    payload = {
        "first_name": "Nia",
        "last_name": "New",
        "email": "nia@newco.example",
        "organization_name": "NewCo",
        "organization_type": "reseller",
        "tier": "gold",
        "mdf_enabled": True,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
class TestPartnerCreation:
    async def test_admin_creates_partner_with_tier_allocation(self, client, admin, db_session):
        response = await client.post(
            "/api/v1/partners", json=partner_payload(), headers=as_user("admin-1")
        )
        assert response.status_code == 201
        organization = response.json()["organization"]
        assert organization["tier"] == "gold"
        assert Decimal(organization["discount_percentage"]) == Decimal("15")
        assert Decimal(organization["mdf_allocation"]) == Decimal("25000")

        query = select(Notification).where(Notification.user_id == "admin-1")
        notifications = (await db_session.execute(query)).scalars().all()
        assert [n.title for n in notifications] == ["New Partner Registration"]

    async def test_mdf_disabled_means_zero_allocation(self, client, admin):
        response = await client.post(
            "/api/v1/partners",
            json=partner_payload(mdf_enabled=False),
            headers=as_user("admin-1"),
        )
        assert Decimal(response.json()["organization"]["mdf_allocation"]) == Decimal("0")

    async def test_manager_becomes_default_manager(self, client, partner_manager):
        response = await client.post(
            "/api/v1/partners", json=partner_payload(), headers=as_user("pm-1")
        )
        assert response.status_code == 201
        assert response.json()["partner_manager_id"] == str(partner_manager.id)

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"first_name": ""}, "First name is required"),
            ({"email": "bad-address"}, "Invalid email format"),
            ({"organization_name": ""}, "Organization name is required"),
        ],
    )
    async def test_validation_messages(self, client, admin, overrides, message):
        response = await client.post(
            "/api/v1/partners", json=partner_payload(**overrides), headers=as_user("admin-1")
        )
        assert response.status_code == 422
        assert response.json()["message"] == message

    async def test_duplicate_email(self, client, admin, partner):
        response = await client.post(
            "/api/v1/partners",
            json=partner_payload(email="PAT@acme.example"),
            headers=as_user("admin-1"),
        )
        assert response.status_code == 409
        assert response.json()["message"] == "A partner with this email already exists"

    async def test_partner_cannot_create(self, client, partner):
        response = await client.post(
            "/api/v1/partners", json=partner_payload(), headers=as_user("partner-1")
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestPartnerAccess:
    async def test_manager_lists_only_managed(self, client, partner, other_partner):
        response = await client.get("/api/v1/partners", headers=as_user("pm-1"))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["partners"][0]["id"] == str(partner.id)

    async def test_admin_filters_by_tier(self, client, admin, partner, other_partner):
        response = await client.get(
            "/api/v1/partners", params={"tier": "bronze"}, headers=as_user("admin-1")
        )
        assert [p["email"] for p in response.json()["partners"]] == ["olly@other.example"]

    async def test_search_matches_organization_name(self, client, admin, partner, other_partner):
        response = await client.get(
            "/api/v1/partners", params={"search": "acme"}, headers=as_user("admin-1")
        )
        assert response.json()["total"] == 1

    async def test_partner_sees_self_only(self, client, partner, other_partner):
        own = await client.get(f"/api/v1/partners/{partner.id}", headers=as_user("partner-1"))
        assert own.status_code == 200
        other = await client.get(
            f"/api/v1/partners/{other_partner.id}", headers=as_user("partner-1")
        )
        assert other.status_code == 403

    async def test_me(self, client, partner):
        response = await client.get("/api/v1/partners/me", headers=as_user("partner-1"))
        assert response.json()["organization"]["name"] == "Acme Resellers"

    async def test_manager_cannot_view_unmanaged(self, client, partner, other_partner):
        response = await client.get(
            f"/api/v1/partners/{other_partner.id}", headers=as_user("pm-1")
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestOrganizationUpdates:
    async def test_tier_change_rederives_allocation(self, client, admin, partner):
        response = await client.patch(
            f"/api/v1/partners/organizations/{partner.organization_id}",
            json={"tier": "platinum"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["discount_percentage"]) == Decimal("20")
        assert Decimal(body["mdf_allocation"]) == Decimal("50000")

    async def test_explicit_values_win(self, client, admin, partner):
        response = await client.patch(
            f"/api/v1/partners/organizations/{partner.organization_id}",
            json={"tier": "silver", "discount_percentage": "12"},
            headers=as_user("admin-1"),
        )
        body = response.json()
        assert Decimal(body["discount_percentage"]) == Decimal("12")
        assert Decimal(body["mdf_allocation"]) == Decimal("10000")

    async def test_disabling_mdf_zeroes_allocation(self, client, admin, partner):
        response = await client.patch(
            f"/api/v1/partners/organizations/{partner.organization_id}",
            json={"mdf_enabled": False},
            headers=as_user("admin-1"),
        )
        assert Decimal(response.json()["mdf_allocation"]) == Decimal("0")

    async def test_delete_partner_removes_organization(self, client, admin, partner):
        response = await client.delete(
            f"/api/v1/partners/{partner.id}", headers=as_user("admin-1")
        )
        assert response.status_code == 204
        missing = await client.get(f"/api/v1/partners/{partner.id}", headers=as_user("admin-1"))
        assert missing.status_code == 404


@pytest.mark.asyncio
class TestProductsAndDashboard:
    async def test_assign_products(self, client, admin, partner, product):
        response = await client.put(
            f"/api/v1/partners/{partner.id}/products",
            json={"product_ids": [str(product.id), str(product.id)]},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Quality Suite"]

        mine = await client.get("/api/v1/partners/me/products", headers=as_user("partner-1"))
        assert [p["id"] for p in mine.json()] == [str(product.id)]

    async def test_dashboard_totals(self, client, partner, db_session):
        await make_deal(db_session, partner, deal_value=Decimal("100000"), stage="closed_won")
        await make_deal(db_session, partner, deal_value=Decimal("20000"), stage="proposal")

        response = await client.get("/api/v1/partners/me/dashboard", headers=as_user("partner-1"))
        assert response.status_code == 200
        body = response.json()
        assert body["total_deals"] == 2
        assert body["open_deals"] == 1
        assert Decimal(body["closed_won_revenue"]) == Decimal("100000")
        assert Decimal(body["pipeline_value"]) == Decimal("20000")
        assert Decimal(body["mdf_remaining"]) == Decimal("25000")
