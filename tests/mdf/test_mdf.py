"""
Tests for MDF requests and allocation accounting.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from partnerlogic.auth.models import CurrentUser, Role
from partnerlogic.exceptions import MDFAllocationExceededError
from partnerlogic.mdf.models import MDFRequestCreate, MDFStatus, MDFStatusUpdate
from partnerlogic.mdf.service import MDFService
from partnerlogic.notifications.models import Notification

from tests.helpers import as_user

pytestmark = pytest.mark.integration


def request_payload(**overrides) -> dict:
    payload = {
        "campaign_name": "Spring webinar series",
        "requested_amount": "10000",
        "plan": {
            "campaign_type": "webinar",
            "start_date": "2026-03-01",
            "end_date": "2026-03-31",
            "expected_leads": 50,
        },
    }
    payload.update(overrides)
    return payload


def _admin(admin) -> CurrentUser:
    return CurrentUser(
        auth_user_id=admin.auth_user_id,
        role=Role.ADMIN,
        profile_id=admin.id,
        email=admin.email,
        name=admin.full_name,
    )


@pytest.mark.asyncio
class TestMDFRequests:
    async def test_partner_submits_request(self, client, db_session, admin, partner):
        response = await client.post(
            "/api/v1/mdf", json=request_payload(), headers=as_user("partner-1")
        )
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["roi_metrics"]["expected_leads"] == 50

        notifications = (await db_session.execute(select(Notification))).scalars().all()
        assert sorted(n.user_id for n in notifications) == ["admin-1", "pm-1"]
        assert {n.title for n in notifications} == {"New MDF Request"}

    async def test_disabled_organization_rejected(self, client, other_partner):
        response = await client.post(
            "/api/v1/mdf", json=request_payload(), headers=as_user("partner-2")
        )
        assert response.status_code == 403
        assert response.json()["message"] == "MDF is not enabled for your organization"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"campaign_name": ""}, "Campaign name is required"),
            ({"requested_amount": "0"}, "Requested amount must be greater than 0"),
            (
                {"plan": {"start_date": "2026-03-10", "end_date": "2026-03-01"}},
                "End date must be after start date",
            ),
        ],
    )
    async def test_validation(self, client, partner, overrides, message):
        response = await client.post(
            "/api/v1/mdf", json=request_payload(**overrides), headers=as_user("partner-1")
        )
        assert response.status_code == 422
        assert response.json()["message"] == message

    async def test_manager_sees_managed_requests(self, client, partner):
        await client.post("/api/v1/mdf", json=request_payload(), headers=as_user("partner-1"))
        response = await client.get("/api/v1/mdf", headers=as_user("pm-1"))
        assert response.json()["total"] == 1

    async def test_account_users_have_no_access(self, client, account_user):
        response = await client.get("/api/v1/mdf", headers=as_user("acct-1"))
        assert response.status_code == 403

    async def test_unknown_sort_field(self, client, admin):
        response = await client.get(
            "/api/v1/mdf", params={"sort_by": "campaign_name"}, headers=as_user("admin-1")
        )
        assert response.status_code == 422


@pytest.mark.asyncio
class TestMDFApproval:
    async def test_approval_within_allocation(self, client, db_session, admin, partner):
        created = await client.post(
            "/api/v1/mdf", json=request_payload(), headers=as_user("partner-1")
        )
        request_id = created.json()["id"]

        response = await client.patch(
            f"/api/v1/mdf/{request_id}/status",
            json={"status": "approved", "approved_amount": "8000"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "approved"
        assert Decimal(body["approved_amount"]) == Decimal("8000")
        assert body["approved_at"] is not None

        partner_notes = (
            await db_session.execute(
                select(Notification).where(Notification.user_id == "partner-1")
            )
        ).scalars().all()
        assert [n.message for n in partner_notes] == [
            'Your MDF request "Spring webinar series" was approved'
        ]

        summary = await client.get("/api/v1/mdf/summary", headers=as_user("partner-1"))
        assert Decimal(summary.json()["used"]) == Decimal("8000")
        assert Decimal(summary.json()["remaining"]) == Decimal("17000")

    async def test_approval_exceeding_allocation(self, db_session, admin, partner):
        service = MDFService(db_session)
        first = await service.create_request(
            partner.id,
            MDFRequestCreate(campaign_name="Trade show", requested_amount=Decimal("20000")),
        )
        second = await service.create_request(
            partner.id,
            MDFRequestCreate(campaign_name="Email blast", requested_amount=Decimal("6000")),
        )
        await service.update_status(
            first.id, MDFStatusUpdate(status=MDFStatus.APPROVED), _admin(admin)
        )

        with pytest.raises(MDFAllocationExceededError) as exc:
            await service.update_status(
                second.id, MDFStatusUpdate(status=MDFStatus.APPROVED), _admin(admin)
            )
        assert Decimal(exc.value.context["remaining"]) == Decimal("5000")
        assert (await service._load(second.id)).status == "pending"

    async def test_disbursed_counts_against_allocation(self, db_session, admin, partner):
        service = MDFService(db_session)
        request = await service.create_request(
            partner.id,
            MDFRequestCreate(campaign_name="Roadshow", requested_amount=Decimal("5000")),
        )
        await service.update_status(
            request.id, MDFStatusUpdate(status=MDFStatus.APPROVED), _admin(admin)
        )
        await service.update_status(
            request.id, MDFStatusUpdate(status=MDFStatus.DISBURSED), _admin(admin)
        )
        summary = await service.get_partner_mdf_summary(partner.id)
        assert summary.used == Decimal("5000")
        assert summary.pending == Decimal("0")

    async def test_only_admin_updates_status(self, client, partner):
        created = await client.post(
            "/api/v1/mdf", json=request_payload(), headers=as_user("partner-1")
        )
        response = await client.patch(
            f"/api/v1/mdf/{created.json()['id']}/status",
            json={"status": "approved"},
            headers=as_user("pm-1"),
        )
        assert response.status_code == 403
