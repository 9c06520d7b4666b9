"""
Tests for deal registration, the kanban pipeline and closed-won side effects.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from partnerlogic.deals.models import BoardView, DealActivity
from partnerlogic.deals.service import build_board, validate_deal_fields
from partnerlogic.exceptions import ValidationError
from partnerlogic.notifications.models import Notification
from partnerlogic.referrals.models import ReferralOrder

from tests.helpers import as_user, deal_payload, make_deal

pytestmark = pytest.mark.integration


async def _notifications_for(session, user_id: str) -> list[Notification]:
    result = await session.execute(select(Notification).where(Notification.user_id == user_id))
    return list(result.scalars().all())


class TestDealValidation:
    @pytest.mark.parametrize(
        "fields,message",
        [
            (("", "a@b.co", "Co", None), "Customer name is required"),
            (("Jane", "", "Co", None), "Customer email is required"),
            (("Jane", "nope", "Co", None), "Please enter a valid email address"),
            (("Jane", "a@b.co", "", None), "Company name is required"),
            (("Jane", "a@b.co", "Co", Decimal("-1")), "Please enter a valid deal value"),
        ],
    )
    def test_messages(self, fields, message):
        with pytest.raises(ValidationError) as exc:
            validate_deal_fields(*fields)
        assert exc.value.message == message

    def test_missing_value_allowed(self):
        validate_deal_fields("Jane", "a@b.co", "Co", None)


class TestBoardLayout:
    def test_partner_board_has_sales_columns(self):
        board = build_board([], BoardView.PARTNER)
        assert [c.stage for c in board.columns] == [
            "new_deal",
            "need_analysis",
            "proposal",
            "negotiation",
            "closed_won",
            "closed_lost",
        ]

    def test_admin_board_expands_implementation(self):
        assert len(build_board([], BoardView.ADMIN).columns) == 6
        expanded = build_board([], BoardView.ADMIN, expanded=True)
        assert len(expanded.columns) == 16
        assert expanded.columns[-1].label == "LIVE"


@pytest.mark.asyncio
class TestDealRegistration:
    async def test_partner_registers_deal(self, client, db_session, admin, partner):
        response = await client.post(
            "/api/v1/deals", json=deal_payload(), headers=as_user("partner-1")
        )
        assert response.status_code == 201
        body = response.json()
        assert body["partner_id"] == str(partner.id)
        assert body["currency"] == "USD"
        assert Decimal(body["commission_percentage"]) == Decimal("15")
        assert Decimal(body["your_commission"]) == Decimal("1875")
        assert Decimal(body["price_to_vendor"]) == Decimal("10625")
        assert body["invoice_number"] == "INV-" + body["id"][:8].upper()

        activities = (await db_session.execute(select(DealActivity))).scalars().all()
        assert [a.description for a in activities] == ["Deal registered by Pat Partner"]

        admin_titles = [n.title for n in await _notifications_for(db_session, "admin-1")]
        manager_titles = [n.title for n in await _notifications_for(db_session, "pm-1")]
        assert admin_titles == ["New Deal Created"]
        assert manager_titles == ["New Deal Created"]

    async def test_no_registration_email_without_address(
        self, client, partner, email_transport
    ):
        await client.post("/api/v1/deals", json=deal_payload(), headers=as_user("partner-1"))
        assert email_transport.payloads("send-deal-notification") == []

    async def test_registration_email_sent_when_configured(
        self, client, partner, email_transport, monkeypatch
    ):
        from partnerlogic.settings import settings

        monkeypatch.setattr(settings.email, "deal_notification_address", "deals@example.com")
        await client.post("/api/v1/deals", json=deal_payload(), headers=as_user("partner-1"))

        [payload] = email_transport.payloads("send-deal-notification")
        assert payload["to"] == "deals@example.com"
        assert payload["partnerData"]["organization"] == "Acme Resellers"
        assert payload["dealData"]["customer_company"] == "Buyer Corp"

    async def test_cannot_start_closed(self, client, partner):
        response = await client.post(
            "/api/v1/deals", json=deal_payload(stage="closed_won"), headers=as_user("partner-1")
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_STAGE"

    async def test_invalid_email_rejected(self, client, partner):
        response = await client.post(
            "/api/v1/deals",
            json=deal_payload(customer_email="jane"),
            headers=as_user("partner-1"),
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Please enter a valid email address"

    async def test_manager_registers_for_own_partner_only(self, client, partner, other_partner):
        own = await client.post(
            "/api/v1/deals",
            json=deal_payload(partner_id=str(partner.id)),
            headers=as_user("pm-1"),
        )
        assert own.status_code == 201
        other = await client.post(
            "/api/v1/deals",
            json=deal_payload(partner_id=str(other_partner.id)),
            headers=as_user("pm-1"),
        )
        assert other.status_code == 403


@pytest.mark.asyncio
class TestDealAccess:
    async def test_partner_only_sees_own_deals(self, client, db_session, partner, other_partner):
        await make_deal(db_session, partner)
        other_deal = await make_deal(db_session, other_partner, customer_name="Other")

        response = await client.get("/api/v1/deals", headers=as_user("partner-1"))
        assert response.json()["total"] == 1

        hidden = await client.get(f"/api/v1/deals/{other_deal.id}", headers=as_user("partner-1"))
        assert hidden.status_code == 404

    async def test_manager_scope(self, client, db_session, partner, other_partner):
        await make_deal(db_session, partner)
        await make_deal(db_session, other_partner)
        response = await client.get("/api/v1/deals", headers=as_user("pm-1"))
        assert response.json()["total"] == 1

    async def test_support_users_forbidden(self, client, support_user):
        response = await client.get("/api/v1/deals", headers=as_user("support-1"))
        assert response.status_code == 403
        assert response.json()["message"] == "You do not have access to deals"

    async def test_search(self, client, db_session, admin, partner):
        await make_deal(db_session, partner, customer_company="Globex")
        await make_deal(db_session, partner, customer_company="Initech")
        response = await client.get(
            "/api/v1/deals", params={"search": "glob"}, headers=as_user("admin-1")
        )
        assert [d["customer_company"] for d in response.json()["deals"]] == ["Globex"]

    async def test_update_recalculates_commission(self, client, db_session, partner):
        deal = await make_deal(db_session, partner)
        response = await client.patch(
            f"/api/v1/deals/{deal.id}",
            json={"deal_value": "20000"},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 200
        assert Decimal(response.json()["your_commission"]) == Decimal("3000")

    async def test_only_admin_deletes(self, client, db_session, admin, partner):
        deal = await make_deal(db_session, partner)
        denied = await client.delete(f"/api/v1/deals/{deal.id}", headers=as_user("partner-1"))
        assert denied.status_code == 403
        deleted = await client.delete(f"/api/v1/deals/{deal.id}", headers=as_user("admin-1"))
        assert deleted.status_code == 204

    async def test_notes(self, client, db_session, partner):
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/activities",
            json={"note": "  Called the buyer  "},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 201
        assert response.json()["description"] == "Called the buyer"

        empty = await client.post(
            f"/api/v1/deals/{deal.id}/activities",
            json={"note": "   "},
            headers=as_user("partner-1"),
        )
        assert empty.status_code == 422


@pytest.mark.asyncio
class TestPipeline:
    async def test_partner_must_confirm_closed_won(self, client, db_session, partner):
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "closed_won"},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 409
        assert response.json()["error_code"] == "CLOSED_WON_CONFIRMATION_REQUIRED"

    async def test_closed_won_sends_invoice_once(
        self, client, db_session, partner, account_user, email_transport
    ):
        deal = await make_deal(db_session, partner)
        url = f"/api/v1/deals/{deal.id}/stage"
        headers = as_user("partner-1")

        response = await client.post(
            url, json={"stage": "closed_won", "confirm": True}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["stage"] == "closed_won"
        assert body["invoice_sent_at"] is not None
        assert body["closed_won_at"] is not None

        [invoice] = email_transport.payloads("send-invoice-email")
        assert invoice["clientEmail"] == "billing@example.com"
        assert invoice["partnerManagerEmail"] == "mona@example.com"
        assert invoice["dealDetails"]["amount"] == "$12,500"
        assert invoice["dealDetails"]["customerName"] == "Jane Buyer"

        titles = [n.title for n in await _notifications_for(db_session, "acct-1")]
        assert titles == ["New Invoice Ready"]

        await client.post(url, json={"stage": "negotiation"}, headers=headers)
        await client.post(url, json={"stage": "closed_won", "confirm": True}, headers=headers)
        assert len(email_transport.payloads("send-invoice-email")) == 1
        assert len(await _notifications_for(db_session, "acct-1")) == 1

    async def test_manager_closes_without_confirm(self, client, db_session, partner):
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "closed_won"},
            headers=as_user("pm-1"),
        )
        assert response.status_code == 200

    async def test_email_failure_does_not_undo_move(
        self, client, db_session, partner, email_transport
    ):
        email_transport.status_code = 500
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "closed_won", "confirm": True},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 200
        assert response.json()["stage"] == "closed_won"

    async def test_unknown_stage(self, client, db_session, partner):
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "uat"},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 400

    async def test_admin_moves_implementation_stage(self, client, db_session, admin, partner):
        deal = await make_deal(db_session, partner)
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "uat"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["admin_stage"] == "uat"
        assert body["stage"] == "new_deal"

        [notification] = await _notifications_for(db_session, "partner-1")
        assert notification.title == "Deal Status Updated"
        assert notification.message == "Buyer Corp status changed from URS to UAT"

    async def test_admin_closed_won_sends_invoice(
        self, client, db_session, admin, partner, email_transport
    ):
        deal = await make_deal(db_session, partner)
        await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "closed_won"},
            headers=as_user("admin-1"),
        )
        assert len(email_transport.payloads("send-invoice-email")) == 1

    async def test_referral_deal_becomes_order(
        self, client, db_session, referral_partner
    ):
        deal = await make_deal(db_session, referral_partner, commission_percentage=Decimal("10"))
        response = await client.post(
            f"/api/v1/deals/{deal.id}/stage",
            json={"stage": "closed_won", "confirm": True},
            headers=as_user("referral-1"),
        )
        assert response.status_code == 200

        orders = (await db_session.execute(select(ReferralOrder))).scalars().all()
        assert len(orders) == 1
        assert orders[0].source_deal_id == deal.id
        assert orders[0].commission_amount == Decimal("1250.00")
        assert orders[0].product_name == "Buyer Corp"

    async def test_closing_on_both_boards_fires_side_effects_once(
        self, client, db_session, admin, account_user, referral_partner, email_transport
    ):
        deal = await make_deal(db_session, referral_partner)
        url = f"/api/v1/deals/{deal.id}/stage"

        partner_close = await client.post(
            url, json={"stage": "closed_won", "confirm": True}, headers=as_user("referral-1")
        )
        admin_close = await client.post(
            url, json={"stage": "closed_won"}, headers=as_user("admin-1")
        )

        assert partner_close.status_code == 200
        assert admin_close.status_code == 200
        assert admin_close.json()["admin_stage"] == "closed_won"
        assert len(email_transport.payloads("send-invoice-email")) == 1
        invoice_ready = [
            n for n in await _notifications_for(db_session, "acct-1")
            if n.title == "New Invoice Ready"
        ]
        assert len(invoice_ready) == 1
        orders = (await db_session.execute(select(ReferralOrder))).scalars().all()
        assert [o.source_deal_id for o in orders] == [deal.id]

    async def test_board_views(self, client, db_session, admin, partner):
        await make_deal(db_session, partner, stage="proposal")
        partner_board = await client.get("/api/v1/deals/board", headers=as_user("partner-1"))
        columns = {c["stage"]: c for c in partner_board.json()["columns"]}
        assert columns["proposal"]["count"] == 1
        assert Decimal(columns["proposal"]["total_value"]) == Decimal("12500")

        denied = await client.get(
            "/api/v1/deals/board", params={"view": "admin"}, headers=as_user("partner-1")
        )
        assert denied.status_code == 403

        admin_board = await client.get(
            "/api/v1/deals/board", params={"expanded": True}, headers=as_user("admin-1")
        )
        body = admin_board.json()
        assert body["view"] == "admin"
        assert len(body["columns"]) == 16
