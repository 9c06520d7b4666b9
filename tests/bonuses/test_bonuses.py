"""
Tests for bonus targets and awards.
"""

from datetime import date
from decimal import Decimal

import pytest

from partnerlogic.bonuses.service import bonus_progress, current_period

from tests.helpers import as_user, make_deal

pytestmark = pytest.mark.integration


class TestBonusMath:
    def test_partial_progress(self):
        progress, remaining, achieved = bonus_progress(Decimal("75000"), Decimal("300000"))
        assert progress == pytest.approx(25.0)
        assert remaining == Decimal("225000")
        assert achieved is False

    def test_target_met_caps_at_100(self):
        progress, remaining, achieved = bonus_progress(Decimal("400000"), Decimal("300000"))
        assert progress == 100.0
        assert remaining == Decimal("0")
        assert achieved is True

    def test_no_target(self):
        assert bonus_progress(Decimal("5000"), None) == (0.0, Decimal("0"), False)

    def test_current_period(self):
        assert current_period(date(2026, 2, 14)) == "2026-02"


@pytest.mark.asyncio
class TestBonusRouter:
    async def test_partner_progress(self, client, db_session, partner):
        await make_deal(db_session, partner, deal_value=Decimal("150000"), stage="closed_won")
        await make_deal(db_session, partner, deal_value=Decimal("90000"), stage="proposal")

        response = await client.get("/api/v1/bonuses/me", headers=as_user("partner-1"))
        assert response.status_code == 200
        progress = response.json()["progress"]
        assert progress["tier"] == "gold"
        assert Decimal(progress["target"]) == Decimal("300000")
        assert Decimal(progress["bonus_amount"]) == Decimal("15000")
        assert progress["progress"] == pytest.approx(50.0)
        assert progress["achieved"] is False

    async def test_award_defaults_to_tier_bonus(self, client, partner):
        response = await client.post(
            f"/api/v1/bonuses/partners/{partner.id}",
            json={"period": "2026-03"},
            headers=as_user("pm-1"),
        )
        assert response.status_code == 201
        assert Decimal(response.json()["amount"]) == Decimal("15000")
        assert response.json()["status"] == "earned"

    async def test_invalid_period(self, client, admin, partner):
        response = await client.post(
            f"/api/v1/bonuses/partners/{partner.id}",
            json={"period": "2026-13"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Period must be in YYYY-MM format"

    async def test_manager_limited_to_own_partners(self, client, partner, other_partner):
        response = await client.post(
            f"/api/v1/bonuses/partners/{other_partner.id}",
            json={"period": "2026-03"},
            headers=as_user("pm-1"),
        )
        assert response.status_code == 403

        overview = await client.get("/api/v1/bonuses/partners", headers=as_user("pm-1"))
        assert [o["progress"]["partner_id"] for o in overview.json()] == [str(partner.id)]

    async def test_paid_bonuses_count_as_earned(self, client, admin, partner):
        awarded = await client.post(
            f"/api/v1/bonuses/partners/{partner.id}",
            json={"period": "2026-03", "amount": "2500"},
            headers=as_user("admin-1"),
        )
        bonus_id = awarded.json()["id"]

        before = await client.get(
            f"/api/v1/bonuses/partners/{partner.id}", headers=as_user("admin-1")
        )
        assert Decimal(before.json()["total_earned"]) == Decimal("0")

        paid = await client.patch(
            f"/api/v1/bonuses/{bonus_id}",
            json={"status": "paid", "notes": "Paid by transfer"},
            headers=as_user("admin-1"),
        )
        assert paid.json()["status"] == "paid"

        after = await client.get("/api/v1/bonuses/me", headers=as_user("partner-1"))
        assert Decimal(after.json()["total_earned"]) == Decimal("2500")

    async def test_partners_cannot_award(self, client, partner):
        response = await client.post(
            f"/api/v1/bonuses/partners/{partner.id}",
            json={"period": "2026-03"},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 403
