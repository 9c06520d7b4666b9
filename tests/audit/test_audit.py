"""
Tests for the admin activity feed.
"""

from datetime import UTC, date, datetime, timedelta

import pytest
import pytest_asyncio

from partnerlogic.audit.models import ActivityEntry, ActivitySource, FeedDateRange
from partnerlogic.audit.service import _within, as_utc, preview
from partnerlogic.deals.models import DealActivity
from partnerlogic.notifications.models import Notification
from partnerlogic.support.models import SupportTicket, SupportTicketMessage

from tests.helpers import as_user, make_deal

pytestmark = pytest.mark.integration


def entry_at(created_at: datetime) -> ActivityEntry:
    return ActivityEntry(
        id="notif_1",
        source=ActivitySource.NOTIFICATION,
        description="Something happened",
        user_type="system",
        created_at=created_at,
    )


def test_as_utc_marks_naive_timestamps():
    naive = datetime(2026, 1, 2, 3, 4)
    assert as_utc(naive).tzinfo is UTC
    aware = datetime(2026, 1, 2, 3, 4, tzinfo=UTC)
    assert as_utc(aware) is aware


def test_preview_truncates_long_text():
    assert preview("short") == "short"
    assert preview("x" * 120) == "x" * 100 + "..."
    assert preview(None) == ""


def test_within_yesterday():
    now = datetime(2026, 5, 10, 12, 0, tzinfo=UTC)
    yesterday = entry_at(datetime(2026, 5, 9, 23, 0, tzinfo=UTC))
    today = entry_at(datetime(2026, 5, 10, 1, 0, tzinfo=UTC))

    assert _within(yesterday, FeedDateRange.YESTERDAY, None, None, now)
    assert not _within(today, FeedDateRange.YESTERDAY, None, None, now)


def test_within_explicit_dates():
    now = datetime(2026, 5, 10, tzinfo=UTC)
    entry = entry_at(datetime(2026, 5, 1, 18, 0, tzinfo=UTC))

    assert _within(entry, FeedDateRange.ALL, date(2026, 5, 1), date(2026, 5, 1), now)
    assert not _within(entry, FeedDateRange.ALL, date(2026, 5, 2), None, now)
    assert not _within(entry, FeedDateRange.ALL, None, date(2026, 4, 30), now)
    assert not _within(entry, FeedDateRange.WEEK, None, None, now)


@pytest.mark.asyncio
class TestActivityFeed:
    @pytest_asyncio.fixture
    async def seeded(self, db_session, admin, partner):
        deal = await make_deal(db_session, partner)
        ticket = SupportTicket(
            partner_id=partner.id, subject="Cannot export reports", description="CSV fails"
        )
        db_session.add(ticket)
        await db_session.flush()
        old = datetime.now(UTC) - timedelta(days=40)
        db_session.add_all(
            [
                DealActivity(
                    deal_id=deal.id,
                    user_id="partner-1",
                    activity_type="created",
                    description="Deal registered by Pat Partner",
                ),
                Notification(
                    user_id="admin-1",
                    title="New Deal Created",
                    message="Pat Partner created a new deal: Buyer Corp",
                    type="deal",
                    reference_id=str(deal.id),
                    created_at=old,
                    updated_at=old,
                ),
                SupportTicketMessage(
                    ticket_id=ticket.id,
                    sender_type="partner",
                    sender_id="partner-1",
                    sender_name="Pat Partner",
                    message="Still failing after the update",
                ),
            ]
        )
        await db_session.commit()
        return deal

    async def test_admin_sees_merged_feed(self, client, seeded):
        response = await client.get("/api/v1/admin/logs", headers=as_user("admin-1"))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["counts"] == {"deal_activity": 1, "notification": 1, "support_ticket": 1}
        prefixes = sorted(entry["id"].split("_")[0] for entry in data["entries"])
        assert prefixes == ["deal", "notif", "ticket"]
        # Newest first; the notification is the oldest entry
        assert data["entries"][-1]["source"] == "notification"

        deal_entry = next(e for e in data["entries"] if e["source"] == "deal_activity")
        assert deal_entry["related_name"] == "Jane Buyer"
        assert deal_entry["related_company"] == "Buyer Corp"
        assert deal_entry["user_type"] == "partner"

        ticket_entry = next(e for e in data["entries"] if e["source"] == "support_ticket")
        assert ticket_entry["related_name"] == "Cannot export reports"

    async def test_filters(self, client, seeded):
        headers = as_user("admin-1")

        by_source = await client.get(
            "/api/v1/admin/logs", params={"source": "support_ticket"}, headers=headers
        )
        assert [e["source"] for e in by_source.json()["entries"]] == ["support_ticket"]
        assert by_source.json()["counts"]["deal_activity"] == 0

        by_search = await client.get(
            "/api/v1/admin/logs", params={"search": "registered"}, headers=headers
        )
        assert by_search.json()["total"] == 1

        by_user_type = await client.get(
            "/api/v1/admin/logs", params={"user_type": "system"}, headers=headers
        )
        assert by_user_type.json()["total"] == 1

        this_week = await client.get(
            "/api/v1/admin/logs", params={"date_range": "week"}, headers=headers
        )
        assert this_week.json()["total"] == 2

    async def test_pagination(self, client, seeded):
        response = await client.get(
            "/api/v1/admin/logs", params={"per_page": 2, "page": 2}, headers=as_user("admin-1")
        )

        data = response.json()
        assert len(data["entries"]) == 1
        assert data["has_prev"] is True
        assert data["has_next"] is False

    async def test_non_admin_is_forbidden(self, client, partner_manager):
        response = await client.get("/api/v1/admin/logs", headers=as_user("pm-1"))

        assert response.status_code == 403
        assert response.json()["message"] == "Forbidden: Admin access required"
