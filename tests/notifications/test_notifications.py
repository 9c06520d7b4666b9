"""
Tests for in-app notifications.
"""

import pytest

from partnerlogic.notifications import templates
from partnerlogic.notifications.service import NotificationService

from tests.helpers import as_user


class TestTemplates:
    def test_ticket_message_preview_truncated(self):
        template = templates.ticket_message("New message", "abcdef123456", "Sam", "x" * 120)
        assert template.title == "New message on ticket #abcdef12"
        assert template.message == f'Sam sent: "{"x" * 100}..."'

    def test_status_change_uses_spaces(self):
        template = templates.support_ticket_status_changed("1234567890", "in_progress", "resolved")
        assert template.message == "Ticket #12345678 changed from in progress to resolved"

    def test_invoice_ready(self):
        template = templates.invoice_ready("Buyer Corp", "$12,500")
        assert template.type == "invoice"
        assert template.message.startswith('Deal "Buyer Corp" ($12,500) has been closed won.')

    def test_response_preview_truncated(self):
        template = templates.support_ticket_response("abc", "Sam", "y" * 60)
        assert template.message == f'Sam responded: "{"y" * 50}..."'

    def test_approval_and_account_templates(self):
        assert templates.deal_approval_needed("Buyer Corp", "Pat").title == "Deal Approval Required"
        assert templates.partner_approved().type == "partner"
        assert templates.password_reset().type == "general"


@pytest.mark.asyncio
class TestNotificationService:
    async def test_partner_without_login_gets_nothing(self, db_session, partner):
        partner.auth_user_id = None
        await db_session.commit()
        created = await NotificationService(db_session).notify_partner(
            partner.id, templates.partner_approved()
        )
        assert created == []

    async def test_notify_partner_with_email(
        self, db_session, partner, email_gateway, email_transport
    ):
        created = await NotificationService(db_session).notify_partner(
            partner.id,
            templates.partner_approved(),
            email_gateway=email_gateway,
            email_data={"type": "partner_approved"},
        )
        assert [n.user_id for n in created] == ["partner-1"]
        [payload] = email_transport.payloads("send-support-email")
        assert payload == {
            "to": "pat@acme.example",
            "partnerName": "Pat Partner",
            "type": "partner_approved",
        }

    async def test_inactive_support_users_skipped(self, db_session, support_user):
        support_user.is_active = False
        await db_session.commit()
        created = await NotificationService(db_session).notify_support_users(
            templates.support_ticket_created("abc", "Help", "Pat")
        )
        assert created == []


@pytest.mark.asyncio
class TestNotificationRouter:
    async def test_bulk_create_requires_array(self, client, partner):
        response = await client.post(
            "/api/v1/notifications/create", json={}, headers=as_user("partner-1")
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request: notifications array required"

    async def test_bulk_create_requires_fields(self, client, partner):
        response = await client.post(
            "/api/v1/notifications/create",
            json={"notifications": [{"user_id": "x", "title": "Hi", "message": "There"}]},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 400
        assert (
            response.json()["message"]
            == "Each notification must have user_id, title, message, and type"
        )

    async def test_inbox_flow(self, client, partner):
        created = await client.post(
            "/api/v1/notifications/create",
            json={
                "notifications": [
                    {"user_id": "partner-1", "title": "A", "message": "one", "type": "general"},
                    {"user_id": "partner-1", "title": "B", "message": "two", "type": "deal"},
                    {"user_id": "someone", "title": "C", "message": "three", "type": "deal"},
                ]
            },
            headers=as_user("partner-1"),
        )
        assert created.status_code == 200
        ids = [n["id"] for n in created.json()["data"]]

        inbox = await client.get("/api/v1/notifications", headers=as_user("partner-1"))
        assert inbox.json()["total"] == 2
        assert inbox.json()["unread_count"] == 2

        await client.post(f"/api/v1/notifications/{ids[0]}/read", headers=as_user("partner-1"))
        count = await client.get("/api/v1/notifications/unread-count", headers=as_user("partner-1"))
        assert count.json() == {"unread_count": 1}

        read_all = await client.post(
            "/api/v1/notifications/read-all", headers=as_user("partner-1")
        )
        assert read_all.json() == {"updated": 1}

        foreign = await client.delete(
            f"/api/v1/notifications/{ids[2]}", headers=as_user("partner-1")
        )
        assert foreign.status_code == 404

        deleted = await client.delete(
            f"/api/v1/notifications/{ids[1]}", headers=as_user("partner-1")
        )
        assert deleted.status_code == 204
