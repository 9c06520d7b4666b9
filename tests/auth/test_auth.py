"""
Tests for identity resolution, route guarding, staff profiles and password resets.
"""

import json

import pytest
from sqlalchemy import select

from partnerlogic.auth.client import AuthAdminClient
from partnerlogic.auth.models import AccountUserProfile, Role
from partnerlogic.auth.service import IdentityService, redirect_for
from partnerlogic.exceptions import AuthenticationRequiredError, ExternalServiceError
from partnerlogic.notifications.models import Notification

from tests.helpers import as_user


class TestRedirects:
    def test_partner_kept_out_of_admin(self):
        assert redirect_for(Role.PARTNER, "/admin/deals") == "/dashboard"

    def test_admin_stays_in_admin(self):
        assert redirect_for(Role.ADMIN, "/admin/deals") is None

    def test_shared_pages_allowed(self):
        assert redirect_for(Role.SUPPORT_USER, "/knowledge") is None

    def test_prefix_must_match_whole_segment(self):
        assert redirect_for(Role.PARTNER, "/administration") is None


@pytest.mark.asyncio
class TestIdentityService:
    async def test_admin_takes_precedence_over_partner(self, db_session, admin, partner):
        partner.auth_user_id = "admin-1"
        await db_session.commit()
        user = await IdentityService(db_session).resolve("admin-1")
        assert user.role == Role.ADMIN
        assert user.name == "Ada Admin"

    async def test_partner_resolution(self, db_session, partner):
        user = await IdentityService(db_session).resolve("partner-1")
        assert user.role == Role.PARTNER
        assert user.profile_id == partner.id

    async def test_inactive_account_user_not_matched(self, db_session):
        db_session.add(
            AccountUserProfile(
                auth_user_id="acct-2",
                first_name="Ina",
                last_name="Active",
                email="ina@example.com",
                is_active=False,
            )
        )
        await db_session.commit()
        with pytest.raises(AuthenticationRequiredError):
            await IdentityService(db_session).resolve("acct-2")

    async def test_missing_header(self, db_session):
        with pytest.raises(AuthenticationRequiredError):
            await IdentityService(db_session).resolve(None)


@pytest.mark.asyncio
class TestAuthRouter:
    async def test_me_includes_home_path(self, client, account_user):
        response = await client.get("/api/v1/auth/me", headers=as_user("acct-1"))
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "account_user"
        assert body["home_path"] == "/accounts"

    async def test_route_decision(self, client, partner):
        response = await client.get(
            "/api/v1/auth/route", params={"path": "/support/tickets"}, headers=as_user("partner-1")
        )
        assert response.json() == {
            "path": "/support/tickets",
            "allowed": False,
            "redirect_to": "/dashboard",
        }

    async def test_unknown_user(self, client):
        response = await client.get("/api/v1/auth/me", headers=as_user("nobody"))
        assert response.status_code == 401
        assert response.json()["message"] == "No profile found for this user"

    async def test_admin_creates_support_profile(self, client, admin):
        payload = {
            "auth_user_id": "support-9",
            "first_name": "Sue",
            "last_name": "Port",
            "email": "sue@example.com",
        }
        response = await client.post(
            "/api/v1/auth/staff/support_user", json=payload, headers=as_user("admin-1")
        )
        assert response.status_code == 201

        duplicate = await client.post(
            "/api/v1/auth/staff/support_user", json=payload, headers=as_user("admin-1")
        )
        assert duplicate.status_code == 409

        me = await client.get("/api/v1/auth/me", headers=as_user("support-9"))
        assert me.json()["role"] == "support_user"

    async def test_profile_email_validated(self, client, admin):
        response = await client.post(
            "/api/v1/auth/staff/partner_manager",
            json={
                "auth_user_id": "pm-9",
                "first_name": "Pam",
                "last_name": "Manager",
                "email": "not-an-email",
            },
            headers=as_user("admin-1"),
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Please enter a valid email address"

    async def test_staff_profiles_admin_only(self, client, partner_manager):
        response = await client.get(
            "/api/v1/auth/staff/account_user", headers=as_user("pm-1")
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestPasswordReset:
    async def test_admin_resets_password(self, client, db_session, admin, auth_transport):
        response = await client.post(
            "/api/v1/admin/update-password",
            json={"userId": "target-user", "newPassword": "s3cret!", "adminAuthUserId": "admin-1"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Password updated successfully"}

        request = auth_transport.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/auth/v1/admin/users/target-user"
        assert json.loads(request.content) == {"password": "s3cret!"}
        assert request.headers["Authorization"] == "Bearer service-key"

        query = select(Notification).where(Notification.user_id == "target-user")
        [notification] = (await db_session.execute(query)).scalars().all()
        assert notification.title == "Password Reset"

    async def test_missing_fields(self, client):
        response = await client.post("/api/v1/admin/update-password", json={"userId": "x"})
        assert response.status_code == 400
        assert response.json()["message"] == "User ID, new password, and admin ID are required"

    async def test_short_password(self, client, admin):
        response = await client.post(
            "/api/v1/admin/update-password",
            json={"userId": "x", "newPassword": "abc", "adminAuthUserId": "admin-1"},
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Password must be at least 6 characters long"

    async def test_requester_must_be_admin(self, client, partner, auth_transport):
        response = await client.post(
            "/api/v1/admin/update-password",
            json={"userId": "x", "newPassword": "abcdef", "adminAuthUserId": "partner-1"},
        )
        assert response.status_code == 403
        assert auth_transport.requests == []

    async def test_client_requires_service_key(self):
        client = AuthAdminClient(base_url="http://auth.test", service_role_key=None)
        with pytest.raises(ExternalServiceError):
            await client.update_user_password("user", "password")
        await client.close()
