"""
Tests for settings, database URLs, error rendering and audit logging.
"""

from decimal import Decimal

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from structlog.testing import capture_logs

import partnerlogic.logging as logging_module
import partnerlogic.settings as settings_module
from partnerlogic.db import get_async_database_url
from partnerlogic.exceptions import (
    MDFAllocationExceededError,
    TierNotFoundError,
    register_exception_handlers,
)
from partnerlogic.logging import log_audit_event
from partnerlogic.settings import Environment, get_settings, reset_settings, settings

pytestmark = pytest.mark.unit


class TestSettings:
    @pytest.fixture(autouse=True)
    def isolated_settings(self, monkeypatch):
        monkeypatch.setattr(settings_module, "_settings", None)

    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "PRODUCTION")
        monkeypatch.setenv("EMAIL__BILLING_ADDRESS", "ar@example.com")
        monkeypatch.setenv("BUSINESS__OVERDUE_REMINDERS", "false")

        loaded = get_settings()

        assert loaded.environment == Environment.PRODUCTION
        assert loaded.is_production
        assert loaded.email.billing_address == "ar@example.com"
        assert loaded.business.overdue_reminders is False

    def test_reset_settings_reloads(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first

        reset_settings()
        monkeypatch.setenv("AUTH__MIN_PASSWORD_LENGTH", "12")

        reloaded = get_settings()
        assert reloaded is not first
        assert reloaded.auth.min_password_length == 12


class TestDatabaseUrl:
    def test_postgres_uses_asyncpg(self, monkeypatch):
        monkeypatch.setattr(settings.database, "url", "postgresql://prm:secret@db:5432/prm")
        assert get_async_database_url() == "postgresql+asyncpg://prm:secret@db:5432/prm"

    def test_sqlite_uses_aiosqlite(self, monkeypatch):
        monkeypatch.setattr(settings.database, "url", "sqlite:///./prm.sqlite")
        assert get_async_database_url() == "sqlite+aiosqlite:///./prm.sqlite"


class TestErrors:
    def test_not_found_serialization(self):
        body = TierNotFoundError("diamond").to_dict()

        assert body["status_code"] == 404
        assert body["error_code"] == "TIER_NOT_FOUND"
        assert body["message"] == "Tier not found"
        assert body["context"] == {"resource": "Tier", "resource_id": "diamond"}

    def test_allocation_exceeded_carries_remaining(self):
        error = MDFAllocationExceededError(Decimal("25000"), Decimal("20000"), Decimal("8000"))

        assert error.status_code == 400
        assert error.context["remaining"] == "5000"
        assert error.recovery_hint == "Approve at most 5000 to stay within the allocation"

    async def test_handler_renders_json_body(self):
        app = FastAPI()
        register_exception_handlers(app)

        @app.get("/tiers/{tier}")
        async def read_tier(tier: str):
            raise TierNotFoundError(tier)

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/tiers/diamond")

        assert response.status_code == 404
        assert response.json()["error_code"] == "TIER_NOT_FOUND"
        assert response.json()["context"]["resource_id"] == "diamond"


class TestAuditLogging:
    def test_audit_event_fields(self):
        with capture_logs() as logs:
            log_audit_event(
                "tier.settings_saved",
                "tiers",
                user_id="admin-1",
                resource_type="tier_settings",
                resource_id="gold",
                changed=["commission"],
            )

        assert logs == [
            {
                "event": "tier.settings_saved",
                "log_level": "info",
                "audit_category": "tiers",
                "audit_user_id": "admin-1",
                "audit_resource_type": "tier_settings",
                "audit_resource_id": "gold",
                "changed": ["commission"],
            }
        ]

    def test_module_exposes_only_setup_and_audit_helpers(self):
        assert not hasattr(logging_module, "get_logger")
        assert not hasattr(logging_module, "logger")
        assert callable(logging_module.setup_logging)
