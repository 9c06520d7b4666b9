"""
Tests for the product catalogue and currencies.
"""

from decimal import Decimal

import pytest

from partnerlogic.currencies.registry import (
    currency_options,
    format_currency,
    get_currency_symbol,
)
from partnerlogic.currencies.service import CurrencyService
from partnerlogic.invoices.pdf import format_amount

from tests.helpers import as_user


class TestCurrencyFormatting:
    @pytest.mark.parametrize(
        "amount,code,expected",
        [
            (Decimal("12500"), "USD", "$12,500"),
            (Decimal("1234.5"), "EUR", "€1,235"),
            (Decimal("-99.4"), "GBP", "-£99"),
            (None, "INR", "₹0"),
            (Decimal("10"), "XYZ", "$10"),
            (Decimal("1234.5"), "CAD", "CA$1,235"),
            (Decimal("1234.5"), "MXN", "MX$1,235"),
            (Decimal("1234.5"), "CNY", "CN¥1,235"),
            (Decimal("2.5"), "usd", "$3"),
        ],
    )
    def test_format_currency(self, amount, code, expected):
        assert format_currency(amount, code) == expected

    def test_symbol_is_case_insensitive(self):
        assert get_currency_symbol("aed") == "AED"

    def test_invoice_amounts_keep_cents(self):
        assert format_amount(Decimal("12500"), "USD") == "$12,500.00"
        assert format_amount(Decimal("99.5"), "EUR") == "€99.50"
        assert format_amount(None, "USD") == "-"

    def test_options_label(self):
        assert currency_options()[0] == {"value": "USD", "label": "USD - US Dollar ($)"}


@pytest.mark.asyncio
class TestCurrencies:
    async def test_seed_registry_only_adds_missing(self, db_session):
        service = CurrencyService(db_session)
        added = await service.seed_registry()
        assert added > 30
        assert await service.seed_registry() == 0

    async def test_admin_creates_currency(self, client, admin):
        response = await client.post(
            "/api/v1/currencies",
            json={"code": "xof", "symbol": "CFA", "name": "West African CFA franc"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 201
        assert response.json()["code"] == "XOF"

        duplicate = await client.post(
            "/api/v1/currencies",
            json={"code": "XOF", "symbol": "CFA", "name": "Duplicate"},
            headers=as_user("admin-1"),
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["message"] == "Currency code already exists"

    async def test_code_must_be_three_characters(self, client, admin):
        response = await client.post(
            "/api/v1/currencies",
            json={"code": "US", "symbol": "$", "name": "Dollar"},
            headers=as_user("admin-1"),
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Currency code must be exactly 3 characters"

    async def test_toggle_and_active_filter(self, client, admin):
        created = await client.post(
            "/api/v1/currencies",
            json={"code": "CHF", "symbol": "CHF", "name": "Swiss Franc"},
            headers=as_user("admin-1"),
        )
        currency_id = created.json()["id"]
        toggled = await client.post(
            f"/api/v1/currencies/{currency_id}/toggle", headers=as_user("admin-1")
        )
        assert toggled.json()["is_active"] is False

        active = await client.get(
            "/api/v1/currencies", params={"active_only": True}, headers=as_user("admin-1")
        )
        assert active.json() == []

    async def test_partners_cannot_manage(self, client, partner):
        response = await client.post(
            "/api/v1/currencies",
            json={"code": "XOF", "symbol": "CFA", "name": "CFA"},
            headers=as_user("partner-1"),
        )
        assert response.status_code == 403


@pytest.mark.asyncio
class TestProducts:
    async def test_crud(self, client, admin):
        created = await client.post(
            "/api/v1/products",
            json={"name": "Document Control", "short_name": "DC"},
            headers=as_user("admin-1"),
        )
        assert created.status_code == 201
        product_id = created.json()["id"]

        updated = await client.patch(
            f"/api/v1/products/{product_id}",
            json={"description": "Controlled documents"},
            headers=as_user("admin-1"),
        )
        assert updated.json()["description"] == "Controlled documents"

        toggled = await client.post(
            f"/api/v1/products/{product_id}/toggle", headers=as_user("admin-1")
        )
        assert toggled.json()["is_active"] is False

        deleted = await client.delete(f"/api/v1/products/{product_id}", headers=as_user("admin-1"))
        assert deleted.status_code == 204
        missing = await client.get(f"/api/v1/products/{product_id}", headers=as_user("admin-1"))
        assert missing.status_code == 404

    async def test_name_and_short_name_required(self, client, admin):
        response = await client.post(
            "/api/v1/products", json={"name": "Only name"}, headers=as_user("admin-1")
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Name and Short Name are required"

    async def test_search(self, client, partner, product):
        response = await client.get(
            "/api/v1/products", params={"search": "qs"}, headers=as_user("partner-1")
        )
        assert [p["name"] for p in response.json()] == ["Quality Suite"]
