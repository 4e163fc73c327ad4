"""
Tests for the fallback checkout rate.
"""
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from freight_bridge.models.fallback_rate import FallbackRateSetting
from freight_bridge.schemas.freight import FallbackRateInput
from freight_bridge.services.fallback_rate import (
    FALLBACK_SERVICE_CODE,
    FallbackRateService,
    FallbackRateSettings,
    format_fallback_rate,
)


def test_format_fallback_rate_in_cents():
    settings = FallbackRateSettings(shop_domain="shop", price=Decimal("25.5"), title="Call us")

    assert format_fallback_rate(settings, "CAD") == {
        "service_name": "Call us",
        "service_code": FALLBACK_SERVICE_CODE,
        "total_price": "2550",
        "description": "Please contact support before placing this order",
        "currency": "CAD",
    }


def test_price_parsing():
    assert FallbackRateInput(price="12.5").price == 12.5
    assert FallbackRateInput(price="").price is None
    assert FallbackRateInput(price="not a number").price == 999.0
    assert FallbackRateInput(price="nan").price == 999.0


class TestFallbackRateService:

    @pytest.mark.asyncio
    async def test_defaults_when_no_row(self, session_factory, mock_db):
        rates = await FallbackRateService(session_factory).fallback_rates("shop")

        assert rates == [{
            "service_name": "Shipping Unavailable",
            "service_code": FALLBACK_SERVICE_CODE,
            "total_price": "99900",
            "description": "Please contact support before placing this order",
            "currency": "USD",
        }]

    @pytest.mark.asyncio
    async def test_disabled_returns_no_rates(self, session_factory, mock_db):
        mock_db.get.return_value = FallbackRateSetting(
            shop_domain="shop", enabled=False, price=Decimal("10.00"), title="T", description="D",
        )

        assert await FallbackRateService(session_factory).fallback_rates("shop") == []

    @pytest.mark.asyncio
    async def test_database_error_uses_defaults(self):
        @asynccontextmanager
        async def broken_session():
            raise OperationalError("SELECT", {}, Exception("relation does not exist"))
            yield

        settings = await FallbackRateService(broken_session).get_settings("shop")

        assert settings == FallbackRateSettings(shop_domain="shop")

    @pytest.mark.asyncio
    async def test_save_merges_partial_update(self, session_factory, mock_db):
        row = FallbackRateSetting(
            shop_domain="shop", enabled=True, price=Decimal("50.00"), title="Freight quote", description="D",
        )
        mock_db.get.return_value = row

        saved = await FallbackRateService(session_factory).save_settings(
            "shop", FallbackRateInput(enabled=False, title="")
        )

        assert saved.enabled is False
        assert saved.price == Decimal("50.00")
        assert saved.title == "Freight quote"
        assert row.enabled is False
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_creates_row(self, session_factory, mock_db):
        saved = await FallbackRateService(session_factory).save_settings(
            "shop", FallbackRateInput(price=45)
        )

        assert saved.price == Decimal("45.0")
        assert saved.to_dict()["price"] == 45.0
        mock_db.add.assert_called_once()
