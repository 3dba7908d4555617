"""Tests for deal payloads and fixtures."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from dealprobe._internal.errors import DealError
from dealprobe.workflow.deals import BULK_DEALS, SINGLE_DEAL, Deal, DealTemplate, validate_templates


def _deal(**overrides) -> Deal:
    fields = {
        "deal_unique_id": "K6_SINGLE_1_1700000000000",
        "from_currency": "USD",
        "to_currency": "EUR",
        "deal_timestamp": "2024-01-01T10:00:00",
        "deal_amount": 999,
    }
    fields.update(overrides)
    return Deal(**fields)


class TestDeal:
    def test_wire_shape(self):
        assert _deal().to_json() == {
            "dealUniqueId": "K6_SINGLE_1_1700000000000",
            "fromCurrencyIsoCode": "USD",
            "toCurrencyIsoCode": "EUR",
            "dealTimestamp": "2024-01-01T10:00:00",
            "dealAmount": 999,
        }

    def test_decimal_amount_serializes_as_number(self):
        assert _deal(deal_amount=Decimal("12.50")).to_json()["dealAmount"] == 12.5

    def test_valid_deal_passes(self):
        deal = _deal()
        assert deal.validate() is deal

    @pytest.mark.parametrize(
        ("overrides", "match"),
        [
            ({"deal_unique_id": "  "}, "dealUniqueId is required"),
            ({"from_currency": "US"}, "fromCurrencyIsoCode must be 3 letters"),
            ({"to_currency": "EU1"}, "toCurrencyIsoCode must be 3 letters"),
            ({"to_currency": "usd"}, "must be different"),
            ({"deal_amount": 0}, "greater than 0"),
            ({"deal_amount": -3}, "greater than 0"),
            ({"deal_timestamp": "2024-01-01"}, "must match"),
            ({"deal_timestamp": "2999-01-01T00:00:00"}, "future"),
        ],
    )
    def test_invalid_deals_are_rejected(self, overrides, match):
        with pytest.raises(DealError, match=match):
            _deal(**overrides).validate()

    def test_future_is_relative_to_reference_time(self):
        deal = _deal(deal_timestamp="2024-06-01T00:00:00")
        with pytest.raises(DealError, match="future"):
            deal.validate(now=datetime(2024, 1, 1))


class TestFixtures:
    def test_single_fixture(self):
        payload = SINGLE_DEAL.build("X").to_json()
        assert payload["fromCurrencyIsoCode"] == "USD"
        assert payload["toCurrencyIsoCode"] == "EUR"
        assert payload["dealAmount"] == 999

    def test_bulk_fixture_pairs(self):
        pairs = [(t.from_currency, t.to_currency, t.deal_amount) for t in BULK_DEALS]
        assert pairs == [("USD", "EUR", 100), ("GBP", "USD", 200)]

    def test_fixtures_are_valid(self):
        validate_templates(SINGLE_DEAL, *BULK_DEALS)

    def test_invalid_template_is_reported(self):
        with pytest.raises(DealError):
            validate_templates(DealTemplate("EUR", "EUR", 1))
