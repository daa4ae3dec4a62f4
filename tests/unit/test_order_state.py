"""Tests for order state resolution."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from bittrex_connector.models import OrderRecord, OrderStatus
from bittrex_connector.order_state import fees_currency_from_pair, is_buy_type, resolve, resolve_status


def record(amount="10", remaining="10", cancelled=False, limit="0.5", fill=None, type_token="LIMIT_BUY") -> OrderRecord:
    return OrderRecord(
        order_id="abc",
        quantity=Decimal(amount),
        quantity_remaining=Decimal(remaining),
        limit_price=Decimal(limit) if limit is not None else None,
        average_fill_price=Decimal(fill) if fill is not None else None,
        cancelled=cancelled,
        type_token=type_token,
        opened_time=datetime(2018, 1, 1, tzinfo=timezone.utc),
        exchange_symbol_pair="BTC-LTC",
        commission=Decimal("0.0001"),
    )


@pytest.mark.unit
class TestStatusResolution:
    """Status ordering: cancelled, filled, pending, partial."""

    def test_untouched_order_is_pending(self):
        assert resolve(record(remaining="10")).status is OrderStatus.PENDING

    def test_fully_filled(self):
        assert resolve(record(remaining="0")).status is OrderStatus.FILLED

    def test_partially_filled(self):
        result = resolve(record(remaining="4"))
        assert result.status is OrderStatus.PARTIALLY_FILLED
        assert result.filled_amount == Decimal("6")

    def test_cancellation_overrides_partial_fill(self):
        assert resolve(record(remaining="4", cancelled=True)).status is OrderStatus.CANCELED

    def test_cancellation_overrides_full_fill(self):
        assert resolve_status(Decimal("10"), Decimal("0"), True) is OrderStatus.CANCELED

    def test_overfill_counts_as_filled(self):
        assert resolve_status(Decimal("10"), Decimal("-1"), False) is OrderStatus.FILLED


@pytest.mark.unit
class TestDerivedFields:
    """Average price, side and fees."""

    def test_average_price_uses_fill_price(self):
        result = resolve(record(remaining="4", fill="0.48"))
        assert result.average_price == Decimal("0.48")
        assert result.price == Decimal("0.5")

    def test_average_price_falls_back_to_limit(self):
        assert resolve(record(fill=None)).average_price == Decimal("0.5")
        assert resolve(record(fill="0")).average_price == Decimal("0.5")

    def test_price_falls_back_to_fill_when_no_limit(self):
        result = resolve(record(limit=None, fill="0.3", remaining="0"))
        assert result.price == Decimal("0.3")

    @pytest.mark.parametrize("token,expected", [
        ("LIMIT_BUY", True),
        ("limit_buy", True),
        ("Buy", True),
        ("LIMIT_SELL", False),
        ("", False),
        (None, False),
    ])
    def test_side_from_type_token(self, token, expected):
        assert is_buy_type(token) is expected

    def test_fees(self):
        result = resolve(record())
        assert result.fees == Decimal("0.0001")
        assert result.fees_currency == "BTC"
        assert result.symbol == "BTC-LTC"

    def test_fees_currency_needs_a_pair(self):
        assert fees_currency_from_pair("BTCLTC") is None
        assert fees_currency_from_pair("  ") is None
        assert fees_currency_from_pair(None) is None
