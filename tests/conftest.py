"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from bittrex_connector.clients.bittrex_rest import BittrexRESTClient
from bittrex_connector.config.settings import (
    BackfillConfig,
    BittrexConfig,
    ConnectorSettings,
    RetryConfig,
)
from bittrex_connector.models import Candle, OrderBookSnapshot, PriceLevel


T0 = datetime(2017, 8, 18, 17, 48, tzinfo=timezone.utc)


def make_candle(minute: int, close: str = "0.00106302", volume: str = "80.58638589", symbol: str = "BTC-WAVES") -> Candle:
    return Candle(
        symbol=symbol,
        period_seconds=60,
        open=Decimal(close),
        high=Decimal(close),
        low=Decimal(close),
        close=Decimal(close),
        volume=Decimal(volume),
        base_volume=Decimal("0.08566493"),
        timestamp=T0 + timedelta(minutes=minute),
    )


def levels(*pairs) -> List[PriceLevel]:
    return [PriceLevel(Decimal(price), Decimal(quantity)) for price, quantity in pairs]


@pytest.fixture
def candle_factory():
    """Factory for one-minute candles offset from T0."""
    return make_candle


@pytest.fixture
def test_config() -> ConnectorSettings:
    """Create test configuration."""
    return ConnectorSettings(
        service_name="test-connector",
        environment="local",
        bittrex=BittrexConfig(
            symbols=["BTC-WAVES"],
            rate_limit_requests_per_minute=6000
        ),
        backfill=BackfillConfig(page_delay_seconds=0.0),
        retry=RetryConfig(max_attempts=2, initial_backoff_seconds=0.0, jitter=False)
    )


@pytest.fixture
def snapshot() -> OrderBookSnapshot:
    """Book at nonce 10 with three levels per side."""
    return OrderBookSnapshot(
        symbol="BTC-ETH",
        nonce=10,
        bids=levels(("0.070", "1"), ("0.072", "2"), ("0.071", "3")),
        asks=levels(("0.075", "1"), ("0.073", "2"), ("0.074", "3")),
    )


@pytest.fixture
def mock_client(test_config: ConnectorSettings) -> BittrexRESTClient:
    """REST client whose HTTP layer is an AsyncMock."""
    client = BittrexRESTClient(test_config.bittrex, test_config.retry)
    client._http_get = AsyncMock()
    return client


@pytest.fixture
def sample_ticks_payload() -> List[Dict[str, Any]]:
    """v2.0 GetTicks result, deliberately out of order."""
    return [
        {"O": 0.00106400, "H": 0.00106400, "L": 0.00106300, "C": 0.00106350, "V": 12.5, "T": "2017-08-18T17:49:00", "BV": 0.0133},
        {"O": 0.00106302, "H": 0.00106302, "L": 0.00106302, "C": 0.00106302, "V": 80.58638589, "T": "2017-08-18T17:48:00", "BV": 0.08566493},
    ]


@pytest.fixture
def sample_order_payload() -> Dict[str, Any]:
    """Account getorder result for a partially filled limit buy."""
    return {
        "OrderUuid": "0cb4c4e4-bdc7-4e13-8c13-430e587d2cc1",
        "Exchange": "BTC-SHLD",
        "OrderType": "LIMIT_BUY",
        "Quantity": 1000.0,
        "QuantityRemaining": 400.0,
        "Limit": 0.00000001,
        "PricePerUnit": 0.00000002,
        "CancelInitiated": False,
        "Opened": "2014-07-13T07:45:46.27",
        "Commission": 0.00000125,
    }
