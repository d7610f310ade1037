"""
Shared fixtures for feed handler unit tests.
"""

from typing import Any

import pytest

from feedhandler.types import MarketData


@pytest.fixture
def btc_payload() -> dict[str, Any]:
    return {"symbol": "BTCUSD", "price": 50000.0, "volume": 1.5, "timestamp": 1234567890}


@pytest.fixture
def btc_record(btc_payload: dict[str, Any]) -> MarketData:
    return MarketData(**btc_payload)
