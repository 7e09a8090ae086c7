"""Pytest configuration and fixtures."""

import pytest

from liqcast.channel import AdapterChannel
from liqcast.settings import Settings


class FakeClock:
    """Millisecond clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start_ms: float = 0):
        self.now_ms = start_ms
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now_ms

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ms += seconds * 1000


@pytest.fixture
def clock():
    """Fake clock starting at t=0."""
    return FakeClock()


@pytest.fixture
def settings():
    """Default settings with no config file."""
    return Settings()


@pytest.fixture
def channel():
    """Adapter channel with room for a handful of messages."""
    return AdapterChannel(maxsize=100)


@pytest.fixture
def binance_force_order():
    """Binance forceOrder message for a liquidated BTC long."""
    return {
        "e": "forceOrder",
        "E": 1700000000500,
        "o": {
            "s": "BTCUSDT",
            "S": "SELL",
            "o": "LIMIT",
            "q": "2.5",
            "p": "64900.00",
            "ap": "65000",
            "z": "2.5",
            "l": "2.5",
            "X": "FILLED",
            "T": 1700000000400,
        },
    }


@pytest.fixture
def bybit_liquidation():
    """Bybit allLiquidation message with two rows."""
    return {
        "topic": "allLiquidation.ETHUSDT",
        "type": "snapshot",
        "ts": 1700000000900,
        "data": [
            {"T": 1700000000800, "s": "ETHUSDT", "S": "Buy", "v": "10", "p": "2000.5"},
            {"T": 1700000000850, "s": "ETHUSDT", "S": "Sell", "v": "0.5", "p": "2001"},
        ],
    }


@pytest.fixture
def okx_liquidation():
    """OKX liquidation-orders push for a BTC swap."""
    return {
        "arg": {"channel": "liquidation-orders", "instType": "SWAP"},
        "data": [
            {
                "instId": "BTC-USDT-SWAP",
                "instFamily": "BTC-USDT",
                "instType": "SWAP",
                "details": [
                    {"side": "sell", "posSide": "long", "sz": "100", "bkPx": "60000", "ts": "1700000000300"},
                ],
            }
        ],
    }


@pytest.fixture
def gate_liquidation():
    """Gate futures.public_liquidates update."""
    return {
        "time": 1700000000,
        "time_ms": 1700000000123,
        "channel": "futures.public_liquidates",
        "event": "update",
        "result": [
            {"contract": "SOL_USDT", "size": -300, "price": "150.25", "time_ms": 1700000000100},
        ],
    }


@pytest.fixture
def hyperliquid_fills():
    """Hyperliquid userFills push with one liquidation fill and one regular fill."""
    return {
        "channel": "userFills",
        "data": {
            "isSnapshot": False,
            "user": "0xabc",
            "fills": [
                {
                    "coin": "ETH",
                    "px": "2500",
                    "sz": "4",
                    "side": "A",
                    "time": 1700000000200,
                    "liquidation": {"liquidatedUser": "0xabc", "markPx": "2500", "method": "market"},
                },
                {"coin": "BTC", "px": "60000", "sz": "1", "side": "B", "time": 1700000000210},
            ],
        },
    }
