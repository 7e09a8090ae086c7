"""Factory for creating liquidation feed instances."""

from __future__ import annotations

from typing import Any, Type

from .base import BaseLiquidationFeed
from .binance import BinanceFeed
from .bybit import BybitFeed
from .gate import GateFeed
from .hyperliquid import HyperliquidFeed
from .okx import OKXFeed


FEEDS: dict[str, Type[BaseLiquidationFeed]] = {
    "binance": BinanceFeed,
    "bybit": BybitFeed,
    "okx": OKXFeed,
    "gate": GateFeed,
    "hyperliquid": HyperliquidFeed,
}


def create_feed(exchange: str, *, url: str | None = None, **options: Any) -> BaseLiquidationFeed:
    """Create a feed instance.

    Args:
        exchange: Exchange name (binance, bybit, okx, gate, hyperliquid)
        url: Override the feed's default WebSocket endpoint
        **options: Exchange-specific options (symbols, user, contracts, ...)

    Returns:
        Configured feed

    Raises:
        ValueError: If exchange is not supported
        ConfigurationError: If required exchange options are missing
    """
    exchange_lower = exchange.lower()

    if exchange_lower not in FEEDS:
        supported = ", ".join(FEEDS.keys())
        raise ValueError(
            f"Unsupported exchange: {exchange}. Supported exchanges: {supported}"
        )

    feed_class = FEEDS[exchange_lower]
    return feed_class(url=url, **options)
