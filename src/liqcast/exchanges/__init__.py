"""Exchange feeds and the connection layer driving them."""

from .adapter import ExchangeAdapter, reconnect_delay_ms
from .base import BaseLiquidationFeed
from .factory import FEEDS, create_feed
from .normalization import base_asset, extract_base_symbol
from .protocol import AdapterState, FeedOutput, LiquidationFeed

__all__ = [
    "AdapterState",
    "BaseLiquidationFeed",
    "ExchangeAdapter",
    "FEEDS",
    "FeedOutput",
    "LiquidationFeed",
    "base_asset",
    "create_feed",
    "extract_base_symbol",
    "reconnect_delay_ms",
]
