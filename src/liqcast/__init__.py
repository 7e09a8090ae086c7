"""liqcast: exchange liquidation relay."""

from .events import NormalizedEvent, Side
from .exchanges import ExchangeAdapter, LiquidationFeed, extract_base_symbol
from .settings import Settings

__all__ = [
    "ExchangeAdapter",
    "LiquidationFeed",
    "NormalizedEvent",
    "Settings",
    "Side",
    "extract_base_symbol",
]
