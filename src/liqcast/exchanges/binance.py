"""Binance USD-M futures liquidation feed."""

from __future__ import annotations

import logging
from typing import Any

from ..events import NormalizedEvent, Side
from ..formatting import first_present, num
from .base import BaseLiquidationFeed
from .normalization import base_asset
from .protocol import FeedOutput

logger = logging.getLogger(__name__)


class BinanceFeed(BaseLiquidationFeed):
    """All-market force order stream.

    The stream name is part of the URL, so nothing is subscribed after
    connecting. Each message carries one order under ``o``; ``S == "SELL"``
    is a forced sell, i.e. a liquidated Long.
    """

    name = "binance"
    default_url = "wss://fstream.binance.com/ws/!forceOrder@arr"

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        output = FeedOutput()
        # combined-stream wrapper: {"stream": ..., "data": {...}}
        if isinstance(message, dict) and isinstance(message.get("data"), dict) and "stream" in message:
            message = message["data"]

        if isinstance(message, list):
            rows = message
        elif isinstance(message, dict) and message.get("e") == "forceOrder":
            rows = [message]
        elif isinstance(message, dict) and "result" in message and "id" in message:
            output.notices.append(f"request ack id={message.get('id')}")
            return output
        else:
            return output

        return self._map_rows(rows, lambda row: self._map(row, received_ms), output)

    def _map(self, envelope: dict[str, Any], received_ms: int) -> NormalizedEvent | None:
        order = envelope.get("o") or {}
        # cumulative filled qty / average price first, then the order fields
        quantity = num(first_present(order, "z", "q", "l"))
        price = num(first_present(order, "ap", "p"))
        return self._event(
            symbol=base_asset(str(order.get("s") or "")),
            side=Side.LONG if order.get("S") == "SELL" else Side.SHORT,
            price=price,
            quantity=quantity,
            notional_usd=quantity * price,
            timestamp_ms=num(first_present(order, "T")) or num(envelope.get("E")),
            received_ms=received_ms,
        )
