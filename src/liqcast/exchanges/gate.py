"""Gate USDT-settled futures liquidation feed."""

from __future__ import annotations

import logging
import time
from typing import Any

from ..events import NormalizedEvent, Side
from ..formatting import num
from .base import BaseLiquidationFeed
from .normalization import base_asset
from .protocol import FeedOutput

logger = logging.getLogger(__name__)

CHANNEL = "futures.public_liquidates"


def compute_notional_usd(contract: str, size: float, price: float) -> float:
    """USDT contracts are priced per coin; anything else is already USD sized."""
    size = abs(size)
    if not size:
        return 0.0
    if contract.upper().endswith("_USDT"):
        return size * price if price > 0 else 0.0
    return size


class GateFeed(BaseLiquidationFeed):
    """``futures.public_liquidates`` for all contracts.

    The sign of ``size`` carries the side: negative sizes are liquidated
    Longs.
    """

    name = "gate"
    default_url = "wss://fx-ws.gateio.ws/v4/ws/usdt"

    def __init__(self, *, url: str | None = None, **options: Any):
        super().__init__(url=url, **options)
        self.contracts = list(options.get("contracts") or ["!all"])

    def subscriptions(self) -> list[dict[str, Any]]:
        return [
            {
                "time": int(time.time()),
                "channel": CHANNEL,
                "event": "subscribe",
                "payload": self.contracts,
            }
        ]

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        output = FeedOutput()
        if not isinstance(message, dict):
            return output

        channel = message.get("channel")
        if channel == "futures.ping":
            output.replies.append({"time": int(time.time()), "channel": "futures.pong"})
            return output
        if channel == "futures.pong":
            return output

        event_type = message.get("event")
        if event_type == "error" or message.get("error"):
            output.errors.append(f"subscription error: {message}")
            return output
        if event_type == "subscribe":
            output.notices.append(f"subscribe ack: {message.get('result')}")
            return output

        if not (channel == CHANNEL and event_type == "update"):
            return output

        result = message.get("result")
        if isinstance(result, dict):
            rows = [result]
        elif isinstance(result, list):
            rows = result
        else:
            return output

        return self._map_rows(rows, lambda row: self._map(row, received_ms), output)

    def _map(self, row: dict[str, Any], received_ms: int) -> NormalizedEvent | None:
        contract = str(row.get("contract") or "")
        size = num(row.get("size"))
        price = num(row.get("price"))
        timestamp = num(row.get("time_ms")) or num(row.get("time")) * 1000
        return self._event(
            symbol=base_asset(contract),
            side=Side.LONG if size < 0 else Side.SHORT,
            price=price,
            quantity=abs(size),
            notional_usd=compute_notional_usd(contract, size, price),
            timestamp_ms=timestamp,
            received_ms=received_ms,
        )
