"""Hyperliquid liquidation fills for one tracked user."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from ..errors import ConfigurationError
from ..events import NormalizedEvent, Side
from ..formatting import num
from .base import BaseLiquidationFeed
from .protocol import FeedOutput

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)


class HyperliquidFeed(BaseLiquidationFeed):
    """``userFills`` for a configured address, keeping only liquidation fills.

    Hyperliquid drops idle connections, so the keepalive is a JSON
    ``{"method": "ping"}`` every 20 seconds rather than a transport ping.
    Fills with ``side == "A"`` are forced sells, i.e. liquidated Longs.
    """

    name = "hyperliquid"
    default_url = "wss://api.hyperliquid.xyz/ws"
    keepalive_interval_s = 20.0

    def __init__(self, *, url: str | None = None, **options: Any):
        super().__init__(url=url, **options)
        self.user = str(options.get("user") or "").strip()
        if not self.user:
            raise ConfigurationError("hyperliquid feed requires options.user (wallet address)")
        self.include_snapshot = bool(options.get("include_snapshot", False))

    def subscriptions(self) -> list[dict[str, Any]]:
        return [
            {
                "method": "subscribe",
                "subscription": {"type": "userFills", "user": self.user, "aggregateByTime": False},
            },
            {"method": "subscribe", "subscription": {"type": "userEvents", "user": self.user}},
        ]

    async def keepalive(self, ws: "aiohttp.ClientWebSocketResponse") -> None:
        await ws.send_str(json.dumps({"method": "ping"}))

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        output = FeedOutput()
        if not isinstance(message, dict):
            return output

        channel = message.get("channel") or (message.get("subscription") or {}).get("type")
        data = message.get("data")

        if channel == "pong":
            return output
        if channel == "subscriptionResponse":
            output.notices.append(f"subscribe ack: {data}")
            return output
        if channel == "error":
            output.errors.append(f"server error: {data}")
            return output

        if channel == "userEvents":
            items = data if isinstance(data, list) else [data]
            for item in items:
                liquidation = item.get("liquidation") if isinstance(item, dict) else None
                if isinstance(liquidation, dict):
                    output.notices.append(
                        f"liquidation lid={liquidation.get('lid')} "
                        f"user={liquidation.get('liquidated_user')} ntl={liquidation.get('liquidated_ntl_pos')}"
                    )
            return output

        if channel != "userFills":
            return output

        if isinstance(data, dict):
            if data.get("isSnapshot") and not self.include_snapshot:
                return output
            fills = data.get("fills") or []
        elif isinstance(data, list):
            fills = data
        else:
            return output

        liquidation_fills = [f for f in fills if isinstance(f, dict) and f.get("liquidation")]
        return self._map_rows(liquidation_fills, lambda fill: self._map(fill, received_ms), output)

    def _map(self, fill: dict[str, Any], received_ms: int) -> NormalizedEvent | None:
        price = num(fill.get("px"))
        size = abs(num(fill.get("sz")))
        return self._event(
            symbol=str(fill.get("coin") or "").upper(),
            side=Side.from_order_side(str(fill.get("side") or "")),
            price=price,
            quantity=size,
            notional_usd=price * size,
            timestamp_ms=num(fill.get("time")),
            received_ms=received_ms,
        )
