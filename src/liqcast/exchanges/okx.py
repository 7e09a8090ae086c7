"""OKX swap and futures liquidation feed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable

from ..events import NormalizedEvent, Side
from ..formatting import num
from .base import BaseLiquidationFeed
from .instruments import OKX_BASE_URL, OKXInstrumentTable
from .normalization import base_asset
from .protocol import FeedOutput

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

CHANNEL = "liquidation-orders"


class OKXFeed(BaseLiquidationFeed):
    """``liquidation-orders`` channel for SWAP and FUTURES.

    Sizes are in contracts, so the notional needs each instrument's contract
    value; the table is loaded before every connect and refreshed while
    connected. Rows for unknown instruments are skipped.
    """

    name = "okx"
    default_url = "wss://ws.okx.com:8443/ws/v5/public"

    def __init__(
        self,
        *,
        url: str | None = None,
        instruments: OKXInstrumentTable | None = None,
        **options: Any,
    ):
        super().__init__(url=url, **options)
        if instruments is None:
            instruments = OKXInstrumentTable(
                base_url=options.get("rest_base_url", OKX_BASE_URL),
                refresh_interval_s=float(options.get("instrument_refresh_s", 30 * 60)),
            )
        self.instruments = instruments
        self.inst_types = [str(t).upper() for t in options.get("inst_types", ("SWAP", "FUTURES"))]

    async def prepare(self, session: "aiohttp.ClientSession") -> None:
        await self.instruments.refresh(session)

    def maintenance(self, session: "aiohttp.ClientSession") -> Awaitable[None] | None:
        return self.instruments.refresh_forever(session)

    def subscriptions(self) -> list[dict[str, Any]]:
        return [
            {
                "id": f"liq{inst_type.title()}",
                "op": "subscribe",
                "args": [{"channel": CHANNEL, "instType": inst_type}],
            }
            for inst_type in self.inst_types
        ]

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        output = FeedOutput()
        if not isinstance(message, dict):
            return output

        event_type = message.get("event")
        if event_type == "subscribe" or message.get("op") == "subscribe":
            output.notices.append(f"subscribe ack: {message.get('arg')}")
            return output
        if event_type == "error":
            output.errors.append(f"subscription error: {message}")
            return output

        rows = message.get("data")
        if not isinstance(rows, list):
            return output

        for row in rows:
            if not isinstance(row, dict) or not isinstance(row.get("details"), list):
                output.skipped += 1
                continue
            inst_id = str(row.get("instId") or "")
            family = str(row.get("instFamily") or row.get("uly") or inst_id)
            symbol = base_asset(family)
            self._map_rows(
                row["details"],
                lambda detail: self._map(inst_id, symbol, detail, received_ms),
                output,
            )
        return output

    def _map(
        self, inst_id: str, symbol: str, detail: dict[str, Any], received_ms: int
    ) -> NormalizedEvent | None:
        spec = self.instruments.get(inst_id)
        if spec is None:
            logger.debug("OKX instrument %s not in table, skipping", inst_id)
            return None
        size = num(detail.get("sz"))
        price = num(detail.get("bkPx"))
        return self._event(
            symbol=symbol,
            side=Side.LONG if detail.get("side") == "sell" else Side.SHORT,
            price=price,
            quantity=size,
            notional_usd=spec.notional_usd(size, price),
            timestamp_ms=num(detail.get("ts")),
            received_ms=received_ms,
        )
