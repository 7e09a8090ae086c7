"""Bybit linear perpetual liquidation feed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..errors import InstrumentLookupError
from ..events import NormalizedEvent, Side
from ..formatting import num
from .base import BaseLiquidationFeed
from .instruments import BYBIT_BASE_URL, fetch_bybit_symbols
from .normalization import base_asset
from .protocol import FeedOutput

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

TOPIC_PREFIX = "allLiquidation."
SUBSCRIBE_BATCH = 10


def _parse_symbols(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    return [str(s).strip().upper() for s in raw if str(s).strip()]


class BybitFeed(BaseLiquidationFeed):
    """``allLiquidation.<SYMBOL>`` topics on the public linear stream.

    Bybit has no all-market topic, so every symbol is subscribed
    individually. Symbols come from the ``symbols`` option or, when that is
    empty, from the instruments REST endpoint. In this stream ``S == "Buy"``
    reports a liquidated Long.
    """

    name = "bybit"
    default_url = "wss://stream.bybit.com/v5/public/linear"

    def __init__(self, *, url: str | None = None, **options: Any):
        super().__init__(url=url, **options)
        self.symbols = _parse_symbols(options.get("symbols"))
        self.rest_base_url = options.get("rest_base_url", BYBIT_BASE_URL)
        self.quote = options.get("quote", "USDT")

    async def prepare(self, session: "aiohttp.ClientSession") -> None:
        if self.symbols:
            return
        try:
            self.symbols = await fetch_bybit_symbols(
                session, base_url=self.rest_base_url, quote=self.quote
            )
            logger.info("Bybit symbol universe loaded: %d symbols", len(self.symbols))
        except InstrumentLookupError as e:
            logger.error("Bybit symbol lookup failed: %s", e)

    def subscriptions(self) -> list[dict[str, Any]]:
        if not self.symbols:
            logger.warning(
                "No Bybit symbols configured; Bybit requires per-symbol topics like allLiquidation.BTCUSDT"
            )
            return []
        topics = [f"{TOPIC_PREFIX}{symbol}" for symbol in self.symbols]
        return [
            {"op": "subscribe", "args": topics[i : i + SUBSCRIBE_BATCH]}
            for i in range(0, len(topics), SUBSCRIBE_BATCH)
        ]

    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        output = FeedOutput()
        if not isinstance(message, dict):
            return output

        if message.get("op") == "ping":
            pong: dict[str, Any] = {"op": "pong"}
            if message.get("ts"):
                pong["ts"] = message["ts"]
            output.replies.append(pong)
            return output

        if "success" in message:
            if message.get("success") is False:
                output.errors.append(f"subscription failed: {message}")
            else:
                output.notices.append(
                    f"subscribe ack: success={message.get('success')} retMsg={message.get('ret_msg') or message.get('retMsg') or ''}"
                )
            return output

        topic = message.get("topic")
        if not isinstance(topic, str) or not topic.startswith(TOPIC_PREFIX):
            return output

        rows = message.get("data")
        if isinstance(rows, dict):
            rows = [rows]
        if not isinstance(rows, list):
            return output

        message_ts = num(message.get("ts"))
        return self._map_rows(rows, lambda row: self._map(row, message_ts, received_ms), output)

    def _map(self, row: dict[str, Any], message_ts: float, received_ms: int) -> NormalizedEvent | None:
        quantity = num(row.get("v"))
        price = num(row.get("p"))
        return self._event(
            symbol=base_asset(str(row.get("s") or "")),
            side=Side.LONG if row.get("S") == "Buy" else Side.SHORT,
            price=price,
            quantity=quantity,
            notional_usd=quantity * price,
            timestamp_ms=num(row.get("T")) or message_ts,
            received_ms=received_ms,
        )
