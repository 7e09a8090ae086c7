"""Base class for exchange liquidation feeds."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from ..events import NormalizedEvent, Side
from .protocol import FeedOutput

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

RowMapper = Callable[[dict[str, Any]], "NormalizedEvent | None"]


class BaseLiquidationFeed(ABC):
    """Common defaults shared by every feed.

    Subclasses set ``name`` and ``default_url`` and implement :meth:`handle`.
    """

    name: str = ""
    default_url: str = ""
    keepalive_interval_s: float | None = None

    def __init__(self, *, url: str | None = None, **options: Any):
        """Initialize feed.

        Args:
            url: Override the default streaming endpoint
            **options: Exchange-specific options from configuration
        """
        self.url = url or self.default_url
        self.options = options

    def subscriptions(self) -> list[dict[str, Any]]:
        return []

    async def prepare(self, session: "aiohttp.ClientSession") -> None:
        return None

    def maintenance(self, session: "aiohttp.ClientSession") -> Awaitable[None] | None:
        return None

    async def keepalive(self, ws: "aiohttp.ClientWebSocketResponse") -> None:
        await ws.ping()

    @abstractmethod
    def handle(self, message: Any, received_ms: int) -> FeedOutput:
        """Map one decoded message."""
        ...

    def _event(
        self,
        *,
        symbol: str,
        side: Side,
        price: float,
        quantity: float,
        notional_usd: float,
        timestamp_ms: float | None,
        received_ms: int,
    ) -> NormalizedEvent | None:
        return NormalizedEvent.create(
            exchange=self.name,
            symbol=symbol,
            side=side,
            price=price,
            quantity=quantity,
            notional_usd=notional_usd,
            timestamp_ms=timestamp_ms,
            received_ms=received_ms,
        )

    def _map_rows(self, rows: Iterable[Any], mapper: RowMapper, output: FeedOutput) -> FeedOutput:
        """Apply ``mapper`` to each row, isolating per-row failures."""
        for row in rows:
            if not isinstance(row, dict):
                output.skipped += 1
                continue
            try:
                event = mapper(row)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                output.errors.append(f"bad row {str(row)[:200]}: {exc}")
                output.skipped += 1
                continue
            if event is None:
                output.skipped += 1
            else:
                output.events.append(event)
        return output

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self.url!r})"
