"""Normalized liquidation event model and dispatch jobs."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum

from .formatting import build_liquidation_line


def now_ms() -> int:
    return int(time.time() * 1000)


class Side(str, Enum):
    """Direction of the position that was force-closed."""

    LONG = "Long"
    SHORT = "Short"

    @classmethod
    def from_order_side(cls, order_side: str) -> "Side":
        """Map the side of the liquidation *order* onto the closed position.

        A forced SELL closes a Long, a forced BUY closes a Short.
        """
        normalized = str(order_side or "").strip().lower()
        if normalized in {"sell", "s", "a", "ask"}:
            return cls.LONG
        return cls.SHORT


def _positive(value: float) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


@dataclass(frozen=True, slots=True)
class NormalizedEvent:
    """Canonical liquidation event produced by every exchange feed."""

    exchange: str
    symbol: str
    side: Side
    price: float
    quantity: float
    notional_usd: float
    timestamp_ms: int

    @classmethod
    def create(
        cls,
        *,
        exchange: str,
        symbol: str,
        side: Side,
        price: float,
        quantity: float,
        notional_usd: float,
        timestamp_ms: int | float | None = None,
        received_ms: int | None = None,
    ) -> "NormalizedEvent | None":
        """Build an event, or return ``None`` when the numbers are unusable.

        ``price``, ``quantity`` and ``notional_usd`` must be finite and
        positive, and ``symbol`` non-empty. The timestamp falls back to the
        receive time and is clamped so it never lies in the future.
        """
        if not symbol or not (_positive(price) and _positive(quantity) and _positive(notional_usd)):
            return None

        received = received_ms if received_ms is not None else now_ms()
        ts = int(timestamp_ms) if _positive(timestamp_ms or 0) else received
        return cls(
            exchange=exchange,
            symbol=symbol,
            side=side,
            price=float(price),
            quantity=float(quantity),
            notional_usd=float(notional_usd),
            timestamp_ms=min(ts, received),
        )

    def render(self) -> str:
        return build_liquidation_line(
            exchange=self.exchange,
            symbol=self.symbol,
            side=self.side.value,
            notional=self.notional_usd,
            price=self.price,
        )


@dataclass(slots=True)
class DispatchJob:
    """A rendered notification waiting in one dispatcher's queue."""

    rendered_text: str
    priority: float
    enqueued_at_ms: int = field(default_factory=now_ms)

    def sort_key(self) -> tuple[float, int]:
        """Ordering key: higher notional first, then the more recent job."""
        return (self.priority, self.enqueued_at_ms)
