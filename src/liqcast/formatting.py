"""Numeric coercion and message-line rendering helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

LONG_MARKER = "\U0001F534"  # red circle
SHORT_MARKER = "\U0001F7E2"  # green circle


@dataclass(frozen=True, slots=True)
class NotionalPrecision:
    """Decimal places used for each magnitude bucket of a notional value."""

    billions: int = 1
    millions: int = 1
    thousands: int = 0
    units: int = 2


DEFAULT_PRECISION = NotionalPrecision()

EXCHANGE_TAGS: dict[str, str] = {
    "binance": "Binance",
    "bybit": "Bybit",
    "okx": "OKX",
    "gate": "GATE",
    "hyperliquid": "Hyperliquid",
}

EXCHANGE_PRECISION: dict[str, NotionalPrecision] = {
    "binance": NotionalPrecision(billions=1, millions=1, thousands=0, units=0),
}


def num(value: Any, default: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, returning ``default`` otherwise.

    Accepts numbers and numeric strings as sent by exchange feeds
    (e.g. ``"65000.10"``). ``None``, booleans, empty strings, NaN and
    infinities all yield ``default``.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def first_present(row: dict[str, Any], *keys: str) -> Any:
    """Return the first value in ``row`` among ``keys`` that is not ``None``."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def to_fixed(value: float, digits: int) -> str:
    """Format with ``digits`` decimals, rounding halves away from zero.

    Rounds the exact binary value, so ``to_fixed(1.005, 2)`` is ``'1.00'``
    just as JavaScript's ``toFixed`` gives.
    """
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def fmt_notional(value: float, precision: NotionalPrecision = DEFAULT_PRECISION) -> str:
    """Abbreviate a USD notional to B/M/K.

    >>> fmt_notional(162500)
    '163K'
    >>> fmt_notional(2_340_000)
    '2.3M'
    """
    n = num(value)
    if n >= 1e9:
        return to_fixed(n / 1e9, precision.billions) + "B"
    if n >= 1e6:
        return to_fixed(n / 1e6, precision.millions) + "M"
    if n >= 1e3:
        return to_fixed(n / 1e3, precision.thousands) + "K"
    return to_fixed(n, precision.units)


def exchange_tag(exchange: str) -> str:
    return EXCHANGE_TAGS.get(exchange.lower(), exchange)


def precision_for(exchange: str) -> NotionalPrecision:
    return EXCHANGE_PRECISION.get(exchange.lower(), DEFAULT_PRECISION)


def build_liquidation_line(
    *,
    exchange: str,
    symbol: str,
    side: str,
    notional: float,
    price: float,
) -> str:
    """Render the canonical one-line notification.

    Format: ``<marker> <exchange-tag> #<symbol> Liquidated <side>: $<notional> at $<price>``
    """
    marker = LONG_MARKER if side == "Long" else SHORT_MARKER
    symbol_tag = symbol if symbol.startswith("#") else f"#{symbol}"
    notional_str = fmt_notional(notional, precision_for(exchange))
    return (
        f"{marker} {exchange_tag(exchange)} {symbol_tag} Liquidated {side}: "
        f"${notional_str} at ${to_fixed(num(price), 2)}"
    )
