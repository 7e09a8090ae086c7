"""Symbol normalization utilities for exchange symbols."""

from __future__ import annotations

QUOTE_ASSETS = {"USDT", "USDC", "BUSD", "FDUSD", "TUSD", "USD"}

# Suffixes that only name the instrument type, never the asset
_INSTRUMENT_SUFFIXES = {"SWAP", "PERP"}


def extract_base_symbol(symbol: str) -> tuple[str, str]:
    """Extract base and quote currency from an exchange symbol.

    Handles various formats:
    - BTCUSDT -> (BTC, USDT)
    - BTC-USDT-SWAP -> (BTC, USDT)
    - BTC-USD-250926 -> (BTC, USD)
    - BTC_USDT -> (BTC, USDT)
    - BTC/USDT -> (BTC, USDT)
    - BTC -> (BTC, '')

    Args:
        symbol: Symbol in any format

    Returns:
        Tuple of (base, quote) currencies
    """
    if not symbol:
        return "", ""

    symbol = symbol.strip().upper()

    for sep in ("-", "_", "/"):
        if sep in symbol:
            parts = [p.strip() for p in symbol.split(sep) if p.strip()]
            parts = [p for p in parts if p not in _INSTRUMENT_SUFFIXES]
            if len(parts) >= 2:
                return parts[0], parts[1]
            if parts:
                return parts[0], ""

    # USD last so that USDT/USDC win over their own prefix
    for quote in sorted(QUOTE_ASSETS, key=len, reverse=True):
        if symbol.endswith(quote):
            base = symbol[: -len(quote)]
            if base:
                return base, quote

    return symbol, ""


def base_asset(symbol: str) -> str:
    """Return the ticker of ``symbol`` with its quote-asset suffix stripped.

    >>> base_asset("BTCUSDT")
    'BTC'
    >>> base_asset("ETH-USDT-SWAP")
    'ETH'
    """
    base, _ = extract_base_symbol(symbol)
    return base
