"""Instrument metadata lookups over exchange REST APIs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import InstrumentLookupError
from ..formatting import num

if TYPE_CHECKING:
    import aiohttp

logger = logging.getLogger(__name__)

BYBIT_BASE_URL = "https://api.bybit.com"
OKX_BASE_URL = "https://www.okx.com"

USD_CURRENCIES = {"USD", "USDT", "USDC"}


async def _get_json(session: "aiohttp.ClientSession", url: str, params: dict[str, Any]) -> Any:
    try:
        async with session.get(url, params=params) as resp:
            if resp.status != 200:
                raise InstrumentLookupError(f"GET {url} failed: HTTP {resp.status}")
            return await resp.json(content_type=None)
    except InstrumentLookupError:
        raise
    except Exception as exc:
        raise InstrumentLookupError(f"GET {url} failed: {exc}") from exc


async def fetch_bybit_symbols(
    session: "aiohttp.ClientSession",
    *,
    base_url: str = BYBIT_BASE_URL,
    category: str = "linear",
    quote: str | None = "USDT",
    status: str | None = "Trading",
    limit: int = 1000,
) -> list[str]:
    """Fetch tradable Bybit symbols, following the pagination cursor.

    Returns:
        Sorted, de-duplicated list of symbols such as ``BTCUSDT``

    Raises:
        InstrumentLookupError: If a page cannot be fetched
    """
    url = f"{base_url.rstrip('/')}/v5/market/instruments-info"
    symbols: set[str] = set()
    cursor: str | None = None

    while True:
        params: dict[str, Any] = {"category": category, "limit": str(limit)}
        if cursor:
            params["cursor"] = cursor
        body = await _get_json(session, url, params)

        result = (body or {}).get("result") or {}
        for item in result.get("list") or []:
            if status and item.get("status") != status:
                continue
            if quote and item.get("quoteCoin") != quote:
                continue
            if item.get("symbol"):
                symbols.add(item["symbol"])

        cursor = result.get("nextPageCursor") or None
        if not cursor:
            break

    return sorted(symbols)


@dataclass(frozen=True, slots=True)
class ContractSpec:
    inst_id: str
    inst_family: str
    ct_val: float
    ct_val_ccy: str

    def notional_usd(self, size: float, price: float) -> float:
        """USD value of ``size`` contracts at ``price``.

        Contracts denominated in a USD currency are worth ``ct_val`` dollars
        each; coin-denominated contracts are worth ``ct_val`` coins.
        """
        if size <= 0 or self.ct_val <= 0:
            return 0.0
        if self.ct_val_ccy.upper() in USD_CURRENCIES:
            return size * self.ct_val
        if price <= 0:
            return 0.0
        return size * self.ct_val * price


class OKXInstrumentTable:
    """Contract values for OKX swaps and futures, refreshed periodically."""

    INST_TYPES = ("SWAP", "FUTURES")

    def __init__(self, base_url: str = OKX_BASE_URL, refresh_interval_s: float = 30 * 60):
        self.base_url = base_url.rstrip("/")
        self.refresh_interval_s = refresh_interval_s
        self._specs: dict[str, ContractSpec] = {}

    def __len__(self) -> int:
        return len(self._specs)

    def get(self, inst_id: str) -> ContractSpec | None:
        return self._specs.get(inst_id)

    def update(self, specs: list[ContractSpec]) -> None:
        self._specs.update({spec.inst_id: spec for spec in specs})

    async def fetch(self, session: "aiohttp.ClientSession", inst_type: str) -> list[ContractSpec]:
        url = f"{self.base_url}/api/v5/public/instruments"
        body = await _get_json(session, url, {"instType": inst_type})
        specs = []
        for item in (body or {}).get("data") or []:
            inst_id = item.get("instId")
            if not inst_id:
                continue
            specs.append(
                ContractSpec(
                    inst_id=inst_id,
                    inst_family=str(item.get("instFamily") or item.get("uly") or ""),
                    ct_val=num(item.get("ctVal")),
                    ct_val_ccy=str(item.get("ctValCcy") or ""),
                )
            )
        return specs

    async def refresh(self, session: "aiohttp.ClientSession") -> int:
        """Reload every instrument type; failed types keep their previous entries."""
        results = await asyncio.gather(
            *(self.fetch(session, inst_type) for inst_type in self.INST_TYPES),
            return_exceptions=True,
        )
        for inst_type, result in zip(self.INST_TYPES, results):
            if isinstance(result, BaseException):
                logger.error("OKX %s instrument load failed: %s", inst_type, result)
                continue
            self.update(result)
        logger.info("OKX instrument map loaded: %d", len(self._specs))
        return len(self._specs)

    async def refresh_forever(self, session: "aiohttp.ClientSession") -> None:
        while True:
            await asyncio.sleep(self.refresh_interval_s)
            await self.refresh(session)
