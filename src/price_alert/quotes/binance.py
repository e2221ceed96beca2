from __future__ import annotations

import asyncio
import json
import math
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp

from price_alert.utils.types import PriceQuote

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/price"

# --------- errors ----------

class FetchError(Exception):
    """Base class for price fetch failures. Never retried in place."""

class FetchTransportError(FetchError):
    pass

class FetchBadStatusError(FetchError):
    def __init__(self, status: int, body: str = ""):
        super().__init__(f"unexpected status {status}")
        self.status = status
        self.body = body

class FetchMalformedBodyError(FetchError):
    pass

# --------- response schema ----------

@dataclass(slots=True, frozen=True)
class TickerPrice:
    symbol: str
    price: float

    @classmethod
    def from_payload(cls, payload: object) -> "TickerPrice":
        """
        Validate a /ticker/price body: {"symbol": "BTCUSDT", "price": "92011.50000000"}.
        Binance sends price as a string; plain numbers are accepted too.
        """
        if not isinstance(payload, dict):
            raise FetchMalformedBodyError(f"expected JSON object, got {type(payload).__name__}")
        if "price" not in payload:
            raise FetchMalformedBodyError("price not found in response")
        raw = payload["price"]
        # bool is an int subclass; reject it explicitly
        if isinstance(raw, bool) or not isinstance(raw, (str, int, float)):
            raise FetchMalformedBodyError(f"price has unexpected type {type(raw).__name__}")
        try:
            px = float(raw)
        except (ValueError, OverflowError):
            # OverflowError: JSON integers too large for a float
            raise FetchMalformedBodyError(f"price is not numeric: {raw!r}") from None
        if not math.isfinite(px):
            raise FetchMalformedBodyError(f"price is not finite: {raw!r}")
        sym = payload.get("symbol")
        return cls(symbol=str(sym) if sym is not None else "", price=px)

# --------- config & client ----------

@dataclass(slots=True)
class BinanceConfig:
    url: str = BINANCE_TICKER_URL
    timeout_s: float = 10.0

class BinancePriceSource:
    """
    Stateless ticker-price client. One GET per call, no retries:
    the monitor simply tries again on its next cycle.
    """
    def __init__(self, cfg: Optional[BinanceConfig] = None, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg or BinanceConfig()
        self._session = session
        self._owns_session = session is None

    async def start(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self):
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def fetch_price(self, symbol: str) -> float:
        assert self._session is not None, "call start() first"
        try:
            async with self._session.get(self.cfg.url, params={"symbol": symbol}) as resp:
                if resp.status != 200:
                    raise FetchBadStatusError(resp.status, await _maybe_text(resp))
                body = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchTransportError(str(e) or type(e).__name__) from e

        try:
            # bytes in: bad UTF-8 surfaces as UnicodeDecodeError, a ValueError
            payload = json.loads(body)
        except ValueError as e:
            raise FetchMalformedBodyError(f"invalid JSON: {e}") from None
        return TickerPrice.from_payload(payload).price

    async def fetch_quote(self, symbol: str) -> PriceQuote:
        px = await self.fetch_price(symbol)
        return PriceQuote(symbol=symbol, price=px, fetched_at=time.time())

async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        return "<no body>"
