from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from price_alert.alerts.dedup import AlertLatch, RepeatPolicy
from price_alert.alerts.formatting import format_alert
from price_alert.alerts.rules import should_fire
from price_alert.alerts.state import AlertStateStore
from price_alert.notify.telegram import SendError
from price_alert.quotes.binance import FetchError
from price_alert.utils.types import Notifier, PriceSource

log = structlog.get_logger("monitor")


@dataclass(slots=True)
class MonitorConfig:
    symbol: str = "BTCUSDT"
    chat_id: int = 0                    # fixed alert recipient
    interval_s: float = 60.0
    repeat_policy: RepeatPolicy = "every_cycle"


class PriceMonitor:
    """
    Poll → evaluate → notify → wait, forever.

    A failed fetch skips evaluation for that cycle; the next cycle is the retry.
    The threshold is read once per cycle from the store, after the fetch, so a
    /setprice applied while a cycle is in flight is seen no later than the next one.
    """
    def __init__(
        self,
        price_source: PriceSource,
        notifier: Notifier,
        store: AlertStateStore,
        cfg: Optional[MonitorConfig] = None,
    ):
        self.price_source = price_source
        self.notifier = notifier
        self.store = store
        self.cfg = cfg or MonitorConfig()
        self._latch = AlertLatch(self.cfg.repeat_policy)
        self._stop = asyncio.Event()
        self.cycles = 0

    async def start(self):
        try:
            while not self._stop.is_set():
                try:
                    await self.run_cycle()
                except Exception as e:
                    # contained to this cycle; the loop keeps polling
                    log.exception("monitor_cycle_error", err=str(e))
                await self._wait_interval()
        except asyncio.CancelledError:
            return
        finally:
            log.info("monitor_loop_exit", cycles=self.cycles)

    async def stop(self):
        self._stop.set()

    async def _wait_interval(self):
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.cfg.interval_s)
        except asyncio.TimeoutError:
            pass

    # --- core evaluation ---

    async def run_cycle(self) -> bool:
        """One poll cycle. Returns True if an alert was delivered."""
        self.cycles += 1
        symbol = self.cfg.symbol
        try:
            quote = await self.price_source.fetch_quote(symbol)
        except FetchError as e:
            log.warning("price_fetch_failed", symbol=symbol, kind=type(e).__name__, err=str(e))
            return False

        price = quote.price
        log.info("price_fetched", symbol=symbol, price=price, fetched_at=quote.fetched_at)

        version = self.store.version
        state = self.store.snapshot()
        triggered = should_fire(price, state)
        if not self._latch.should_notify(triggered, version):
            if triggered:
                log.debug("alert_suppressed", symbol=symbol, policy=self._latch.policy)
            return False

        text = format_alert(symbol, price, state)
        try:
            await self.notifier.send(self.cfg.chat_id, text)
        except SendError as e:
            log.warning("alert_send_failed", symbol=symbol, err=str(e), status=e.status)
            return False
        self._latch.mark(version)
        log.info("alert_sent", symbol=symbol, price=price, threshold=state.threshold_price,
                 notify_greater=state.notify_greater)
        return True
