# src/price_alert/main.py
import asyncio
import logging
import sys

import structlog
from dotenv import load_dotenv

from price_alert.config import AppConfig, ConfigError, config_from_env

from price_alert.alerts.state import AlertState, AlertStateStore
from price_alert.alerts.monitor import PriceMonitor, MonitorConfig
from price_alert.alerts.formatting import MSG_STARTUP
from price_alert.commands.processor import CommandProcessor

from price_alert.quotes.binance import BinancePriceSource, BinanceConfig
from price_alert.notify.telegram import SendError, TelegramConfig, TelegramNotifier
from price_alert.ingest.telegram_updates import TelegramUpdates, TelegramUpdatesConfig

load_dotenv()
log = structlog.get_logger()


class StartupError(RuntimeError):
    pass


def configure_logging(level: str = "INFO") -> None:
    lvl = logging.getLevelName(level.upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(lvl))


# ---------------------------
# Telegram startup helpers
# ---------------------------

async def verify_telegram(tg_notifier: TelegramNotifier) -> str:
    """Bad token → StartupError. Returns the bot username."""
    try:
        username = await tg_notifier.get_me()
    except SendError as e:
        raise StartupError(f"failed to initialize Telegram bot: {e}") from e
    log.info("telegram_authorized", bot=username)
    return username


async def telegram_startup_ping(tg_notifier: TelegramNotifier):
    try:
        await tg_notifier.send_alert(MSG_STARTUP)
    except SendError as e:
        log.warning("telegram_startup_ping_failed", err=str(e))


# ---------------------------
# Main
# ---------------------------

async def run_workers(monitor: PriceMonitor, processor: CommandProcessor):
    """Poll loop and command loop as independent tasks; neither waits on the other."""
    tasks = [
        asyncio.create_task(monitor.start(), name="price-monitor"),
        asyncio.create_task(processor.start(), name="command-processor"),
    ]
    try:
        await asyncio.gather(*tasks)
    finally:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def run(cfg: AppConfig):
    store = AlertStateStore(AlertState(threshold_price=cfg.threshold_price,
                                       notify_greater=cfg.notify_greater))

    quotes = BinancePriceSource(BinanceConfig(url=cfg.quote_url, timeout_s=cfg.quote_timeout_s))
    tg_notifier = TelegramNotifier(TelegramConfig(bot_token=cfg.bot_token, chat_id=cfg.chat_id))
    updates = TelegramUpdates(TelegramUpdatesConfig(bot_token=cfg.bot_token,
                                                    poll_timeout_s=cfg.updates_poll_timeout_s))

    monitor = PriceMonitor(
        price_source=quotes,
        notifier=tg_notifier,
        store=store,
        cfg=MonitorConfig(
            symbol=cfg.symbol,
            chat_id=cfg.chat_id,
            interval_s=cfg.poll_interval_s,
            repeat_policy=cfg.repeat_policy,
        ),
    )
    processor = CommandProcessor(store=store, notifier=tg_notifier, commands=updates.commands)

    await tg_notifier.start()
    try:
        await verify_telegram(tg_notifier)
        await quotes.start()
        await updates.start()
        log.info("monitor_starting", symbol=cfg.symbol, chat_id=cfg.chat_id,
                 threshold=cfg.threshold_price, notify_greater=cfg.notify_greater,
                 interval_s=cfg.poll_interval_s, repeat_policy=cfg.repeat_policy)

        if cfg.startup_ping:
            await telegram_startup_ping(tg_notifier)

        await run_workers(monitor, processor)
    finally:
        # graceful shutdown to avoid unclosed sessions
        await monitor.stop()
        await processor.stop()
        for obj in (updates, quotes, tg_notifier):
            try:
                await obj.stop()
            except Exception as e:
                log.warning("shutdown_error", component=type(obj).__name__, err=str(e))


def cli() -> int:
    try:
        cfg = config_from_env()
    except ConfigError as e:
        configure_logging()
        log.error("config_invalid", err=str(e))
        return 1
    configure_logging(cfg.log_level)

    try:
        asyncio.run(run(cfg))
    except StartupError as e:
        log.error("startup_failed", err=str(e))
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(cli())
