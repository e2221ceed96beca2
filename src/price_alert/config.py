from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from price_alert.alerts.dedup import REPEAT_POLICIES, RepeatPolicy
from price_alert.alerts.rules import DIRECTIONS
from price_alert.quotes.binance import BINANCE_TICKER_URL


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class AppConfig:
    bot_token: str
    chat_id: int
    symbol: str = "BTCUSDT"
    quote_url: str = BINANCE_TICKER_URL
    threshold_price: float = 92000.0
    notify_greater: bool = False
    poll_interval_s: float = 60.0
    quote_timeout_s: float = 10.0
    updates_poll_timeout_s: int = 50
    repeat_policy: RepeatPolicy = "every_cycle"
    startup_ping: bool = False
    log_level: str = "INFO"


def _truthy(v: str) -> bool:
    return v.strip().lower() in ("1", "true", "yes", "on")

def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        v = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(v) or v <= 0:
        raise ConfigError(f"{name} must be > 0, got {raw!r}")
    return v


def config_from_env(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Build AppConfig from environment variables. Raises ConfigError if the
    Telegram credentials are missing or any value is malformed.
    """
    env = os.environ if env is None else env

    token = (env.get("TELEGRAM_BOT_TOKEN") or "").strip()
    if not token:
        raise ConfigError("TELEGRAM_BOT_TOKEN is required")

    chat_raw = (env.get("TELEGRAM_CHAT_ID") or "").strip()
    if not chat_raw:
        raise ConfigError("TELEGRAM_CHAT_ID is required")
    try:
        chat_id = int(chat_raw)
    except ValueError:
        raise ConfigError(f"invalid TELEGRAM_CHAT_ID: {chat_raw!r}") from None

    symbol = (env.get("SYMBOL") or "BTCUSDT").strip().upper()

    direction = (env.get("THRESHOLD_DIRECTION") or "<").strip()
    if direction not in DIRECTIONS:
        raise ConfigError(f"THRESHOLD_DIRECTION must be '<' or '>', got {direction!r}")

    thr_raw = env.get("THRESHOLD_PRICE") or "92000"
    try:
        threshold = float(thr_raw)
    except ValueError:
        raise ConfigError(f"THRESHOLD_PRICE must be a number, got {thr_raw!r}") from None
    if not math.isfinite(threshold):
        raise ConfigError(f"THRESHOLD_PRICE must be finite, got {thr_raw!r}")

    policy = (env.get("REPEAT_POLICY") or "every_cycle").strip().lower()
    if policy not in REPEAT_POLICIES:
        raise ConfigError(f"REPEAT_POLICY must be one of {REPEAT_POLICIES}, got {policy!r}")

    return AppConfig(
        bot_token=token,
        chat_id=chat_id,
        symbol=symbol,
        quote_url=(env.get("QUOTE_URL") or BINANCE_TICKER_URL).strip(),
        threshold_price=threshold,
        notify_greater=direction == ">",
        poll_interval_s=_positive_float(env, "POLL_INTERVAL_S", 60.0),
        quote_timeout_s=_positive_float(env, "QUOTE_TIMEOUT_S", 10.0),
        updates_poll_timeout_s=int(_positive_float(env, "POLL_TIMEOUT_S", 50)),
        repeat_policy=policy,  # type: ignore[arg-type]
        startup_ping=_truthy(env.get("STARTUP_PING", "0")),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )
