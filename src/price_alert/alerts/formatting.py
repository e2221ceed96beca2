from __future__ import annotations

from price_alert.alerts.rules import condition_phrase, direction_symbol, direction_word
from price_alert.alerts.state import AlertState

SETPRICE_USAGE = "`/setprice < or > <value>` (e.g., `/setprice > 50000`)"

MSG_BAD_FORMAT = f"❌ Invalid format. Use {SETPRICE_USAGE}."
MSG_BAD_DIRECTION = "❌ Invalid direction. Use `<` or `>`, e.g. `/setprice < 90000`."
MSG_BAD_NUMBER = f"❌ Invalid price format. Use {SETPRICE_USAGE}."
MSG_UNKNOWN_COMMAND = "❓ Unknown command. Use /setprice or /getprice."
MSG_STARTUP = "✅ Price monitor started and Telegram is live."

def format_alert(symbol: str, price: float, state: AlertState) -> str:
    # e.g. 🚨 Price Alert! BTCUSDT is now below $91000.00 (Threshold: $92000.00)
    word = direction_word(state.notify_greater)
    return (
        f"🚨 Price Alert! {symbol} is now {word} ${price:.2f} "
        f"(Threshold: ${state.threshold_price:.2f})"
    )

def format_threshold_set(state: AlertState) -> str:
    thr = state.threshold_price
    sym = direction_symbol(state.notify_greater)
    return f"✅ Threshold price set to ${thr:.2f} with condition: price {sym} {thr:.2f}."

def format_threshold_status(state: AlertState) -> str:
    phrase = condition_phrase(state.notify_greater)
    return f"📊 Current threshold: price {phrase} ${state.threshold_price:.2f}."
