# src/price_alert/alerts/rules.py
from __future__ import annotations
from typing import Literal

from price_alert.alerts.state import AlertState

Direction = Literal["<", ">"]

DIRECTIONS: tuple[str, ...] = ("<", ">")

def should_fire(price: float, state: AlertState) -> bool:
    """
    Strict crossing test; a price equal to the threshold never fires.
      notify_greater=True  →  price > threshold
      notify_greater=False →  price < threshold
    """
    if state.notify_greater:
        return price > state.threshold_price
    return price < state.threshold_price

def direction_symbol(notify_greater: bool) -> Direction:
    return ">" if notify_greater else "<"

def direction_word(notify_greater: bool) -> str:
    # used in alert text: "is now above $..."
    return "above" if notify_greater else "below"

def condition_phrase(notify_greater: bool) -> str:
    # used in /getprice replies
    return "greater than" if notify_greater else "less than"
