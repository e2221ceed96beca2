from __future__ import annotations
from dataclasses import dataclass

@dataclass(slots=True, frozen=True)
class AlertState:
    threshold_price: float = 92000.0
    notify_greater: bool = False         # True: alert on price > threshold, False: price < threshold


class AlertStateStore:
    """
    Single owner of the current AlertState.

    The state is an immutable snapshot swapped by reference, so a reader holding
    snapshot() always sees a threshold and direction written by the same update.
    `version` increases on every replace() so consumers can tell the threshold changed.
    """
    def __init__(self, initial: AlertState | None = None):
        self._state = initial or AlertState()
        self.version = 0

    def snapshot(self) -> AlertState:
        return self._state

    def replace(self, threshold_price: float, notify_greater: bool) -> AlertState:
        st = AlertState(threshold_price=float(threshold_price), notify_greater=bool(notify_greater))
        self._state = st
        self.version += 1
        return st
