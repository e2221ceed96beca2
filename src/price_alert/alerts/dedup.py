from __future__ import annotations
from typing import Literal

RepeatPolicy = Literal["every_cycle", "once_until_reset"]

REPEAT_POLICIES: tuple[str, ...] = ("every_cycle", "once_until_reset")

class AlertLatch:
    """
    Decides whether a triggered cycle should actually notify.

    every_cycle       -> always notify while the condition holds.
    once_until_reset  -> notify once, then stay quiet until the condition clears
                         or the threshold is replaced (store version changes).
    """
    def __init__(self, policy: RepeatPolicy = "every_cycle"):
        if policy not in REPEAT_POLICIES:
            raise ValueError(f"unknown repeat policy: {policy!r}")
        self.policy = policy
        self._fired_version: int | None = None

    def should_notify(self, triggered: bool, state_version: int) -> bool:
        if not triggered:
            # condition cleared; re-arm
            self._fired_version = None
            return False
        if self.policy == "every_cycle":
            return True
        return self._fired_version != state_version

    def mark(self, state_version: int) -> None:
        self._fired_version = state_version
