from __future__ import annotations

import asyncio
import math
import re
from typing import AsyncIterator, Callable, Optional

import structlog

from price_alert.alerts import formatting as fmt
from price_alert.alerts.rules import DIRECTIONS
from price_alert.alerts.state import AlertStateStore
from price_alert.notify.telegram import SendError
from price_alert.utils.types import CommandEvent, Notifier

log = structlog.get_logger("commands")

# plain decimal, optional sign and exponent: "50000", "-1.5", ".5", "9.2e4"
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class CommandValidationError(ValueError):
    """Bad /setprice input; `reply` is the text shown to the user."""
    reply: str = ""

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.reply)

class BadFormat(CommandValidationError):
    reply = fmt.MSG_BAD_FORMAT

class BadDirection(CommandValidationError):
    reply = fmt.MSG_BAD_DIRECTION

class BadNumber(CommandValidationError):
    reply = fmt.MSG_BAD_NUMBER


def parse_setprice_args(args: str) -> tuple[float, bool]:
    """
    "> 50000" → (50000.0, True); "< 91000.5" → (91000.5, False).
    Raises BadFormat / BadDirection / BadNumber.
    """
    tokens = args.split()
    if len(tokens) != 2:
        raise BadFormat(f"expected 2 tokens, got {len(tokens)}")
    direction, raw = tokens
    if direction not in DIRECTIONS:
        raise BadDirection(f"direction {direction!r}")
    if not _DECIMAL_RE.fullmatch(raw):
        raise BadNumber(f"price {raw!r}")
    value = float(raw)
    if not math.isfinite(value):
        # e.g. "1e999" overflows to inf
        raise BadNumber(f"price {raw!r} is not finite")
    return value, direction == ">"


class CommandProcessor:
    """
    Applies chat commands to the shared AlertStateStore and replies in the
    chat that sent them.

      /setprice < 90000   replace threshold + direction together
      /getprice           report current threshold
      anything else       "unknown command"
    """
    def __init__(
        self,
        store: AlertStateStore,
        notifier: Notifier,
        commands: Optional[Callable[[], AsyncIterator[CommandEvent]]] = None,
    ):
        self.store = store
        self.notifier = notifier
        self._commands = commands   # e.g. TelegramUpdates.commands
        self._stop = asyncio.Event()
        self.handled = 0

    async def start(self):
        if self._commands is None:
            raise RuntimeError("CommandProcessor has no command source")
        try:
            async for evt in self._commands():
                # the event is already consumed upstream; always answer it
                try:
                    await self.handle(evt)
                except Exception as e:
                    log.exception("command_handle_error", command=evt.command, err=str(e))
                if self._stop.is_set():
                    break
        except asyncio.CancelledError:
            return
        finally:
            log.info("command_loop_exit", handled=self.handled)

    async def stop(self):
        self._stop.set()

    async def handle(self, evt: CommandEvent) -> str:
        """Apply one command and send the reply. Returns the reply text."""
        self.handled += 1
        log.info("command_received", chat_id=evt.chat_id, command=evt.command, args=evt.args)

        if evt.command == "setprice":
            reply = self._setprice(evt.args)
        elif evt.command == "getprice":
            reply = fmt.format_threshold_status(self.store.snapshot())
        else:
            reply = fmt.MSG_UNKNOWN_COMMAND

        await self._reply(evt.chat_id, reply)
        return reply

    def _setprice(self, args: str) -> str:
        try:
            value, notify_greater = parse_setprice_args(args)
        except CommandValidationError as e:
            log.info("setprice_rejected", kind=type(e).__name__, detail=str(e))
            return e.reply
        st = self.store.replace(value, notify_greater)
        log.info("threshold_updated", threshold=st.threshold_price,
                 notify_greater=st.notify_greater, version=self.store.version)
        return fmt.format_threshold_set(st)

    async def _reply(self, chat_id: int, text: str) -> None:
        try:
            await self.notifier.send(chat_id, text)
        except SendError as e:
            log.warning("reply_send_failed", chat_id=chat_id, err=str(e), status=e.status)
