from __future__ import annotations

import asyncio
import json
import random
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import aiohttp
import structlog

from price_alert.ingest import parser  # must expose parse_command_msg(dict)->CommandEvent|None
from price_alert.utils.types import CommandEvent, TelegramUpdate


class UpdatesError(Exception):
    pass


@dataclass(slots=True)
class TelegramUpdatesConfig:
    bot_token: str
    api_base: str = "https://api.telegram.org"
    # long-poll: Telegram holds getUpdates open for up to this many seconds
    poll_timeout_s: int = 50
    # reconnect behavior
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 30.0


class TelegramUpdates:
    """
    Long-polling Telegram update reader (getUpdates).

    Lifecycle:
      - getUpdates(offset, timeout) → parse → yield commands → advance offset
      - On any error, log and retry with jittered backoff (cap)
      - Non-command messages are dropped here; consumers only see CommandEvent.

    The offset moves past every update we receive, so each command is yielded
    exactly once and the stream can't be replayed.

    Usage:
        src = TelegramUpdates(TelegramUpdatesConfig(bot_token=...))
        await src.start()
        async for evt in src.commands():
            ...
    """

    def __init__(self, cfg: TelegramUpdatesConfig, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg
        self._session = session
        self._owns_session = session is None
        self._log = structlog.get_logger("telegram_updates")
        self._stop = asyncio.Event()
        self._offset = 0

    # ---------------------------- public API ---------------------------- #

    async def start(self) -> None:
        if self._session is None:
            # must outlive the server-side long-poll
            timeout = aiohttp.ClientTimeout(total=self.cfg.poll_timeout_s + 15)
            self._session = aiohttp.ClientSession(timeout=timeout)
        self._stop.clear()

    async def stop(self) -> None:
        self._stop.set()
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def offset(self) -> int:
        return self._offset

    async def commands(self) -> AsyncIterator[CommandEvent]:
        backoff = self.cfg.initial_backoff_s
        while not self._stop.is_set():
            try:
                updates = await self._get_updates()
            except UpdatesError as e:
                # if we're stopping, don't backoff-sleep; just exit
                if self._stop.is_set():
                    break
                self._log.warning("updates_error_retry", err=str(e), backoff_s=round(backoff, 3))
                await asyncio.sleep(self._jitter(backoff))
                backoff = min(backoff * 2.0, self.cfg.max_backoff_s)
                continue

            backoff = self.cfg.initial_backoff_s
            for u in updates:
                uid = u.get("update_id")
                if isinstance(uid, int):
                    self._offset = max(self._offset, uid + 1)
                evt = None
                try:
                    evt = parser.parse_command_msg(u)
                except Exception as e:
                    self._log.warning("parse_command_error", err=str(e), snippet=str(u)[:200])
                if evt:
                    yield evt
        self._log.info("updates_loop_exit")

    # --------------------------- core internals ------------------------- #

    async def _get_updates(self) -> list[TelegramUpdate]:
        if self._session is None:
            raise UpdatesError("session closed")
        url = f"{self.cfg.api_base}/bot{self.cfg.bot_token}/getUpdates"
        params = {
            "offset": self._offset,
            "timeout": self.cfg.poll_timeout_s,
            "allowed_updates": json.dumps(["message"]),
        }
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status != 200:
                    raise UpdatesError(f"getUpdates status {resp.status}")
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise UpdatesError(str(e) or type(e).__name__) from e

        if not isinstance(data, dict) or not data.get("ok"):
            raise UpdatesError(f"getUpdates not ok: {str(data)[:200]}")
        result = data.get("result") or []
        return [u for u in result if isinstance(u, dict)]

    @staticmethod
    def _jitter(base: float) -> float:
        # ±20% jitter
        return base * (0.8 + 0.4 * random.random())
