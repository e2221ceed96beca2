from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

log = structlog.get_logger("telegram")

TELEGRAM_API = "https://api.telegram.org"

class SendError(Exception):
    """Message rejected by Telegram or retries exhausted. Callers log and continue."""
    def __init__(self, msg: str, status: int | None = None):
        super().__init__(msg)
        self.status = status

# --------- small rate limiter (token bucket) ----------

class RateLimiter:
    def __init__(self, rate_per_sec: float, burst: int = 1):
        self.rate = float(rate_per_sec)
        self.capacity = int(burst)
        self.tokens = float(burst)
        self.updated = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self):
        async with self._lock:
            now = time.monotonic()
            # refill
            self.tokens = min(self.capacity, self.tokens + (now - self.updated) * self.rate)
            self.updated = now
            if self.tokens < 1.0:
                needed = 1.0 - self.tokens
                await asyncio.sleep(needed / self.rate)
                self.updated = time.monotonic()
                self.tokens = 1.0
            self.tokens -= 1.0

# --------- config & client ----------

@dataclass(slots=True)
class TelegramConfig:
    bot_token: str
    chat_id: int                # recipient of price alerts
    api_base: str = TELEGRAM_API
    timeout_s: float = 8.0
    rate_per_sec: float = 1.0
    burst: int = 3
    max_retries: int = 5
    initial_backoff_s: float = 0.5
    max_backoff_s: float = 8.0

    def method_url(self, method: str) -> str:
        return f"{self.api_base}/bot{self.bot_token}/{method}"

class TelegramNotifier:
    """
    Sends text to a chat via the Bot API with rate limiting and retry w/ backoff.

    - 429 (honouring retry_after), 5xx and network errors are retried.
    - Any other non-200 is a rejection and raises SendError right away.
    """
    def __init__(self, cfg: TelegramConfig, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg
        self._session = session
        self._owns_session = session is None
        self._rl = RateLimiter(rate_per_sec=cfg.rate_per_sec, burst=cfg.burst)

    async def start(self):
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)

    async def stop(self):
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def get_me(self) -> str:
        """Verify the token; returns the bot username."""
        assert self._session is not None
        try:
            async with self._session.get(self.cfg.method_url("getMe")) as resp:
                if resp.status != 200:
                    raise SendError(f"getMe rejected: {await _maybe_text(resp)}", status=resp.status)
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SendError(f"getMe failed: {e}") from e
        if not isinstance(data, dict) or not data.get("ok"):
            raise SendError(f"getMe not ok: {data!r}")
        return str((data.get("result") or {}).get("username", ""))

    async def send(self, chat_id: int | str, text: str) -> None:
        assert self._session is not None
        payload = {"chat_id": str(chat_id), "text": text}

        await self._rl.acquire()
        url = self.cfg.method_url("sendMessage")
        backoff = self.cfg.initial_backoff_s
        last_status: int | None = None
        for attempt in range(1, self.cfg.max_retries + 1):
            try:
                async with self._session.post(url, data=payload) as resp:
                    if resp.status == 200:
                        return
                    last_status = resp.status
                    detail = await _maybe_text(resp)
                    log.warning("telegram_send_failed", status=resp.status, body=detail, attempt=attempt)
                    if resp.status == 429:
                        # Telegram may include retry_after (seconds)
                        ra = await _retry_after(resp)
                        if ra:
                            await asyncio.sleep(ra)
                            continue
                    if 500 <= resp.status < 600 or resp.status == 429:
                        await asyncio.sleep(self._jitter(backoff))
                        backoff = min(backoff * 2.0, self.cfg.max_backoff_s)
                        continue
                    # other 4xx: don't retry
                    raise SendError(f"telegram rejected message: {detail}", status=resp.status)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                log.warning("telegram_network_error", err=str(e), attempt=attempt)
                await asyncio.sleep(self._jitter(backoff))
                backoff = min(backoff * 2.0, self.cfg.max_backoff_s)
        log.error("telegram_give_up_after_retries", chat_id=chat_id)
        raise SendError(f"giving up after {self.cfg.max_retries} attempts", status=last_status)

    async def send_alert(self, text: str) -> None:
        """Send to the configured alert recipient."""
        await self.send(self.cfg.chat_id, text)

    @staticmethod
    def _jitter(base: float) -> float:
        return base * (0.8 + 0.4 * random.random())

async def _retry_after(resp: aiohttp.ClientResponse) -> float | None:
    try:
        data = await resp.json(content_type=None)
        ra = data.get("parameters", {}).get("retry_after")
        return float(ra) if ra else None
    except Exception:
        return None

async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        return "<no body>"
