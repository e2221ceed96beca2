from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypedDict

# ---- ingest-level primitives ----

@dataclass(slots=True, frozen=True)
class PriceQuote:
    symbol: str
    price: float
    fetched_at: float  # epoch seconds

@dataclass(slots=True, frozen=True)
class CommandEvent:
    """
    One inbound bot command, e.g. "/setprice > 50000" from chat 42 becomes
    CommandEvent(chat_id=42, command="setprice", args="> 50000").
    """
    chat_id: int
    command: str
    args: str = ""

# ---- Telegram payload shapes (subset we read) ----

class MessageEntity(TypedDict, total=False):
    type: str
    offset: int
    length: int

class TelegramMessage(TypedDict, total=False):
    message_id: int
    chat: dict
    text: str
    entities: list[MessageEntity]

class TelegramUpdate(TypedDict, total=False):
    update_id: int
    message: TelegramMessage

# ---- collaborator interfaces ----

class PriceSource(Protocol):
    async def fetch_quote(self, symbol: str) -> PriceQuote: ...

class Notifier(Protocol):
    async def send(self, chat_id: int | str, text: str) -> None: ...
