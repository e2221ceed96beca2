from __future__ import annotations
from typing import Optional
from price_alert.utils.types import CommandEvent, TelegramUpdate

def parse_command_msg(u: TelegramUpdate) -> Optional[CommandEvent]:
    """
    Return CommandEvent if update `u` carries a bot command; else None.

    A Telegram message is a command when its first entity is a "bot_command"
    starting at offset 0, e.g.:
      {"update_id": 7,
       "message": {"chat": {"id": 42}, "text": "/setprice@MyBot > 50000",
                   "entities": [{"type": "bot_command", "offset": 0, "length": 15}]}}
    → CommandEvent(chat_id=42, command="setprice", args="> 50000")
    """
    msg = u.get("message")
    if not isinstance(msg, dict):
        return None

    text = msg.get("text")
    entities = msg.get("entities") or []
    if not isinstance(text, str) or not entities:
        return None

    first = entities[0]
    if first.get("type") != "bot_command" or first.get("offset") != 0:
        return None

    chat_id = (msg.get("chat") or {}).get("id")
    if chat_id is None:
        return None

    # entity offsets are UTF-16 units; the command itself is ASCII so slicing by length is fine
    length = int(first.get("length") or 0)
    cmd = text[1:length] if length > 1 else ""
    cmd = cmd.split("@", 1)[0]  # strip "@botname" suffix
    args = text[length:].strip() if length < len(text) else ""

    return CommandEvent(chat_id=int(chat_id), command=cmd, args=args)
