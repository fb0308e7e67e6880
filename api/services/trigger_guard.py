"""
Trigger Guard - decides whether a database webhook is worth reacting to.

Supabase sends: { type: "INSERT", table: "comments", schema: "public", record: {...} }

Every rejection here is a neutral "ignored" outcome. Nothing in this module
touches the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

WATCHED_TABLES = frozenset({"posts", "comments", "threads", "thread_comments"})

# Text fields in priority order; the first non-empty one is the message
TEXT_FIELDS = ("content", "body", "description", "caption", "code_snippet", "snippet", "title")

BOT_MARKER = "🤖"
BOT_REPLY_TAG = "[AI Reply]"
ADDRESS_PHRASE = "hey ai"


@dataclass(frozen=True)
class TriggerEvent:
    """A single inserted row in a watched table."""
    source_table: str
    record: dict = field(hash=False)
    message_text: str = ""
    event_type: str = "INSERT"

    @property
    def trigger_id(self) -> Any:
        return self.record.get("id")

    @property
    def author_id(self) -> Optional[str]:
        return self.record.get("user_id") or self.record.get("author_id")

    @property
    def source_label(self) -> str:
        return f"webhook:{self.source_table}"


@dataclass(frozen=True)
class Ignored:
    """Neutral rejection with a reason for the logs."""
    reason: str


def extract_message_text(record: dict) -> str:
    """Return the first non-empty text field of a record."""
    for name in TEXT_FIELDS:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def is_bot_authored_text(text: str) -> bool:
    """Bot replies carry a visible marker; reacting to them would loop."""
    return text.startswith(BOT_MARKER) or BOT_REPLY_TAG in text


def screen_event(payload: Any) -> Union[TriggerEvent, Ignored]:
    """
    Validate the webhook shape and filter out events we never react to.

    Args:
        payload: Decoded webhook JSON

    Returns:
        TriggerEvent to process, or Ignored
    """
    if not isinstance(payload, dict):
        return Ignored("payload is not an object")

    event_type = payload.get("type")
    table = payload.get("table")
    record = payload.get("record")

    if event_type != "INSERT":
        return Ignored(f"event type {event_type!r}")
    if table not in WATCHED_TABLES:
        return Ignored(f"table {table!r} not watched")
    if not isinstance(record, dict) or record.get("id") is None:
        return Ignored("record missing id")

    text = extract_message_text(record)
    if not text:
        return Ignored("empty message")
    if is_bot_authored_text(text):
        return Ignored("own content")

    return TriggerEvent(source_table=table, record=record, message_text=text)


def is_self_authored(event: TriggerEvent, bot_user_id: Optional[str]) -> bool:
    """True when the row was written by the bot identity itself."""
    author_id = event.author_id
    return bool(author_id and bot_user_id and str(author_id) == str(bot_user_id))


def is_addressed_to_bot(text: str, mention_keyword: str) -> bool:
    """The bot answers only when mentioned by keyword or "hey ai"."""
    lowered = text.lower()
    return mention_keyword.lower() in lowered or ADDRESS_PHRASE in lowered
