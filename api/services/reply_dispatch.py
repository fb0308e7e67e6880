"""
Reply Dispatcher - posts the bot's answer next to the triggering content.

    posts           -> threads          (parent_post_id = record.id)
    threads         -> thread_comments  (thread_id = record.id)
    thread_comments -> thread_comments  (thread_id = record.thread_id)
    comments        -> comments         (post_id = record.post_id)

Every reply starts with BOT_MARKER so the trigger guard ignores it when the
insert webhook comes back around.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from services.trigger_guard import BOT_MARKER, TriggerEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplyRoute:
    table: str
    link_field: str
    record_field: str


REPLY_ROUTES = {
    "posts": ReplyRoute(table="threads", link_field="parent_post_id", record_field="id"),
    "threads": ReplyRoute(table="thread_comments", link_field="thread_id", record_field="id"),
    "thread_comments": ReplyRoute(table="thread_comments", link_field="thread_id", record_field="thread_id"),
    "comments": ReplyRoute(table="comments", link_field="post_id", record_field="post_id"),
}


def build_reply_payload(event: TriggerEvent, bot_user_id: str, text: str) -> tuple[str, dict]:
    """Destination table and row for a reply to this trigger."""
    route = REPLY_ROUTES[event.source_table]
    payload = {
        "user_id": bot_user_id,
        "content": f"{BOT_MARKER} {text}",
        route.link_field: event.record.get(route.record_field),
    }
    return route.table, payload


async def dispatch_reply(client: Any, event: TriggerEvent, bot_user_id: str, text: str) -> Optional[dict]:
    """
    Insert the reply row.

    Returns:
        Inserted row, or None when the insert failed (logged)
    """
    table, payload = build_reply_payload(event, bot_user_id, text)
    try:
        result = client.table(table).insert(payload).execute()
    except Exception as e:
        logger.error(f"[REPLY] Failed to post reply to {table} for trigger {event.trigger_id}: {e}")
        return None

    logger.info(f"[REPLY] Posted reply to {table} for trigger {event.trigger_id}")
    return result.data[0] if result.data else None
