"""
Context Assembler - what the bot knows about a trigger before it decides.

Sources:
  profiles           - author's username
  posts / comments   - author's recent activity (titles, comment count)
  posts / polls      - parent post and attached poll (comments only)
  threads            - parent thread title (rows carrying thread_id)

Poll options are returned as structured data as well as prose: the vote
handler validates the model's chosen option id against this list.

Every read is non-fatal. A failed read means less context, not a failed
invocation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from services.trigger_guard import TriggerEvent

logger = logging.getLogger(__name__)

RECENT_POSTS_LIMIT = 3
RECENT_COMMENTS_LIMIT = 3
PARENT_DESCRIPTION_CHARS = 300
DEFAULT_USERNAME = "User"
NO_HISTORY_TEXT = "User Activity: New user or minimal history."
NO_THREAD_CONTEXT_TEXT = "(No direct thread context)"


@dataclass(frozen=True)
class PollOption:
    id: Any
    poll_id: Any
    option_text: str


@dataclass
class TriggerContext:
    """Everything gathered for one trigger."""
    username: str = DEFAULT_USERNAME
    user_activity: str = NO_HISTORY_TEXT
    parent_context: str = ""
    poll_context: str = ""
    poll_options: list[PollOption] = field(default_factory=list)

    def find_option(self, option_id: Any) -> Optional[PollOption]:
        for option in self.poll_options:
            if str(option.id) == str(option_id):
                return option
        return None

    def render(self, message_text: str) -> str:
        """Single context block for the decision prompt."""
        return (
            "IMMEDIATE CONTEXT:\n"
            f"{self.parent_context or NO_THREAD_CONTEXT_TEXT}\n"
            f"{self.poll_context}\n\n"
            "USER HISTORY & ACTIVITY:\n"
            f"{self.user_activity}\n\n"
            "CURRENT USER MESSAGE:\n"
            f"{message_text}"
        )


def _first_row(result: Any) -> Optional[dict]:
    rows = result.data or []
    return rows[0] if rows else None


async def assemble_context(client: Any, event: TriggerEvent) -> TriggerContext:
    """
    Gather author history and parent context for a trigger.

    Args:
        client: Supabase service client
        event: The screened trigger

    Returns:
        TriggerContext with prose sections and structured poll options
    """
    record = event.record
    context = TriggerContext()

    author_id = event.author_id
    if author_id:
        context.username = await _get_username(client, author_id)
        context.user_activity = await _get_user_activity(client, author_id)

    if event.source_table == "comments" and record.get("post_id"):
        await _add_parent_post(client, record["post_id"], context)
    elif record.get("thread_id"):
        await _add_parent_thread(client, record["thread_id"], context)

    return context


async def _get_username(client: Any, user_id: str) -> str:
    try:
        result = client.table("profiles").select(
            "username, display_name, role, is_verified"
        ).eq("id", user_id).limit(1).execute()
        profile = _first_row(result)
        return (profile or {}).get("username") or DEFAULT_USERNAME
    except Exception as e:
        logger.warning(f"[BOT_CONTEXT] Failed to fetch profile {user_id}: {e}")
        return DEFAULT_USERNAME


async def _get_user_activity(client: Any, user_id: str) -> str:
    """Short summary of what the author has been doing lately."""
    try:
        posts = (
            client.table("posts")
            .select("title, tags")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(RECENT_POSTS_LIMIT)
            .execute()
        ).data or []
        comments = (
            client.table("comments")
            .select("content")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(RECENT_COMMENTS_LIMIT)
            .execute()
        ).data or []
    except Exception as e:
        logger.warning(f"[BOT_CONTEXT] Failed to fetch activity for {user_id}: {e}")
        return NO_HISTORY_TEXT

    posts_summary = ", ".join(f'"{p.get("title")}"' for p in posts) if posts else "None"
    return (
        "User Activity Summary:\n"
        f"- Recent Posts: {posts_summary}\n"
        f"- Recent Comments: {len(comments)} recent interactions."
    )


async def _add_parent_post(client: Any, post_id: Any, context: TriggerContext) -> None:
    try:
        post = _first_row(
            client.table("posts")
            .select("title, description, code_snippet, type")
            .eq("id", post_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.warning(f"[BOT_CONTEXT] Failed to fetch parent post {post_id}: {e}")
        return
    if not post:
        return

    description = (post.get("description") or "")[:PARENT_DESCRIPTION_CHARS]
    context.parent_context = f'Parent Post: "{post.get("title")}"\n{description}...'

    try:
        poll = _first_row(
            client.table("polls").select("id, question").eq("post_id", post_id).limit(1).execute()
        )
        if not poll:
            return
        rows = (
            client.table("poll_options")
            .select("id, poll_id, option_text")
            .eq("poll_id", poll["id"])
            .order("id")
            .execute()
        ).data or []
    except Exception as e:
        logger.warning(f"[BOT_CONTEXT] Failed to fetch poll for post {post_id}: {e}")
        return

    context.poll_options = [
        PollOption(id=row["id"], poll_id=row.get("poll_id", poll["id"]), option_text=row.get("option_text", ""))
        for row in rows
    ]
    option_lines = "\n".join(f"- [ID: {o.id}] {o.option_text}" for o in context.poll_options)
    context.poll_context = f'\nATTACHED POLL: "{poll.get("question")}"\nOptions:\n{option_lines}'


async def _add_parent_thread(client: Any, thread_id: Any, context: TriggerContext) -> None:
    try:
        thread = _first_row(
            client.table("threads").select("title").eq("id", thread_id).limit(1).execute()
        )
    except Exception as e:
        logger.warning(f"[BOT_CONTEXT] Failed to fetch parent thread {thread_id}: {e}")
        return
    if thread:
        context.parent_context = f'Parent Thread: "{thread.get("title")}"'
