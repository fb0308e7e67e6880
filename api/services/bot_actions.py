"""
Bot Actions - routing guards and executors for a parsed decision.

route_decision() applies the transition guards that need no store access:
  - CREATE_POST is downgraded to a reply when auto_post_creation is off
  - poll_data is dropped unless the user asked for a poll
  - otherwise the post body is reconciled with detected inline options

ActionExecutor.execute() performs the single store mutation for a decision.
Guards that need trigger context (vote option ids, deletable tables) raise
ValidationError, which becomes a user-visible refusal with no write.

Tables written:
  posts, polls, poll_options, poll_votes (+ rpc increment_poll_vote)
  the triggering table itself (REMOVE_CONTENT only)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from services.bot_context import PollOption, TriggerContext
from services.bot_decisions import (
    MAX_POLL_OPTIONS,
    ActionDecision,
    ActionType,
    CreatePostAction,
    RemoveContentAction,
    ReplyAction,
    VotePollAction,
)
from services.bot_errors import ValidationError
from services.poll_extraction import has_poll_intent, reconcile_poll
from services.trigger_guard import TriggerEvent

logger = logging.getLogger(__name__)

INVALID_VOTE_TEXT = "I tried to vote, but that option ID seems invalid. 🤔"
ALREADY_VOTED_TEXT = "I've already voted on this poll! 😊"
REMOVAL_REFUSED_TEXT = "I cannot remove content from this source table."
REMOVAL_DONE_TEXT = "✅ Content removed successfully."
AUTO_POST_DISABLED_TEXT = "Post creation is turned off right now, but I'm happy to help right here!"

DELETABLE_TABLES = frozenset({"posts", "threads", "comments"})
POLL_LIFETIME = timedelta(days=7)
VOTE_COUNTER_RPC = "increment_poll_vote"


@dataclass
class ActionOutcome:
    """Text to reply with, and whether the triggering content is gone."""
    text: str
    action: ActionType
    removed: bool = False


def route_decision(
    decision: ActionDecision,
    *,
    message_text: str,
    auto_post_creation: bool = True,
) -> ActionDecision:
    """Apply guards that depend only on the decision and the user's message."""
    if not isinstance(decision, CreatePostAction):
        return decision

    if not auto_post_creation:
        logger.info("[BOT_ACTIONS] auto_post_creation disabled, replying instead of posting")
        return ReplyAction(decision.reply_text or AUTO_POST_DISABLED_TEXT)

    if not has_poll_intent(message_text):
        if decision.poll is not None:
            logger.info("[BOT_ACTIONS] Dropping unrequested poll data")
            return replace(decision, poll=None)
        return decision

    return reconcile_poll(decision)


class ActionExecutor:
    """Executes one decision on behalf of the bot identity."""

    def __init__(
        self,
        client: Any,
        bot_user_id: str,
        event: TriggerEvent,
        context: TriggerContext,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.bot_user_id = bot_user_id
        self.event = event
        self.context = context
        self.rng = rng or random.Random()

    async def execute(self, decision: ActionDecision) -> ActionOutcome:
        try:
            if isinstance(decision, ReplyAction):
                return ActionOutcome(decision.text, ActionType.REPLY)
            if isinstance(decision, CreatePostAction):
                return await self._create_post(decision)
            if isinstance(decision, VotePollAction):
                return await self._vote(decision)
            if isinstance(decision, RemoveContentAction):
                return await self._remove(decision)
        except ValidationError as e:
            logger.info(f"[BOT_ACTIONS] {decision.action_type.value} rejected: {e.user_text}")
            return ActionOutcome(e.user_text, decision.action_type)
        raise TypeError(f"Unhandled decision type: {type(decision).__name__}")

    # ------------------------------------------------------------------
    # CREATE_POST
    # ------------------------------------------------------------------

    async def _create_post(self, decision: CreatePostAction) -> ActionOutcome:
        try:
            result = self.client.table("posts").insert({
                "user_id": self.bot_user_id,
                "title": decision.title,
                "description": decision.content,
                "code_snippet": None,
                "type": "blog",
                "tags": list(decision.tags),
            }).execute()
            new_post = result.data[0]
        except Exception as e:
            logger.error(f"[BOT_ACTIONS] Post creation failed: {e}")
            return ActionOutcome(
                f"❌ I encountered an error creating the post: {e}", ActionType.CREATE_POST,
            )

        logger.info(f"[BOT_ACTIONS] Created post {new_post.get('id')}: {decision.title}")

        if decision.poll is not None and decision.poll.is_usable:
            await self._create_poll(new_post["id"], decision)

        text = decision.reply_text or f'✅ I\'ve created the post: **"{decision.title}"**'
        return ActionOutcome(text, ActionType.CREATE_POST)

    async def _create_poll(self, post_id: Any, decision: CreatePostAction) -> None:
        """Poll widget, its options and a seed vote. Failures never fail the post."""
        poll_draft = decision.poll
        options = list(poll_draft.options[:MAX_POLL_OPTIONS])
        expires_at = datetime.now(timezone.utc) + POLL_LIFETIME

        try:
            poll = self.client.table("polls").insert({
                "post_id": post_id,
                "question": poll_draft.question or decision.title,
                "allow_multiple_votes": False,
                "expires_at": expires_at.isoformat(),
            }).execute().data[0]

            inserted = self.client.table("poll_options").insert([
                {"poll_id": poll["id"], "option_text": option} for option in options
            ]).execute().data or []

            if inserted:
                seed = self.rng.choice(inserted)
                self.client.table("poll_votes").insert({
                    "poll_id": poll["id"],
                    "option_id": seed["id"],
                    "user_id": self.bot_user_id,
                }).execute()
                self.client.rpc(VOTE_COUNTER_RPC, {"option_id": seed["id"]}).execute()

            logger.info(f"[BOT_ACTIONS] Created poll {poll['id']} with {len(inserted)} options")
        except Exception as e:
            logger.error(f"[BOT_ACTIONS] Poll creation failed for post {post_id}: {e}")

    # ------------------------------------------------------------------
    # VOTE_POLL
    # ------------------------------------------------------------------

    def _validated_option(self, option_id: Optional[int]) -> PollOption:
        if option_id is None:
            raise ValidationError(INVALID_VOTE_TEXT)
        option = self.context.find_option(option_id)
        if option is None:
            raise ValidationError(INVALID_VOTE_TEXT)
        return option

    async def _vote(self, decision: VotePollAction) -> ActionOutcome:
        option = self._validated_option(decision.option_id)

        existing = (
            self.client.table("poll_votes")
            .select("id")
            .eq("user_id", self.bot_user_id)
            .eq("poll_id", option.poll_id)
            .limit(1)
            .execute()
        ).data
        if existing:
            return ActionOutcome(ALREADY_VOTED_TEXT, ActionType.VOTE_POLL)

        try:
            self.client.table("poll_votes").insert({
                "poll_id": option.poll_id,
                "option_id": option.id,
                "user_id": self.bot_user_id,
            }).execute()
            self.client.rpc(VOTE_COUNTER_RPC, {"option_id": option.id}).execute()
        except Exception as e:
            logger.error(f"[BOT_ACTIONS] Vote failed for option {option.id}: {e}")
            return ActionOutcome(f"❌ I tried to vote but failed: {e}", ActionType.VOTE_POLL)

        text = decision.reply_text or decision.comment or f'I voted for **"{option.option_text}"**! 🗳️'
        return ActionOutcome(text, ActionType.VOTE_POLL)

    # ------------------------------------------------------------------
    # REMOVE_CONTENT
    # ------------------------------------------------------------------

    async def _remove(self, decision: RemoveContentAction) -> ActionOutcome:
        table = self.event.source_table
        if table not in DELETABLE_TABLES:
            raise ValidationError(REMOVAL_REFUSED_TEXT)

        try:
            self.client.table(table).delete().eq("id", self.event.trigger_id).execute()
        except Exception as e:
            logger.error(f"[BOT_ACTIONS] Removal of {table}/{self.event.trigger_id} failed: {e}")
            return ActionOutcome(f"❌ Failed to remove content: {e}", ActionType.REMOVE_CONTENT)

        logger.info(f"[BOT_ACTIONS] Removed {table}/{self.event.trigger_id}")
        return ActionOutcome(decision.reply_text or REMOVAL_DONE_TEXT, ActionType.REMOVE_CONTENT, removed=True)
