"""
Bot Decisions - the closed set of actions the model can choose.

The model answers with a JSON object whose "action" field picks one of:
    REPLY | CREATE_POST | VOTE_POLL | REMOVE_CONTENT

parse_decision() turns that free-form output into exactly one of the
dataclasses below. Anything malformed becomes a ReplyAction carrying a fixed
apology; raw model output is never shown to users.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from services.bot_errors import ParseError

logger = logging.getLogger(__name__)

PARSE_FALLBACK_TEXT = "I tried to process that but got confused by my own data format! 😅 Could you ask again?"
PROVIDER_FALLBACK_TEXT = "I encountered a processing error. Please try again."

MAX_POLL_OPTIONS = 5

_CODE_FENCE = re.compile(r"```(?:json)?")


class ActionType(str, Enum):
    REPLY = "REPLY"
    CREATE_POST = "CREATE_POST"
    VOTE_POLL = "VOTE_POLL"
    REMOVE_CONTENT = "REMOVE_CONTENT"


@dataclass(frozen=True)
class PollDraft:
    """Structured poll widget attached to a new post."""
    question: str
    options: tuple[str, ...] = ()

    @property
    def is_usable(self) -> bool:
        return len(self.options) >= 2


@dataclass(frozen=True)
class ReplyAction:
    text: str
    action_type: ActionType = field(default=ActionType.REPLY, init=False)


@dataclass(frozen=True)
class CreatePostAction:
    title: str
    content: str
    tags: tuple[str, ...] = ()
    reply_text: Optional[str] = None
    poll: Optional[PollDraft] = None
    action_type: ActionType = field(default=ActionType.CREATE_POST, init=False)


@dataclass(frozen=True)
class VotePollAction:
    option_id: Optional[int] = None
    comment: Optional[str] = None
    reply_text: Optional[str] = None
    action_type: ActionType = field(default=ActionType.VOTE_POLL, init=False)


@dataclass(frozen=True)
class RemoveContentAction:
    reply_text: Optional[str] = None
    action_type: ActionType = field(default=ActionType.REMOVE_CONTENT, init=False)


ActionDecision = Union[ReplyAction, CreatePostAction, VotePollAction, RemoveContentAction]


def extract_json_object(raw_text: str) -> dict:
    """
    Pull the JSON object out of model output.

    Strips code fences and keeps everything from the first "{" to the last "}".

    Raises:
        ParseError: no object found or invalid JSON
    """
    text = _CODE_FENCE.sub("", raw_text or "").strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ParseError("no JSON object in model output")

    try:
        parsed = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError("decision is not an object")
    return parsed


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _option_id(value: Any) -> Optional[int]:
    """Accept integers and digit strings; anything else is not an option id."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _poll_draft(value: Any, default_question: str) -> Optional[PollDraft]:
    if not isinstance(value, dict):
        return None
    raw_options = value.get("options")
    if not isinstance(raw_options, list):
        return None
    options = tuple(str(o).strip() for o in raw_options if o is not None and str(o).strip())
    return PollDraft(question=_text(value.get("question")) or default_question, options=options)


def _tags(value: Any) -> tuple[str, ...]:
    if isinstance(value, list):
        return tuple(str(t) for t in value if t is not None and str(t).strip())
    return ()


def decision_from_dict(data: dict) -> ActionDecision:
    """Map a parsed JSON decision onto the action variants."""
    action = str(data.get("action") or ActionType.REPLY.value).strip().upper()
    reply_text = _text(data.get("reply_text"))

    if action == ActionType.CREATE_POST.value:
        post_data = data.get("post_data")
        if not isinstance(post_data, dict):
            post_data = {}
        title = _text(post_data.get("title"))
        content = _text(post_data.get("content"))
        if not title or not content:
            logger.info("[DECISION] CREATE_POST missing title/content, replying instead")
            return ReplyAction(reply_text or PARSE_FALLBACK_TEXT)
        return CreatePostAction(
            title=title,
            content=content,
            tags=_tags(post_data.get("tags")),
            reply_text=reply_text,
            poll=_poll_draft(data.get("poll_data"), title),
        )

    if action == ActionType.VOTE_POLL.value:
        return VotePollAction(
            option_id=_option_id(data.get("poll_vote_option_id")),
            comment=_text(data.get("poll_vote_comment")),
            reply_text=reply_text,
        )

    if action == ActionType.REMOVE_CONTENT.value:
        return RemoveContentAction(reply_text=reply_text)

    if action != ActionType.REPLY.value:
        logger.warning(f"[DECISION] Unknown action {action!r}, replying instead")
    return ReplyAction(reply_text or PARSE_FALLBACK_TEXT)


def parse_decision(raw_text: str) -> ActionDecision:
    """Parse model output into a decision. Never raises."""
    try:
        data = extract_json_object(raw_text)
    except ParseError as e:
        logger.error(f"[DECISION] JSON parse failed: {e}")
        return ReplyAction(PARSE_FALLBACK_TEXT)
    return decision_from_dict(data)
