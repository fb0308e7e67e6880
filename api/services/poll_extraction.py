"""
Poll Extraction - finds poll options the model wrote as prose.

Models asked for a poll often fill poll_data AND repeat the options as a
bulleted list in the post body, or skip poll_data and only write the list.
scrub_content() splits post text into the list-like options and the remaining
narrative; reconcile_poll() then either removes the duplicate list (poll_data
already present) or turns the list into a poll widget (no poll_data).

Scanning is line-oriented with a capture toggle:
  - capture starts on a header line ("Options", "Choices", "Vote for" ...)
    or on a line ending in "?"/":" whose next non-blank line looks like a
    list item
  - bullets / numbers / checkboxes always become options and start capture
  - while capturing, aggressive mode also takes any short unpunctuated
    line as an option;
    this over-captures short prose sentences (known false positive)
  - any other line ends capture and is kept
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Optional

from services.bot_decisions import MAX_POLL_OPTIONS, CreatePostAction, PollDraft

logger = logging.getLogger(__name__)

MAX_OPTION_CHARS = 100
SHORT_LINE_CHARS = 80
LOOKAHEAD_SHORT_CHARS = 50
POLL_CTA_TEXT = "Cast your vote below! 👇"

POLL_INTENT_KEYWORDS = ("poll", "vote", "survey", "options")
AGGRESSIVE_TITLE_KEYWORDS = ("poll", "vote")

_POLL_HEADER = re.compile(r"^(poll options|options|choices|candidates|vote for|vote|question)", re.IGNORECASE)
_QUESTION_END = re.compile(r"[?:]\s*$")
_TERMINAL_PUNCTUATION = re.compile(r"[.!?]$")
_BULLET_START = re.compile(r"^(-|\d+[.)])")
_LIST_ITEM = re.compile(r"^(?:-|\d+[.)])\s*(.+)")
_LEADING_BULLET = re.compile(r"^(?:[-*+]\s*\[.?\]|[*+]\s)\s*")
_MARKUP = re.compile(r"[*_#\[\]]")
_RULE = re.compile(r"^[-=_*]{3,}$")


@dataclass(frozen=True)
class PollScan:
    clean_text: str
    options: tuple[str, ...] = ()


def _strip_markup(line: str) -> str:
    """Normalise bullets to "- " and drop emphasis/heading characters."""
    line = _LEADING_BULLET.sub("- ", line.strip())
    return _MARKUP.sub("", line).strip()


def _next_is_list_item(lines: list[str], index: int, aggressive: bool) -> bool:
    nxt = index + 1
    while nxt < len(lines) and not lines[nxt].strip():
        nxt += 1
    if nxt >= len(lines):
        return False

    candidate = _strip_markup(lines[nxt])
    if _BULLET_START.match(candidate):
        return True
    is_short_text = len(candidate) < LOOKAHEAD_SHORT_CHARS and not _TERMINAL_PUNCTUATION.search(candidate)
    return aggressive and is_short_text


def scrub_content(text: str, aggressive: bool = False) -> PollScan:
    """
    Split text into narrative lines and detected poll options.

    Args:
        text: Post body as written by the model
        aggressive: Also treat short unbulleted lines as options

    Returns:
        PollScan with the kept lines (verbatim, in order) and options
    """
    lines = (text or "").split("\n")
    options: list[str] = []
    clean_lines: list[str] = []
    # Header (and blanks after it) held back until we know a list follows
    held: list[str] = []
    capturing = False

    for i, raw in enumerate(lines):
        line = raw.strip()
        if not line or _RULE.match(line):
            if held:
                held.append(raw)
            elif not capturing:
                clean_lines.append(raw)
            continue

        clean = _strip_markup(line)

        if _POLL_HEADER.match(clean):
            clean_lines.extend(held)
            held = [raw]
            capturing = True
            continue

        if not capturing and (_QUESTION_END.search(clean) or aggressive):
            if _next_is_list_item(lines, i, aggressive):
                capturing = True
                clean_lines.append(raw)
                continue

        item = _LIST_ITEM.match(clean)
        if item and len(item.group(1).strip()) < MAX_OPTION_CHARS:
            options.append(item.group(1).strip())
            capturing = True
            held = []
            continue

        if capturing:
            if aggressive and len(clean) < SHORT_LINE_CHARS and not _TERMINAL_PUNCTUATION.search(clean):
                options.append(clean)
                held = []
                continue

            # Long or punctuated line: prose resumed
            capturing = False
            clean_lines.extend(held)
            held = []

        clean_lines.append(raw)

    clean_lines.extend(held)
    return PollScan(clean_text="\n".join(clean_lines).strip(), options=tuple(options))


def has_poll_intent(message_text: str) -> bool:
    """Did the triggering user ask for a poll?"""
    lowered = (message_text or "").lower()
    return any(keyword in lowered for keyword in POLL_INTENT_KEYWORDS)


def is_aggressive_context(title: str, poll: Optional[PollDraft]) -> bool:
    lowered = (title or "").lower()
    return poll is not None and any(keyword in lowered for keyword in AGGRESSIVE_TITLE_KEYWORDS)


def reconcile_poll(action: CreatePostAction) -> CreatePostAction:
    """
    Reconcile inline option lists with the structured poll.

    - poll_data has >= 2 options: keep it untouched, drop the inline list
    - no usable poll_data but >= 2 inline options: build a poll from them
      (question = title, max 5 options), body becomes the remaining prose
    """
    scan = scrub_content(action.content, is_aggressive_context(action.title, action.poll))

    if action.poll is not None and action.poll.is_usable:
        if scan.options:
            logger.info("[POLL] Removing inline options duplicated by the poll widget")
            return replace(action, content=scan.clean_text)
        return action

    if len(scan.options) >= 2:
        logger.info(f"[POLL] Converting inline list to poll widget: {list(scan.options)}")
        return replace(
            action,
            content=scan.clean_text or POLL_CTA_TEXT,
            poll=PollDraft(question=action.title, options=scan.options[:MAX_POLL_OPTIONS]),
        )

    return action
