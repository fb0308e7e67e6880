"""
Responder Prompt Modules

- personality.py: system prompt rendered from ai_config personality settings
- decision.py: action menu and JSON output contract

Usage:
    from agents.bot_prompts import build_decision_prompt
"""

import re

from services.bot_config import BotSettings

from .decision import DECISION_PROMPT
from .personality import build_personality_prompt

_PLACEHOLDER = re.compile(r"\{(personality|username|source|context)\}")


def build_decision_prompt(
    *,
    settings: BotSettings,
    username: str,
    source: str,
    context: str,
) -> str:
    """
    Build the full prompt sent to the generation provider.

    Args:
        settings: Bot settings (personality)
        username: Author of the triggering message
        source: Triggering table name
        context: Rendered TriggerContext block

    Returns:
        Complete prompt string
    """
    values = {
        "personality": build_personality_prompt(settings),
        "username": username,
        "source": source,
        "context": context,
    }
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], DECISION_PROMPT)
