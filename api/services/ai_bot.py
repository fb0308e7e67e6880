"""
AI Bot Responder - handles one database webhook end to end.

Flow:
1. Trigger guard (shape, table, own content)        -> ignored
2. Load ai_config, resolve bot identity              -> 500 if missing
3. Self-authored / not addressed to the bot          -> ignored
4. Claim the trigger                                 -> duplicate ignored
5. Assemble context, build prompt, generate
6. Parse decision, apply guards, execute the action
7. Post the reply (skipped after a removal)
8. Finalize the claim (every exit path)
9. Spawn the execution log write (never awaited)

Usage:
    from services.ai_bot import handle_trigger

    response = await handle_trigger(payload)
    return JSONResponse(status_code=response.status_code, content=response.body)
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from agents.bot_prompts import build_decision_prompt
from services.bot_actions import ActionExecutor, ActionOutcome, route_decision
from services.bot_config import BotSettings, ProviderConfig, load_bot_settings
from services.bot_context import assemble_context
from services.bot_decisions import PROVIDER_FALLBACK_TEXT, ActionType, parse_decision
from services.bot_errors import ConfigError, ProviderError, RaceLost
from services.claims import ClaimManager
from services.execution_log import ExecutionLogEntry, schedule_execution_log
from services.generation import generate_text
from services.reply_dispatch import dispatch_reply
from services.supabase import get_env_ai_api_key, get_service_client
from services.trigger_guard import (
    Ignored,
    TriggerEvent,
    is_addressed_to_bot,
    is_self_authored,
    screen_event,
)

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str, ProviderConfig], Awaitable[str]]


@dataclass
class BotResponse:
    status_code: int
    body: dict = field(default_factory=dict)


IGNORED = {"message": "ignored"}
DUPLICATE = {"message": "duplicate ignored"}


async def handle_trigger(
    payload: Any,
    *,
    client: Any = None,
    generate: GenerateFn = generate_text,
    rng: Optional[random.Random] = None,
) -> BotResponse:
    """
    Process one webhook delivery.

    Args:
        payload: Decoded webhook body {type, table, record}
        client: Supabase client (defaults to the service client)
        generate: Generation function (prompt, provider config) -> text
        rng: Random source for the poll seed vote

    Returns:
        BotResponse with HTTP status and JSON body
    """
    screened = screen_event(payload)
    if isinstance(screened, Ignored):
        logger.debug(f"[AI_BOT] Ignored event: {screened.reason}")
        return BotResponse(200, dict(IGNORED))
    event: TriggerEvent = screened

    try:
        client = client if client is not None else get_service_client()
        settings = await load_bot_settings(client)
        bot_user_id = settings.require_bot_identity()
    except ConfigError as e:
        logger.error(f"[AI_BOT] Configuration error: {e}")
        return BotResponse(500, {"error": str(e)})

    if is_self_authored(event, bot_user_id):
        logger.info(f"[AI_BOT] Ignored self-trigger {event.trigger_id} (author is bot)")
        return BotResponse(200, dict(IGNORED))

    if settings.bot_require_mention and not is_addressed_to_bot(event.message_text, settings.mention_keyword):
        logger.debug(f"[AI_BOT] No trigger keyword in {event.source_table}/{event.trigger_id}")
        return BotResponse(200, dict(IGNORED))

    claims = ClaimManager(client)
    try:
        claim = await claims.claim(event.trigger_id, event.message_text, event.source_label)
    except RaceLost as e:
        logger.info(f"[AI_BOT] Duplicate trigger {event.trigger_id}: {e}")
        return BotResponse(200, dict(DUPLICATE))

    try:
        outcome = await _respond(client, event, settings, bot_user_id, generate, rng)
    except Exception as e:
        logger.exception(f"[AI_BOT] Failed processing trigger {event.trigger_id}")
        await claims.finalize(claim, f"ERROR: {e}")
        return BotResponse(500, {"error": str(e)})

    await claims.finalize(claim, outcome.text)
    _spawn_execution_log(event, settings, outcome.text)

    if outcome.removed:
        return BotResponse(200, {"success": True, "action": "REMOVED", "message": outcome.text})
    return BotResponse(200, {"success": True, "action": outcome.action.value, "reply": outcome.text})


async def _respond(
    client: Any,
    event: TriggerEvent,
    settings: BotSettings,
    bot_user_id: str,
    generate: GenerateFn,
    rng: Optional[random.Random],
) -> ActionOutcome:
    """Decide, act, and post the reply for a claimed trigger."""
    context = await assemble_context(client, event)
    executor = ActionExecutor(client, bot_user_id, event, context, rng=rng)

    prompt = build_decision_prompt(
        settings=settings,
        username=context.username,
        source=event.source_table,
        context=context.render(event.message_text),
    )

    try:
        raw_text = await generate(prompt, settings.provider_config(get_env_ai_api_key()))
        decision = parse_decision(raw_text)
        decision = route_decision(
            decision,
            message_text=event.message_text,
            auto_post_creation=settings.auto_post_creation,
        )
        outcome = await executor.execute(decision)
    except ProviderError as e:
        logger.error(f"[AI_BOT] Generation failed for trigger {event.trigger_id}: {e}")
        outcome = ActionOutcome(PROVIDER_FALLBACK_TEXT, ActionType.REPLY)
    except Exception as e:
        logger.exception(f"[AI_BOT] Decision handling failed for trigger {event.trigger_id}: {e}")
        outcome = ActionOutcome(PROVIDER_FALLBACK_TEXT, ActionType.REPLY)

    logger.info(f"[AI_BOT] Trigger {event.trigger_id} -> {outcome.action.value}")

    if not outcome.removed:
        await dispatch_reply(client, event, bot_user_id, outcome.text)
    return outcome


def _spawn_execution_log(event: TriggerEvent, settings: BotSettings, output_text: str) -> None:
    entry = ExecutionLogEntry(
        trigger_id=event.trigger_id,
        input_text=event.message_text,
        output_text=output_text,
        source=event.source_table,
        model=settings.ai_model or "unknown",
    )
    schedule_execution_log(entry, settings.firebase_project_id)
