"""
Claim Manager - at-most-once processing per trigger.

Supabase retries webhooks and can deliver the same INSERT more than once,
sometimes concurrently. Each invocation writes a placeholder row to
ai_memories_log and then re-reads the log for that trigger: the row with the
earliest created_at owns the trigger, every other invocation yields.

This works whether or not ai_memories_log has a unique constraint on
trigger_id. With the constraint the insert itself fails for the loser
(23505) and the re-read is a formality.

Lifecycle of a claim row:
    (PROCESSING) --finalize--> final reply text or "ERROR: ..."
    (PROCESSING) --lost race--> deleted
A placeholder that is never finalized makes later re-deliveries yield.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from services.bot_errors import RaceLost

logger = logging.getLogger(__name__)

CLAIM_TABLE = "ai_memories_log"
PROCESSING_SENTINEL = "(PROCESSING)"
UNIQUE_VIOLATION = "23505"


@dataclass
class Claim:
    """Ownership of one trigger. claim_id is None when the placeholder insert failed."""
    trigger_id: Any
    input_text: str
    source: str
    claim_id: Optional[Any] = None


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, "code", None)
    if code is None and error.args and isinstance(error.args[0], dict):
        code = error.args[0].get("code")
    return str(code) == UNIQUE_VIOLATION


class ClaimManager:
    """Claim/finalize protocol over the shared processing log."""

    def __init__(self, client: Any, table: str = CLAIM_TABLE):
        self.client = client
        self.table = table

    async def claim(self, trigger_id: Any, input_text: str, source: str) -> Claim:
        """
        Take ownership of a trigger.

        Returns:
            Claim owned by this invocation

        Raises:
            RaceLost: another invocation already owns (or finished) this trigger
        """
        claim_id = self.insert_placeholder(trigger_id, input_text, source)
        return self.resolve(trigger_id, input_text, source, claim_id)

    def insert_placeholder(self, trigger_id: Any, input_text: str, source: str) -> Optional[Any]:
        """
        Write the (PROCESSING) row.

        Returns:
            Id of the new row, or None when the insert failed for a reason
            other than a unique violation

        Raises:
            RaceLost: unique constraint on trigger_id rejected the insert
        """
        try:
            result = self.client.table(self.table).insert({
                "trigger_id": trigger_id,
                "input_text": input_text,
                "output_text": PROCESSING_SENTINEL,
                "trigger_source": source,
            }).execute()
            if result.data:
                return result.data[0].get("id")
        except Exception as e:
            if _is_unique_violation(e):
                logger.info(f"[CLAIM] Duplicate trigger ignored (unique constraint): {trigger_id}")
                raise RaceLost("already processed") from e
            logger.warning(f"[CLAIM] Placeholder insert failed for {trigger_id}: {e}")
        return None

    def resolve(self, trigger_id: Any, input_text: str, source: str, claim_id: Optional[Any]) -> Claim:
        """
        Re-read the earliest claims for the trigger and decide ownership.

        Raises:
            RaceLost: an earlier row exists (our placeholder, if any, is deleted)
        """
        claims = self._earliest_claims(trigger_id)

        if claims:
            first_id = claims[0].get("id")
            if claim_id is not None and first_id != claim_id:
                logger.info(f"[CLAIM] Race detected for {trigger_id}, yielding to claim {first_id}")
                self._discard(claim_id)
                raise RaceLost("race detected")
            if claim_id is None:
                logger.info(f"[CLAIM] Existing claim found for {trigger_id}")
                raise RaceLost("found existing")

        logger.info(f"[CLAIM] Processing trigger {trigger_id} (claim {claim_id})")
        return Claim(trigger_id=trigger_id, input_text=input_text, source=source, claim_id=claim_id)

    def _earliest_claims(self, trigger_id: Any) -> list[dict]:
        try:
            result = (
                self.client.table(self.table)
                .select("id, created_at")
                .eq("trigger_id", trigger_id)
                .order("created_at")
                .order("id")
                .limit(2)
                .execute()
            )
            return result.data or []
        except Exception as e:
            logger.warning(f"[CLAIM] Race check query failed for {trigger_id}: {e}")
            return []

    def _discard(self, claim_id: Any) -> None:
        try:
            self.client.table(self.table).delete().eq("id", claim_id).execute()
        except Exception as e:
            logger.warning(f"[CLAIM] Failed to delete losing claim {claim_id}: {e}")

    async def finalize(self, claim: Claim, output_text: str) -> None:
        """
        Record the final output for a claim. Never raises.

        Without a placeholder row (insert failed earlier) a completed row is
        inserted instead so the trigger still shows as processed.
        """
        try:
            if claim.claim_id is not None:
                self.client.table(self.table).update({
                    "output_text": output_text,
                }).eq("id", claim.claim_id).execute()
            else:
                self.client.table(self.table).insert({
                    "trigger_id": claim.trigger_id,
                    "input_text": claim.input_text,
                    "output_text": output_text,
                    "trigger_source": claim.source,
                }).execute()
        except Exception as e:
            logger.error(f"[CLAIM] Failed to finalize trigger {claim.trigger_id}: {e}")
