"""
Webhook handlers for Supabase database events.

Endpoints:
- POST /ai-bot - Row INSERT on posts, comments, threads, thread_comments

Configure in Supabase Dashboard:
1. Go to Database -> Webhooks
2. Create one webhook per watched table for INSERT events
3. Set URL to: https://<api-host>/webhooks/ai-bot
4. Add header: X-Webhook-Secret: <your-secret>
"""

import os
import json
import hmac
import logging

from fastapi import APIRouter, Request, HTTPException, status
from fastapi.responses import JSONResponse

from services.ai_bot import handle_trigger

router = APIRouter()
log = logging.getLogger(__name__)


def _webhook_secret() -> str:
    return os.environ.get("SUPABASE_WEBHOOK_SECRET", "")


@router.post("/ai-bot")
async def handle_ai_bot_webhook(request: Request):
    """
    Run the AI responder for one inserted row.

    Always 200 for handled, ignored and duplicate events; 500 only for
    configuration errors.
    """
    body = await request.body()

    secret = _webhook_secret()
    if secret:
        signature = request.headers.get("X-Webhook-Secret", "")
        if not hmac.compare_digest(signature, secret):
            log.warning("[AI_BOT] Invalid webhook secret")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid webhook secret",
            )

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )

    response = await handle_trigger(payload)
    return JSONResponse(status_code=response.status_code, content=response.body)
