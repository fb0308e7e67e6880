"""
Community AI Responder API

Single FastAPI application:
- /webhooks/ai-bot: Supabase INSERT webhooks for posts, comments, threads, thread_comments
- /health: liveness check
"""

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging - ensure INFO level logs are visible
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

from fastapi import FastAPI

from routes import webhooks
from services.execution_log import LOG_FAILURES, close_execution_log, drain_pending_logs

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let in-flight execution log writes finish before shutdown
    await drain_pending_logs()
    await close_execution_log()


app = FastAPI(
    title="Community AI Responder",
    description="Event-triggered AI replies, posts, polls and moderation for the community store",
    version=VERSION,
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": VERSION,
        "execution_log_failures": sum(LOG_FAILURES.values()),
    }


# Mount routers
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
