"""
Execution Log - offloads full exchanges to secondary stores.

Two sinks, both optional and both best-effort:
  Postgres (Neon)  - ai_execution_logs, via asyncpg; enabled by NEON_DATABASE_URL
  Firestore        - ai_memories collection; enabled by ai_config firebase_project_id

schedule_execution_log() spawns the write as a background task and returns
immediately. A failed write is logged and counted in LOG_FAILURES; it never
reaches the request that triggered it.

Connections are created lazily and reused within one event loop. The service
runs on a single loop (uvicorn); when a different loop shows up (a second
asyncio.run in tests or scripts) the handles are rebuilt for it rather than
shared across loops. close_execution_log() releases them at shutdown.
"""

import asyncio
import logging
import math
import os
from collections import Counter
from dataclasses import dataclass
from typing import Any, Optional

import asyncpg
from google.cloud import firestore

from services.bot_errors import LogError

logger = logging.getLogger(__name__)

EXECUTION_LOG_TABLE = "ai_execution_logs"
REALTIME_COLLECTION = "ai_memories"
LOG_TIMEOUT_SECONDS = 10.0

INSERT_EXECUTION_LOG = (
    f"INSERT INTO {EXECUTION_LOG_TABLE} "
    "(trigger_id, input_text, output_text, trigger_source, model, tokens) "
    "VALUES ($1, $2, $3, $4, $5, $6)"
)

# Failure counts per sink, read by health checks and tests
LOG_FAILURES: Counter = Counter()

# Lazy-loaded shared handles
_pg_pool: Optional[asyncpg.Pool] = None
_pg_lock: Optional[asyncio.Lock] = None
_firestore_client: Optional[firestore.AsyncClient] = None
_bound_loop: Optional[asyncio.AbstractEventLoop] = None
_pending_tasks: set = set()


@dataclass(frozen=True)
class ExecutionLogEntry:
    trigger_id: Any
    input_text: str
    output_text: str
    source: str
    model: str

    @property
    def approx_tokens(self) -> int:
        return math.ceil(len(self.output_text) / 4)


def _database_url() -> Optional[str]:
    return os.environ.get("NEON_DATABASE_URL") or os.environ.get("DATABASE_URL")


def _bind_to_running_loop() -> None:
    """Drop handles created on another event loop; they cannot be used here."""
    global _pg_pool, _pg_lock, _firestore_client, _bound_loop

    loop = asyncio.get_running_loop()
    if _bound_loop is not loop:
        _pg_pool = None
        _pg_lock = asyncio.Lock()
        _firestore_client = None
        _bound_loop = loop


async def _get_pg_pool() -> Optional[asyncpg.Pool]:
    """Get or create the asyncpg pool (None when no database is configured)."""
    global _pg_pool

    _bind_to_running_loop()
    if _pg_pool is not None:
        return _pg_pool

    dsn = _database_url()
    if not dsn:
        return None

    async with _pg_lock:
        if _pg_pool is None:
            _pg_pool = await asyncpg.create_pool(
                dsn, min_size=0, max_size=2, timeout=LOG_TIMEOUT_SECONDS,
            )
            logger.info("[EXEC_LOG] Connected to execution log database")
    return _pg_pool


def _get_firestore_client(project_id: str) -> firestore.AsyncClient:
    """Get or create the Firestore client (first project id wins)."""
    global _firestore_client

    _bind_to_running_loop()
    if _firestore_client is None:
        _firestore_client = firestore.AsyncClient(project=project_id)
        logger.info(f"[EXEC_LOG] Firestore initialized for memory logging ({project_id})")
    return _firestore_client


async def write_postgres_log(entry: ExecutionLogEntry) -> bool:
    """
    Append the exchange to ai_execution_logs.

    Returns:
        True when written, False when no database is configured

    Raises:
        LogError: connection or insert failed
    """
    try:
        pool = await _get_pg_pool()
        if pool is None:
            return False
        await pool.execute(
            INSERT_EXECUTION_LOG,
            str(entry.trigger_id),
            entry.input_text,
            entry.output_text,
            entry.source,
            entry.model,
            entry.approx_tokens,
            timeout=LOG_TIMEOUT_SECONDS,
        )
    except Exception as e:
        raise LogError(f"postgres: {e}") from e
    return True


async def write_realtime_log(entry: ExecutionLogEntry, project_id: Optional[str]) -> bool:
    """
    Persist the exchange to Firestore when configured.

    Raises:
        LogError: write failed
    """
    if not project_id:
        return False
    try:
        client = _get_firestore_client(project_id)
        await client.collection(REALTIME_COLLECTION).add({
            "trigger_id": str(entry.trigger_id),
            "input": entry.input_text,
            "output": entry.output_text,
            "source": entry.source,
            "model": entry.model,
            "timestamp": firestore.SERVER_TIMESTAMP,
        }, timeout=LOG_TIMEOUT_SECONDS)
    except Exception as e:
        raise LogError(f"firestore: {e}") from e
    return True


async def write_execution_log(entry: ExecutionLogEntry, firebase_project_id: Optional[str] = None) -> None:
    """Write to every configured sink; raise LogError if any failed."""
    failures = []
    sinks = (
        ("postgres", lambda: write_postgres_log(entry)),
        ("firestore", lambda: write_realtime_log(entry, firebase_project_id)),
    )
    for sink, write in sinks:
        try:
            if await write():
                logger.info(f"[EXEC_LOG] Logged trigger {entry.trigger_id} to {sink}")
        except LogError as e:
            LOG_FAILURES[sink] += 1
            failures.append(str(e))

    if failures:
        raise LogError("; ".join(failures))


def _on_log_done(task: asyncio.Task) -> None:
    _pending_tasks.discard(task)
    if task.cancelled():
        LOG_FAILURES["cancelled"] += 1
        return
    error = task.exception()
    if error is not None:
        if not isinstance(error, LogError):
            LOG_FAILURES["unexpected"] += 1
        logger.error(f"[EXEC_LOG] Execution log write failed: {error}")


def schedule_execution_log(
    entry: ExecutionLogEntry,
    firebase_project_id: Optional[str] = None,
) -> asyncio.Task:
    """Spawn the log write without awaiting it. Must be called from a running loop."""
    task = asyncio.create_task(write_execution_log(entry, firebase_project_id))
    _pending_tasks.add(task)
    task.add_done_callback(_on_log_done)
    return task


async def drain_pending_logs() -> None:
    """Wait for in-flight log writes (shutdown hook and tests)."""
    if _pending_tasks:
        await asyncio.gather(*list(_pending_tasks), return_exceptions=True)


async def close_execution_log() -> None:
    """Close the Postgres pool opened on this loop and forget the shared handles."""
    global _pg_pool, _firestore_client, _bound_loop

    if _bound_loop is not asyncio.get_running_loop():
        return
    pool = _pg_pool
    _pg_pool = None
    _firestore_client = None
    _bound_loop = None
    if pool is not None:
        await pool.close()
        logger.info("[EXEC_LOG] Closed execution log database pool")
