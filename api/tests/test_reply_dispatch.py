"""
Tests for reply routing per source table.
"""

import asyncio

import pytest

from services.reply_dispatch import build_reply_payload, dispatch_reply
from services.trigger_guard import BOT_MARKER, screen_event

from conftest import BOT_ID


def _event(table, **record):
    record.setdefault("id", 10)
    record.setdefault("content", "@gemini hi")
    return screen_event({"type": "INSERT", "table": table, "record": record})


@pytest.mark.parametrize("table, record, expected_table, link", [
    ("posts", {}, "threads", ("parent_post_id", 10)),
    ("threads", {}, "thread_comments", ("thread_id", 10)),
    ("thread_comments", {"thread_id": 4}, "thread_comments", ("thread_id", 4)),
    ("comments", {"post_id": 77}, "comments", ("post_id", 77)),
])
def test_reply_routes(table, record, expected_table, link):
    dest, payload = build_reply_payload(_event(table, **record), BOT_ID, "Answer")
    assert dest == expected_table
    assert payload[link[0]] == link[1]
    assert payload["user_id"] == BOT_ID
    assert payload["content"] == f"{BOT_MARKER} Answer"


def test_dispatched_reply_is_ignored_by_trigger_guard(fake_client):
    row = asyncio.run(dispatch_reply(fake_client, _event("comments", post_id=77), BOT_ID, "Answer"))
    assert row["content"].startswith(BOT_MARKER)
    echoed = screen_event({"type": "INSERT", "table": "comments", "record": row})
    assert echoed.reason == "own content"


def test_dispatch_failure_returns_none(fake_client):
    fake_client.failures[("comments", "insert")] = RuntimeError("rls")
    assert asyncio.run(dispatch_reply(fake_client, _event("comments", post_id=77), BOT_ID, "x")) is None
