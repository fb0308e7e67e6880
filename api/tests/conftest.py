"""
Shared fixtures for the responder tests.

FakeSupabase mimics the slice of the supabase-py query builder the service
uses (table/select/eq/in_/order/limit/insert/update/delete/execute and rpc),
backed by in-memory tables. Rows get integer ids and strictly increasing
created_at values in insertion order.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

BOT_ID = "bot-0001"
USER_ID = "user-0042"
EPOCH = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeAPIError(Exception):
    """Stand-in for postgrest APIError (carries a Postgres error code)."""

    def __init__(self, message: str, code: str = "XX000"):
        super().__init__(message)
        self.code = code


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.orders = []
        self.limit_n = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.op = "update"
        self.payload = payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table_name, self.op, self.payload))
        failure = self.db.failures.get((self.table_name, self.op))
        if failure is not None:
            raise failure

        rows = self.db.tables.setdefault(self.table_name, [])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self.db._add_row(self.table_name, item) for item in items]
            hook = self.db.after_insert.pop(self.table_name, None)
            if hook is not None:
                hook(inserted)
            return SimpleNamespace(data=[dict(r) for r in inserted])

        matched = [row for row in rows if self._matches(row)]

        if self.op == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in matched])

        if self.op == "delete":
            self.db.tables[self.table_name] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=[dict(r) for r in matched])

        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row: row.get(column), reverse=desc)
        if self.limit_n is not None:
            matched = matched[:self.limit_n]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.rpc_calls.append((self.name, self.params))
        return SimpleNamespace(data=None)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.rpc_calls = []
        self.failures = {}
        # table -> callable(inserted_rows), fired once on the next insert
        self.after_insert = {}
        self._next_id = 1
        self._clock = 0

    def _add_row(self, table, item):
        row = dict(item)
        row.setdefault("id", self._next_id)
        self._next_id += 1
        self._clock += 1
        row.setdefault("created_at", (EPOCH + timedelta(microseconds=self._clock)).isoformat())
        self.tables.setdefault(table, []).append(row)
        return row

    def seed(self, table, *rows):
        return [self._add_row(table, row) for row in rows]

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params):
        return FakeRpc(self, name, params)

    def rows(self, table):
        return list(self.tables.get(table, []))

    def writes(self, table=None):
        return [
            call for call in self.calls
            if call[1] in ("insert", "update", "delete") and (table is None or call[0] == table)
        ]


def seed_config(client, **overrides):
    config = {
        "bot_user_id": BOT_ID,
        "ai_provider": "google",
        "ai_model": "gemini-2.0-flash",
        "ai_api_key": "test-key",
    }
    config.update(overrides)
    client.seed("ai_config", *({"key": k, "value": v} for k, v in config.items()))


@pytest.fixture
def fake_client():
    client = FakeSupabase()
    seed_config(client)
    return client


@pytest.fixture(autouse=True)
def _no_external_log_sinks(monkeypatch):
    """Keep the execution log from reaching a real database."""
    monkeypatch.delenv("NEON_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
