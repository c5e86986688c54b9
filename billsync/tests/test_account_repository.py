"""Repository tests against a scripted psycopg2-style connection."""
from __future__ import annotations

import pytest

from billsync import app_context
from billsync.app.billing import AccountChanges
from billsync.app.billing.repository import PostgresAccountRepository
from billsync.app.entitlements import DEFAULT_PLAN_CATALOG

_PROJECT_ROW = {
    "id": "acct_1",
    "slug": "acme",
    "stripe_id": "cus_1",
    "plan": "pro",
    "usage_limit": 50_000,
    "links_limit": 1_000,
    "domains_limit": 10,
    "tags_limit": 25,
    "users_limit": 5,
    "billing_cycle_start": 17,
}


class _ScriptedCursor:
    def __init__(self, results):
        self._results = list(results)
        self._current = None
        self.executed = []
        self.closed = False

    def execute(self, query, params=None):
        self.executed.append((query, params))
        self._current = self._results.pop(0) if self._results else None

    def fetchone(self):
        return self._current

    def fetchall(self):
        return self._current

    def close(self):
        self.closed = True


class _ScriptedConnection:
    def __init__(self, results):
        self.cursor_obj = _ScriptedCursor(results)
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, cursor_factory=None):
        return self.cursor_obj

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _reset_context():
    yield
    app_context.reset()


def test_get_by_billing_id_loads_domains_and_members():
    conn = _ScriptedConnection(
        [
            _PROJECT_ROW,
            [{"slug": "acme.link"}],
            [{"name": "Ada", "email": "ada@acme.test"}],
        ]
    )

    account = PostgresAccountRepository(conn=conn).get_by_billing_id("cus_1")

    assert account.slug == "acme"
    assert account.domains == ("acme.link",)
    assert account.user_emails == ("ada@acme.test",)
    assert conn.cursor_obj.executed[0][1] == ("cus_1",)
    assert conn.commits == 0


def test_missing_project_returns_none():
    conn = _ScriptedConnection([None])

    assert PostgresAccountRepository(conn=conn).get_by_id("acct_missing") is None


def test_update_passes_every_assignment_as_parameter():
    conn = _ScriptedConnection([_PROJECT_ROW, [], []])
    changes = AccountChanges.for_plan(DEFAULT_PLAN_CATALOG.resolve("price_pro_monthly"))

    account = PostgresAccountRepository(conn=conn).update_by_billing_id("cus_1", changes)

    _, params = conn.cursor_obj.executed[0]
    assert params == {
        "plan": "pro",
        "usage_limit": 50_000,
        "links_limit": 1_000,
        "domains_limit": 10,
        "tags_limit": 25,
        "users_limit": 5,
        "lookup_value": "cus_1",
    }
    assert account.plan == "pro"


def test_update_without_changes_is_rejected():
    repository = PostgresAccountRepository(conn=_ScriptedConnection([]))

    with pytest.raises(ValueError):
        repository.update_by_id("acct_1", AccountChanges())


def test_managed_connection_commits_and_closes():
    conn = _ScriptedConnection([None])
    app_context.configure(get_conn=lambda: conn)

    PostgresAccountRepository().get_by_id("acct_1")

    assert conn.commits >= 1
    assert conn.closed
    assert conn.cursor_obj.closed


def test_managed_connection_rolls_back_on_error():
    conn = _ScriptedConnection([])

    def broken(query, params=None):
        raise RuntimeError("relation does not exist")

    conn.cursor_obj.execute = broken
    app_context.configure(get_conn=lambda: conn)

    with pytest.raises(RuntimeError):
        PostgresAccountRepository().get_by_id("acct_1")

    assert conn.rollbacks >= 1
    assert conn.commits == 0
    assert conn.closed


def test_unconfigured_context_raises():
    with pytest.raises(RuntimeError):
        PostgresAccountRepository().get_by_id("acct_1")
