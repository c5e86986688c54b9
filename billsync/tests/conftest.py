from __future__ import annotations

import hashlib
import hmac
import json
import threading
import time
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import pytest

from billsync.app.billing import (
    AccountChanges,
    AccountReconciler,
    AccountRecord,
    AccountUser,
    AuditMessage,
    EffectDispatcher,
)
from billsync.app.entitlements import DEFAULT_PLAN_CATALOG, InMemoryRedirectCache, PlanDescriptor

WEBHOOK_SECRET = "whsec_test_secret"


class InMemoryAccountRepository:
    def __init__(self) -> None:
        self.accounts: Dict[str, AccountRecord] = {}
        self.updates: List[Tuple[str, str, AccountChanges]] = []
        self.fail_with: Optional[Exception] = None

    def add(self, account: AccountRecord) -> AccountRecord:
        self.accounts[account.id] = account
        return account

    def get_by_id(self, account_id: str) -> Optional[AccountRecord]:
        self._maybe_fail()
        return self.accounts.get(account_id)

    def get_by_billing_id(self, stripe_id: str) -> Optional[AccountRecord]:
        self._maybe_fail()
        return next(
            (account for account in self.accounts.values() if account.stripe_id == stripe_id),
            None,
        )

    def update_by_id(self, account_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        self._maybe_fail()
        account = self.accounts.get(account_id)
        if account is None:
            return None
        self.updates.append(("id", account_id, changes))
        return self._apply(account, changes)

    def update_by_billing_id(self, stripe_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        self._maybe_fail()
        account = self.get_by_billing_id(stripe_id)
        if account is None:
            return None
        self.updates.append(("stripe_id", stripe_id, changes))
        return self._apply(account, changes)

    def _apply(self, account: AccountRecord, changes: AccountChanges) -> AccountRecord:
        updated = account.model_copy(update=changes.assignments())
        self.accounts[account.id] = updated
        return updated

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with


class FakePaymentProvider:
    def __init__(self) -> None:
        self.tariffs: Dict[str, str] = {}
        self.lookups: List[str] = []

    def retrieve_subscription_tariff(self, subscription_id: str) -> Optional[str]:
        self.lookups.append(subscription_id)
        if subscription_id not in self.tariffs:
            raise LookupError(f"No such subscription: {subscription_id}")
        return self.tariffs[subscription_id]


class FakeNotifier:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.upgrades: List[Tuple[str, str]] = []
        self.surveys: List[Tuple[str, ...]] = []
        self.fail_for: Set[str] = set()

    def send_upgrade_email(self, user: AccountUser, plan: PlanDescriptor) -> None:
        if user.email in self.fail_for:
            raise RuntimeError(f"mail provider rejected {user.email}")
        with self._lock:
            self.upgrades.append((user.email, plan.name))

    def send_cancellation_survey(self, emails: Sequence[str]) -> None:
        with self._lock:
            self.surveys.append(tuple(emails))


class FakeAuditSink:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.messages: List[AuditMessage] = []

    def log(self, message: AuditMessage) -> None:
        with self._lock:
            self.messages.append(message)


def _account(**overrides) -> AccountRecord:
    data = dict(
        id="acct_1",
        slug="acme",
        stripe_id=None,
        plan="free",
        usage_limit=1_000,
        links_limit=25,
        domains_limit=3,
        tags_limit=5,
        users_limit=1,
        billing_cycle_start=1,
        domains=("acme.link", "go.acme.com"),
        users=(
            AccountUser(name="Ada", email="ada@acme.test"),
            AccountUser(name="Grace", email="grace@acme.test"),
        ),
    )
    data.update(overrides)
    return AccountRecord(**data)


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 5, 17, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def billing(fixed_now):
    repository = InMemoryAccountRepository()
    provider = FakePaymentProvider()
    notifier = FakeNotifier()
    audit_sink = FakeAuditSink()
    redirect_cache = InMemoryRedirectCache(
        {"root:acme.link": "https://acme.test", "root:go.acme.com": "https://acme.test/go"}
    )
    reconciler = AccountReconciler(
        repository=repository,
        provider=provider,
        notifier=notifier,
        audit_sink=audit_sink,
        redirect_cache=redirect_cache,
        dispatcher=EffectDispatcher(max_workers=4),
        catalog=DEFAULT_PLAN_CATALOG,
        clock=lambda: fixed_now,
    )
    return SimpleNamespace(
        repository=repository,
        provider=provider,
        notifier=notifier,
        audit_sink=audit_sink,
        redirect_cache=redirect_cache,
        reconciler=reconciler,
    )


@pytest.fixture
def sign() -> Callable[..., str]:
    def _sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed_payload = f"{timestamp}.".encode("utf-8") + payload
        signature = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign


@pytest.fixture
def stripe_payload() -> Callable[..., bytes]:
    def _payload(event_type: str, obj: dict, event_id: str = "evt_1") -> bytes:
        event = {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": 1715938200,
            "livemode": False,
            "data": {"object": obj},
        }
        return json.dumps(event).encode("utf-8")

    return _payload


@pytest.fixture
def make_account() -> Callable[..., AccountRecord]:
    return _account


@pytest.fixture
def subscription_object() -> Callable[[str, str], dict]:
    def _subscription(customer: str, price_id: str) -> dict:
        return {
            "id": "sub_1",
            "object": "subscription",
            "customer": customer,
            "items": {"object": "list", "data": [{"id": "si_1", "price": {"id": price_id}}]},
        }

    return _subscription
