"""Core service reconciling project plans with payment provider events."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial, singledispatchmethod
from typing import Callable, Iterator, List, Optional, Protocol, Sequence

from ..entitlements.cache import RedirectCache
from ..entitlements.catalog import DEFAULT_PLAN_CATALOG, PlanCatalog
from ..entitlements.models import PlanDescriptor
from .dispatcher import Effect, EffectDispatcher
from .events import (
    BillingEvent,
    PurchaseCompleted,
    SubscriptionCancelled,
    SubscriptionUpdated,
    Unclassified,
)
from .exceptions import ProviderLookupFailure, RecordStoreFailure
from .models import (
    AccountChanges,
    AccountRecord,
    AccountUser,
    AuditMessage,
    EffectKind,
    ReconciliationOutcome,
    ReconciliationResult,
)

logger = logging.getLogger("billing")


class AccountRepository(Protocol):
    """Record store operations required by the reconciler."""

    def get_by_id(self, account_id: str) -> Optional[AccountRecord]:
        ...

    def get_by_billing_id(self, stripe_id: str) -> Optional[AccountRecord]:
        ...

    def update_by_id(self, account_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        ...

    def update_by_billing_id(self, stripe_id: str, changes: AccountChanges) -> Optional[AccountRecord]:
        ...


class PaymentProvider(Protocol):
    """External payment processor lookups."""

    def retrieve_subscription_tariff(self, subscription_id: str) -> Optional[str]:
        """Return the price id of the subscription's first item."""


class BillingNotifier(Protocol):
    """Dispatches billing related emails to project members."""

    def send_upgrade_email(self, user: AccountUser, plan: PlanDescriptor) -> None:
        ...

    def send_cancellation_survey(self, emails: Sequence[str]) -> None:
        ...


class AuditSink(Protocol):
    """Captures operator-facing audit messages."""

    def log(self, message: AuditMessage) -> None:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _record_store(operation: str) -> Iterator[None]:
    try:
        yield
    except RecordStoreFailure:
        raise
    except Exception as exc:
        raise RecordStoreFailure(operation, exc) from exc


@dataclass
class AccountReconciler:
    """Applies billing events to project records, then fans out side effects.

    The record store update always completes before any side effect is
    dispatched. Store writes are plain field assignments keyed by project id or
    Stripe customer id, so re-delivered events converge on the same state.
    """

    repository: AccountRepository
    provider: PaymentProvider
    notifier: BillingNotifier
    audit_sink: AuditSink
    redirect_cache: RedirectCache
    dispatcher: EffectDispatcher = field(default_factory=EffectDispatcher)
    catalog: PlanCatalog = DEFAULT_PLAN_CATALOG
    clock: Callable[[], datetime] = _utcnow

    @singledispatchmethod
    def reconcile(self, event: BillingEvent) -> ReconciliationResult:
        raise TypeError(f"Unsupported billing event: {type(event).__name__}")

    @reconcile.register(Unclassified)
    def _reconcile_unclassified(self, event: Unclassified) -> ReconciliationResult:
        logger.info("Ignoring Stripe event %s (%s)", event.event_id, event.event_type)
        return ReconciliationResult(outcome=ReconciliationOutcome.IGNORED, event_type=event.event_type)

    @reconcile.register(PurchaseCompleted)
    def _reconcile_purchase(self, event: PurchaseCompleted) -> ReconciliationResult:
        if event.client_reference_id is None or event.customer_id is None:
            return self._incomplete(event)

        tariff_id = event.tariff_id or self._lookup_tariff(event.subscription_id)
        plan = self.catalog.resolve(tariff_id)
        if plan is None:
            return self._unresolvable(event, tariff_id)

        # Bind the Stripe customer to the project so later events can find it.
        changes = AccountChanges.for_plan(
            plan,
            stripe_id=event.customer_id,
            billing_cycle_start=self.clock().day,
        )
        with _record_store("update project by id"):
            account = self.repository.update_by_id(event.client_reference_id, changes)
            if account is None:
                raise LookupError(f"Project {event.client_reference_id} not found")

        effects = [
            Effect(
                kind=EffectKind.SEND_UPGRADE_EMAIL,
                target=user.email,
                run=partial(self.notifier.send_upgrade_email, user, plan),
            )
            for user in account.users
            if user.email
        ]
        report = self.dispatcher.dispatch(effects)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.PURCHASED,
            event_type=event.event_type,
            account=account,
            plan=plan.normalized_name,
            effects=report,
        )

    @reconcile.register(SubscriptionUpdated)
    def _reconcile_update(self, event: SubscriptionUpdated) -> ReconciliationResult:
        if event.customer_id is None:
            return self._incomplete(event)

        plan = self.catalog.resolve(event.tariff_id)
        if plan is None:
            return self._unresolvable(event, event.tariff_id)

        existing = self._find_by_billing_id(event.customer_id)
        if existing is None:
            return self._stale(event, event.customer_id)

        with _record_store("update project by stripe id"):
            account = self.repository.update_by_billing_id(
                event.customer_id, AccountChanges.for_plan(plan)
            )
        if account is None:
            return self._stale(event, event.customer_id)

        return ReconciliationResult(
            outcome=ReconciliationOutcome.UPDATED,
            event_type=event.event_type,
            account=account,
            plan=plan.normalized_name,
        )

    @reconcile.register(SubscriptionCancelled)
    def _reconcile_cancellation(self, event: SubscriptionCancelled) -> ReconciliationResult:
        if event.customer_id is None:
            return self._incomplete(event)

        existing = self._find_by_billing_id(event.customer_id)
        if existing is None:
            return self._stale(event, event.customer_id)

        free_plan = self.catalog.resolve_free_tier()
        with _record_store("reset project to free plan"):
            account = self.repository.update_by_billing_id(
                event.customer_id, AccountChanges.for_plan(free_plan)
            )
        if account is None:
            return self._stale(event, event.customer_id)

        report = self.dispatcher.dispatch(self._cancellation_effects(existing))
        return ReconciliationResult(
            outcome=ReconciliationOutcome.CANCELLED,
            event_type=event.event_type,
            account=account,
            plan=free_plan.normalized_name,
            effects=report,
        )

    def alert(self, message: str, *, mention: bool = False) -> None:
        """Send an operator message; a failing sink only logs."""

        try:
            self.audit_sink.log(AuditMessage(message=message, mention=mention))
        except Exception:  # noqa: BLE001
            logger.warning("Audit sink failed for message %r", message, exc_info=True)

    def _cancellation_effects(self, account: AccountRecord) -> List[Effect]:
        effects: List[Effect] = []
        if account.domains:
            effects.append(
                Effect(
                    kind=EffectKind.INVALIDATE_DOMAIN_REDIRECT_CACHE,
                    target=account.slug,
                    run=partial(self.redirect_cache.delete_root_redirects, account.domains),
                )
            )
        effects.append(
            Effect(
                kind=EffectKind.EMIT_AUDIT_LOG,
                target=account.slug,
                run=partial(
                    self.audit_sink.log,
                    AuditMessage(
                        message=f":cry: Project *`{account.slug}`* deleted their subscription",
                        mention=True,
                    ),
                ),
            )
        )
        if account.user_emails:
            effects.append(
                Effect(
                    kind=EffectKind.SEND_CANCELLATION_SURVEY_EMAIL,
                    target=account.slug,
                    run=partial(self.notifier.send_cancellation_survey, account.user_emails),
                )
            )
        return effects

    def _find_by_billing_id(self, stripe_id: str) -> Optional[AccountRecord]:
        with _record_store("find project by stripe id"):
            return self.repository.get_by_billing_id(stripe_id)

    def _lookup_tariff(self, subscription_id: Optional[str]) -> Optional[str]:
        if not subscription_id:
            return None
        try:
            return self.provider.retrieve_subscription_tariff(subscription_id)
        except Exception as exc:
            raise ProviderLookupFailure(
                f"Could not retrieve subscription {subscription_id}: {exc}"
            ) from exc

    def _incomplete(self, event: BillingEvent) -> ReconciliationResult:
        self.alert("Missing items in Stripe webhook callback", mention=True)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.INCOMPLETE_EVENT, event_type=event.event_type
        )

    def _unresolvable(self, event: BillingEvent, tariff_id: Optional[str]) -> ReconciliationResult:
        logger.debug("Unresolvable tariff %s in %s", tariff_id, event.event_id)
        self.alert(f"Invalid price ID in {event.event_type} event", mention=True)
        return ReconciliationResult(
            outcome=ReconciliationOutcome.UNRESOLVABLE_TARIFF, event_type=event.event_type
        )

    def _stale(self, event: BillingEvent, stripe_id: str) -> ReconciliationResult:
        self.alert(
            f"Project with Stripe ID *`{stripe_id}`* not found in Stripe webhook "
            f"`{event.event_type}` callback"
        )
        return ReconciliationResult(outcome=ReconciliationOutcome.STALE_EVENT, event_type=event.event_type)


__all__ = [
    "AccountReconciler",
    "AccountRepository",
    "AuditSink",
    "BillingNotifier",
    "PaymentProvider",
]
