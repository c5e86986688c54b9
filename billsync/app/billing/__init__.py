"""Billing domain package reconciling project plans with Stripe events."""

from .dispatcher import Effect, EffectDispatcher
from .events import (
    BillingEvent,
    PurchaseCompleted,
    SubscriptionCancelled,
    SubscriptionUpdated,
    Unclassified,
    classify_event,
)
from .exceptions import (
    InvalidSignature,
    ProviderLookupFailure,
    ReconciliationError,
    RecordStoreFailure,
    VerificationFailed,
    WebhookVerificationError,
)
from .handler import StripeWebhookHandler, WebhookResponse
from .models import (
    AccountChanges,
    AccountRecord,
    AccountUser,
    AuditMessage,
    EffectFailure,
    EffectKind,
    EffectReport,
    ReconciliationOutcome,
    ReconciliationResult,
)
from .service import (
    AccountReconciler,
    AccountRepository,
    AuditSink,
    BillingNotifier,
    PaymentProvider,
)
from .verification import verify_event

__all__ = [
    "AccountChanges",
    "AccountReconciler",
    "AccountRecord",
    "AccountRepository",
    "AccountUser",
    "AuditMessage",
    "AuditSink",
    "BillingEvent",
    "BillingNotifier",
    "Effect",
    "EffectDispatcher",
    "EffectFailure",
    "EffectKind",
    "EffectReport",
    "InvalidSignature",
    "PaymentProvider",
    "ProviderLookupFailure",
    "PurchaseCompleted",
    "ReconciliationError",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "RecordStoreFailure",
    "StripeWebhookHandler",
    "SubscriptionCancelled",
    "SubscriptionUpdated",
    "Unclassified",
    "VerificationFailed",
    "WebhookResponse",
    "WebhookVerificationError",
    "classify_event",
    "verify_event",
]
