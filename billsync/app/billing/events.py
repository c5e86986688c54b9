"""Typed billing events classified from verified provider payloads."""
from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from .exceptions import VerificationFailed

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class _BillingEventBase(BaseModel):
    event_id: str
    event_type: str

    model_config = ConfigDict(frozen=True)


class PurchaseCompleted(_BillingEventBase):
    """A checkout finished and bound a provider customer to a project."""

    client_reference_id: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    tariff_id: Optional[str] = None


class SubscriptionUpdated(_BillingEventBase):
    """An existing subscription moved to another tariff."""

    customer_id: Optional[str] = None
    tariff_id: Optional[str] = None


class SubscriptionCancelled(_BillingEventBase):
    """A subscription was deleted at the provider."""

    customer_id: Optional[str] = None


class Unclassified(_BillingEventBase):
    """Any provider event without reconciliation meaning here."""


BillingEvent = Union[PurchaseCompleted, SubscriptionUpdated, SubscriptionCancelled, Unclassified]


def _reference(value: Any) -> Optional[str]:
    """Return an identifier from either a bare id or an expanded object."""

    if value is None:
        return None
    if isinstance(value, Mapping):
        value = value.get("id")
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _first_price_id(subscription: Mapping[str, Any]) -> Optional[str]:
    items = subscription.get("items") or {}
    data = items.get("data") if isinstance(items, Mapping) else None
    if not isinstance(data, (list, tuple)) or not data:
        return None
    if not isinstance(data[0], Mapping):
        raise VerificationFailed("Invalid payload: subscription item is not an object")
    return _reference(data[0].get("price"))


def _purchase(base: Dict[str, str], obj: Mapping[str, Any]) -> PurchaseCompleted:
    line_items = obj.get("line_items")
    tariff_id = _first_price_id({"items": line_items}) if isinstance(line_items, Mapping) else None
    return PurchaseCompleted(
        **base,
        client_reference_id=_reference(obj.get("client_reference_id")),
        customer_id=_reference(obj.get("customer")),
        subscription_id=_reference(obj.get("subscription")),
        tariff_id=tariff_id,
    )


def _updated(base: Dict[str, str], obj: Mapping[str, Any]) -> SubscriptionUpdated:
    return SubscriptionUpdated(
        **base,
        customer_id=_reference(obj.get("customer")),
        tariff_id=_first_price_id(obj),
    )


def _cancelled(base: Dict[str, str], obj: Mapping[str, Any]) -> SubscriptionCancelled:
    return SubscriptionCancelled(**base, customer_id=_reference(obj.get("customer")))


_CLASSIFIERS: Dict[str, Callable[[Dict[str, str], Mapping[str, Any]], BillingEvent]] = {
    CHECKOUT_SESSION_COMPLETED: _purchase,
    SUBSCRIPTION_UPDATED: _updated,
    SUBSCRIPTION_DELETED: _cancelled,
}


def classify_event(event: Mapping[str, Any]) -> BillingEvent:
    """Map a verified provider event onto the closed :data:`BillingEvent` variant.

    Raises :class:`VerificationFailed` when a relevant event lacks the shape
    needed to reconcile it.
    """

    base = {"event_id": str(event.get("id") or ""), "event_type": str(event.get("type") or "")}
    classifier = _CLASSIFIERS.get(base["event_type"])
    if classifier is None:
        return Unclassified(**base)

    data = event.get("data") or {}
    obj = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(obj, Mapping):
        raise VerificationFailed(f"Invalid payload: {base['event_type']} event has no data object")
    return classifier(base, obj)


__all__ = [
    "BillingEvent",
    "CHECKOUT_SESSION_COMPLETED",
    "PurchaseCompleted",
    "SUBSCRIPTION_DELETED",
    "SUBSCRIPTION_UPDATED",
    "SubscriptionCancelled",
    "SubscriptionUpdated",
    "Unclassified",
    "classify_event",
]
