"""
Billing Event Domain Models

Closed set of billing notifications the reconciler understands, plus the
translation from verified Stripe event payloads.

Payloads are the decoded JSON bodies of verified webhook requests.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from roomchat.domain.subscription import BillingWindow


@dataclass(frozen=True)
class CheckoutCompleted:
    """``checkout.session.completed``."""
    event_id: Optional[str]
    subscription_id: Optional[str]
    user_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionCreated:
    """``customer.subscription.created``."""
    event_id: Optional[str]
    subscription_id: Optional[str]
    user_id: Optional[str]
    billing_window: Optional[BillingWindow] = None


@dataclass(frozen=True)
class InvoicePaymentSucceeded:
    """``invoice.payment_succeeded``."""
    event_id: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class InvoicePaymentFailed:
    """``invoice.payment_failed``."""
    event_id: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class SubscriptionDeleted:
    """``customer.subscription.deleted``."""
    event_id: Optional[str]
    subscription_id: Optional[str]


@dataclass(frozen=True)
class UnhandledEvent:
    """Any event type the reconciler does not act on."""
    event_id: Optional[str]
    event_type: str


BillingEvent = Union[
    CheckoutCompleted,
    SubscriptionCreated,
    InvoicePaymentSucceeded,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    UnhandledEvent,
]


# =============================================================================
# Stripe payload parsing
# =============================================================================

def _get(obj: Any, *path: str) -> Any:
    """Walk nested mappings, returning None as soon as a key is missing."""
    current = obj
    for key in path:
        if current is None:
            return None
        getter = getattr(current, "get", None)
        if getter is None:
            return None
        current = getter(key)
    return current


def _metadata_user_id(obj: Mapping) -> Optional[str]:
    metadata = _get(obj, "metadata") or {}
    return _get(metadata, "userId") or _get(metadata, "user_id")


def _invoice_subscription_id(invoice: Mapping) -> Optional[str]:
    # Newer API versions moved the id under parent.subscription_details
    subscription_id = _get(invoice, "parent", "subscription_details", "subscription")
    if not subscription_id:
        subscription_id = _get(invoice, "subscription")
    if isinstance(subscription_id, Mapping):
        subscription_id = subscription_id.get("id")
    return subscription_id


def _subscription_item_window(subscription: Mapping) -> Optional[BillingWindow]:
    items = _get(subscription, "items", "data") or []
    if not items:
        return None
    first = items[0]
    return BillingWindow.from_timestamps(
        _get(first, "current_period_start"),
        _get(first, "current_period_end"),
    )


def parse_stripe_event(event: Mapping) -> BillingEvent:
    """Translate a verified Stripe event into a typed billing event."""
    event_id = _get(event, "id")
    event_type = _get(event, "type") or "unknown"
    obj = _get(event, "data", "object") or {}

    if event_type == "checkout.session.completed":
        return CheckoutCompleted(
            event_id=event_id,
            subscription_id=_get(obj, "subscription"),
            user_id=_metadata_user_id(obj) or _get(obj, "client_reference_id"),
        )

    if event_type == "customer.subscription.created":
        return SubscriptionCreated(
            event_id=event_id,
            subscription_id=_get(obj, "id"),
            user_id=_metadata_user_id(obj),
            billing_window=_subscription_item_window(obj),
        )

    if event_type == "invoice.payment_succeeded":
        return InvoicePaymentSucceeded(
            event_id=event_id,
            subscription_id=_invoice_subscription_id(obj),
        )

    if event_type == "invoice.payment_failed":
        return InvoicePaymentFailed(
            event_id=event_id,
            subscription_id=_invoice_subscription_id(obj),
        )

    if event_type == "customer.subscription.deleted":
        return SubscriptionDeleted(
            event_id=event_id,
            subscription_id=_get(obj, "id"),
        )

    return UnhandledEvent(event_id=event_id, event_type=event_type)
