"""
Subscription Domain Models

Enums, value objects and domain entities for the subscription bounded context.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class SubscriptionTier(str, Enum):
    """Subscription tier levels."""
    BASIC = "BASIC"
    PRO = "PRO"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass(frozen=True)
class BillingWindow:
    """Current billing period reported by Stripe for a subscription."""
    start: datetime
    end: datetime

    @classmethod
    def from_timestamps(cls, start, end) -> Optional["BillingWindow"]:
        """Build a window from Stripe epoch seconds; None if either is missing."""
        if not isinstance(start, int) or not isinstance(end, int):
            return None
        return cls(
            start=datetime.fromtimestamp(start, tz=timezone.utc),
            end=datetime.fromtimestamp(end, tz=timezone.utc),
        )


# Stripe statuses after which a subscription can no longer grant access
ENDED_STRIPE_STATUSES = frozenset({"canceled", "incomplete_expired", "unpaid"})


@dataclass(frozen=True)
class RemoteSubscription:
    """Stripe's current view of a subscription."""
    status: Optional[str]
    window: Optional[BillingWindow]

    @property
    def has_ended(self) -> bool:
        return self.status in ENDED_STRIPE_STATUSES


# =============================================================================
# Domain Entities
# =============================================================================

class Subscription(BaseModel):
    """Core subscription domain entity."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    user_id: str
    tier: SubscriptionTier = SubscriptionTier.BASIC
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscriptionStatusResponse(BaseModel):
    """Response DTO for subscription status."""
    tier: SubscriptionTier


class CheckoutResponse(BaseModel):
    """Response DTO for checkout session creation."""
    checkout_url: str


# =============================================================================
# Tier Resolution (Business Logic)
# =============================================================================

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_tier(
    subscription: Optional[Subscription],
    now: Optional[datetime] = None,
) -> SubscriptionTier:
    """
    Effective tier used for quota decisions.

    PRO privileges need an ACTIVE PRO row whose billing period ends in the
    future. Every other combination, including a missing row, is BASIC.
    """
    if subscription is None:
        return SubscriptionTier.BASIC

    now = _as_utc(now or datetime.now(timezone.utc))

    if (
        subscription.status == SubscriptionStatus.ACTIVE
        and subscription.tier == SubscriptionTier.PRO
        and subscription.current_period_end is not None
        and _as_utc(subscription.current_period_end) > now
    ):
        return SubscriptionTier.PRO

    return SubscriptionTier.BASIC
