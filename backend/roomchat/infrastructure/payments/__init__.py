"""
Payments Infrastructure Module

Stripe payment processing and billing-window lookups.
"""

from roomchat.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)

__all__ = ["StripeService", "StripeServiceError", "get_stripe_service"]
