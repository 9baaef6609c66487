"""
Stripe Payment Service

Infrastructure service for Stripe: customer and checkout creation for the
PRO upgrade, billing-window lookups for the reconciler, and webhook
signature verification.
"""

import json
import logging
from typing import Any, Optional
import stripe
from stripe import StripeError

from roomchat.config.settings import get_settings
from roomchat.domain.subscription import BillingWindow, RemoteSubscription
from roomchat.infrastructure.exceptions import BillingProviderError


logger = logging.getLogger(__name__)


class StripeServiceError(BillingProviderError):
    """Base exception for Stripe service errors."""
    pass


def _field(obj: Any, key: str) -> Any:
    try:
        return obj[key]
    except (KeyError, TypeError, IndexError):
        return None


class StripeService:
    """
    Stripe payment processing service.

    All methods are stateless and idempotent where possible.
    """

    def __init__(self):
        """Initialize Stripe with API key from settings."""
        settings = get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._pro_price_id = settings.stripe_pro_price_id

        if self._api_key:
            stripe.api_key = self._api_key

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(
        self,
        user_id: str,
        mobile_number: str,
    ) -> str:
        """
        Create a new Stripe customer.

        Args:
            user_id: Internal user ID (stored in metadata)
            mobile_number: User's mobile number (stored in metadata)

        Returns:
            Stripe customer ID
        """
        try:
            customer = stripe.Customer.create(
                email=f"{mobile_number}@example.com",
                metadata={
                    "userId": user_id,
                    "mobileNumber": mobile_number,
                },
            )
            logger.info(f"Created Stripe customer {customer.id} for user {user_id}")
            return customer.id

        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise StripeServiceError(f"Failed to create customer: {e.user_message}")

    # =========================================================================
    # Checkout Session (BASIC -> PRO)
    # =========================================================================

    async def create_pro_checkout_session(
        self,
        customer_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        """
        Create a Stripe Checkout Session for the PRO subscription.

        The user id travels as ``client_reference_id`` and in the
        subscription metadata so both checkout and subscription events can
        be correlated back to the user.

        Returns:
            Hosted checkout URL
        """
        if not self._pro_price_id:
            raise StripeServiceError("No price configured for PRO tier")

        try:
            session = stripe.checkout.Session.create(
                mode="subscription",
                customer=customer_id,
                client_reference_id=user_id,
                line_items=[
                    {
                        "price": self._pro_price_id,
                        "quantity": 1,
                    }
                ],
                success_url=f"{success_url}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=cancel_url,
                metadata={"userId": user_id},
                subscription_data={
                    "metadata": {"userId": user_id},
                },
            )

        except StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise StripeServiceError(f"Failed to create checkout: {e.user_message}")

        if not session.url:
            raise StripeServiceError("Failed to create Stripe Checkout session URL.")

        logger.info(f"Created checkout session {session.id} for user {user_id}")
        return session.url

    # =========================================================================
    # Subscription Queries
    # =========================================================================

    async def get_subscription_state(self, subscription_id: str) -> RemoteSubscription:
        """
        Current status and billing period of a Stripe subscription.

        Recent API versions report the period on the first subscription item;
        older ones on the subscription itself. Both are checked.

        Raises:
            StripeServiceError: the subscription could not be retrieved
        """
        try:
            subscription = stripe.Subscription.retrieve(
                subscription_id,
                expand=["items.data"],
            )
        except StripeError as e:
            logger.warning(f"Failed to retrieve subscription {subscription_id}: {e}")
            raise StripeServiceError(f"Failed to retrieve subscription: {e}")

        window = None
        items = _field(_field(subscription, "items"), "data") or []
        if items:
            window = BillingWindow.from_timestamps(
                _field(items[0], "current_period_start"),
                _field(items[0], "current_period_end"),
            )
        if window is None:
            window = BillingWindow.from_timestamps(
                _field(subscription, "current_period_start"),
                _field(subscription, "current_period_end"),
            )

        return RemoteSubscription(status=_field(subscription, "status"), window=window)

    async def get_billing_window(
        self,
        subscription_id: str,
    ) -> Optional[BillingWindow]:
        """Current billing period; None when Stripe reports no usable timestamps."""
        state = await self.get_subscription_state(subscription_id)
        return state.window

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> dict:
        """
        Verify webhook signature and decode the event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            The event as a plain dict

        Raises:
            StripeServiceError if signature or payload is invalid
        """
        if not self._webhook_secret:
            raise StripeServiceError("STRIPE_WEBHOOK_SECRET is not configured")

        try:
            stripe.Webhook.construct_event(
                payload,
                signature,
                self._webhook_secret,
            )
            return json.loads(payload)

        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}")


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
