"""
Subscription Service

Starts the BASIC to PRO checkout. The upgrade itself is applied later by
the billing reconciler, once Stripe confirms payment.
"""

import logging
from typing import AsyncContextManager, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.domain.subscription import SubscriptionTier, resolve_tier
from roomchat.infrastructure.db.database import get_session_context
from roomchat.infrastructure.db.repositories import (
    SubscriptionRepository,
    UserRepository,
)
from roomchat.infrastructure.exceptions import NotFoundError, ValidationError
from roomchat.infrastructure.payments.stripe_service import StripeService


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class SubscriptionService:
    def __init__(
        self,
        stripe_service: StripeService,
        client_url: str,
        session_factory: SessionFactory = get_session_context,
    ):
        self._stripe = stripe_service
        self._client_url = client_url.rstrip("/")
        self._session_factory = session_factory

    async def create_pro_checkout_session(self, user_id: str) -> str:
        """
        Hosted checkout URL for the PRO plan.

        Reuses the user's Stripe customer when one exists, otherwise creates
        it and stores its id before opening the session.

        Raises:
            NotFoundError: unknown user
            ValidationError: user already has an active PRO plan
            StripeServiceError: Stripe rejected a request
        """
        async with self._session_factory() as session:
            user = await UserRepository(session).get_by_id(user_id)
            if user is None:
                raise NotFoundError("User not found.", resource="user", resource_id=str(user_id))

            subscriptions = SubscriptionRepository(session)
            subscription = await subscriptions.get_by_user_id(user_id)
            if resolve_tier(subscription) == SubscriptionTier.PRO:
                raise ValidationError("You already have an active PRO subscription.")

            customer_id = subscription.stripe_customer_id if subscription else None
            if not customer_id:
                customer_id = await self._stripe.create_customer(str(user.id), user.mobile_number)
                await subscriptions.set_stripe_customer_id(user_id, customer_id)

        return await self._stripe.create_pro_checkout_session(
            customer_id=customer_id,
            user_id=str(user_id),
            success_url=f"{self._client_url}/payment-success",
            cancel_url=f"{self._client_url}/payment-cancel",
        )
