"""
Billing Reconciler

Applies verified Stripe webhook events to local subscription rows.

Every transition is a conditional update, so replays leave the row where
a single delivery would. Upgrades first check the subscription's live
status at Stripe, so a checkout that arrives after its own cancellation
does not grant PRO. Each event runs in its own transaction; one failing
event never affects another.
"""

import logging
from enum import Enum
from typing import AsyncContextManager, Callable, Iterable, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from typing_extensions import assert_never

from roomchat.domain.billing_events import (
    BillingEvent,
    CheckoutCompleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    SubscriptionCreated,
    SubscriptionDeleted,
    UnhandledEvent,
    parse_stripe_event,
)
from roomchat.domain.subscription import BillingWindow
from roomchat.infrastructure.db.database import get_session_context
from roomchat.infrastructure.db.repositories import (
    SubscriptionRepository,
    WebhookEventRepository,
)
from roomchat.infrastructure.payments.stripe_service import StripeService


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class ReconcileOutcome(str, Enum):
    """Result of applying one billing event."""
    APPLIED = "applied"     # a row changed
    NOOP = "noop"           # nothing matched, already in the target state
    SKIPPED = "skipped"     # event lacked what it needs to be applied
    FAILED = "failed"       # error while applying; logged
    DUPLICATE = "duplicate"  # event id already processed


class BillingReconciler:
    """Routes billing events to subscription transitions."""

    def __init__(
        self,
        stripe_service: StripeService,
        session_factory: SessionFactory = get_session_context,
    ):
        self._stripe = stripe_service
        self._session_factory = session_factory

    async def handle_stripe_event(self, payload: Mapping) -> ReconcileOutcome:
        """
        Reconcile one verified webhook payload, once per Stripe event id.

        Failed events are not marked processed, so a redelivery of the same
        event gets another chance.
        """
        event = parse_stripe_event(payload)

        if event.event_id and await self._already_processed(event.event_id):
            logger.info(f"Stripe event {event.event_id} already processed; skipping")
            return ReconcileOutcome.DUPLICATE

        outcome = await self.handle(event)

        if event.event_id and outcome != ReconcileOutcome.FAILED:
            await self._mark_processed(event.event_id, payload.get("type", ""))

        return outcome

    async def handle(self, event: BillingEvent) -> ReconcileOutcome:
        """Apply a single event. Errors are logged and reported as FAILED."""
        try:
            return await self._dispatch(event)
        except Exception as e:
            logger.error(
                f"Error reconciling {type(event).__name__} "
                f"(event {event.event_id}): {e}"
            )
            return ReconcileOutcome.FAILED

    async def handle_many(self, events: Iterable[BillingEvent]) -> List[ReconcileOutcome]:
        """Apply events in order, each independently."""
        return [await self.handle(event) for event in events]

    # ---------------- Dispatch ----------------

    async def _dispatch(self, event: BillingEvent) -> ReconcileOutcome:
        match event:
            case CheckoutCompleted() | SubscriptionCreated():
                return await self._upgrade(event)
            case InvoicePaymentSucceeded():
                return await self._refresh_period(event)
            case InvoicePaymentFailed():
                return await self._deactivate(event.subscription_id, "invoice payment failed")
            case SubscriptionDeleted():
                return await self._deactivate(event.subscription_id, "subscription deleted")
            case UnhandledEvent():
                logger.info(f"Unhandled Stripe event type: {event.event_type}")
                return ReconcileOutcome.NOOP
            case _:
                assert_never(event)

    async def _upgrade(self, event: CheckoutCompleted | SubscriptionCreated) -> ReconcileOutcome:
        if not event.subscription_id or not event.user_id:
            logger.error(
                f"{type(event).__name__} {event.event_id} is missing the "
                f"subscription id or user id; skipping"
            )
            return ReconcileOutcome.SKIPPED

        # Covers a cancellation that was delivered before this event
        remote = await self._stripe.get_subscription_state(event.subscription_id)
        if remote.has_ended:
            logger.warning(
                f"Subscription {event.subscription_id} is already {remote.status} at Stripe; "
                f"skipping upgrade for user {event.user_id}"
            )
            return ReconcileOutcome.SKIPPED

        window: Optional[BillingWindow] = None
        if isinstance(event, SubscriptionCreated):
            window = event.billing_window
        if window is None:
            window = remote.window
        if window is None:
            logger.error(
                f"No billing period available for subscription {event.subscription_id}; "
                f"skipping upgrade"
            )
            return ReconcileOutcome.SKIPPED

        async with self._session_factory() as session:
            updated = await SubscriptionRepository(session).upgrade_to_pro(
                event.user_id,
                event.subscription_id,
                window,
            )

        if updated:
            logger.info(f"User {event.user_id} upgraded to PRO ({event.subscription_id})")
            return ReconcileOutcome.APPLIED
        return ReconcileOutcome.NOOP

    async def _refresh_period(self, event: InvoicePaymentSucceeded) -> ReconcileOutcome:
        if not event.subscription_id:
            logger.info(f"Invoice event {event.event_id} has no subscription; ignoring")
            return ReconcileOutcome.SKIPPED

        window = await self._stripe.get_billing_window(event.subscription_id)
        if window is None:
            logger.error(f"No billing period available for subscription {event.subscription_id}")
            return ReconcileOutcome.SKIPPED

        async with self._session_factory() as session:
            updated = await SubscriptionRepository(session).refresh_billing_window(
                event.subscription_id,
                window,
            )

        if updated:
            logger.info(f"Renewed billing period for subscription {event.subscription_id}")
            return ReconcileOutcome.APPLIED
        return ReconcileOutcome.NOOP

    async def _deactivate(self, subscription_id: Optional[str], reason: str) -> ReconcileOutcome:
        if not subscription_id:
            logger.info(f"Deactivation ({reason}) without a subscription id; ignoring")
            return ReconcileOutcome.SKIPPED

        async with self._session_factory() as session:
            updated = await SubscriptionRepository(session).mark_inactive(subscription_id)

        if updated:
            logger.info(f"Subscription {subscription_id} set INACTIVE: {reason}")
            return ReconcileOutcome.APPLIED
        return ReconcileOutcome.NOOP

    # ---------------- Webhook dedup ----------------

    async def _already_processed(self, event_id: str) -> bool:
        async with self._session_factory() as session:
            return await WebhookEventRepository(session).is_processed(event_id)

    async def _mark_processed(self, event_id: str, event_type: str) -> None:
        async with self._session_factory() as session:
            await WebhookEventRepository(session).mark_processed(event_id, event_type)
