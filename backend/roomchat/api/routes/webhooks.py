"""
Stripe Webhook Handler

Verifies Stripe's signature and hands the event to the billing reconciler.
Processing is idempotent per event id, backed by the database.

Handled events:
- checkout.session.completed: upgrade to PRO
- customer.subscription.created: upgrade to PRO
- invoice.payment_succeeded: extend the billing period
- invoice.payment_failed: deactivate
- customer.subscription.deleted: deactivate
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from roomchat.api.dependencies import get_billing_reconciler
from roomchat.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
    get_stripe_service,
)
from roomchat.services.billing_reconciler import BillingReconciler


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    reconciler: BillingReconciler = Depends(get_billing_reconciler),
):
    """
    Handle Stripe webhook events.

    Returns 400 when the signature is missing or invalid. Once verified the
    event is acknowledged with 200; reconciliation errors are logged. If the
    database cannot be reached the request fails with 503 and Stripe retries.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature",
        )

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    logger.info(f"Processing webhook event: {event.get('type')} ({event.get('id')})")
    outcome = await reconciler.handle_stripe_event(event)

    return {"received": True, "outcome": outcome.value}
