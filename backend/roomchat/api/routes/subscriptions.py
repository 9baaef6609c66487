"""
Subscription API Routes

Starting the PRO upgrade and reading the current tier.
"""

import logging

from fastapi import APIRouter, Depends

from roomchat.api.dependencies import (
    SubscriptionRepoDep,
    get_current_user_id,
    get_subscription_service,
)
from roomchat.domain.subscription import (
    CheckoutResponse,
    SubscriptionStatusResponse,
    resolve_tier,
)
from roomchat.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/subscribe/pro", response_model=CheckoutResponse)
async def subscribe_pro(
    user_id: str = Depends(get_current_user_id),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Create a Stripe Checkout session for the PRO plan.

    The tier changes only after Stripe confirms payment through the webhook.
    """
    checkout_url = await service.create_pro_checkout_session(user_id)
    logger.info(f"Checkout session created for user {user_id}")
    return CheckoutResponse(checkout_url=checkout_url)


@router.get("/subscription/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    repo: SubscriptionRepoDep,
    user_id: str = Depends(get_current_user_id),
):
    """Effective tier of the current user (BASIC unless PRO is paid up)."""
    subscription = await repo.get_by_user_id(user_id)
    return SubscriptionStatusResponse(tier=resolve_tier(subscription))
