"""
API Dependencies

FastAPI dependency injection for authentication and the pipeline services.

Security: tokens are HS256 JWTs signed with ``JWT_SECRET``. The user id is
read from the ``id`` claim, falling back to ``sub``. Never decode without
verification.
"""

import logging
from functools import lru_cache
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from roomchat.config.settings import get_settings
from roomchat.infrastructure.cache.redis_client import ChatroomListCache, get_redis
from roomchat.infrastructure.exceptions import UnauthorizedError
from roomchat.infrastructure.payments.stripe_service import get_stripe_service
from roomchat.infrastructure.queue.job_queue import JobQueue
from roomchat.services.billing_reconciler import BillingReconciler
from roomchat.services.chatroom_service import ChatroomService
from roomchat.services.quota_gate import QuotaGate
from roomchat.services.subscription_service import SubscriptionService


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Extract and verify the user ID from a bearer JWT.

    Returns:
        Authenticated user ID (``id`` claim, or ``sub``).

    Raises:
        UnauthorizedError: token missing, expired, or invalid.
    """
    if not credentials:
        raise UnauthorizedError("Missing authorization token")

    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("JWT verification failed: %s", e)
        raise UnauthorizedError("Invalid or unverifiable token")

    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token: missing user ID")

    return str(user_id)


# =============================================================================
# Service providers
# Cached so every request shares one Redis-backed queue and one Stripe client.
# =============================================================================

@lru_cache
def get_job_queue() -> JobQueue:
    settings = get_settings()
    return JobQueue(
        get_redis(),
        settings.gemini_queue_name,
        poll_timeout_seconds=settings.queue_poll_timeout_seconds,
    )


@lru_cache
def get_quota_gate() -> QuotaGate:
    return QuotaGate(
        get_job_queue(),
        daily_limit=get_settings().basic_tier_daily_prompt_limit,
    )


@lru_cache
def get_chatroom_service() -> ChatroomService:
    return ChatroomService(
        ChatroomListCache(get_redis(), get_settings().chatroom_list_cache_ttl_seconds)
    )


@lru_cache
def get_subscription_service() -> SubscriptionService:
    return SubscriptionService(get_stripe_service(), client_url=get_settings().client_url)


@lru_cache
def get_billing_reconciler() -> BillingReconciler:
    return BillingReconciler(get_stripe_service())


__all__ = [
    "get_current_user_id",
    "get_job_queue",
    "get_quota_gate",
    "get_chatroom_service",
    "get_subscription_service",
    "get_billing_reconciler",
]


# =============================================================================
# Re-export DB dependencies for a single import source
# Routers should import from api.dependencies, not db.dependencies directly.
# =============================================================================
from roomchat.infrastructure.db.dependencies import (  # noqa: E402, F401
    SessionDep,
    ChatRepoDep,
    SubscriptionRepoDep,
)
