"""
Subscription Repository

Data access layer for subscription state. Every state transition is a
single conditional UPDATE, so replaying the same billing event matches no
rows the second time and changes nothing.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import and_, or_, select, update

from roomchat.domain.subscription import (
    BillingWindow,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from roomchat.infrastructure.db.models.base import utc_now
from roomchat.infrastructure.db.models.subscription import SubscriptionModel
from roomchat.infrastructure.db.repositories.base_repository import (
    SessionRepository,
    as_uuid,
)


logger = logging.getLogger(__name__)


class SubscriptionRepository(SessionRepository):
    """
    Repository for subscription data access.

    Implements queries and state transitions with domain model mapping.
    """

    # =========================================================================
    # Query Methods
    # =========================================================================

    async def get_model_by_user_id(
        self,
        user_id: Union[str, UUID],
    ) -> Optional[SubscriptionModel]:
        statement = select(SubscriptionModel).where(
            SubscriptionModel.user_id == as_uuid(user_id, "user_id")
        )
        result = await self._session.execute(statement)
        return result.scalar_one_or_none()

    async def get_by_user_id(self, user_id: Union[str, UUID]) -> Optional[Subscription]:
        """
        Get subscription by user ID.

        Args:
            user_id: Internal user ID

        Returns:
            Subscription domain model or None
        """
        model = await self.get_model_by_user_id(user_id)
        if model:
            return self._to_domain(model)
        return None

    # =========================================================================
    # Command Methods
    # =========================================================================

    async def set_stripe_customer_id(
        self,
        user_id: Union[str, UUID],
        stripe_customer_id: str,
    ) -> Subscription:
        """
        Remember the Stripe customer on the user's subscription row.

        Creates a BASIC/ACTIVE row when the user somehow has none.
        """
        model = await self.get_model_by_user_id(user_id)
        if model is None:
            model = SubscriptionModel(
                user_id=as_uuid(user_id, "user_id"),
                tier=SubscriptionTier.BASIC.value,
                status=SubscriptionStatus.ACTIVE.value,
            )
        model.stripe_customer_id = stripe_customer_id
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return self._to_domain(model)

    async def upgrade_to_pro(
        self,
        user_id: Union[str, UUID],
        stripe_subscription_id: str,
        window: BillingWindow,
    ) -> int:
        """
        Upgrade the user's row to PRO/ACTIVE in place.

        Matches an ACTIVE BASIC row, or an INACTIVE row being reactivated by a
        different Stripe subscription. A row that is already PRO/ACTIVE, or
        INACTIVE because this very subscription ended, is left alone.

        Returns:
            Number of rows updated (0 or 1)
        """
        statement = (
            update(SubscriptionModel)
            .where(
                SubscriptionModel.user_id == as_uuid(user_id, "user_id"),
                or_(
                    and_(
                        SubscriptionModel.tier == SubscriptionTier.BASIC.value,
                        SubscriptionModel.status == SubscriptionStatus.ACTIVE.value,
                    ),
                    and_(
                        SubscriptionModel.status == SubscriptionStatus.INACTIVE.value,
                        or_(
                            SubscriptionModel.stripe_subscription_id.is_(None),
                            SubscriptionModel.stripe_subscription_id != stripe_subscription_id,
                        ),
                    ),
                ),
            )
            .values(
                tier=SubscriptionTier.PRO.value,
                status=SubscriptionStatus.ACTIVE.value,
                stripe_subscription_id=stripe_subscription_id,
                current_period_start=window.start,
                current_period_end=window.end,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(statement)
        return result.rowcount

    async def refresh_billing_window(
        self,
        stripe_subscription_id: str,
        window: BillingWindow,
    ) -> int:
        """Store a renewed billing period on the matching ACTIVE row."""
        statement = (
            update(SubscriptionModel)
            .where(
                SubscriptionModel.stripe_subscription_id == stripe_subscription_id,
                SubscriptionModel.status == SubscriptionStatus.ACTIVE.value,
            )
            .values(
                current_period_start=window.start,
                current_period_end=window.end,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(statement)
        return result.rowcount

    async def mark_inactive(self, stripe_subscription_id: str) -> int:
        """Set INACTIVE on rows for this Stripe subscription; tier is kept."""
        statement = (
            update(SubscriptionModel)
            .where(
                SubscriptionModel.stripe_subscription_id == stripe_subscription_id,
                SubscriptionModel.status != SubscriptionStatus.INACTIVE.value,
            )
            .values(
                status=SubscriptionStatus.INACTIVE.value,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(statement)
        return result.rowcount

    # =========================================================================
    # Mapping Methods
    # =========================================================================

    def _to_domain(self, model: SubscriptionModel) -> Subscription:
        """Convert database model to domain entity."""
        return Subscription(
            id=str(model.id),
            user_id=str(model.user_id),
            tier=SubscriptionTier(model.tier),
            status=SubscriptionStatus(model.status),
            stripe_customer_id=model.stripe_customer_id,
            stripe_subscription_id=model.stripe_subscription_id,
            current_period_start=model.current_period_start,
            current_period_end=model.current_period_end,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
