"""
User Repository

Data access for users and their quota counters.
"""

import logging
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select

from roomchat.domain.quota import UsageUpdate
from roomchat.domain.subscription import SubscriptionStatus, SubscriptionTier
from roomchat.infrastructure.db.models.subscription import SubscriptionModel
from roomchat.infrastructure.db.models.user import User
from roomchat.infrastructure.db.repositories.base_repository import (
    SessionRepository,
    as_uuid,
)


logger = logging.getLogger(__name__)


class UserRepository(SessionRepository):
    """Repository for users."""

    async def get_by_id(self, user_id: Union[str, UUID]) -> Optional[User]:
        """Get a user without locking."""
        return await self._session.get(User, as_uuid(user_id, "user_id"))

    async def get_for_update(self, user_id: Union[str, UUID]) -> Optional[User]:
        """
        Get a user and hold a row lock until the transaction ends.

        Concurrent quota checks and usage updates for the same user are
        serialized on this lock.
        """
        stmt = (
            select(User)
            .where(User.id == as_uuid(user_id, "user_id"))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_with_basic_subscription(
        self,
        mobile_number: str,
        password_hash: Optional[str] = None,
    ) -> User:
        """
        Create a user together with its BASIC/ACTIVE subscription row.

        Both rows are flushed in the caller's transaction, so they commit or
        roll back together.
        """
        user = User(mobile_number=mobile_number, password_hash=password_hash)
        self._session.add(user)
        await self._session.flush()

        self._session.add(
            SubscriptionModel(
                user_id=user.id,
                tier=SubscriptionTier.BASIC.value,
                status=SubscriptionStatus.ACTIVE.value,
            )
        )
        await self._session.flush()
        await self._session.refresh(user)

        logger.info(f"Created user {user.id} with BASIC subscription")
        return user

    async def apply_usage(self, user: User, usage: UsageUpdate) -> None:
        """Write the counter fields computed by the quota ledger."""
        user.daily_prompt_count = usage.daily_prompt_count
        user.last_prompt_reset = usage.last_prompt_reset
        user.pending_prompt_count = usage.pending_prompt_count
        self._session.add(user)
        await self._session.flush()
