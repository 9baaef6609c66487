"""
Quota Gate

Producer side of the message pipeline. Checks ownership and the daily
quota, stores the user's message and hands a job to the queue, all inside
one transaction that holds the user's row lock.
"""

import logging
from datetime import datetime, timezone
from typing import AsyncContextManager, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.domain.chat import ChatMessage, MessageRole, QueueJob
from roomchat.domain.quota import authorize, reserve_prompt
from roomchat.domain.subscription import resolve_tier
from roomchat.infrastructure.db.database import get_session_context
from roomchat.infrastructure.db.repositories import (
    ChatRepository,
    SubscriptionRepository,
    UserRepository,
)
from roomchat.infrastructure.exceptions import (
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from roomchat.infrastructure.queue.job_queue import JobQueue


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaGate:
    """Authorizes and enqueues new chat messages."""

    def __init__(
        self,
        queue: JobQueue,
        daily_limit: int,
        session_factory: SessionFactory = get_session_context,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._queue = queue
        self._daily_limit = daily_limit
        self._session_factory = session_factory
        self._clock = clock

    async def submit_message(
        self,
        chatroom_id: str,
        user_id: str,
        content: str,
    ) -> ChatMessage:
        """
        Accept a user's message for asynchronous generation.

        The enqueue happens before the transaction commits, so a queue
        outage rolls back the stored message and the quota reservation
        instead of leaving an unanswered one behind. If the commit itself
        fails after the enqueue, the worker finds no stored message and
        drops the job.

        Raises:
            ValidationError: empty content
            NotFoundError: room missing, not owned by the user, or user missing
            QuotaExceededError: BASIC daily limit reached
            QueueUnavailableError: Redis unreachable
            StoreUnavailableError: database unreachable
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required.")

        async with self._session_factory() as session:
            chats = ChatRepository(session)
            room = await chats.get_user_room(chatroom_id, user_id)
            if room is None:
                raise NotFoundError(
                    "Chatroom not found or you do not have access to it.",
                    resource="chatroom",
                    resource_id=str(chatroom_id),
                )

            users = UserRepository(session)
            user = await users.get_for_update(user_id)
            if user is None:
                raise NotFoundError(
                    "Authenticated user not found.",
                    resource="user",
                    resource_id=str(user_id),
                )

            now = self._clock()
            subscription = await SubscriptionRepository(session).get_by_user_id(user_id)
            tier = resolve_tier(subscription, now)

            decision = authorize(
                tier,
                user.daily_prompt_count,
                user.last_prompt_reset,
                now,
                daily_limit=self._daily_limit,
                pending_prompt_count=user.pending_prompt_count,
            )
            if not decision.allowed:
                logger.info(f"User {user_id} hit the daily prompt limit ({self._daily_limit})")
                raise QuotaExceededError(self._daily_limit)

            # Held until the worker answers, so queued prompts count against the limit
            await users.apply_usage(
                user,
                reserve_prompt(
                    user.daily_prompt_count,
                    user.last_prompt_reset,
                    user.pending_prompt_count,
                    now,
                ),
            )

            message = await chats.add_message(room.id, MessageRole.USER, content)

            await self._queue.enqueue(
                QueueJob(
                    chatroom_id=str(room.id),
                    user_id=str(user.id),
                    user_message_id=str(message.id),
                    user_content=content,
                )
            )

        return ChatMessage.model_validate(message)
