"""
Generation Worker

Consumer loop of the message pipeline:
  - Pops one job at a time from the Redis queue
  - Replays the room history to Gemini and gets a reply
  - Stores the reply, charges the BASIC quota and releases the prompt's
    reservation in one transaction
  - Stops cleanly between jobs when asked

Several workers may share one queue; quota updates are serialized by the
user row lock, not by the number of consumers.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncContextManager, Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.domain.chat import AI_FAILURE_MESSAGE, HistoryTurn, MessageRole, QueueJob
from roomchat.domain.quota import UsageUpdate, record_usage
from roomchat.domain.subscription import SubscriptionTier, resolve_tier
from roomchat.infrastructure.ai.gemini_service import GeminiService
from roomchat.infrastructure.db.database import get_session_context
from roomchat.infrastructure.db.repositories import (
    ChatRepository,
    SubscriptionRepository,
    UserRepository,
)
from roomchat.infrastructure.exceptions import (
    AIServiceError,
    InfrastructureError,
    ValidationError,
)
from roomchat.infrastructure.queue.job_queue import JobQueue


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobOutcome(str, Enum):
    """How a single job ended."""
    COMPLETED = "completed"
    AI_FAILED = "ai_failed"
    DROPPED = "dropped"


class GenerationWorker:
    """Drains the job queue until stopped."""

    def __init__(
        self,
        queue: JobQueue,
        ai_service: GeminiService,
        *,
        max_output_tokens: int,
        retry_backoff_seconds: float,
        session_factory: SessionFactory = get_session_context,
        clock: Callable[[], datetime] = _utc_now,
        name: str = "gemini-worker",
    ):
        self._queue = queue
        self._ai = ai_service
        self._max_output_tokens = max_output_tokens
        self._retry_backoff_seconds = retry_backoff_seconds
        self._session_factory = session_factory
        self._clock = clock
        self.name = name
        self._stop_event = asyncio.Event()

    # ---------------- Public API ----------------

    def stop(self) -> None:
        """Ask the loop to exit after the in-flight job, if any."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def run(self) -> None:
        """Process jobs until ``stop()`` is called. Never raises on job errors."""
        logger.info(f"{self.name}: Gemini AI Worker started")
        while not self._stop_event.is_set():
            try:
                job = await self._queue.dequeue(self._stop_event)
                if job is None:
                    continue
                await self.process_job(job)

            except ValidationError as e:
                logger.error(f"{self.name}: dropping malformed job: {e.message} {e.details}")
            except InfrastructureError as e:
                logger.error(f"{self.name}: infrastructure unavailable, retrying: {e}")
                await self._backoff()
            except Exception as e:
                logger.exception(f"{self.name}: worker encountered an error: {e}")
                await self._backoff()

        logger.info(f"{self.name}: worker shutting down")

    async def process_job(self, job: QueueJob) -> JobOutcome:
        """
        Turn one job into a stored AI message.

        A failed generation stores AI_FAILURE_MESSAGE and does not consume
        quota. Either way the prompt's reservation is released. Database
        errors propagate to the caller.
        """
        history = await self._load_history(job)
        if history is None:
            return JobOutcome.DROPPED

        try:
            reply = await self._ai.generate_reply(
                history,
                job.user_content,
                self._max_output_tokens,
            )
        except AIServiceError as e:
            logger.error(
                f"{self.name}: generation failed for chatroom {job.chatroom_id}: {e}"
            )
            await self._store_result(job, AI_FAILURE_MESSAGE, count_usage=False)
            return JobOutcome.AI_FAILED

        await self._store_result(job, reply, count_usage=True)
        logger.info(f"{self.name}: stored reply for chatroom {job.chatroom_id}")
        return JobOutcome.COMPLETED

    # ---------------- Internals ----------------

    async def _load_history(self, job: QueueJob) -> Optional[List[HistoryTurn]]:
        async with self._session_factory() as session:
            users = UserRepository(session)
            # Blocks until the submitting transaction has committed or rolled back
            user = await users.get_for_update(job.user_id)
            if user is None:
                logger.warning(
                    f"{self.name}: user {job.user_id} no longer exists; "
                    f"dropping job for message {job.user_message_id}"
                )
                return None

            chats = ChatRepository(session)
            room = await chats.get_room(job.chatroom_id)
            if room is None:
                logger.warning(
                    f"{self.name}: chatroom {job.chatroom_id} no longer exists; "
                    f"dropping job for message {job.user_message_id}"
                )
                await users.apply_usage(user, self._release(user, consumed=False))
                return None

            if await chats.get_message(job.user_message_id) is None:
                # The submit transaction rolled back after the enqueue
                logger.warning(
                    f"{self.name}: message {job.user_message_id} was never stored; "
                    f"dropping job"
                )
                return None

            messages = await chats.get_room_history(
                room.id,
                exclude_message_id=job.user_message_id,
            )

        return [
            HistoryTurn(
                role=MessageRole(message.role).to_provider_role(),
                text=message.content,
            )
            for message in messages
        ]

    async def _store_result(self, job: QueueJob, content: str, count_usage: bool) -> None:
        async with self._session_factory() as session:
            await ChatRepository(session).add_message(job.chatroom_id, MessageRole.AI, content)

            users = UserRepository(session)
            user = await users.get_for_update(job.user_id)
            if user is None:
                logger.warning(f"{self.name}: user {job.user_id} not found; usage not recorded")
                return

            consumed = False
            if count_usage:
                subscription = await SubscriptionRepository(session).get_by_user_id(job.user_id)
                consumed = resolve_tier(subscription, self._clock()) == SubscriptionTier.BASIC

            await users.apply_usage(user, self._release(user, consumed=consumed))

    def _release(self, user, consumed: bool) -> UsageUpdate:
        return record_usage(
            user.daily_prompt_count,
            user.last_prompt_reset,
            self._clock(),
            pending_prompt_count=user.pending_prompt_count,
            consumed=consumed,
        )

    async def _backoff(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._retry_backoff_seconds)
        except asyncio.TimeoutError:
            pass
