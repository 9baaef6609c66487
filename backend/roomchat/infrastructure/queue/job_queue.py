"""
Job Queue

Durable FIFO of chat-generation jobs on a Redis list. Producers ``LPUSH``
onto the head and consumers ``BRPOP`` from the tail, so jobs leave in the
order they arrived.

Delivery is at-least-once in intent but not guaranteed: a job popped by a
worker that crashes before finishing it is gone. There is no
acknowledgement or redelivery.
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from roomchat.domain.chat import QueueJob
from roomchat.infrastructure.exceptions import MalformedJobError, QueueUnavailableError


logger = logging.getLogger(__name__)


class JobQueue:
    """Named Redis list used as the generation job queue."""

    def __init__(
        self,
        client: redis.Redis,
        name: str,
        poll_timeout_seconds: int = 1,
    ):
        self.redis = client
        self.name = name
        self.poll_timeout_seconds = poll_timeout_seconds

    async def enqueue(self, job: QueueJob) -> None:
        """
        Append a job to the queue.

        Raises:
            QueueUnavailableError: Redis could not be reached
        """
        try:
            await self.redis.lpush(self.name, job.to_payload())
        except (RedisError, OSError) as e:
            logger.error(f"Failed to enqueue job for chatroom {job.chatroom_id}: {e}")
            raise QueueUnavailableError(
                f"Could not enqueue message: {e}",
                queue_name=self.name,
                original_error=e,
            ) from e

        logger.info(f"User message for chatroom {job.chatroom_id} pushed to queue.")

    async def dequeue(
        self,
        stop_event: Optional[asyncio.Event] = None,
    ) -> Optional[QueueJob]:
        """
        Pop one job, waiting until one arrives.

        The blocking pop runs in short slices so ``stop_event`` is noticed
        between slices; returns None once it is set.

        Raises:
            QueueUnavailableError: Redis could not be reached
            MalformedJobError: the popped payload is not a valid job (it has
                already been removed from the queue)
        """
        while stop_event is None or not stop_event.is_set():
            try:
                res = await self.redis.brpop([self.name], timeout=self.poll_timeout_seconds)
            except (RedisError, OSError) as e:
                raise QueueUnavailableError(
                    f"Could not read from queue: {e}",
                    queue_name=self.name,
                    original_error=e,
                ) from e

            if not res:
                continue

            # [queueName, payload]
            payload = res[1]
            try:
                return QueueJob.from_payload(payload)
            except PydanticValidationError as e:
                raise MalformedJobError(
                    "Invalid job payload",
                    raw_payload=payload if isinstance(payload, str) else repr(payload),
                    original_error=e,
                ) from e

        return None

    async def length(self) -> int:
        """Number of jobs waiting."""
        try:
            return await self.redis.llen(self.name)
        except (RedisError, OSError) as e:
            raise QueueUnavailableError(
                f"Could not read queue length: {e}",
                queue_name=self.name,
                original_error=e,
            ) from e
