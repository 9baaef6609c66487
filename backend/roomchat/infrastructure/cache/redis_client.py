"""
Redis Connection Management

Shared ``redis.asyncio`` client used by the job queue and the chat-room
list cache.
"""

import json
import logging
from typing import Any, List, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from roomchat.config.settings import settings


logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Get or lazily create the Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_client


async def init_redis() -> redis.Redis:
    """Create the client and verify the connection (called on startup)."""
    client = get_redis()
    await client.ping()
    logger.info("Connected to Redis")
    return client


async def close_redis() -> None:
    """Close the shared client (called on shutdown)."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class ChatroomListCache:
    """
    Per-user cache of the chat-room list.

    Cache failures are logged and treated as misses; the database stays the
    source of truth.
    """

    KEY_TEMPLATE = "chatrooms:user:{user_id}"

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.redis = client
        self.ttl_seconds = ttl_seconds

    def _key(self, user_id: str) -> str:
        return self.KEY_TEMPLATE.format(user_id=user_id)

    async def get(self, user_id: str) -> Optional[List[dict]]:
        try:
            data = await self.redis.get(self._key(user_id))
        except RedisError as e:
            logger.warning(f"Chatroom cache read failed for user {user_id}: {e}")
            return None

        if data:
            logger.debug(f"Cache hit for chatrooms list of user {user_id}")
            return json.loads(data)
        return None

    async def set(self, user_id: str, rooms: List[Any]) -> None:
        try:
            await self.redis.setex(
                self._key(user_id),
                self.ttl_seconds,
                json.dumps(rooms, default=str),
            )
        except RedisError as e:
            logger.warning(f"Chatroom cache write failed for user {user_id}: {e}")

    async def invalidate(self, user_id: str) -> None:
        try:
            await self.redis.delete(self._key(user_id))
        except RedisError as e:
            logger.warning(f"Chatroom cache invalidation failed for user {user_id}: {e}")
