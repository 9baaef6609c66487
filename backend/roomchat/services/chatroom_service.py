"""
Chatroom Service

Room creation and listing. Listings are cached per user in Redis and the
cache entry is dropped whenever the user creates a room.
"""

import logging
from typing import AsyncContextManager, Callable, List

from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.domain.chat import ChatRoom
from roomchat.infrastructure.cache.redis_client import ChatroomListCache
from roomchat.infrastructure.db.database import get_session_context
from roomchat.infrastructure.db.repositories import ChatRepository
from roomchat.infrastructure.exceptions import ValidationError


logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class ChatroomService:
    def __init__(
        self,
        cache: ChatroomListCache,
        session_factory: SessionFactory = get_session_context,
    ):
        self._cache = cache
        self._session_factory = session_factory

    async def create_chatroom(self, user_id: str, name: str) -> ChatRoom:
        if not name or not name.strip():
            raise ValidationError("Chatroom name is required.")

        async with self._session_factory() as session:
            room = await ChatRepository(session).create_room(user_id, name.strip())
            created = ChatRoom.model_validate(room)

        await self._cache.invalidate(user_id)
        logger.info(f"User {user_id} created chatroom {created.id}")
        return created

    async def list_chatrooms(self, user_id: str) -> List[ChatRoom]:
        """User's rooms, newest first. Served from cache when possible."""
        cached = await self._cache.get(user_id)
        if cached is not None:
            return [ChatRoom.model_validate(room) for room in cached]

        async with self._session_factory() as session:
            rooms = await ChatRepository(session).list_user_rooms(user_id)
            result = [ChatRoom.model_validate(room) for room in rooms]

        await self._cache.set(user_id, [room.model_dump(mode="json") for room in result])
        return result
