"""
Chat Repository for Room Chat AI

Repository for ChatRoom and Message CRUD operations.
"""

from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from roomchat.domain.chat import MessageRole
from roomchat.infrastructure.db.models.chat_room import ChatRoom
from roomchat.infrastructure.db.models.message import Message
from roomchat.infrastructure.db.repositories.base_repository import (
    SessionRepository,
    as_uuid,
)


class ChatRepository(SessionRepository):
    """
    Repository for chat-related database operations.

    Manages both ChatRoom and Message entities.
    """

    # =========================================================================
    # Room Operations
    # =========================================================================

    async def create_room(self, user_id: Union[str, UUID], name: str) -> ChatRoom:
        """
        Create a new chat room.

        Args:
            user_id: Owner's UUID
            name: Display name of the room

        Returns:
            Created ChatRoom instance
        """
        room = ChatRoom(user_id=as_uuid(user_id, "user_id"), name=name)
        self._session.add(room)
        await self._session.flush()
        await self._session.refresh(room)
        return room

    async def list_user_rooms(self, user_id: Union[str, UUID]) -> List[ChatRoom]:
        """Get all rooms for a user, newest first."""
        stmt = (
            select(ChatRoom)
            .where(ChatRoom.user_id == as_uuid(user_id, "user_id"))
            .order_by(ChatRoom.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_room(self, room_id: Union[str, UUID]) -> Optional[ChatRoom]:
        """Get a room by its ID, regardless of owner."""
        return await self._session.get(ChatRoom, as_uuid(room_id, "chatroom_id"))

    async def get_user_room(
        self,
        room_id: Union[str, UUID],
        user_id: Union[str, UUID],
        with_messages: bool = False,
    ) -> Optional[ChatRoom]:
        """
        Get a room only if it belongs to the given user.

        Args:
            room_id: The room's UUID
            user_id: Expected owner
            with_messages: Eagerly load messages (oldest first)

        Returns:
            ChatRoom or None when missing or owned by someone else
        """
        stmt = select(ChatRoom).where(
            ChatRoom.id == as_uuid(room_id, "chatroom_id"),
            ChatRoom.user_id == as_uuid(user_id, "user_id"),
        )
        if with_messages:
            stmt = stmt.options(selectinload(ChatRoom.messages))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def get_message(self, message_id: Union[str, UUID]) -> Optional[Message]:
        """Get a single message by its ID."""
        return await self._session.get(Message, as_uuid(message_id, "user_message_id"))

    async def get_room_history(
        self,
        room_id: Union[str, UUID],
        exclude_message_id: Optional[Union[str, UUID]] = None,
    ) -> List[Message]:
        """
        Get every message in a room, ordered by creation time.

        Args:
            room_id: The room's UUID
            exclude_message_id: Message to leave out (the prompt being answered)

        Returns:
            List of Message instances, oldest first
        """
        stmt = (
            select(Message)
            .where(Message.chat_room_id == as_uuid(room_id, "chatroom_id"))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        if exclude_message_id is not None:
            stmt = stmt.where(Message.id != as_uuid(exclude_message_id, "user_message_id"))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add_message(
        self,
        room_id: Union[str, UUID],
        role: MessageRole,
        content: str,
    ) -> Message:
        """
        Append a message to a room.

        Args:
            room_id: The room's UUID
            role: USER or AI
            content: Message content

        Returns:
            Created Message instance
        """
        message = Message(
            chat_room_id=as_uuid(room_id, "chatroom_id"),
            role=role.value,
            content=content,
        )
        self._session.add(message)
        await self._session.flush()
        await self._session.refresh(message)
        return message
