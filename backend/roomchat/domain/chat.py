"""
Chat Domain Models for Room Chat AI

Pure Python/Pydantic models for chat rooms, messages and queue jobs.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# Stored as the AI reply when Gemini fails, so the room shows a visible error.
AI_FAILURE_MESSAGE = (
    "Sorry, I couldn't generate a response to your message. Please try again."
)


class MessageRole(str, Enum):
    """Role of the message sender."""
    USER = "USER"
    AI = "AI"

    def to_provider_role(self) -> str:
        """Role name in Gemini's chat vocabulary."""
        return "user" if self is MessageRole.USER else "model"


@dataclass(frozen=True)
class HistoryTurn:
    """One prior turn of a conversation, as sent to the AI provider."""
    role: str
    text: str


class QueueJob(BaseModel):
    """
    Generation job carried through the Redis queue.

    Serialized with camelCase keys:
    ``{"chatroomId", "userId", "userMessageId", "userContent"}``.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    chatroom_id: str = Field(..., alias="chatroomId", min_length=1)
    user_id: str = Field(..., alias="userId", min_length=1)
    user_message_id: str = Field(..., alias="userMessageId", min_length=1)
    user_content: str = Field(..., alias="userContent", min_length=1)

    def to_payload(self) -> str:
        """Encode as the JSON string pushed onto the queue."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_payload(cls, payload: str) -> "QueueJob":
        """Decode a queue payload. Raises pydantic.ValidationError if malformed."""
        return cls.model_validate_json(payload)


# =============================================================================
# Request/Response DTOs
# =============================================================================

class CreateChatRoomRequest(BaseModel):
    """Request DTO for creating a chat room."""
    name: str = Field(..., min_length=1, max_length=255)


class SendMessageRequest(BaseModel):
    """Request DTO for posting a message to a room."""
    content: str = Field(..., min_length=1, max_length=10000)


class ChatMessage(BaseModel):
    """Complete chat message entity."""
    id: UUID
    chat_room_id: UUID
    role: MessageRole
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatRoom(BaseModel):
    """Complete chat room entity."""
    id: UUID
    user_id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatRoomWithMessages(ChatRoom):
    """Chat room with its messages included, oldest first."""
    messages: List[ChatMessage] = Field(default_factory=list)


class SendMessageResponse(BaseModel):
    """Response DTO after a message has been queued for generation."""
    message: ChatMessage
    queued: bool = True
    detail: Optional[str] = None
