"""
Message SQLModel for Room Chat AI

Database model for chat messages. Rows are immutable once written.
"""

from datetime import datetime
from typing import Optional, TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlmodel import Field, SQLModel, Relationship

from roomchat.infrastructure.db.models.base import utc_now

if TYPE_CHECKING:
    from roomchat.infrastructure.db.models.chat_room import ChatRoom


class Message(SQLModel, table=True):
    """
    Message database table model.

    Stores individual messages within chat rooms.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_chat_room_id_created_at", "chat_room_id", "created_at"),
    )

    # Primary key
    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        nullable=False,
        description="Unique message identifier"
    )

    # Foreign key to chat_rooms
    chat_room_id: UUID = Field(
        ...,
        sa_column=Column(
            "chat_room_id",
            ForeignKey("chat_rooms.id", ondelete="CASCADE"),
            nullable=False,
        ),
        description="Reference to parent room"
    )

    role: str = Field(
        ...,
        max_length=8,
        sa_column=Column(String(8), nullable=False),
        description="Message role: 'USER' or 'AI'"
    )

    content: str = Field(
        ...,
        sa_column=Column(Text, nullable=False),
        description="Message content"
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
        description="Message timestamp"
    )

    # Relationships
    chat_room: Optional["ChatRoom"] = Relationship(back_populates="messages")
