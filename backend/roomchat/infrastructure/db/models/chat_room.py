"""
ChatRoom SQLModel for Room Chat AI

Database model for chat rooms.
"""

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Column, String
from sqlmodel import Field, Relationship

from roomchat.infrastructure.db.models.base import BaseModel

if TYPE_CHECKING:
    from roomchat.infrastructure.db.models.message import Message


class ChatRoom(BaseModel, table=True):
    """
    ChatRoom database table model.

    A named conversation owned by one user.
    """

    __tablename__ = "chat_rooms"

    user_id: UUID = Field(
        ...,
        foreign_key="users.id",
        index=True,
        nullable=False,
        description="Owner of the room"
    )

    name: str = Field(
        ...,
        max_length=255,
        sa_column=Column(String(255), nullable=False),
    )

    # Relationships
    messages: list["Message"] = Relationship(
        back_populates="chat_room",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "Message.created_at",
        }
    )
