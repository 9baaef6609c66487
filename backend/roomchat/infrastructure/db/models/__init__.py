"""
SQLModel ORM Models for Room Chat AI

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from roomchat.infrastructure.db.models.base import (
    BaseModel,
    TimestampMixin,
    UUIDMixin,
    utc_now,
)
from roomchat.infrastructure.db.models.user import User
from roomchat.infrastructure.db.models.subscription import SubscriptionModel
from roomchat.infrastructure.db.models.chat_room import ChatRoom
from roomchat.infrastructure.db.models.message import Message
from roomchat.infrastructure.db.models.processed_webhook_event import (
    ProcessedWebhookEvent,
)


__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    # Users & billing
    "User",
    "SubscriptionModel",
    "ProcessedWebhookEvent",
    # Chat
    "ChatRoom",
    "Message",
]
