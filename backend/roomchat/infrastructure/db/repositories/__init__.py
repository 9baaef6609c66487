"""
Repository Layer for Room Chat AI

Exports all repository classes for dependency injection.
"""

from roomchat.infrastructure.db.repositories.base_repository import (
    SessionRepository,
    as_uuid,
)
from roomchat.infrastructure.db.repositories.user_repository import (
    UserRepository,
)
from roomchat.infrastructure.db.repositories.subscription_repository import (
    SubscriptionRepository,
)
from roomchat.infrastructure.db.repositories.chat_repository import (
    ChatRepository,
)
from roomchat.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "SessionRepository",
    "as_uuid",
    # Repositories
    "UserRepository",
    "SubscriptionRepository",
    "ChatRepository",
    "WebhookEventRepository",
]
