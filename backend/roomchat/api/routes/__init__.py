# API Routes Module
from roomchat.api.routes import (
    chatrooms,
    subscriptions,
    webhooks,
)

__all__ = [
    "chatrooms",
    "subscriptions",
    "webhooks",
]
