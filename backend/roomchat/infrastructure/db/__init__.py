"""
Database Infrastructure Package for Room Chat AI

Exports database utilities, models, and repositories.
"""

from roomchat.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from roomchat.infrastructure.db.dependencies import (
    SessionDep,
    get_chat_repository,
    get_subscription_repository,
    ChatRepoDep,
    SubscriptionRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_chat_repository",
    "get_subscription_repository",
    "ChatRepoDep",
    "SubscriptionRepoDep",
]
