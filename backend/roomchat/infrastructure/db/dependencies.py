"""
Dependency Injection Providers for Room Chat AI

Provides FastAPI dependencies for database sessions and repositories.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.infrastructure.db.database import get_session
from roomchat.infrastructure.db.repositories import (
    ChatRepository,
    SubscriptionRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_chat_repository(
    session: SessionDep,
) -> AsyncGenerator[ChatRepository, None]:
    """
    Dependency provider for ChatRepository.

    Usage:
        @router.get("/chatroom")
        async def list_rooms(repo: ChatRepoDep):
            ...
    """
    yield ChatRepository(session)


async def get_subscription_repository(
    session: SessionDep,
) -> AsyncGenerator[SubscriptionRepository, None]:
    """Dependency provider for SubscriptionRepository."""
    yield SubscriptionRepository(session)


# Type aliases for repository dependencies
ChatRepoDep = Annotated[ChatRepository, Depends(get_chat_repository)]
SubscriptionRepoDep = Annotated[
    SubscriptionRepository,
    Depends(get_subscription_repository)
]
