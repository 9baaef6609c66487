"""
Test configuration and fixtures for Room Chat AI.

Provides shared fixtures for unit and route tests, including an in-memory
stand-in for the repositories that honours row locks and commit/rollback.
"""

import asyncio
import copy
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient

from roomchat.domain.subscription import (
    RemoteSubscription,
    Subscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from roomchat.infrastructure.exceptions import StoreUnavailableError


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application with clean dependency overrides."""
    from roomchat.main import app
    app.dependency_overrides.clear()
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


def make_token(user_id: str, expires_in: int = 3600, claim: str = "id") -> str:
    from roomchat.config.settings import get_settings

    settings = get_settings()
    payload = {claim: user_id, "exp": int(time.time()) + expires_in}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest.fixture
def user_id() -> str:
    return str(uuid4())


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


# =============================================================================
# In-memory store
# =============================================================================

class FakeStore:
    """Tables as dicts. Sessions stage writes and apply them on commit."""

    def __init__(self):
        self.users: Dict[str, SimpleNamespace] = {}
        self.subscriptions: Dict[str, Subscription] = {}
        self.rooms: Dict[str, SimpleNamespace] = {}
        self.messages: List[SimpleNamespace] = []
        self.locks = defaultdict(asyncio.Lock)
        self.fail_commits = False
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def next_timestamp(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    def add_user(
        self,
        daily_prompt_count: int = 0,
        last_prompt_reset: Optional[datetime] = None,
        pending_prompt_count: int = 0,
        tier: SubscriptionTier = SubscriptionTier.BASIC,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        current_period_end: Optional[datetime] = None,
    ) -> SimpleNamespace:
        user = SimpleNamespace(
            id=uuid4(),
            mobile_number=f"+1555{len(self.users):07d}",
            daily_prompt_count=daily_prompt_count,
            last_prompt_reset=last_prompt_reset,
            pending_prompt_count=pending_prompt_count,
        )
        self.users[str(user.id)] = user
        self.subscriptions[str(user.id)] = Subscription(
            user_id=str(user.id),
            tier=tier,
            status=status,
            current_period_end=current_period_end,
        )
        return user

    def add_room(self, user_id, name: str = "General") -> SimpleNamespace:
        now = self.next_timestamp()
        room = SimpleNamespace(
            id=uuid4(),
            user_id=UUID(str(user_id)),
            name=name,
            created_at=now,
            updated_at=now,
        )
        self.rooms[str(room.id)] = room
        return room

    def room_messages(self, room_id) -> List[SimpleNamespace]:
        return [m for m in self.messages if str(m.chat_room_id) == str(room_id)]

    @asynccontextmanager
    async def session(self):
        session = FakeSession(self)
        try:
            yield session
            if self.fail_commits:
                raise StoreUnavailableError("commit failed")
            session.commit()
        finally:
            session.release()


class FakeSession:
    def __init__(self, store: FakeStore):
        self.store = store
        self.pending_messages: List[SimpleNamespace] = []
        self.pending_users: Dict[str, SimpleNamespace] = {}
        self.held_locks: List[asyncio.Lock] = []

    async def lock_user(self, user_id: str) -> None:
        lock = self.store.locks[user_id]
        await lock.acquire()
        self.held_locks.append(lock)

    def commit(self) -> None:
        self.store.messages.extend(self.pending_messages)
        self.store.users.update(self.pending_users)

    def release(self) -> None:
        for lock in self.held_locks:
            lock.release()
        self.held_locks.clear()


class FakeChatRepository:
    def __init__(self, session: FakeSession):
        self.session = session
        self.store = session.store

    async def get_room(self, room_id):
        return self.store.rooms.get(str(room_id))

    async def get_user_room(self, room_id, user_id, with_messages=False):
        room = self.store.rooms.get(str(room_id))
        if room is None or str(room.user_id) != str(user_id):
            return None
        return room

    async def get_message(self, message_id):
        for message in self.store.messages + self.session.pending_messages:
            if str(message.id) == str(message_id):
                return message
        return None

    async def get_room_history(self, room_id, exclude_message_id=None):
        return [
            m for m in sorted(self.store.room_messages(room_id), key=lambda m: m.created_at)
            if str(m.id) != str(exclude_message_id)
        ]

    async def add_message(self, room_id, role, content):
        message = SimpleNamespace(
            id=uuid4(),
            chat_room_id=UUID(str(room_id)),
            role=role.value,
            content=content,
            created_at=self.store.next_timestamp(),
        )
        self.session.pending_messages.append(message)
        return message


class FakeUserRepository:
    def __init__(self, session: FakeSession):
        self.session = session
        self.store = session.store

    async def get_by_id(self, user_id):
        return self.store.users.get(str(user_id))

    async def get_for_update(self, user_id):
        await self.session.lock_user(str(user_id))
        # Yield to other tasks while holding the lock
        await asyncio.sleep(0)
        user = self.store.users.get(str(user_id))
        return copy.copy(user) if user else None

    async def apply_usage(self, user, usage):
        await asyncio.sleep(0)
        user.daily_prompt_count = usage.daily_prompt_count
        user.last_prompt_reset = usage.last_prompt_reset
        user.pending_prompt_count = usage.pending_prompt_count
        self.session.pending_users[str(user.id)] = user


class FakeSubscriptionRepository:
    def __init__(self, session: FakeSession):
        self.store = session.store

    async def get_by_user_id(self, user_id):
        return self.store.subscriptions.get(str(user_id))


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_repositories():
    """Swap the repositories used by the pipeline services for in-memory ones."""
    targets = ["roomchat.services.quota_gate", "roomchat.services.generation_worker"]
    patchers = []
    for module in targets:
        patchers.append(patch(f"{module}.ChatRepository", FakeChatRepository))
        patchers.append(patch(f"{module}.UserRepository", FakeUserRepository))
        patchers.append(patch(f"{module}.SubscriptionRepository", FakeSubscriptionRepository))
    for patcher in patchers:
        patcher.start()
    yield
    for patcher in patchers:
        patcher.stop()


# =============================================================================
# Mock Fixtures
# =============================================================================

@pytest.fixture
def mock_queue():
    """Mock for JobQueue."""
    mock = MagicMock()
    mock.name = "gemini_message_queue"
    mock.enqueue = AsyncMock()
    mock.dequeue = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_gemini_service():
    """Mock for GeminiService."""
    mock = MagicMock()
    mock.generate_reply = AsyncMock(return_value="Hello from Gemini")
    return mock


@pytest.fixture
def mock_stripe_service():
    """Mock for StripeService."""
    mock = MagicMock()
    mock.create_customer = AsyncMock(return_value="cus_test")
    mock.create_pro_checkout_session = AsyncMock(return_value="https://checkout.stripe.com/c/pay/cs_test")
    mock.get_billing_window = AsyncMock(return_value=None)
    mock.get_subscription_state = AsyncMock(return_value=RemoteSubscription(status="active", window=None))
    return mock
