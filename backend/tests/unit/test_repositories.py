"""
Unit tests for repository statements.

The AsyncSession is mocked and the captured statements are compiled for
PostgreSQL, so the row-lock and conditional-update clauses can be checked
without a database.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql

from roomchat.domain.subscription import BillingWindow
from roomchat.infrastructure.db.repositories import (
    ChatRepository,
    SubscriptionRepository,
    UserRepository,
)
from roomchat.infrastructure.exceptions import ValidationError


WINDOW = BillingWindow(
    start=datetime(2025, 5, 1, tzinfo=timezone.utc),
    end=datetime(2025, 6, 1, tzinfo=timezone.utc),
)


@pytest.fixture
def session():
    session = MagicMock()
    result = MagicMock()
    result.rowcount = 1
    result.scalar_one_or_none.return_value = None
    result.scalars.return_value.all.return_value = []
    session.execute = AsyncMock(return_value=result)
    return session


def _sql(session) -> str:
    statement = session.execute.await_args.args[0]
    return str(statement.compile(dialect=postgresql.dialect()))


def _params(session) -> dict:
    statement = session.execute.await_args.args[0]
    return statement.compile(dialect=postgresql.dialect()).params


class TestUserRepository:

    @pytest.mark.asyncio
    async def test_get_for_update_locks_the_row(self, session):
        await UserRepository(session).get_for_update(uuid4())

        assert "FOR UPDATE" in _sql(session)

    @pytest.mark.asyncio
    async def test_malformed_id_is_a_validation_error(self, session):
        with pytest.raises(ValidationError):
            await UserRepository(session).get_for_update("r1")
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signup_creates_basic_active_subscription(self, session):
        session.flush = AsyncMock()
        session.refresh = AsyncMock()

        user = await UserRepository(session).create_with_basic_subscription("+15550001111")

        added = [call.args[0] for call in session.add.call_args_list]
        assert added[0] is user
        subscription = added[1]
        assert subscription.user_id == user.id
        assert subscription.tier == "BASIC"
        assert subscription.status == "ACTIVE"
        assert subscription.stripe_subscription_id is None


class TestChatRepository:

    @pytest.mark.asyncio
    async def test_history_is_ordered_and_excludes_prompt(self, session):
        await ChatRepository(session).get_room_history(uuid4(), exclude_message_id=uuid4())

        sql = _sql(session)
        assert "ORDER BY messages.created_at ASC, messages.id ASC" in sql
        assert "messages.id != " in sql


class TestSubscriptionRepository:

    @pytest.mark.asyncio
    async def test_upgrade_matches_basic_or_other_lapsed_subscription(self, session):
        updated = await SubscriptionRepository(session).upgrade_to_pro(uuid4(), "sub_A", WINDOW)

        sql = _sql(session)
        params = _params(session)
        assert updated == 1
        assert sql.startswith("UPDATE subscriptions SET")
        assert "subscriptions.stripe_subscription_id IS NULL" in sql
        assert "subscriptions.stripe_subscription_id != " in sql
        assert params["tier"] == "PRO"
        assert params["status"] == "ACTIVE"
        assert params["current_period_end"] == WINDOW.end

    @pytest.mark.asyncio
    async def test_mark_inactive_skips_rows_already_inactive(self, session):
        session.execute.return_value.rowcount = 0

        updated = await SubscriptionRepository(session).mark_inactive("sub_A")

        sql = _sql(session)
        assert updated == 0
        assert "subscriptions.status != " in sql
        assert "INACTIVE" in _params(session).values()
        # Tier is kept, so a lapsed PRO row can be told apart from BASIC
        assert "tier=" not in sql

    @pytest.mark.asyncio
    async def test_refresh_only_touches_active_rows(self, session):
        await SubscriptionRepository(session).refresh_billing_window("sub_A", WINDOW)

        sql = _sql(session)
        assert "subscriptions.status = " in sql
        assert "current_period_end=" in sql
