"""
State tests for the subscription lifecycle.

The real repositories and reconciler run against an in-memory SQLite
database, so every transition is checked by the row it leaves behind
rather than by the statements issued.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from roomchat.domain.billing_events import (
    CheckoutCompleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    SubscriptionDeleted,
)
from roomchat.domain.subscription import (
    BillingWindow,
    RemoteSubscription,
    SubscriptionStatus,
    SubscriptionTier,
    resolve_tier,
)
from roomchat.infrastructure.db.models.subscription import SubscriptionModel
from roomchat.infrastructure.db.models.user import User
from roomchat.infrastructure.db.repositories import SubscriptionRepository, UserRepository
from roomchat.services.billing_reconciler import BillingReconciler, ReconcileOutcome


WINDOW = BillingWindow(
    start=datetime(2025, 5, 1, tzinfo=timezone.utc),
    end=datetime(2025, 6, 1, tzinfo=timezone.utc),
)
RENEWED = BillingWindow(
    start=datetime(2025, 6, 1, tzinfo=timezone.utc),
    end=datetime(2025, 7, 1, tzinfo=timezone.utc),
)
MID_MAY = datetime(2025, 5, 15, tzinfo=timezone.utc)


class SyncSession:
    """Awaitable facade over a synchronous Session, covering the calls repositories make."""

    def __init__(self, session: Session):
        self._session = session

    async def execute(self, statement):
        return self._session.execute(statement)

    async def get(self, model, ident):
        return self._session.get(model, ident)

    def add(self, instance):
        self._session.add(instance)

    async def flush(self):
        self._session.flush()

    async def refresh(self, instance):
        self._session.refresh(instance)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine, tables=[User.__table__, SubscriptionModel.__table__])
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    @asynccontextmanager
    async def factory():
        with Session(engine, expire_on_commit=False) as session:
            try:
                yield SyncSession(session)
                session.commit()
            except Exception:
                session.rollback()
                raise

    return factory


@pytest.fixture
def reconciler(session_factory, mock_stripe_service):
    mock_stripe_service.get_subscription_state.return_value = RemoteSubscription(status="active", window=WINDOW)
    mock_stripe_service.get_billing_window.return_value = RENEWED
    return BillingReconciler(mock_stripe_service, session_factory=session_factory)


@pytest.fixture
async def user_id(session_factory) -> str:
    async with session_factory() as session:
        user = await UserRepository(session).create_with_basic_subscription("+15550002222")
    return str(user.id)


async def _subscription(session_factory, user_id):
    async with session_factory() as session:
        return await SubscriptionRepository(session).get_by_user_id(user_id)


def _naive(moment: datetime) -> datetime:
    # SQLite drops the offset; stored values are UTC wall-clock times
    return moment.replace(tzinfo=None)


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup_row_is_basic_and_active(self, session_factory, user_id):
        row = await _subscription(session_factory, user_id)

        assert row.tier == SubscriptionTier.BASIC
        assert row.status == SubscriptionStatus.ACTIVE
        assert row.stripe_subscription_id is None
        assert row.current_period_end is None


class TestCheckout:

    @pytest.mark.asyncio
    async def test_checkout_upgrades_the_same_row(self, reconciler, session_factory, engine, user_id):
        before = await _subscription(session_factory, user_id)

        outcome = await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        after = await _subscription(session_factory, user_id)
        assert outcome == ReconcileOutcome.APPLIED
        assert after.tier == SubscriptionTier.PRO
        assert after.status == SubscriptionStatus.ACTIVE
        assert after.stripe_subscription_id == "sub_A"
        assert after.current_period_start == _naive(WINDOW.start)
        assert after.current_period_end == _naive(WINDOW.end)
        assert after.id == before.id
        assert after.created_at == before.created_at
        assert resolve_tier(after, MID_MAY) == SubscriptionTier.PRO
        with Session(engine) as session:
            assert session.execute(select(func.count()).select_from(SubscriptionModel)).scalar_one() == 1

    @pytest.mark.asyncio
    async def test_duplicate_checkout_is_a_noop(self, reconciler, session_factory, user_id):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))
        first = await _subscription(session_factory, user_id)

        outcome = await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        assert outcome == ReconcileOutcome.NOOP
        assert await _subscription(session_factory, user_id) == first

    @pytest.mark.asyncio
    async def test_cancellation_delivered_before_checkout_never_grants_pro(
        self, reconciler, session_factory, mock_stripe_service, user_id
    ):
        deleted = await reconciler.handle(SubscriptionDeleted("evt_2", "sub_A"))
        mock_stripe_service.get_subscription_state.return_value = RemoteSubscription(
            status="canceled", window=WINDOW
        )

        checkout = await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        row = await _subscription(session_factory, user_id)
        assert (deleted, checkout) == (ReconcileOutcome.NOOP, ReconcileOutcome.SKIPPED)
        assert row.tier == SubscriptionTier.BASIC
        assert row.status == SubscriptionStatus.ACTIVE
        assert row.stripe_subscription_id is None


class TestDeactivation:

    @pytest.mark.asyncio
    async def test_subscription_deleted_replay_leaves_row_unchanged(
        self, reconciler, session_factory, user_id
    ):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        first = await reconciler.handle(SubscriptionDeleted("evt_5", "sub_A"))
        after_first = await _subscription(session_factory, user_id)
        replay = await reconciler.handle(SubscriptionDeleted("evt_5", "sub_A"))
        after_replay = await _subscription(session_factory, user_id)

        assert (first, replay) == (ReconcileOutcome.APPLIED, ReconcileOutcome.NOOP)
        assert after_first.status == SubscriptionStatus.INACTIVE
        assert after_first.tier == SubscriptionTier.PRO
        assert after_replay == after_first
        assert resolve_tier(after_replay, MID_MAY) == SubscriptionTier.BASIC

    @pytest.mark.asyncio
    async def test_failed_payment_keeps_tier(self, reconciler, session_factory, user_id):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        await reconciler.handle(InvoicePaymentFailed("evt_4", "sub_A"))

        row = await _subscription(session_factory, user_id)
        assert (row.tier, row.status) == (SubscriptionTier.PRO, SubscriptionStatus.INACTIVE)

    @pytest.mark.asyncio
    async def test_replayed_checkout_does_not_revive_ended_subscription(
        self, reconciler, session_factory, user_id
    ):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))
        await reconciler.handle(SubscriptionDeleted("evt_5", "sub_A"))

        outcome = await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        row = await _subscription(session_factory, user_id)
        assert outcome == ReconcileOutcome.NOOP
        assert row.status == SubscriptionStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_new_subscription_reactivates_the_same_row(self, reconciler, session_factory, user_id):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))
        await reconciler.handle(SubscriptionDeleted("evt_5", "sub_A"))
        lapsed = await _subscription(session_factory, user_id)

        outcome = await reconciler.handle(CheckoutCompleted("evt_9", "sub_B", user_id))

        row = await _subscription(session_factory, user_id)
        assert outcome == ReconcileOutcome.APPLIED
        assert (row.tier, row.status) == (SubscriptionTier.PRO, SubscriptionStatus.ACTIVE)
        assert row.stripe_subscription_id == "sub_B"
        assert row.id == lapsed.id
        assert row.created_at == lapsed.created_at


class TestRenewal:

    @pytest.mark.asyncio
    async def test_paid_invoice_moves_the_period(self, reconciler, session_factory, user_id):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))

        outcome = await reconciler.handle(InvoicePaymentSucceeded("evt_3", "sub_A"))

        row = await _subscription(session_factory, user_id)
        assert outcome == ReconcileOutcome.APPLIED
        assert row.current_period_start == _naive(RENEWED.start)
        assert row.current_period_end == _naive(RENEWED.end)

    @pytest.mark.asyncio
    async def test_paid_invoice_does_not_touch_inactive_row(self, reconciler, session_factory, user_id):
        await reconciler.handle(CheckoutCompleted("evt_1", "sub_A", user_id))
        await reconciler.handle(SubscriptionDeleted("evt_5", "sub_A"))

        outcome = await reconciler.handle(InvoicePaymentSucceeded("evt_3", "sub_A"))

        row = await _subscription(session_factory, user_id)
        assert outcome == ReconcileOutcome.NOOP
        assert row.current_period_end == _naive(WINDOW.end)
