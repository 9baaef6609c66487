"""
Unit tests for SubscriptionService (PRO checkout and tier lookup).
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from roomchat.domain.subscription import Subscription, SubscriptionStatus, SubscriptionTier
from roomchat.infrastructure.exceptions import NotFoundError, ValidationError
from roomchat.services.subscription_service import SubscriptionService


@pytest.fixture
def user():
    return SimpleNamespace(id=uuid4(), mobile_number="+15550001111")


@pytest.fixture
def user_repo(user):
    repo = MagicMock()
    repo.get_by_id = AsyncMock(return_value=user)
    with patch("roomchat.services.subscription_service.UserRepository", return_value=repo):
        yield repo


@pytest.fixture
def sub_repo(user):
    repo = MagicMock()
    repo.get_by_user_id = AsyncMock(return_value=Subscription(user_id=str(user.id)))
    repo.set_stripe_customer_id = AsyncMock()
    with patch("roomchat.services.subscription_service.SubscriptionRepository", return_value=repo):
        yield repo


@pytest.fixture
def service(store, mock_stripe_service, user_repo, sub_repo):
    return SubscriptionService(
        mock_stripe_service,
        client_url="http://localhost:5173/",
        session_factory=store.session,
    )


class TestCheckout:

    @pytest.mark.asyncio
    async def test_creates_and_stores_customer_on_first_checkout(
        self, service, user, sub_repo, mock_stripe_service
    ):
        url = await service.create_pro_checkout_session(str(user.id))

        assert url.startswith("https://checkout.stripe.com/")
        mock_stripe_service.create_customer.assert_awaited_once_with(str(user.id), user.mobile_number)
        sub_repo.set_stripe_customer_id.assert_awaited_once_with(str(user.id), "cus_test")
        kwargs = mock_stripe_service.create_pro_checkout_session.await_args.kwargs
        assert kwargs["customer_id"] == "cus_test"
        assert kwargs["success_url"] == "http://localhost:5173/payment-success"
        assert kwargs["cancel_url"] == "http://localhost:5173/payment-cancel"

    @pytest.mark.asyncio
    async def test_reuses_existing_customer(self, service, user, sub_repo, mock_stripe_service):
        sub_repo.get_by_user_id.return_value = Subscription(
            user_id=str(user.id),
            stripe_customer_id="cus_existing",
        )

        await service.create_pro_checkout_session(str(user.id))

        mock_stripe_service.create_customer.assert_not_awaited()
        sub_repo.set_stripe_customer_id.assert_not_awaited()
        assert mock_stripe_service.create_pro_checkout_session.await_args.kwargs["customer_id"] == "cus_existing"

    @pytest.mark.asyncio
    async def test_active_pro_cannot_check_out_again(self, service, user, sub_repo, mock_stripe_service):
        sub_repo.get_by_user_id.return_value = Subscription(
            user_id=str(user.id),
            tier=SubscriptionTier.PRO,
            status=SubscriptionStatus.ACTIVE,
            current_period_end=datetime.now(timezone.utc) + timedelta(days=5),
        )

        with pytest.raises(ValidationError):
            await service.create_pro_checkout_session(str(user.id))
        mock_stripe_service.create_pro_checkout_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_user(self, service, user_repo):
        user_repo.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            await service.create_pro_checkout_session(str(uuid4()))

