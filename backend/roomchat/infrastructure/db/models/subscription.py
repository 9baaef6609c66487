"""
Subscription Database Model

SQLModel table for subscription data persistence.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field

from roomchat.infrastructure.db.models.base import BaseModel


class SubscriptionModel(BaseModel, table=True):
    """
    Subscription table for storing user subscription data.

    One row per user. Upgrades, renewals and lapses update this row in place.
    """

    __tablename__ = "subscriptions"

    user_id: UUID = Field(
        ...,
        foreign_key="users.id",
        unique=True,
        index=True,
        nullable=False,
    )

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None, index=True)

    # Subscription details
    tier: str = Field(default="BASIC", max_length=16)
    status: str = Field(default="ACTIVE", max_length=16)

    # Billing period dates
    current_period_start: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )
    current_period_end: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )
