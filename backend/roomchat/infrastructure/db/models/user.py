"""
User Database Model

Identity plus the daily prompt counter used by the quota ledger.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field

from roomchat.infrastructure.db.models.base import BaseModel


class User(BaseModel, table=True):
    """
    User table.

    Owned by the auth subsystem; the quota ledger only writes
    ``daily_prompt_count`` and ``last_prompt_reset``.
    """

    __tablename__ = "users"

    mobile_number: str = Field(
        ...,
        max_length=32,
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Optional[str] = Field(default=None, max_length=255)
    otp: Optional[str] = Field(default=None, max_length=12)
    otp_expire_at: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
    )

    # Quota counter
    daily_prompt_count: int = Field(default=0, ge=0, nullable=False)
    pending_prompt_count: int = Field(
        default=0,
        ge=0,
        nullable=False,
        description="Prompts admitted to the queue and not yet answered"
    )
    last_prompt_reset: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),
        description="Midnight UTC of the day the counter belongs to"
    )
