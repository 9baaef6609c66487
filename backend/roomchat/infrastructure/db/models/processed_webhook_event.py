"""
Processed Webhook Event Model

Records Stripe event ids that were already reconciled, so redelivered
webhooks can be acknowledged without running handlers again.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from roomchat.infrastructure.db.models.base import utc_now


class ProcessedWebhookEvent(SQLModel, table=True):
    """Stripe event already handled by the billing reconciler."""

    __tablename__ = "processed_webhook_events"

    event_id: str = Field(primary_key=True, max_length=255)
    event_type: str = Field(..., max_length=100, nullable=False)
    processed_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        index=True,
        sa_type=DateTime(timezone=True),
    )
