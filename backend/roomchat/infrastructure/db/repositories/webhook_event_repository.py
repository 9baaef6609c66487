"""
Webhook Event Repository

DB-backed record of processed Stripe events (survives restarts).
"""

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert

from roomchat.infrastructure.db.models.processed_webhook_event import (
    ProcessedWebhookEvent,
)
from roomchat.infrastructure.db.repositories.base_repository import SessionRepository


class WebhookEventRepository(SessionRepository):
    """Idempotency ledger for billing webhooks."""

    async def is_processed(self, event_id: str) -> bool:
        """Check if a webhook event has already been processed."""
        statement = select(ProcessedWebhookEvent.event_id).where(
            ProcessedWebhookEvent.event_id == event_id
        )
        result = await self._session.execute(statement)
        return result.scalar_one_or_none() is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        """Record a processed webhook event; a concurrent duplicate is ignored."""
        statement = (
            pg_insert(ProcessedWebhookEvent)
            .values(event_id=event_id, event_type=event_type)
            .on_conflict_do_nothing(index_elements=["event_id"])
        )
        await self._session.execute(statement)
