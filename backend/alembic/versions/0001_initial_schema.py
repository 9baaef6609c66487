"""Initial schema: users, subscriptions, chat rooms, messages, webhook events

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all Room Chat AI tables."""

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('mobile_number', sa.String(32), nullable=False),
        sa.Column('password_hash', sa.String(255)),
        sa.Column('otp', sa.String(12)),
        sa.Column('otp_expire_at', sa.DateTime(timezone=True)),

        # Daily quota counter (UTC days)
        sa.Column('daily_prompt_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('pending_prompt_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('last_prompt_reset', sa.DateTime(timezone=True)),

        *_timestamps(),
    )
    op.create_index('ix_users_mobile_number', 'users', ['mobile_number'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_subscription_id', sa.String(255)),

        sa.Column('tier', sa.String(16), server_default='BASIC', nullable=False),
        sa.Column('status', sa.String(16), server_default='ACTIVE', nullable=False),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),

        *_timestamps(),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=True)
    op.create_index(
        'ix_subscriptions_stripe_customer_id',
        'subscriptions',
        ['stripe_customer_id'],
        unique=True,
    )
    op.create_index(
        'ix_subscriptions_stripe_subscription_id',
        'subscriptions',
        ['stripe_subscription_id'],
    )

    op.create_table(
        'chat_rooms',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'user_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('name', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_chat_rooms_user_id', 'chat_rooms', ['user_id'])

    op.create_table(
        'messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            'chat_room_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('chat_rooms.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('role', sa.String(8), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    # History is always read per room in creation order
    op.create_index(
        'ix_messages_chat_room_id_created_at',
        'messages',
        ['chat_room_id', 'created_at'],
    )

    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            server_default=sa.text('now()'),
            nullable=False,
        ),
    )
    op.create_index(
        'ix_processed_webhook_events_processed_at',
        'processed_webhook_events',
        ['processed_at'],
    )


def downgrade() -> None:
    op.drop_index('ix_processed_webhook_events_processed_at')
    op.drop_table('processed_webhook_events')
    op.drop_index('ix_messages_chat_room_id_created_at')
    op.drop_table('messages')
    op.drop_index('ix_chat_rooms_user_id')
    op.drop_table('chat_rooms')
    op.drop_index('ix_subscriptions_stripe_subscription_id')
    op.drop_index('ix_subscriptions_stripe_customer_id')
    op.drop_index('ix_subscriptions_user_id')
    op.drop_table('subscriptions')
    op.drop_index('ix_users_mobile_number')
    op.drop_table('users')
