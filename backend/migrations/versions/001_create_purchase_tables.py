"""Create tracks, purchases and stripe_events tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tables may already exist if they were created by Base.metadata.create_all
    conn = op.get_bind()
    inspector = inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'tracks' not in existing_tables:
        op.create_table(
            'tracks',
            sa.Column('id', sa.String(length=64), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('artist', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('stripe_price_id', sa.String(length=255), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('audio_object_key', sa.String(length=1024), nullable=True),
            sa.Column('cover_url', sa.String(length=1024), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )

    if 'purchases' not in existing_tables:
        op.create_table(
            'purchases',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('buyer_id', sa.String(length=255), nullable=False),
            sa.Column('track_id', sa.String(length=64), nullable=False),
            sa.Column('provider_transaction_id', sa.String(length=255), nullable=False),
            sa.Column('amount_cents', sa.Integer(), nullable=False),
            sa.Column('currency', sa.String(length=3), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='paid'),
            sa.Column('purchased_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_purchases_id', 'purchases', ['id'])
        op.create_index('ix_purchases_provider_transaction_id', 'purchases', ['provider_transaction_id'], unique=True)
        op.create_index('ix_purchases_buyer_track_status', 'purchases', ['buyer_id', 'track_id', 'status'])
    else:
        existing_indexes = [idx['name'] for idx in inspector.get_indexes('purchases')]
        if 'ix_purchases_provider_transaction_id' not in existing_indexes:
            op.create_index('ix_purchases_provider_transaction_id', 'purchases', ['provider_transaction_id'], unique=True)
        if 'ix_purchases_buyer_track_status' not in existing_indexes:
            op.create_index('ix_purchases_buyer_track_status', 'purchases', ['buyer_id', 'track_id', 'status'])

    if 'stripe_events' not in existing_tables:
        op.create_table(
            'stripe_events',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
            sa.Column('event_type', sa.String(length=100), nullable=False),
            sa.Column('transaction_id', sa.String(length=255), nullable=True),
            sa.Column('outcome', sa.String(length=50), nullable=False),
            sa.Column('payload', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_stripe_events_id', 'stripe_events', ['id'])
        op.create_index('ix_stripe_events_stripe_event_id', 'stripe_events', ['stripe_event_id'], unique=True)
        op.create_index('ix_stripe_events_event_type', 'stripe_events', ['event_type'])
        op.create_index('ix_stripe_events_transaction_id', 'stripe_events', ['transaction_id'])


def downgrade() -> None:
    op.drop_table('stripe_events')
    op.drop_table('purchases')
    op.drop_table('tracks')
