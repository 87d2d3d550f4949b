"""create_notification_tables

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create outbox, preference, inbox, membership and contact tables."""
    json_type = postgresql.JSONB().with_variant(sa.JSON(), 'sqlite')

    op.create_table(
        'notification_outbox',
        sa.Column('id', sa.Uuid(), nullable=False),

        # Event identification
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=100), nullable=False),
        sa.Column('entity_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),

        # Delivery target
        sa.Column('channel', sa.String(length=20), nullable=False),
        sa.Column('recipient_id', sa.String(length=100), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),

        # Delivery state
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('next_attempt_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('claimed_by', sa.String(length=255), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),

        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_outbox')),
        sa.UniqueConstraint('idempotency_key', name='uq_notification_outbox_idempotency_key'),
    )
    op.create_index('ix_notification_outbox_due', 'notification_outbox', ['status', 'next_attempt_at'], unique=False)
    op.create_index('ix_notification_outbox_entity', 'notification_outbox', ['event_type', 'entity_id'], unique=False)
    op.create_index(
        op.f('ix_notification_outbox_recipient_id'), 'notification_outbox', ['recipient_id'], unique=False
    )

    op.create_table(
        'notification_preferences',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('recipient_id', sa.String(length=100), nullable=False),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('in_app_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('webhook_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('webhook_url', sa.String(length=2048), nullable=True),
        sa.Column('webhook_secret', sa.String(length=255), nullable=True),
        sa.Column('event_overrides', json_type, nullable=False, server_default='{}'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notification_preferences')),
        sa.UniqueConstraint('recipient_id', name='uq_notification_preferences_recipient_id'),
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.String(length=100), nullable=True),
        sa.Column('source_key', sa.String(length=255), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
        sa.UniqueConstraint('source_key', name='uq_notifications_source_key'),
    )
    op.create_index(
        'ix_notifications_user_unread', 'notifications', ['user_id', 'is_read', 'created_at'], unique=False
    )

    op.create_table(
        'org_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('org_id', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_org_members')),
        sa.UniqueConstraint('org_id', 'user_id', name='uq_org_members_org_id_user_id'),
    )
    op.create_index('ix_org_members_org_role', 'org_members', ['org_id', 'role'], unique=False)
    op.create_index('ix_org_members_role', 'org_members', ['role'], unique=False)

    op.create_table(
        'user_contacts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_user_contacts')),
        sa.UniqueConstraint('user_id', name='uq_user_contacts_user_id'),
    )


def downgrade() -> None:
    """Drop notification tables."""
    op.drop_table('user_contacts')
    op.drop_index('ix_org_members_role', table_name='org_members')
    op.drop_index('ix_org_members_org_role', table_name='org_members')
    op.drop_table('org_members')
    op.drop_index('ix_notifications_user_unread', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('notification_preferences')
    op.drop_index(op.f('ix_notification_outbox_recipient_id'), table_name='notification_outbox')
    op.drop_index('ix_notification_outbox_entity', table_name='notification_outbox')
    op.drop_index('ix_notification_outbox_due', table_name='notification_outbox')
    op.drop_table('notification_outbox')
