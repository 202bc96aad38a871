"""Initial check-in schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-01-21

VenuePulse Database Schema
==========================

Reference data: items (venues and events), users
Ledger: check_ins (append-only; one active record per user/item)
Derived: popularity_aggregates, user_history_entries
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =========================================================================
    # REFERENCE DATA
    # =========================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('kind', sa.String(32), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('city', sa.String(100)),
        sa.Column('address', sa.String(500)),
        sa.Column('latitude', sa.Float()),
        sa.Column('longitude', sa.Float()),
        sa.Column('starts_at', sa.DateTime()),
        sa.Column('legacy_id', sa.String(64)),
        sa.Column('legacy_participant_ids', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("latitude IS NULL OR (latitude BETWEEN -90 AND 90)", name='ck_items_latitude'),
        sa.CheckConstraint("longitude IS NULL OR (longitude BETWEEN -180 AND 180)", name='ck_items_longitude'),
    )
    op.create_index('ix_items_kind', 'items', ['kind'])
    op.create_index('ix_items_city', 'items', ['city'])
    op.create_index('ix_items_lat_lon', 'items', ['latitude', 'longitude'])

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('legacy_id', sa.String(64), unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # =========================================================================
    # LEDGER
    # =========================================================================
    op.create_table(
        'check_ins',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id'), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(), nullable=False),
        sa.Column('checked_out_at', sa.DateTime()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('provenance', sa.String(32), nullable=False, server_default='live'),
        sa.Column('legacy_source_id', sa.String(200)),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "is_active OR checked_out_at IS NOT NULL OR provenance = 'migrated_legacy'",
            name='ck_check_ins_checked_out',
        ),
    )
    op.create_index(
        'uq_check_ins_active_pair', 'check_ins', ['user_id', 'item_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active'),
    )
    op.create_index('ix_check_ins_item_time', 'check_ins', ['item_id', 'checked_in_at'])
    op.create_index('ix_check_ins_user_item', 'check_ins', ['user_id', 'item_id'])

    # =========================================================================
    # DERIVED STATE
    # =========================================================================
    op.create_table(
        'popularity_aggregates',
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id'), primary_key=True),
        sa.Column('recent_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('weekly_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('recomputed_at', sa.DateTime()),
    )
    op.create_index('ix_popularity_score', 'popularity_aggregates', ['score'])

    op.create_table(
        'user_history_entries',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('item_id', sa.Uuid(), sa.ForeignKey('items.id'), nullable=False),
        sa.Column('item_kind', sa.String(32), nullable=False),
        sa.Column('first_checked_in_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('user_id', 'item_id', name='uq_user_history_user_item'),
    )
    op.create_index('ix_user_history_user', 'user_history_entries', ['user_id'])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign keys)
    op.drop_table('user_history_entries')
    op.drop_table('popularity_aggregates')
    op.drop_index('uq_check_ins_active_pair', table_name='check_ins')
    op.drop_table('check_ins')
    op.drop_table('users')
    op.drop_table('items')
