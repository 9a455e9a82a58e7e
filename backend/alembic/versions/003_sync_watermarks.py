"""Add sync_watermarks table

Revision ID: 003_sync_watermarks
Revises: 002_activity_records
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '003_sync_watermarks'
down_revision: Union[str, None] = '002_activity_records'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'sync_watermarks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(64), nullable=False),
        sa.Column('source', sa.String(32), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.String(500), nullable=True),
        sa.Column('total_synced', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('account_id', 'source', name='uq_sync_watermarks_account_source'),
    )

    op.create_index('ix_sync_watermarks_account_id', 'sync_watermarks', ['account_id'])


def downgrade() -> None:
    op.drop_index('ix_sync_watermarks_account_id', 'sync_watermarks')
    op.drop_table('sync_watermarks')
