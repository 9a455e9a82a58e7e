"""Add activity_records table

Revision ID: 002_activity_records
Revises: 001_credentials
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_activity_records'
down_revision: Union[str, None] = '001_credentials'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'activity_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(64), nullable=False),
        sa.Column('source', sa.String(32), nullable=False),
        sa.Column('source_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('sport', sa.String(50), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('duration_sec', sa.Integer(), nullable=False),
        sa.Column('distance_m', sa.Float(), nullable=True),
        sa.Column('elevation_gain_m', sa.Float(), nullable=True),
        sa.Column('avg_heart_rate', sa.Integer(), nullable=True),
        sa.Column('raw_payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            'account_id', 'source', 'source_id',
            name='uq_activity_records_account_source_id'
        ),
    )

    op.create_index('ix_activity_records_account_id', 'activity_records', ['account_id'])
    op.create_index('ix_activity_records_started_at', 'activity_records', ['started_at'])


def downgrade() -> None:
    op.drop_index('ix_activity_records_started_at', 'activity_records')
    op.drop_index('ix_activity_records_account_id', 'activity_records')
    op.drop_table('activity_records')
