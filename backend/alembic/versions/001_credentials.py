"""Add credentials table

Revision ID: 001_credentials
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_credentials'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'credentials',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('account_id', sa.String(64), nullable=False),
        sa.Column('provider', sa.String(32), nullable=False),
        sa.Column('external_athlete_id', sa.String(32), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.Integer(), nullable=False),
        sa.Column('scope', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('account_id', 'provider', name='uq_credentials_account_provider'),
    )

    op.create_index('ix_credentials_account_id', 'credentials', ['account_id'])


def downgrade() -> None:
    op.drop_index('ix_credentials_account_id', 'credentials')
    op.drop_table('credentials')
