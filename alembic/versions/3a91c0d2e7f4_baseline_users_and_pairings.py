"""baseline_users_and_pairings

Revision ID: 3a91c0d2e7f4
Revises: 
Create Date: 2026-09-28 10:14:22.518304

Production-safe migration: Only creates tables that do not exist yet. The
users and pairings tables are owned by the account and pairing services and
may already be present.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '3a91c0d2e7f4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    if not table_exists('users'):
        op.create_table('users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=False),
            sa.Column('email', sa.String(), nullable=True),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)

    if not table_exists('pairings'):
        op.create_table('pairings',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user1_id', sa.Integer(), nullable=False),
            sa.Column('user2_id', sa.Integer(), nullable=True),
            sa.Column('partner_code', sa.String(length=10), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False),
            sa.Column('premium', sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
            sa.ForeignKeyConstraint(['user1_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user2_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_pairings_user1_id'), 'pairings', ['user1_id'], unique=False)
        op.create_index(op.f('ix_pairings_user2_id'), 'pairings', ['user2_id'], unique=False)
        op.create_index(op.f('ix_pairings_partner_code'), 'pairings', ['partner_code'], unique=False)
        op.create_index(op.f('ix_pairings_status'), 'pairings', ['status'], unique=False)
        op.create_index(op.f('ix_pairings_premium'), 'pairings', ['premium'], unique=False)
        op.create_index(op.f('ix_pairings_deleted_at'), 'pairings', ['deleted_at'], unique=False)
        return

    # Existing pairings tables predate the premium flag
    bind = op.get_bind()
    columns = [col['name'] for col in inspect(bind).get_columns('pairings')]
    if 'premium' not in columns:
        op.add_column('pairings', sa.Column('premium', sa.Boolean(), server_default=sa.false(), nullable=False))
        op.create_index(op.f('ix_pairings_premium'), 'pairings', ['premium'], unique=False)


def downgrade() -> None:
    """Only the premium flag is owned by this service; shared tables are kept."""
    op.drop_index(op.f('ix_pairings_premium'), table_name='pairings')
    op.drop_column('pairings', 'premium')
