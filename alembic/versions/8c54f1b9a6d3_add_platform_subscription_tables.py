"""add_platform_subscription_tables

Revision ID: 8c54f1b9a6d3
Revises: 3a91c0d2e7f4
Create Date: 2026-09-28 11:02:47.903115

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c54f1b9a6d3'
down_revision: Union[str, None] = '3a91c0d2e7f4'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create iOS and Android receipt tables with unique upsert keys."""
    op.create_table('ios_subscriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=255), nullable=False),
        sa.Column('transaction_id', sa.String(length=255), nullable=False),
        sa.Column('original_transaction_id', sa.String(length=255), nullable=False),
        sa.Column('jws_receipt', sa.Text(), nullable=False),
        sa.Column('environment', sa.String(length=50), nullable=False),
        sa.Column('purchase_date', sa.BigInteger(), nullable=False),
        sa.Column('expiration_date', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', name='uq_ios_transaction_id')
    )
    op.create_index(op.f('ix_ios_subscriptions_user_id'), 'ios_subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_ios_subscriptions_original_transaction_id'), 'ios_subscriptions', ['original_transaction_id'], unique=False)
    op.create_index(op.f('ix_ios_subscriptions_expiration_date'), 'ios_subscriptions', ['expiration_date'], unique=False)
    op.create_index('idx_ios_user_expiration', 'ios_subscriptions', ['user_id', 'expiration_date'], unique=False)

    op.create_table('android_subscriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(length=255), nullable=False),
        sa.Column('purchase_token', sa.String(length=255), nullable=False),
        sa.Column('order_id', sa.String(length=255), nullable=False),
        sa.Column('package_name', sa.String(length=255), nullable=False),
        sa.Column('purchase_date', sa.BigInteger(), nullable=False),
        sa.Column('expiration_date', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_android_order_id')
    )
    op.create_index(op.f('ix_android_subscriptions_user_id'), 'android_subscriptions', ['user_id'], unique=False)
    op.create_index(op.f('ix_android_subscriptions_purchase_token'), 'android_subscriptions', ['purchase_token'], unique=False)
    op.create_index(op.f('ix_android_subscriptions_expiration_date'), 'android_subscriptions', ['expiration_date'], unique=False)
    op.create_index('idx_android_user_expiration', 'android_subscriptions', ['user_id', 'expiration_date'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_android_user_expiration', table_name='android_subscriptions')
    op.drop_index(op.f('ix_android_subscriptions_expiration_date'), table_name='android_subscriptions')
    op.drop_index(op.f('ix_android_subscriptions_purchase_token'), table_name='android_subscriptions')
    op.drop_index(op.f('ix_android_subscriptions_user_id'), table_name='android_subscriptions')
    op.drop_table('android_subscriptions')
    op.drop_index('idx_ios_user_expiration', table_name='ios_subscriptions')
    op.drop_index(op.f('ix_ios_subscriptions_expiration_date'), table_name='ios_subscriptions')
    op.drop_index(op.f('ix_ios_subscriptions_original_transaction_id'), table_name='ios_subscriptions')
    op.drop_index(op.f('ix_ios_subscriptions_user_id'), table_name='ios_subscriptions')
    op.drop_table('ios_subscriptions')
