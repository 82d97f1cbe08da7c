"""create_marketplace_tables

Revision ID: 3f6c1b2a9d40
Revises:
Create Date: 2026-10-19 09:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ENUM, UUID


# revision identifiers, used by Alembic.
revision: str = '3f6c1b2a9d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_status = ENUM(
    'pending', 'processing', 'completed', 'cancelled',
    name='marketplace_order_status_enum',
    create_type=False,
)
payment_status = ENUM(
    'pending', 'paid', 'failed',
    name='marketplace_payment_status_enum',
    create_type=False,
)


def upgrade() -> None:
    """Upgrade schema - Add marketplace tables."""
    order_status.create(op.get_bind(), checkfirst=True)
    payment_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'marketplace_stores',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('owner_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_marketplace_stores_owner_id', 'marketplace_stores', ['owner_id'])

    op.create_table(
        'marketplace_products',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('store_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('in_stock', sa.Boolean(), nullable=False),
        sa.Column('is_featured', sa.Boolean(), nullable=False),
        sa.Column('average_rating', sa.Numeric(2, 1), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('stock >= 0', name='product_stock_non_negative'),
        sa.CheckConstraint('price >= 0', name='product_price_non_negative'),
        sa.ForeignKeyConstraint(['store_id'], ['marketplace_stores.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'marketplace_orders',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('total', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', order_status, server_default='pending', nullable=False),
        sa.Column('status_message', sa.Text(), nullable=True),
        sa.Column('payment_status', payment_status, nullable=True),
        sa.Column('payment_reference', sa.String(length=255), nullable=True),
        sa.Column('payment_provider', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_reference')
    )
    op.create_index('ix_marketplace_orders_user_id', 'marketplace_orders', ['user_id'])
    op.create_index(
        'ix_marketplace_orders_payment_status',
        'marketplace_orders',
        ['payment_status', 'updated_at'],
    )

    op.create_table(
        'marketplace_order_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_at_purchase', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_item_positive_quantity'),
        sa.ForeignKeyConstraint(['order_id'], ['marketplace_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['marketplace_products.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'marketplace_order_status_history',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['marketplace_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'marketplace_carts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_marketplace_carts_user_id', 'marketplace_carts', ['user_id'])

    op.create_table(
        'marketplace_cart_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('cart_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='cart_item_positive_quantity'),
        sa.ForeignKeyConstraint(['cart_id'], ['marketplace_carts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['marketplace_products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'product_id', name='unique_cart_product')
    )

    op.create_table(
        'marketplace_reviews',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='review_rating_range'),
        sa.ForeignKeyConstraint(['product_id'], ['marketplace_products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['order_id'], ['marketplace_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'product_id', 'order_id', name='unique_review_per_order_item'
        )
    )
    op.create_index('ix_marketplace_reviews_user_id', 'marketplace_reviews', ['user_id'])


def downgrade() -> None:
    """Downgrade schema - Remove marketplace tables."""

    op.drop_index('ix_marketplace_reviews_user_id', table_name='marketplace_reviews')
    op.drop_table('marketplace_reviews')
    op.drop_table('marketplace_cart_items')
    op.drop_index('ix_marketplace_carts_user_id', table_name='marketplace_carts')
    op.drop_table('marketplace_carts')
    op.drop_table('marketplace_order_status_history')
    op.drop_table('marketplace_order_items')
    op.drop_index('ix_marketplace_orders_payment_status', table_name='marketplace_orders')
    op.drop_index('ix_marketplace_orders_user_id', table_name='marketplace_orders')
    op.drop_table('marketplace_orders')
    op.drop_table('marketplace_products')
    op.drop_index('ix_marketplace_stores_owner_id', table_name='marketplace_stores')
    op.drop_table('marketplace_stores')

    payment_status.drop(op.get_bind(), checkfirst=True)
    order_status.drop(op.get_bind(), checkfirst=True)
