"""create_payment_tables

Revision ID: 3f1c2a7d9b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c2a7d9b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('number', sa.String(length=50), nullable=False, comment='Storefront order number'),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=30), nullable=False, comment='credit_card/billet'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='BRL'),
        sa.Column('total', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('shipping_total', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('total_tax', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_total', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('customer_ip', sa.String(length=64), nullable=True),
        sa.Column('billing', sa.JSON(), nullable=False, comment='Billing contact'),
        sa.Column('billing_address', sa.JSON(), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('shipping_line', sa.JSON(), nullable=True),
        sa.Column('notes', sa.JSON(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='Extension metadata'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'], unique=False)
    op.create_index('ix_orders_number', 'orders', ['number'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)

    # Create order_refunds table
    op.create_table(
        'order_refunds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('refund_payment', sa.Boolean(), nullable=False, server_default='false',
                  comment='Refund issued through the gateway API'),
        sa.Column('restock_items', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('gateway_refund_id', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_refunds_id', 'order_refunds', ['id'], unique=False)
    op.create_index('ix_order_refunds_order_id', 'order_refunds', ['order_id'], unique=False)
    op.create_index('ix_order_refunds_gateway_refund_id', 'order_refunds', ['gateway_refund_id'], unique=False)
    op.create_index('ix_order_refunds_order_gateway', 'order_refunds', ['order_id', 'gateway_refund_id'], unique=False)

    # Create payment_transactions table
    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.String(length=100), nullable=True, comment='Gateway charge uuid'),
        sa.Column('cancelled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('declined', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('failure', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('pending_notified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('refunded_ids', sa.JSON(), nullable=False, comment='Applied gateway refund ids'),
        sa.Column('display', sa.JSON(), nullable=True, comment='Card brand, masked number, installments, billet url'),
        sa.Column('last_status', sa.String(length=30), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payment_transactions_id', 'payment_transactions', ['id'], unique=False)
    op.create_index('ix_payment_transactions_order_id', 'payment_transactions', ['order_id'], unique=True)
    op.create_index('ix_payment_transactions_transaction_id', 'payment_transactions', ['transaction_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_payment_transactions_transaction_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_order_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_id', table_name='payment_transactions')
    op.drop_table('payment_transactions')

    op.drop_index('ix_order_refunds_order_gateway', table_name='order_refunds')
    op.drop_index('ix_order_refunds_gateway_refund_id', table_name='order_refunds')
    op.drop_index('ix_order_refunds_order_id', table_name='order_refunds')
    op.drop_index('ix_order_refunds_id', table_name='order_refunds')
    op.drop_table('order_refunds')

    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_number', table_name='orders')
    op.drop_index('ix_orders_id', table_name='orders')
    op.drop_table('orders')
