"""Initial migration

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), unique=True, nullable=False),
        sa.Column('timezone', sa.String(50), default='America/Mexico_City'),
        sa.Column('tax_rate', sa.Numeric(5, 4), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create terminal_configs table
    op.create_table(
        'terminal_configs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('provider', sa.String(50), nullable=False, server_default='clip'),
        sa.Column('api_key', sa.String(255)),
        sa.Column('secret_key', sa.String(255)),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create products table
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('sku', sa.String(50)),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('track_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create cash_registers table
    op.create_table(
        'cash_registers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('opened_by', sa.String(255)),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('opening_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_sales', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_cash', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_card', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_transfer', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_terminal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('sale_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('opened_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('closed_at', sa.DateTime()),
    )

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_number', sa.String(20), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('customer_phone', sa.String(50)),
        sa.Column('customer_telegram_chat_id', sa.String(100)),
        sa.Column('notification_method', sa.String(20), nullable=False, server_default='email'),
        sa.Column('items_json', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tax', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('tip', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('cancellation_reason', sa.Text()),
        sa.Column('pickup_time', sa.DateTime()),
        sa.Column('notification_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='on_arrival'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending_payment'),
        sa.Column('payment_reference', sa.String(255)),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('cash_register_id', sa.Uuid(), sa.ForeignKey('cash_registers.id')),
        sa.Column('customer_notes', sa.Text()),
        sa.Column('staff_notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('started_preparing_at', sa.DateTime()),
        sa.Column('ready_at', sa.DateTime()),
        sa.Column('picked_up_at', sa.DateTime()),
        sa.Column('cancelled_at', sa.DateTime()),
        sa.UniqueConstraint('tenant_id', 'order_number', name='uq_orders_tenant_order_number'),
    )

    # Create order_status_history table
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('old_status', sa.String(20)),
        sa.Column('new_status', sa.String(20), nullable=False),
        sa.Column('changed_by', sa.String(255)),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create stock_movements table
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('product_id', sa.Uuid(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('movement_type', sa.String(20), nullable=False, server_default='sale'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.UniqueConstraint('order_id', 'product_id', name='uq_stock_movements_order_product'),
    )

    # Create notification_logs table
    op.create_table(
        'notification_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.Uuid(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_id', sa.Uuid(), sa.ForeignKey('orders.id')),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('recipient', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('subject', sa.String(255)),
        sa.Column('content', sa.Text()),
        sa.Column('provider_message_id', sa.String(255)),
        sa.Column('error_message', sa.Text()),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('sent_at', sa.DateTime()),
    )

    # Create indexes
    op.create_index('ix_orders_tenant_status', 'orders', ['tenant_id', 'status'])
    op.create_index('ix_orders_payment_reference', 'orders', ['payment_reference'])
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])
    op.create_index('ix_notification_logs_order_id', 'notification_logs', ['order_id'])


def downgrade() -> None:
    op.drop_index('ix_notification_logs_order_id')
    op.drop_index('ix_stock_movements_product_id')
    op.drop_index('ix_order_status_history_order_id')
    op.drop_index('ix_orders_payment_reference')
    op.drop_index('ix_orders_tenant_status')

    op.drop_table('notification_logs')
    op.drop_table('stock_movements')
    op.drop_table('order_status_history')
    op.drop_table('orders')
    op.drop_table('cash_registers')
    op.drop_table('products')
    op.drop_table('terminal_configs')
    op.drop_table('tenants')
