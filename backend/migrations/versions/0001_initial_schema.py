"""initial laundrypos schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema:
- stores / business_settings: tenants and their settings document
- products / categories: catalogue, products carry authoritative stock
- stock_history / pending_stock_history: append-only ledger and its outbox
- invoices / customers: sales documents
- daily_counters: per-store, per-business-date invoice sequences
- employees / attendance / salaries: staff records
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # stores: tenants
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'business_settings',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=True),
        sa.Column('print_format', sa.String(length=16), nullable=True),
        sa.Column('stock_management_enabled', sa.Boolean(), nullable=True),
        sa.Column('extra', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id')
    )

    # ============================================================================
    # products: catalogue with authoritative stock and optimistic version
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=128), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('purchase_price_cents', sa.Integer(), nullable=True),
        sa.Column('vat_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='product'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id'),
        sa.UniqueConstraint('store_id', 'barcode', name='uq_products_store_barcode')
    )
    op.create_index('ix_products_store_name', 'products', ['store_id', 'name'])

    op.create_table(
        'categories',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=512), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )

    # ============================================================================
    # stock_history: APPEND-ONLY ledger; pending_stock_history: its outbox
    # ============================================================================
    op.create_table(
        'stock_history',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('change_type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('previous_stock', sa.Integer(), nullable=False),
        sa.Column('new_stock', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=512), nullable=True),
        sa.Column('performed_by', sa.String(length=128), nullable=True),
        sa.Column('performed_by_role', sa.String(length=32), nullable=True),
        sa.Column('reference_id', sa.String(length=64), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index('ix_stock_history_store_product_ts', 'stock_history',
                    ['store_id', 'product_id', 'timestamp'])
    op.create_index('ix_stock_history_store_ts', 'stock_history', ['store_id', 'timestamp'])
    op.create_index(op.f('ix_stock_history_reference_id'), 'stock_history', ['reference_id'])

    op.create_table(
        'pending_stock_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_pending_stock_history_store_id'), 'pending_stock_history', ['store_id'])

    # ============================================================================
    # invoices / customers
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('customer_address', sa.String(length=512), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_vat_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='value'),
        sa.Column('discount_percentage', sa.Float(), nullable=True),
        sa.Column('grand_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('due_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_mode', sa.String(length=16), nullable=False, server_default='Cash'),
        sa.Column('created_by_name', sa.String(length=128), nullable=True),
        sa.Column('created_by_role', sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index('ix_invoices_store_date', 'invoices', ['store_id', 'date'])

    op.create_table(
        'customers',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=512), nullable=True),
        sa.Column('total_due_cents', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index('ix_customers_store_phone', 'customers', ['store_id', 'phone'])

    # ============================================================================
    # daily_counters: one row per store per business date
    # ============================================================================
    op.create_table(
        'daily_counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('date_key', sa.String(length=8), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('fixed_at', sa.DateTime(), nullable=True),
        sa.Column('reset_at', sa.DateTime(), nullable=True),
        sa.Column('reset_by', sa.String(length=128), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'date', name='uq_daily_counters_store_date'),
        sqlite_autoincrement=True
    )
    op.create_index(op.f('ix_daily_counters_store_id'), 'daily_counters', ['store_id'])

    # ============================================================================
    # staff
    # ============================================================================
    op.create_table(
        'employees',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='salesman'),
        sa.Column('monthly_salary_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('joined_on', sa.Date(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )

    op.create_table(
        'attendance',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('employee_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='present'),
        sa.Column('check_in', sa.DateTime(), nullable=True),
        sa.Column('check_out', sa.DateTime(), nullable=True),
        sa.Column('note', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index('ix_attendance_store_employee_date', 'attendance',
                    ['store_id', 'employee_id', 'date'])

    op.create_table(
        'salaries',
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('employee_id', sa.String(length=64), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('note', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('store_id', 'id')
    )
    op.create_index(op.f('ix_salaries_employee_id'), 'salaries', ['employee_id'])


def downgrade():
    op.drop_index(op.f('ix_salaries_employee_id'), table_name='salaries')
    op.drop_table('salaries')
    op.drop_index('ix_attendance_store_employee_date', table_name='attendance')
    op.drop_table('attendance')
    op.drop_table('employees')
    op.drop_index(op.f('ix_daily_counters_store_id'), table_name='daily_counters')
    op.drop_table('daily_counters')
    op.drop_index('ix_customers_store_phone', table_name='customers')
    op.drop_table('customers')
    op.drop_index('ix_invoices_store_date', table_name='invoices')
    op.drop_table('invoices')
    op.drop_index(op.f('ix_pending_stock_history_store_id'), table_name='pending_stock_history')
    op.drop_table('pending_stock_history')
    op.drop_index(op.f('ix_stock_history_reference_id'), table_name='stock_history')
    op.drop_index('ix_stock_history_store_ts', table_name='stock_history')
    op.drop_index('ix_stock_history_store_product_ts', table_name='stock_history')
    op.drop_table('stock_history')
    op.drop_table('categories')
    op.drop_index('ix_products_store_name', table_name='products')
    op.drop_table('products')
    op.drop_table('business_settings')
    op.drop_table('stores')
