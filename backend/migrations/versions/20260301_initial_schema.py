"""Initial schema: users, distributors, catalog, invoices, payments

Revision ID: 20260301_initial
Revises:
Create Date: 2026-03-01

This migration creates:
1. users
2. distributors, distributor_contacts, sales_staff_distributors
3. products, categories
4. invoices, invoice_items, payments
5. PostgreSQL trigger keeping invoices.paid_amount/status in step with payments
"""
from alembic import op
import sqlalchemy as sa

from app.models.triggers import PG_RECALC_FUNCTION, PG_TRIGGER_FUNCTION, PG_TRIGGER, SQLITE_TRIGGERS


# revision identifiers, used by Alembic.
revision = '20260301_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. USERS
    # ==========================================================================
    op.create_table('users',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('full_name', sa.String(length=100), nullable=False),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('id_card_number', sa.String(length=20), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('profile_image_url', sa.String(length=500), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=True),
        sa.Column('salary', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_role_active', 'users', ['role', 'is_active'], unique=False)

    # ==========================================================================
    # 2. DISTRIBUTORS
    # ==========================================================================
    op.create_table('distributors',
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('distributor_name', sa.String(length=200), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('postal_code', sa.String(length=20), nullable=True),
        sa.Column('ntn_number', sa.String(length=50), nullable=True),
        sa.Column('primary_contact_person', sa.String(length=100), nullable=False),
        sa.Column('primary_whatsapp_number', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['created_by'], ['users.user_id'], ),
        sa.PrimaryKeyConstraint('distributor_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_distributors_name', 'distributors', ['distributor_name'], unique=False)
    op.create_index('ix_distributors_city_active', 'distributors', ['city', 'is_active'], unique=False)
    op.create_index('ix_distributors_is_active', 'distributors', ['is_active'], unique=False)

    op.create_table('distributor_contacts',
        sa.Column('contact_id', sa.Integer(), nullable=False),
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('contact_person_name', sa.String(length=100), nullable=False),
        sa.Column('whatsapp_number', sa.String(length=20), nullable=True),
        sa.Column('phone_number', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('designation', sa.String(length=100), nullable=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['distributor_id'], ['distributors.distributor_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('contact_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_distributor_contacts_distributor_id', 'distributor_contacts', ['distributor_id'], unique=False)

    op.create_table('sales_staff_distributors',
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('sales_staff_id', sa.Integer(), nullable=False),
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('assigned_date', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['sales_staff_id'], ['users.user_id'], ),
        sa.ForeignKeyConstraint(['distributor_id'], ['distributors.distributor_id'], ),
        sa.PrimaryKeyConstraint('assignment_id'),
        sa.UniqueConstraint('sales_staff_id', 'distributor_id', name='uq_staff_distributor'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_distributor_active', 'sales_staff_distributors', ['sales_staff_id', 'is_active'], unique=False)
    op.create_index('ix_sales_staff_distributors_distributor_id', 'sales_staff_distributors', ['distributor_id'], unique=False)

    # ==========================================================================
    # 3. CATALOG
    # ==========================================================================
    op.create_table('products',
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('product_code', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('unit_of_measure', sa.String(length=50), nullable=False, server_default='piece'),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('product_id'),
        sa.UniqueConstraint('product_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['product_name'], unique=False)
    op.create_index('ix_products_category_active', 'products', ['category', 'is_active'], unique=False)
    op.create_index('ix_products_is_active', 'products', ['is_active'], unique=False)

    op.create_table('categories',
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('category_name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('category_id'),
        sa.UniqueConstraint('category_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_categories_display_order', 'categories', ['display_order', 'category_name'], unique=False)

    # ==========================================================================
    # 4. INVOICES AND PAYMENTS
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('distributor_id', sa.Integer(), nullable=False),
        sa.Column('sales_staff_id', sa.Integer(), nullable=False),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('paid_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['distributor_id'], ['distributors.distributor_id'], ),
        sa.ForeignKeyConstraint(['sales_staff_id'], ['users.user_id'], ),
        sa.PrimaryKeyConstraint('invoice_id'),
        sa.UniqueConstraint('invoice_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_status_due', 'invoices', ['status', 'due_date'], unique=False)
    op.create_index('ix_invoices_staff_date', 'invoices', ['sales_staff_id', 'invoice_date'], unique=False)
    op.create_index('ix_invoices_distributor', 'invoices', ['distributor_id'], unique=False)

    op.create_table('invoice_items',
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.invoice_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.product_id'], ),
        sa.PrimaryKeyConstraint('item_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'], unique=False)
    op.create_index('ix_invoice_items_product_id', 'invoice_items', ['product_id'], unique=False)

    op.create_table('payments',
        sa.Column('payment_id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=20), nullable=False),
        sa.Column('check_number', sa.String(length=50), nullable=True),
        sa.Column('bank_name', sa.String(length=100), nullable=True),
        sa.Column('transaction_reference', sa.String(length=100), nullable=True),
        sa.Column('receipt_image_url', sa.String(length=500), nullable=True),
        sa.Column('collected_by', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.invoice_id'], ),
        sa.ForeignKeyConstraint(['collected_by'], ['users.user_id'], ),
        sa.PrimaryKeyConstraint('payment_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_invoice', 'payments', ['invoice_id'], unique=False)
    op.create_index('ix_payments_collector_date', 'payments', ['collected_by', 'payment_date'], unique=False)

    # ==========================================================================
    # 5. PAID-AMOUNT TRIGGER
    # ==========================================================================
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for statement in (PG_RECALC_FUNCTION, PG_TRIGGER_FUNCTION, PG_TRIGGER):
            op.execute(statement)
    elif bind.dialect.name == 'sqlite':
        for statement in SQLITE_TRIGGERS:
            op.execute(statement)


def downgrade():
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute("DROP TRIGGER IF EXISTS trg_payments_paid_amount ON payments")
        op.execute("DROP FUNCTION IF EXISTS update_invoice_paid_amount()")
        op.execute("DROP FUNCTION IF EXISTS recalc_invoice_paid_amount(INTEGER)")

    op.drop_index('ix_payments_collector_date', table_name='payments')
    op.drop_index('ix_payments_invoice', table_name='payments')
    op.drop_table('payments')

    op.drop_index('ix_invoice_items_product_id', table_name='invoice_items')
    op.drop_index('ix_invoice_items_invoice_id', table_name='invoice_items')
    op.drop_table('invoice_items')

    op.drop_index('ix_invoices_distributor', table_name='invoices')
    op.drop_index('ix_invoices_staff_date', table_name='invoices')
    op.drop_index('ix_invoices_status_due', table_name='invoices')
    op.drop_table('invoices')

    op.drop_index('ix_categories_display_order', table_name='categories')
    op.drop_table('categories')

    op.drop_index('ix_products_is_active', table_name='products')
    op.drop_index('ix_products_category_active', table_name='products')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_sales_staff_distributors_distributor_id', table_name='sales_staff_distributors')
    op.drop_index('ix_staff_distributor_active', table_name='sales_staff_distributors')
    op.drop_table('sales_staff_distributors')

    op.drop_index('ix_distributor_contacts_distributor_id', table_name='distributor_contacts')
    op.drop_table('distributor_contacts')

    op.drop_index('ix_distributors_is_active', table_name='distributors')
    op.drop_index('ix_distributors_city_active', table_name='distributors')
    op.drop_index('ix_distributors_name', table_name='distributors')
    op.drop_table('distributors')

    op.drop_index('ix_users_role_active', table_name='users')
    op.drop_table('users')
