"""Initial ledger schema: users, inventory, sales, invoices, payments, quotations

Revision ID: 20260301_initial
Revises:
Create Date: 2026-03-01

This migration creates:
1. Users and bearer session tokens
2. Inventory items (per-carat or flat pricing)
3. Invoices, sales (current and legacy invoice links), payments, invoice versions
4. Quotations, quotation items and approval rules
5. Document sequences and the activity log
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260301_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. USERS & SESSIONS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ==========================================================================
    # 2. INVENTORY
    # ==========================================================================
    op.create_table('inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('pricing_mode', sa.String(length=16), nullable=False, server_default='FLAT'),
        sa.Column('weight_value', sa.Float(), nullable=False, server_default='0'),
        sa.Column('weight_unit', sa.String(length=16), nullable=False, server_default='ct'),
        sa.Column('gem_type', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('shape', sa.String(length=64), nullable=True),
        sa.Column('dimensions', sa.String(length=64), nullable=True),
        sa.Column('rashi', sa.String(length=64), nullable=True),
        sa.Column('certificate_numbers', sa.String(length=255), nullable=True),
        sa.Column('purchase_rate_per_carat_cents', sa.Integer(), nullable=True),
        sa.Column('flat_purchase_cost_cents', sa.Integer(), nullable=True),
        sa.Column('selling_rate_per_carat_cents', sa.Integer(), nullable=True),
        sa.Column('flat_selling_price_cents', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='IN_STOCK'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_inventory_items_sku'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_inventory_items_status', 'inventory_items', ['status'])

    # ==========================================================================
    # 3. INVOICES, SALES, PAYMENTS
    # ==========================================================================
    op.create_table('invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=32), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ISSUED'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('display_options_json', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_number'),
        sa.UniqueConstraint('token', name='uq_invoices_token'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])

    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), sa.ForeignKey('inventory_items.id'), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='UNPAID'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=True),
        sa.Column('legacy_invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('legacy_invoice_id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_inventory_item_id', 'sales', ['inventory_item_id'])
    op.create_index('ix_sales_invoice', 'sales', ['invoice_id'])
    op.create_index('ix_sales_payment_status', 'sales', ['payment_status'])

    op.create_table('payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_invoice_created', 'payments', ['invoice_id', 'created_at'])
    op.create_index('ix_payments_reference', 'payments', ['reference'])

    op.create_table('invoice_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoices.id'), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('snapshot', sa.Text(), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_id', 'version_number', name='uq_invoice_versions_number'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_invoice_versions_invoice_id', 'invoice_versions', ['invoice_id'])

    # ==========================================================================
    # 4. QUOTATIONS & APPROVAL RULES
    # ==========================================================================
    op.create_table('quotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quotation_number', sa.String(length=32), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_mobile', sa.String(length=64), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_city', sa.String(length=128), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='DRAFT'),
        sa.Column('approval_reason', sa.String(length=255), nullable=True),
        sa.Column('approved_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quotation_number', name='uq_quotations_number'),
        sa.UniqueConstraint('token', name='uq_quotations_token'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_quotations_status', 'quotations', ['status'])
    op.create_index('ix_quotations_status_expiry', 'quotations', ['status', 'expiry_date'])

    op.create_table('quotation_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quotation_id', sa.Integer(), sa.ForeignKey('quotations.id'), nullable=False),
        sa.Column('inventory_item_id', sa.Integer(), sa.ForeignKey('inventory_items.id'), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('weight', sa.String(length=32), nullable=True),
        sa.Column('erp_base_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_override_type', sa.String(length=16), nullable=True),
        sa.Column('price_override_value', sa.Float(), nullable=True),
        sa.Column('final_unit_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_quotation_items_quotation_id', 'quotation_items', ['quotation_id'])
    op.create_index('ix_quotation_items_inventory_item_id', 'quotation_items', ['inventory_item_id'])

    op.create_table('approval_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_type', sa.String(length=16), nullable=False),
        sa.Column('threshold_value', sa.Float(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_approval_rules_active_position', 'approval_rules', ['is_active', 'position'])

    # ==========================================================================
    # 5. DOCUMENT SEQUENCES & ACTIVITY LOG
    # ==========================================================================
    op.create_table('document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'period', name='uq_doc_sequences_type_period'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    op.create_table('activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('entity_identifier', sa.String(length=64), nullable=True),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('old_data', sa.Text(), nullable=True),
        sa.Column('new_data', sa.Text(), nullable=True),
        sa.Column('field_changes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='WEB'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_activity_logs_entity', 'activity_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_activity_logs_action_created', 'activity_logs', ['action_type', 'created_at'])
    op.create_index('ix_activity_logs_created_at', 'activity_logs', ['created_at'])


def downgrade():
    op.drop_table('activity_logs')
    op.drop_table('document_sequences')
    op.drop_table('approval_rules')
    op.drop_table('quotation_items')
    op.drop_table('quotations')
    op.drop_table('invoice_versions')
    op.drop_table('payments')
    op.drop_table('sales')
    op.drop_table('invoices')
    op.drop_table('inventory_items')
    op.drop_table('session_tokens')
    op.drop_table('users')
