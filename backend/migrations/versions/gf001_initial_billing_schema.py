"""initial storage billing schema

Revision ID: gf001
Revises:
Create Date: 2026-10-01 00:00:00.000000

Creates the storage billing schema from scratch:
- warehouses / customers / crops / crop_rate_tiers: tenancy and rent tables
- storage_records: bag accounting and billed totals per deposit
- withdrawal_transactions: append-only withdrawal ledger (OUTFLOW / REVERSAL)
- payments: money received per record (soft delete, external id dedup)
- invoice_sequences: per-warehouse record / invoice counters
- notifications, rate_limit_events: activity feed and rate limiting
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'gf001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # warehouses: tenant boundary
    # ============================================================================
    op.create_table(
        'warehouses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_warehouse_id', 'customers', ['warehouse_id'])
    op.create_index('ix_customers_warehouse_name', 'customers', ['warehouse_id', 'name'])

    # ============================================================================
    # crops + crop_rate_tiers: rent configuration
    # ============================================================================
    op.create_table(
        'crops',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('warehouse_id', 'name', name='uq_crops_warehouse_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_crops_warehouse_id', 'crops', ['warehouse_id'])

    op.create_table(
        'crop_rate_tiers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('crop_id', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(length=64), nullable=False),
        sa.Column('max_days', sa.Integer(), nullable=False),
        sa.Column('rate_paise', sa.Integer(), nullable=False),
        sa.CheckConstraint('max_days > 0', name='ck_crop_rate_tiers_max_days_positive'),
        sa.CheckConstraint('rate_paise >= 0', name='ck_crop_rate_tiers_rate_nonneg'),
        sa.ForeignKeyConstraint(['crop_id'], ['crops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('crop_id', 'max_days', name='uq_crop_rate_tiers_crop_days'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_crop_rate_tiers_crop_id', 'crop_rate_tiers', ['crop_id'])

    # ============================================================================
    # storage_records: one deposit batch
    # ============================================================================
    op.create_table(
        'storage_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('crop_id', sa.Integer(), nullable=False),
        sa.Column('record_number', sa.Integer(), nullable=False),
        sa.Column('commodity', sa.String(length=255), nullable=False),
        sa.Column('lot_id', sa.String(length=64), nullable=True),
        sa.Column('bags_in', sa.Integer(), nullable=False),
        sa.Column('bags_stored', sa.Integer(), nullable=False),
        sa.Column('bags_out', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_rent_billed_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hamali_payable_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('billing_cycle', sa.String(length=64), nullable=True),
        sa.Column('storage_start_date', sa.Date(), nullable=False),
        sa.Column('storage_end_date', sa.Date(), nullable=True),
        sa.Column('inflow_invoice_no', sa.String(length=64), nullable=True),
        sa.Column('outflow_invoice_no', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('bags_stored >= 0', name='ck_storage_records_bags_stored_nonneg'),
        sa.CheckConstraint('bags_out >= 0', name='ck_storage_records_bags_out_nonneg'),
        sa.CheckConstraint('bags_stored + bags_out = bags_in', name='ck_storage_records_bag_balance'),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['crop_id'], ['crops.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('warehouse_id', 'record_number', name='uq_storage_records_warehouse_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_storage_records_warehouse_id', 'storage_records', ['warehouse_id'])
    op.create_index('ix_storage_records_customer_id', 'storage_records', ['customer_id'])
    op.create_index('ix_storage_records_crop_id', 'storage_records', ['crop_id'])
    op.create_index('ix_storage_records_storage_start_date', 'storage_records', ['storage_start_date'])
    op.create_index('ix_storage_records_storage_end_date', 'storage_records', ['storage_end_date'])
    op.create_index('ix_storage_records_customer_commodity_start',
                    'storage_records', ['customer_id', 'commodity', 'storage_start_date'])

    # ============================================================================
    # withdrawal_transactions: append-only withdrawal ledger
    # ============================================================================
    op.create_table(
        'withdrawal_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=16), nullable=False, server_default='OUTFLOW'),
        sa.Column('bags_withdrawn', sa.Integer(), nullable=False),
        sa.Column('rent_collected_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('hamali_charged_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('withdrawal_date', sa.Date(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('reverses_transaction_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['record_id'], ['storage_records.id']),
        sa.ForeignKeyConstraint(['reverses_transaction_id'], ['withdrawal_transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reverses_transaction_id', name='uq_withdrawal_txns_reverses'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_withdrawal_transactions_record_id', 'withdrawal_transactions', ['record_id'])
    op.create_index('ix_withdrawal_transactions_entry_type', 'withdrawal_transactions', ['entry_type'])
    op.create_index('ix_withdrawal_transactions_created_at', 'withdrawal_transactions', ['created_at'])
    op.create_index('ix_withdrawal_txns_record_date',
                    'withdrawal_transactions', ['record_id', 'withdrawal_date'])

    # ============================================================================
    # payments
    # ============================================================================
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('payment_type', sa.String(length=32), nullable=False, server_default='rent'),
        sa.Column('payment_method', sa.String(length=32), nullable=False, server_default='cash'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('external_payment_id', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('amount_paise > 0', name='ck_payments_amount_positive'),
        sa.ForeignKeyConstraint(['record_id'], ['storage_records.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_payment_id', name='uq_payments_external_payment_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_record_id', 'payments', ['record_id'])
    op.create_index('ix_payments_customer_id', 'payments', ['customer_id'])
    op.create_index('ix_payments_warehouse_id', 'payments', ['warehouse_id'])
    op.create_index('ix_payments_payment_type', 'payments', ['payment_type'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])
    op.create_index('ix_payments_customer_date', 'payments', ['customer_id', 'payment_date'])

    # ============================================================================
    # invoice_sequences: per-warehouse counters
    # ============================================================================
    op.create_table(
        'invoice_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=False),
        sa.Column('sequence_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('warehouse_id', 'sequence_type', name='uq_invoice_sequences_warehouse_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_sequences_warehouse_id', 'invoice_sequences', ['warehouse_id'])
    op.create_index('ix_invoice_sequences_sequence_type', 'invoice_sequences', ['sequence_type'])

    # ============================================================================
    # notifications + rate_limit_events
    # ============================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('warehouse_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=128), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('level', sa.String(length=16), nullable=False, server_default='info'),
        sa.Column('link', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['warehouse_id'], ['warehouses.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_notifications_warehouse_id', 'notifications', ['warehouse_id'])
    op.create_index('ix_notifications_warehouse_created', 'notifications', ['warehouse_id', 'created_at'])

    op.create_table(
        'rate_limit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=128), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_rate_limit_events_occurred_at', 'rate_limit_events', ['occurred_at'])
    op.create_index('ix_rate_limit_events_identity_action_occurred',
                    'rate_limit_events', ['identity', 'action', 'occurred_at'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('rate_limit_events')
    op.drop_table('notifications')
    op.drop_table('invoice_sequences')
    op.drop_table('payments')
    op.drop_table('withdrawal_transactions')
    op.drop_table('storage_records')
    op.drop_table('crop_rate_tiers')
    op.drop_table('crops')
    op.drop_table('customers')
    op.drop_table('warehouses')
