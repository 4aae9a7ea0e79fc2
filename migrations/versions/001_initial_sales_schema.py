"""
Alembic migration: Initial sale lifecycle schema.

Creates staff users, customers, the vehicle catalogue, stock units, sales with
their status history, payments, document number counters and the activity
log. Sales, stock and payments carry a version counter for optimistic
locking, and a partial unique index keeps a stock unit on at most one
non-cancelled sale.

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ENUM_TYPES = {
    'user_role': ('ADMIN', 'SALES_MANAGER', 'STOCK_STAFF', 'ACCOUNTANT', 'SALES_STAFF'),
    'stock_status': ('AVAILABLE', 'RESERVED', 'PREPARING', 'SOLD'),
    'sale_type': ('RESERVATION_SALE', 'DIRECT_SALE'),
    'sale_status': ('DRAFT', 'RESERVED', 'CONTRACTED', 'COMPLETED', 'DELIVERED', 'CANCELLED'),
    'sale_history_action': ('CREATE_SALE', 'UPDATE_STATUS', 'ASSIGN_STOCK', 'CHANGE_STOCK'),
    'payment_method': ('CASH', 'BANK_TRANSFER', 'CHEQUE', 'CREDIT_CARD'),
    'payment_type': ('DEPOSIT', 'DOWN_PAYMENT', 'FINANCE_PAYMENT', 'OTHER_EXPENSE'),
    'payment_mode': ('FULL', 'INSTALLMENT'),
    'payment_status': ('ACTIVE', 'VOIDED'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
        comment='Unique identifier for the record',
    )


def _audit_columns() -> list:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was last updated',
        ),
        sa.Column(
            'created_by',
            postgresql.UUID(as_uuid=True),
            nullable=True,
            comment='User ID who created the record',
        ),
    ]


def upgrade() -> None:
    """Create every table, enum type and index of the sale lifecycle."""
    for name, values in ENUM_TYPES.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        _id_column(),
        sa.Column('username', sa.String(length=100), nullable=False, comment='Unique login name'),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column(
            'role',
            _enum('user_role'),
            nullable=False,
            server_default=sa.text("'SALES_STAFF'"),
            comment='Role used for permission checks',
        ),
        sa.Column(
            'is_active',
            sa.Boolean(),
            nullable=False,
            server_default=sa.text('true'),
            comment='Whether the account may act',
        ),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        comment='Dealership staff accounts',
    )
    op.create_index('ix_users_role_active', 'users', ['role', 'is_active'])

    op.create_table(
        'customers',
        _id_column(),
        sa.Column('code', sa.String(length=20), nullable=False, comment='Human readable customer code'),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('phone', sa.String(length=30), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('tax_id', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.UniqueConstraint('code', name='uq_customers_code'),
        comment='Vehicle buyers',
    )

    op.create_table(
        'vehicle_models',
        _id_column(),
        sa.Column('brand', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('variant', sa.String(length=100), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('list_price', sa.Numeric(precision=12, scale=2), nullable=False, comment='Suggested retail price'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name='pk_vehicle_models'),
        sa.UniqueConstraint('brand', 'model', 'variant', 'year', name='uq_vehicle_models_identity'),
        sa.CheckConstraint('list_price >= 0', name='ck_vehicle_models_list_price_non_negative'),
        comment='Vehicle model catalogue',
    )

    op.create_table(
        'stock',
        _id_column(),
        sa.Column('vin', sa.String(length=17), nullable=False, comment='Vehicle identification number'),
        sa.Column('engine_number', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=50), nullable=True),
        sa.Column('vehicle_model_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            'status',
            _enum('stock_status'),
            nullable=False,
            server_default=sa.text("'AVAILABLE'"),
            comment='Current availability',
        ),
        sa.Column('cost_price', sa.Numeric(precision=12, scale=2), nullable=False, server_default=sa.text('0')),
        sa.Column(
            'actual_sale_price',
            sa.Numeric(precision=12, scale=2),
            nullable=True,
            comment='Sale total recorded when the unit was sold',
        ),
        sa.Column('reserved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sold_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_stock'),
        sa.UniqueConstraint('vin', name='uq_stock_vin'),
        sa.ForeignKeyConstraint(
            ['vehicle_model_id'],
            ['vehicle_models.id'],
            name='fk_stock_vehicle_model_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('cost_price >= 0', name='ck_stock_cost_price_non_negative'),
        comment='Physical vehicle units',
    )
    op.create_index('ix_stock_status', 'stock', ['status'])
    op.create_index('ix_stock_vehicle_model_id', 'stock', ['vehicle_model_id'])

    op.create_table(
        'sales',
        _id_column(),
        sa.Column('sale_number', sa.String(length=20), nullable=False, comment='Human readable sale number'),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stock_id', postgresql.UUID(as_uuid=True), nullable=True, comment='Linked vehicle unit'),
        sa.Column('sale_type', _enum('sale_type'), nullable=False, server_default=sa.text("'RESERVATION_SALE'")),
        sa.Column(
            'status',
            _enum('sale_status'),
            nullable=False,
            server_default=sa.text("'DRAFT'"),
            comment='Lifecycle status',
        ),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='Agreed sale price'),
        sa.Column(
            'paid_amount',
            sa.Numeric(precision=12, scale=2),
            nullable=False,
            server_default=sa.text('0'),
            comment='Sum of active car payments',
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reserved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('contracted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_sales'),
        sa.UniqueConstraint('sale_number', name='uq_sales_sale_number'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], name='fk_sales_customer_id', ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['stock_id'], ['stock.id'], name='fk_sales_stock_id', ondelete='RESTRICT'),
        sa.CheckConstraint('total_amount > 0', name='ck_sales_total_amount_positive'),
        sa.CheckConstraint('paid_amount >= 0', name='ck_sales_paid_amount_non_negative'),
        comment='Vehicle sales',
    )
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_status_created', 'sales', ['status', 'created_at'])
    # At most one non-cancelled sale per stock unit
    op.create_index(
        'uq_sales_active_stock',
        'sales',
        ['stock_id'],
        unique=True,
        postgresql_where=sa.text("stock_id IS NOT NULL AND status <> 'CANCELLED'"),
    )

    op.create_table(
        'sale_status_history',
        _id_column(),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('action', _enum('sale_history_action'), nullable=False),
        sa.Column('from_status', _enum('sale_status'), nullable=True),
        sa.Column('to_status', _enum('sale_status'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('changed_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name='pk_sale_status_history'),
        sa.ForeignKeyConstraint(
            ['sale_id'],
            ['sales.id'],
            name='fk_sale_status_history_sale_id',
            ondelete='CASCADE',
        ),
    )
    op.create_index('ix_sale_status_history_sale_id', 'sale_status_history', ['sale_id'])

    op.create_table(
        'payments',
        _id_column(),
        sa.Column('receipt_number', sa.String(length=20), nullable=False, comment='Human readable receipt number'),
        sa.Column('sale_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', _enum('payment_method'), nullable=False),
        sa.Column('payment_type', _enum('payment_type'), nullable=False),
        sa.Column('mode', _enum('payment_mode'), nullable=False, server_default=sa.text("'INSTALLMENT'")),
        sa.Column('status', _enum('payment_status'), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column(
            'overpayment_flagged',
            sa.Boolean(),
            nullable=False,
            server_default=sa.text('false'),
            comment='Accepted above the outstanding balance by override',
        ),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('void_reason', sa.Text(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('voided_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sa.UniqueConstraint('receipt_number', name='uq_payments_receipt_number'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], name='fk_payments_sale_id', ondelete='RESTRICT'),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
        sa.CheckConstraint(
            "(status = 'VOIDED') = (voided_at IS NOT NULL)",
            name='ck_payments_voided_at_matches_status',
        ),
        comment='Payments received against sales',
    )
    op.create_index('ix_payments_sale_status', 'payments', ['sale_id', 'status'])

    op.create_table(
        'number_sequences',
        _id_column(),
        sa.Column('prefix', sa.String(length=10), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.PrimaryKeyConstraint('id', name='pk_number_sequences'),
        sa.UniqueConstraint('prefix', 'year', 'month', name='uq_number_sequences_period'),
        comment='Document number counters',
    )

    op.create_table(
        'activity_logs',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False, comment='CREATE, UPDATE, TRANSITION, VOID, ...'),
        sa.Column('entity', sa.String(length=50), nullable=False, comment='Entity type such as sale, stock or payment'),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name='pk_activity_logs'),
        comment='User activity audit trail',
    )
    op.create_index('ix_activity_logs_entity', 'activity_logs', ['entity', 'entity_id'])
    op.create_index('ix_activity_logs_user_created', 'activity_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    """Drop the sale lifecycle schema in reverse dependency order."""
    op.drop_table('activity_logs')
    op.drop_table('number_sequences')
    op.drop_index('ix_payments_sale_status', table_name='payments')
    op.drop_table('payments')
    op.drop_table('sale_status_history')
    op.drop_index('uq_sales_active_stock', table_name='sales')
    op.drop_table('sales')
    op.drop_table('stock')
    op.drop_table('vehicle_models')
    op.drop_table('customers')
    op.drop_table('users')

    for name in reversed(list(ENUM_TYPES)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
