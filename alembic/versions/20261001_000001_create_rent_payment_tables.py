"""Create rent payment tables

Revision ID: 20261001_000001
Revises: None
Create Date: 2026-10-01

This migration creates users, units, leases, payment_methods,
recurring_payment_schedules and rent_payments, including the filtered
unique index that allows a single open payment per lease and period.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261001_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


OPEN_PERIOD_WHERE = (
    "payment_status IN ('pending', 'processing', 'authorized', 'captured', 'completed')"
)
HAS_TRANSACTION_WHERE = "gateway_transaction_id IS NOT NULL"

ENUM_TYPES = (
    'user_role', 'unit_status', 'lease_status', 'payment_type', 'bank_account_type',
    'payment_method_status', 'schedule_type', 'payment_status',
)


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, create_constraint=True)


def _filtered(where: str) -> dict:
    clause = sa.text(where)
    return {
        'sqlite_where': clause,
        'postgresql_where': clause,
        'mssql_where': clause,
    }


def upgrade() -> None:
    """Create the rent payment tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('role', _enum('user_role', 'tenant', 'admin'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    op.create_table(
        'units',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=True),
        sa.Column('unit_number', sa.String(length=50), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('status', _enum('unit_status', 'vacant', 'occupied', 'maintenance'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_units_property_id', 'units', ['property_id'])

    op.create_table(
        'leases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('monthly_rent', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('lease_start_date', sa.Date(), nullable=False),
        sa.Column('lease_end_date', sa.Date(), nullable=False),
        sa.Column('rent_due_day', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            _enum('lease_status', 'active', 'expired', 'terminated', 'pending'),
            nullable=False,
        ),
        sa.Column('grace_period_days', sa.Integer(), nullable=False),
        sa.Column('late_fee_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], name='fk_leases_unit_id', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], name='fk_leases_tenant_id', ondelete='CASCADE'),
        sa.CheckConstraint('lease_end_date > lease_start_date', name='ck_leases_end_after_start'),
        sa.CheckConstraint('rent_due_day BETWEEN 1 AND 31', name='ck_leases_rent_due_day'),
        sa.CheckConstraint('monthly_rent > 0', name='ck_leases_monthly_rent_positive'),
    )
    op.create_index('ix_leases_unit_id', 'leases', ['unit_id'])
    op.create_index('ix_leases_tenant_id', 'leases', ['tenant_id'])
    op.create_index('ix_leases_status', 'leases', ['status'])

    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('payment_type', _enum('payment_type', 'card', 'ach'), nullable=False),
        sa.Column('nickname', sa.String(length=100), nullable=True),
        sa.Column('card_last_four', sa.String(length=4), nullable=True),
        sa.Column('card_brand', sa.String(length=20), nullable=True),
        sa.Column('card_expiry_month', sa.String(length=2), nullable=True),
        sa.Column('card_expiry_year', sa.String(length=4), nullable=True),
        sa.Column('account_last_four', sa.String(length=4), nullable=True),
        sa.Column('account_type', _enum('bank_account_type', 'checking', 'savings'), nullable=True),
        sa.Column('bank_name', sa.String(length=100), nullable=True),
        sa.Column('gateway_token', sa.String(length=255), nullable=False),
        sa.Column('billing_address_line1', sa.String(length=255), nullable=True),
        sa.Column('billing_address_line2', sa.String(length=255), nullable=True),
        sa.Column('billing_city', sa.String(length=100), nullable=True),
        sa.Column('billing_state', sa.String(length=50), nullable=True),
        sa.Column('billing_zip_code', sa.String(length=10), nullable=True),
        sa.Column('billing_country', sa.String(length=50), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column(
            'status',
            _enum('payment_method_status', 'active', 'expired', 'deleted'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'], name='fk_payment_methods_user_id', ondelete='CASCADE'
        ),
    )
    op.create_index('ix_payment_methods_user_id', 'payment_methods', ['user_id'])
    op.create_index('ix_payment_methods_status', 'payment_methods', ['status'])

    op.create_table(
        'recurring_payment_schedules',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lease_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('payment_method_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('schedule_type', _enum('schedule_type', 'monthly'), nullable=False),
        sa.Column('payment_day', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('default_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('next_payment_date', sa.Date(), nullable=False),
        sa.Column('last_payment_date', sa.Date(), nullable=True),
        sa.Column('total_payments_made', sa.Integer(), nullable=False),
        sa.Column('failed_payment_attempts', sa.Integer(), nullable=False),
        sa.Column('send_reminder_email', sa.Boolean(), nullable=False),
        sa.Column('reminder_days_before', sa.Integer(), nullable=False),
        sa.Column('send_receipt_email', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['lease_id'], ['leases.id'], name='fk_recurring_schedules_lease_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['tenant_id'], ['users.id'], name='fk_recurring_schedules_tenant_id', ondelete='NO ACTION'
        ),
        sa.ForeignKeyConstraint(
            ['payment_method_id'],
            ['payment_methods.id'],
            name='fk_recurring_schedules_payment_method_id',
            ondelete='RESTRICT',
        ),
        sa.CheckConstraint('payment_day BETWEEN 1 AND 31', name='ck_recurring_schedules_payment_day'),
    )
    op.create_index('ix_recurring_payment_schedules_lease_id', 'recurring_payment_schedules', ['lease_id'])
    op.create_index('ix_recurring_payment_schedules_tenant_id', 'recurring_payment_schedules', ['tenant_id'])
    op.create_index(
        'ix_recurring_schedules_active_day', 'recurring_payment_schedules', ['is_active', 'payment_day']
    )
    op.create_index(
        'ix_recurring_schedules_active_next', 'recurring_payment_schedules', ['is_active', 'next_payment_date']
    )

    op.create_table(
        'rent_payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('lease_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('payment_method_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('late_fee_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('processing_fee', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_type', sa.String(length=10), nullable=True),
        sa.Column(
            'payment_status',
            _enum(
                'payment_status',
                'pending', 'processing', 'authorized', 'captured',
                'completed', 'failed', 'refunded', 'cancelled',
            ),
            nullable=False,
        ),
        sa.Column('gateway_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('gateway_reference_code', sa.String(length=255), nullable=True),
        sa.Column('authorization_code', sa.String(length=50), nullable=True),
        sa.Column('processor_response_code', sa.String(length=50), nullable=True),
        sa.Column('payment_month', sa.Integer(), nullable=False),
        sa.Column('payment_year', sa.Integer(), nullable=False),
        sa.Column('rent_due_date', sa.Date(), nullable=True),
        sa.Column('payment_date', sa.DateTime(), nullable=True),
        sa.Column('masked_payment_info', sa.String(length=255), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('refund_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('refund_date', sa.DateTime(), nullable=True),
        sa.Column('refund_reason', sa.Text(), nullable=True),
        sa.Column('refund_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('is_recurring', sa.Boolean(), nullable=False),
        sa.Column('recurring_schedule_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['lease_id'], ['leases.id'], name='fk_rent_payments_lease_id', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['tenant_id'], ['users.id'], name='fk_rent_payments_tenant_id', ondelete='NO ACTION'
        ),
        sa.ForeignKeyConstraint(
            ['payment_method_id'],
            ['payment_methods.id'],
            name='fk_rent_payments_payment_method_id',
            ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['recurring_schedule_id'],
            ['recurring_payment_schedules.id'],
            name='fk_rent_payments_recurring_schedule_id',
            ondelete='SET NULL',
        ),
        sa.CheckConstraint('payment_month BETWEEN 1 AND 12', name='ck_rent_payments_month'),
        sa.CheckConstraint('amount >= 0', name='ck_rent_payments_amount'),
    )
    op.create_index('ix_rent_payments_lease_id', 'rent_payments', ['lease_id'])
    op.create_index('ix_rent_payments_tenant_id', 'rent_payments', ['tenant_id'])
    op.create_index('ix_rent_payments_payment_status', 'rent_payments', ['payment_status'])
    op.create_index('ix_rent_payments_refund_transaction_id', 'rent_payments', ['refund_transaction_id'])
    op.create_index('ix_rent_payments_period', 'rent_payments', ['payment_year', 'payment_month'])
    op.create_index('ix_rent_payments_recurring', 'rent_payments', ['is_recurring', 'recurring_schedule_id'])

    # One open payment per lease and period
    op.create_index(
        'uq_rent_payments_open_period',
        'rent_payments',
        ['lease_id', 'payment_month', 'payment_year'],
        unique=True,
        **_filtered(OPEN_PERIOD_WHERE),
    )
    op.create_index(
        'uq_rent_payments_gateway_transaction_id',
        'rent_payments',
        ['gateway_transaction_id'],
        unique=True,
        **_filtered(HAS_TRANSACTION_WHERE),
    )


def downgrade() -> None:
    """Drop the rent payment tables."""
    op.drop_table('rent_payments')
    op.drop_table('recurring_payment_schedules')
    op.drop_table('payment_methods')
    op.drop_table('leases')
    op.drop_table('units')
    op.drop_table('users')

    # Drop the enum types
    if op.get_bind().dialect.name == 'postgresql':
        for name in ENUM_TYPES:
            op.execute(f"DROP TYPE IF EXISTS {name}")
