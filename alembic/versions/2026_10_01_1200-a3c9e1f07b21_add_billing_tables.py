"""add_billing_tables

Revision ID: a3c9e1f07b21
Revises:
Create Date: 2026-10-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3c9e1f07b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# SQLAlchemy stores Python enum members by name
billing_type = sa.Enum('MONTHLY', 'PER_SESSION', 'INSTITUTION', name='billingtype')
commission_type = sa.Enum('PERCENT', 'FIXED', name='commissiontype')
payment_status = sa.Enum('PENDING', 'PAID', 'REFUNDED', 'CANCELED', name='paymentstatus')


def upgrade() -> None:
    op.create_table(
        'patients',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=False, server_default=''),
        sa.Column('session_price', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('billing_type', billing_type, nullable=False, server_default='MONTHLY'),
        sa.Column('parent_patient_id', sa.String(length=36), nullable=True),
        sa.Column('commission_enabled', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('commission_type', commission_type, nullable=False, server_default='PERCENT'),
        sa.Column('commission_value', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['parent_patient_id'], ['patients.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_patients_therapist_id'), 'patients', ['therapist_id'], unique=False)
    op.create_index(op.f('ix_patients_parent_patient_id'), 'patients', ['parent_patient_id'], unique=False)

    op.create_table(
        'event_aliases',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('event_name', sa.String(length=255), nullable=False),
        sa.Column('event_key', sa.String(length=255), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('therapist_id', 'event_key', name='uq_event_alias_therapist_key')
    )
    op.create_index(op.f('ix_event_aliases_therapist_id'), 'event_aliases', ['therapist_id'], unique=False)

    op.create_table(
        'ignored_calendar_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('event_name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('therapist_id', 'event_name', name='uq_ignored_event_therapist_name')
    )
    op.create_index(op.f('ix_ignored_calendar_events_therapist_id'), 'ignored_calendar_events', ['therapist_id'], unique=False)

    op.create_table(
        'session_overrides',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('custom_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'therapist_id', name='uq_session_override_event')
    )
    op.create_index(op.f('ix_session_overrides_therapist_id'), 'session_overrides', ['therapist_id'], unique=False)

    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('patient_id', sa.String(length=36), nullable=False),
        sa.Column('month', sa.String(length=7), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('session_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_event_ids', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('status', payment_status, nullable=False, server_default='PENDING'),
        sa.Column('receipt_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('patient_id', 'month', name='uq_payment_patient_month')
    )
    op.create_index(op.f('ix_payments_therapist_id'), 'payments', ['therapist_id'], unique=False)
    op.create_index(op.f('ix_payments_patient_id'), 'payments', ['patient_id'], unique=False)
    op.create_index(op.f('ix_payments_month'), 'payments', ['month'], unique=False)
    op.create_index(op.f('ix_payments_paid_at'), 'payments', ['paid_at'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)

    op.create_table(
        'daily_expenses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('slot_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('name', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('therapist_id', 'date', 'slot_index', name='uq_daily_expense_slot')
    )
    op.create_index(op.f('ix_daily_expenses_therapist_id'), 'daily_expenses', ['therapist_id'], unique=False)

    op.create_table(
        'analysis_settings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('therapist_id', sa.String(length=64), nullable=False),
        sa.Column('vat_rate', sa.Numeric(precision=5, scale=2), nullable=False, server_default='17'),
        sa.Column('deductions', sa.JSON(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_analysis_settings_therapist_id'), 'analysis_settings', ['therapist_id'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_analysis_settings_therapist_id'), table_name='analysis_settings')
    op.drop_table('analysis_settings')

    op.drop_index(op.f('ix_daily_expenses_therapist_id'), table_name='daily_expenses')
    op.drop_table('daily_expenses')

    op.drop_index(op.f('ix_payments_status'), table_name='payments')
    op.drop_index(op.f('ix_payments_paid_at'), table_name='payments')
    op.drop_index(op.f('ix_payments_month'), table_name='payments')
    op.drop_index(op.f('ix_payments_patient_id'), table_name='payments')
    op.drop_index(op.f('ix_payments_therapist_id'), table_name='payments')
    op.drop_table('payments')

    op.drop_index(op.f('ix_session_overrides_therapist_id'), table_name='session_overrides')
    op.drop_table('session_overrides')

    op.drop_index(op.f('ix_ignored_calendar_events_therapist_id'), table_name='ignored_calendar_events')
    op.drop_table('ignored_calendar_events')

    op.drop_index(op.f('ix_event_aliases_therapist_id'), table_name='event_aliases')
    op.drop_table('event_aliases')

    op.drop_index(op.f('ix_patients_parent_patient_id'), table_name='patients')
    op.drop_index(op.f('ix_patients_therapist_id'), table_name='patients')
    op.drop_table('patients')

    # Drop enums
    op.execute('DROP TYPE IF EXISTS paymentstatus')
    op.execute('DROP TYPE IF EXISTS commissiontype')
    op.execute('DROP TYPE IF EXISTS billingtype')
