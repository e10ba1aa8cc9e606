"""initial shift core schema

Revision ID: sg001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the shift lifecycle and validation schema:
- businesses, roles, users: tenancy and manager credentials
- schedules, clock_events, shifts, breaks: timekeeping
- transactions: read-only sales input
- cash_drawer_counts: reconciliation
- shift_validations, shift_validation_issues: verdicts and issues
- audit_events: append-only audit trail

Uniqueness invariants live in the schema:
- one active shift per user (partial unique index)
- one active break per shift (partial unique index)
- one end-shift count per shift (partial unique index)
- clock_in_id / clock_out_id unique on shifts
- one validation per shift
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sg001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # Tenancy and users
    # ============================================================================
    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_businesses_code', 'businesses', ['code'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('shift_required', sa.Boolean(), nullable=True),
        sa.Column('can_approve_cash_variance', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'name', name='uq_roles_business_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_roles_business_id', 'roles', ['business_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=True),
        sa.Column('pin_hash', sa.String(length=255), nullable=True),
        sa.Column('shift_required', sa.Boolean(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'username', name='uq_users_business_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_business_id', 'users', ['business_id'])
    op.create_index('ix_users_role_id', 'users', ['role_id'])

    # ============================================================================
    # Timekeeping
    # ============================================================================
    op.create_table(
        'schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('assigned_register', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_schedules_user_id', 'schedules', ['user_id'])
    op.create_index('ix_schedules_business_id', 'schedules', ['business_id'])
    op.create_index('ix_schedules_user_start', 'schedules', ['user_id', 'start_time'])

    # Append-only: never deleted, only the status column changes
    op.create_table(
        'clock_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('terminal_id', sa.String(length=64), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=8), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_clock_events_user_id', 'clock_events', ['user_id'])
    op.create_index('ix_clock_events_business_id', 'clock_events', ['business_id'])
    op.create_index('ix_clock_events_user_timestamp', 'clock_events', ['user_id', 'timestamp'])
    op.create_index('ix_clock_events_terminal_timestamp', 'clock_events', ['terminal_id', 'timestamp'])

    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('schedule_id', sa.Integer(), nullable=True),
        sa.Column('terminal_id', sa.String(length=64), nullable=True),
        sa.Column('clock_in_id', sa.Integer(), nullable=False),
        sa.Column('clock_out_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('started_at', sa.BigInteger(), nullable=False),
        sa.Column('ended_at', sa.BigInteger(), nullable=True),
        sa.Column('starting_cash_cents', sa.Integer(), nullable=True),
        sa.Column('total_sales_cents', sa.Integer(), nullable=False),
        sa.Column('total_transactions', sa.Integer(), nullable=False),
        sa.Column('total_refunds_cents', sa.Integer(), nullable=False),
        sa.Column('total_voids_cents', sa.Integer(), nullable=False),
        sa.Column('total_seconds', sa.Integer(), nullable=True),
        sa.Column('regular_seconds', sa.Integer(), nullable=True),
        sa.Column('overtime_seconds', sa.Integer(), nullable=True),
        sa.Column('break_duration_seconds', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['clock_in_id'], ['clock_events.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['clock_out_id'], ['clock_events.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('clock_in_id'),
        sa.UniqueConstraint('clock_out_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shifts_user_id', 'shifts', ['user_id'])
    op.create_index('ix_shifts_business_id', 'shifts', ['business_id'])
    op.create_index('ix_shifts_status', 'shifts', ['status'])
    op.create_index('ix_shifts_user_started', 'shifts', ['user_id', 'started_at'])
    op.create_index('ix_shifts_business_status', 'shifts', ['business_id', 'status'])
    op.create_index(
        'uq_shifts_user_active', 'shifts', ['user_id'], unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'breaks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('minimum_duration_seconds', sa.Integer(), nullable=True),
        sa.Column('is_missed', sa.Boolean(), nullable=False),
        sa.Column('is_short', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.CheckConstraint('end_time IS NULL OR end_time > start_time', name='ck_breaks_end_after_start'),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_breaks_shift_id', 'breaks', ['shift_id'])
    op.create_index('ix_breaks_user_id', 'breaks', ['user_id'])
    op.create_index('ix_breaks_shift_status', 'breaks', ['shift_id', 'status'])
    op.create_index(
        'uq_breaks_shift_active', 'breaks', ['shift_id'], unique=True,
        sqlite_where=sa.text("status = 'active'"),
        postgresql_where=sa.text("status = 'active'"),
    )

    # ============================================================================
    # Sales input (owned by the sales subsystem)
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('cash_amount_cents', sa.Integer(), nullable=True),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('manager_approval_id', sa.Integer(), nullable=True),
        sa.Column('is_partial_refund', sa.Boolean(), nullable=False),
        sa.Column('original_transaction_id', sa.Integer(), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['original_transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_shift_id', 'transactions', ['shift_id'])
    op.create_index('ix_transactions_business_id', 'transactions', ['business_id'])
    op.create_index('ix_transactions_shift_type', 'transactions', ['shift_id', 'type'])

    # ============================================================================
    # Cash drawer
    # ============================================================================
    op.create_table(
        'cash_drawer_counts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('count_type', sa.String(length=16), nullable=False),
        sa.Column('expected_cents', sa.Integer(), nullable=False),
        sa.Column('counted_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('counted_by_user_id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('requires_approval', sa.Boolean(), nullable=False),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['counted_by_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_drawer_counts_shift_id', 'cash_drawer_counts', ['shift_id'])
    op.create_index('ix_cash_drawer_counts_business_id', 'cash_drawer_counts', ['business_id'])
    op.create_index('ix_cash_drawer_counts_counted_by_user_id', 'cash_drawer_counts', ['counted_by_user_id'])
    op.create_index('ix_cash_drawer_counts_timestamp', 'cash_drawer_counts', ['timestamp'])
    op.create_index(
        'uq_cash_drawer_counts_end_shift', 'cash_drawer_counts', ['shift_id'], unique=True,
        sqlite_where=sa.text("count_type = 'end-shift'"),
        postgresql_where=sa.text("count_type = 'end-shift'"),
    )

    # ============================================================================
    # Validation
    # ============================================================================
    op.create_table(
        'shift_validations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('valid', sa.Boolean(), nullable=False),
        sa.Column('requires_review', sa.Boolean(), nullable=False),
        sa.Column('violation_count', sa.Integer(), nullable=False),
        sa.Column('warning_count', sa.Integer(), nullable=False),
        sa.Column('critical_issue_count', sa.Integer(), nullable=False),
        sa.Column('unresolved_issue_count', sa.Integer(), nullable=False),
        sa.Column('validated_at', sa.BigInteger(), nullable=True),
        sa.Column('validated_by', sa.Integer(), nullable=True),
        sa.Column('validation_method', sa.String(length=16), nullable=False),
        sa.Column('resolution', sa.String(length=16), nullable=False),
        sa.Column('resolved_at', sa.BigInteger(), nullable=True),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['resolved_by'], ['users.id']),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['validated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shift_validations_business_id', 'shift_validations', ['business_id'])
    op.create_index('ix_shift_validations_review', 'shift_validations', ['requires_review', 'resolution'])

    op.create_table(
        'shift_validation_issues',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('validation_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('resolved', sa.Boolean(), nullable=False),
        sa.Column('resolved_at', sa.BigInteger(), nullable=True),
        sa.Column('resolved_by', sa.Integer(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('related_entity_type', sa.String(length=32), nullable=True),
        sa.Column('data_snapshot', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['resolved_by'], ['users.id']),
        sa.ForeignKeyConstraint(['validation_id'], ['shift_validations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shift_validation_issues_validation_id', 'shift_validation_issues', ['validation_id'])
    op.create_index('ix_shift_validation_issues_business_id', 'shift_validation_issues', ['business_id'])
    op.create_index('ix_shift_validation_issues_code', 'shift_validation_issues', ['code'])
    op.create_index('ix_shift_validation_issues_category', 'shift_validation_issues', ['category'])
    op.create_index('ix_validation_issues_resolved_severity', 'shift_validation_issues', ['resolved', 'severity'])
    op.create_index(
        'ix_validation_issues_related_entity', 'shift_validation_issues',
        ['related_entity_type', 'related_entity_id'],
    )

    # ============================================================================
    # Audit trail
    # ============================================================================
    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.BigInteger(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_business_id', 'audit_events', ['business_id'])
    op.create_index('ix_audit_events_event_type', 'audit_events', ['event_type'])
    op.create_index('ix_audit_events_shift_id', 'audit_events', ['shift_id'])
    op.create_index('ix_audit_events_entity', 'audit_events', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_events_business_occurred', 'audit_events', ['business_id', 'occurred_at'])


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('shift_validation_issues')
    op.drop_table('shift_validations')
    op.drop_table('cash_drawer_counts')
    op.drop_table('transactions')
    op.drop_table('breaks')
    op.drop_table('shifts')
    op.drop_table('clock_events')
    op.drop_table('schedules')
    op.drop_table('users')
    op.drop_table('roles')
    op.drop_table('businesses')
