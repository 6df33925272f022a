"""compliance_core

Revision ID: 3f9c1b7e2a40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from worktime.models.immutability import (
    PG_REJECT_FUNCTION,
    postgresql_trigger_statements,
    sqlite_trigger_statements,
)


# revision identifiers, used by Alembic.
revision: str = '3f9c1b7e2a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Tabelle → abgewiesene Operationen
APPEND_ONLY = {
    'compliance_violations': ('DELETE',),
    'compliance_reports': ('UPDATE', 'DELETE'),
    'compliance_audit_logs': ('UPDATE', 'DELETE'),
}


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_tenants'),
        sa.UniqueConstraint('slug', name='uq_tenants_slug'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='employee'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_users_tenant_id_tenants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    op.create_table(
        'time_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('actual_clock_in', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actual_clock_out', sa.DateTime(timezone=True), nullable=True),
        sa.Column('break_minutes', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=50), nullable=False, server_default='time_tracking'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_time_entries_tenant_id_tenants', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_time_entries_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_time_entries'),
    )
    op.create_index(
        'ix_time_entries_tenant_user_clock_in', 'time_entries',
        ['tenant_id', 'user_id', 'actual_clock_in'],
    )

    op.create_table(
        'compliance_rules',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('rule_set', sa.String(length=20), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('daily_rest_period_minutes', sa.Integer(), nullable=False),
        sa.Column('weekly_rest_period_minutes', sa.Integer(), nullable=False),
        sa.Column('max_daily_working_time_minutes', sa.Integer(), nullable=False),
        sa.Column('max_daily_working_time_with_compensation_minutes', sa.Integer(), nullable=False),
        sa.Column('max_weekly_working_time_minutes', sa.Integer(), nullable=False),
        sa.Column('break_required_after_minutes', sa.Integer(), nullable=False),
        sa.Column('break_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('break_required_after_minutes_2', sa.Integer(), nullable=True),
        sa.Column('break_duration_minutes_2', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_by', sa.String(length=255), nullable=False, server_default='system'),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_compliance_rules_tenant_id_tenants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_compliance_rules'),
        sa.UniqueConstraint('tenant_id', name='uq_compliance_rules_tenant'),
    )

    op.create_table(
        'compliance_violations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('violation_type', sa.String(length=50), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('detected_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('rule_set', sa.String(length=20), nullable=False),
        sa.Column('rule_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledged_by', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_compliance_violations_tenant_id_tenants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_compliance_violations'),
    )
    op.create_index('ix_compliance_violations_tenant_detected', 'compliance_violations', ['tenant_id', 'detected_at'])
    op.create_index('ix_compliance_violations_tenant_user', 'compliance_violations', ['tenant_id', 'user_id'])
    op.create_index('ix_compliance_violations_tenant_period', 'compliance_violations', ['tenant_id', 'period_start'])

    op.create_table(
        'compliance_reports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('generated_by', sa.String(length=255), nullable=False),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=False),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=False),
        sa.Column('format', sa.String(length=10), nullable=False),
        sa.Column('rule_set', sa.String(length=20), nullable=False),
        sa.Column('filters', sa.JSON(), nullable=True),
        sa.Column('summary', sa.JSON(), nullable=False),
        sa.Column('storage_path', sa.String(length=500), nullable=False),
        sa.Column('hash', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_compliance_reports_tenant_id_tenants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_compliance_reports'),
    )

    op.create_table(
        'compliance_audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('actor_uid', sa.String(length=255), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], name='fk_compliance_audit_logs_tenant_id_tenants', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_compliance_audit_logs'),
    )
    op.create_index('ix_compliance_audit_logs_tenant_timestamp', 'compliance_audit_logs', ['tenant_id', 'timestamp'])

    # Append-only auf Datenbankebene
    dialect = op.get_bind().dialect.name
    if dialect == 'postgresql':
        op.execute(PG_REJECT_FUNCTION)
        for table, operations in APPEND_ONLY.items():
            for statement in postgresql_trigger_statements(table, operations):
                op.execute(statement)
    elif dialect == 'sqlite':
        for table, operations in APPEND_ONLY.items():
            for statement in sqlite_trigger_statements(table, operations):
                op.execute(statement)


def downgrade() -> None:
    op.drop_table('compliance_audit_logs')
    op.drop_table('compliance_reports')
    op.drop_table('compliance_violations')
    op.drop_table('compliance_rules')
    op.drop_index('ix_time_entries_tenant_user_clock_in', table_name='time_entries')
    op.drop_table('time_entries')
    op.drop_table('users')
    op.drop_table('tenants')
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP FUNCTION IF EXISTS compliance_reject_mutation()')
