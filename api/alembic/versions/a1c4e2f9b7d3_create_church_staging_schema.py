"""Create church profile, pending change, audit and notification tables.

Revision ID: a1c4e2f9b7d3
Revises:
Create Date: 2025-02-10 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e2f9b7d3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='parish_secretary'),
        sa.Column('diocese', sa.String(length=20), nullable=True),
        sa.Column('parish_id', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_users_parish_id', 'users', ['parish_id'])

    op.create_table(
        'churches',
        sa.Column('church_id', sa.String(length=64), nullable=False),
        sa.Column('parish_id', sa.String(length=64), nullable=False),
        sa.Column('diocese', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('profile_schema_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('fields', sa.JSON(), nullable=False),
        sa.Column('has_pending_changes', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id']),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('church_id')
    )
    op.create_index('ix_churches_parish_id', 'churches', ['parish_id'])
    op.create_index('ix_churches_diocese', 'churches', ['diocese'])
    op.create_index('ix_churches_status', 'churches', ['status'])
    op.create_index('ix_churches_has_pending_changes', 'churches', ['has_pending_changes'])

    op.create_table(
        'pending_change_sets',
        sa.Column('pending_change_set_id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('church_id', sa.String(length=64), nullable=False),
        sa.Column('proposed_changes', sa.JSON(), nullable=False),
        sa.Column('original_values', sa.JSON(), nullable=False),
        sa.Column('changed_fields', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('submitted_by_id', sa.Integer(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('forwarded_to_museum', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('forwarded_at', sa.DateTime(), nullable=True),
        sa.Column('forwarded_by_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('review_comment', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['church_id'], ['churches.church_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['submitted_by_id'], ['users.user_id']),
        sa.ForeignKeyConstraint(['forwarded_by_id'], ['users.user_id']),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('pending_change_set_id')
    )
    op.create_index('ix_pending_change_sets_church_id', 'pending_change_sets', ['church_id'])
    op.create_index('ix_pending_change_sets_status', 'pending_change_sets', ['status'])
    # One open set per church
    op.create_index(
        'uq_pending_change_sets_open_church',
        'pending_change_sets',
        ['church_id'],
        unique=True,
        postgresql_where=sa.text("status = 'open'"),
        sqlite_where=sa.text("status = 'open'"),
    )

    op.create_table(
        'church_status_history',
        sa.Column('history_id', sa.Integer(), nullable=False),
        sa.Column('church_id', sa.String(length=64), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=False),
        sa.Column('to_status', sa.String(length=20), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), nullable=False),
        sa.Column('changed_by_role', sa.String(length=50), nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['church_id'], ['churches.church_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('history_id')
    )
    op.create_index('ix_church_status_history_church_id', 'church_status_history', ['church_id'])
    op.create_index('ix_church_status_history_changed_at', 'church_status_history', ['changed_at'])

    op.create_table(
        'audit_logs',
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index('ix_audit_logs_log_id', 'audit_logs', ['log_id'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])

    op.create_table(
        'notifications',
        sa.Column('notification_id', sa.Integer(), nullable=False),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='medium'),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('recipient_roles', sa.JSON(), nullable=False),
        sa.Column('recipient_user_ids', sa.JSON(), nullable=False),
        sa.Column('diocese', sa.String(length=20), nullable=True),
        sa.Column('parish_id', sa.String(length=64), nullable=True),
        sa.Column('church_id', sa.String(length=64), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('related_data', sa.JSON(), nullable=True),
        sa.Column('read_by', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('notification_id')
    )
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_church_id', 'notifications', ['church_id'])


def downgrade() -> None:
    op.drop_index('ix_notifications_church_id', table_name='notifications')
    op.drop_index('ix_notifications_notification_type', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_audit_logs_entity_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_log_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_church_status_history_changed_at', table_name='church_status_history')
    op.drop_index('ix_church_status_history_church_id', table_name='church_status_history')
    op.drop_table('church_status_history')
    op.drop_index('uq_pending_change_sets_open_church', table_name='pending_change_sets')
    op.drop_index('ix_pending_change_sets_status', table_name='pending_change_sets')
    op.drop_index('ix_pending_change_sets_church_id', table_name='pending_change_sets')
    op.drop_table('pending_change_sets')
    op.drop_index('ix_churches_has_pending_changes', table_name='churches')
    op.drop_index('ix_churches_status', table_name='churches')
    op.drop_index('ix_churches_diocese', table_name='churches')
    op.drop_index('ix_churches_parish_id', table_name='churches')
    op.drop_table('churches')
    op.drop_index('ix_users_parish_id', table_name='users')
    op.drop_table('users')
