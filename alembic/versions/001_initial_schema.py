"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and indexes for the civic issues application."""

    # Create departments table
    op.create_table(
        'departments',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('slug', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=20), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )
    op.create_index('ix_departments_slug', 'departments', ['slug'], unique=True)

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('role', sa.String(length=20), server_default='citizen', nullable=False),
        sa.Column('department_id', sa.Uuid(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('welcome_email_sent', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "role IN ('citizen', 'department', 'municipal', 'admin')",
            name='check_valid_role'
        ),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'], unique=False)
    op.create_index('ix_users_department_id', 'users', ['department_id'], unique=False)

    # Create issues table
    op.create_table(
        'issues',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('report_id', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('subcategory', sa.String(length=100), nullable=False),
        sa.Column('images', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('priority', sa.String(length=10), server_default='medium', nullable=False),
        sa.Column('priority_overridden_by_id', sa.Uuid(), nullable=True),
        sa.Column('priority_overridden_at', sa.DateTime(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('pincode', sa.String(length=10), nullable=True),
        sa.Column('ward', sa.String(length=50), nullable=True),
        sa.Column('zone', sa.String(length=50), nullable=True),
        sa.Column('reported_by_id', sa.Uuid(), nullable=False),
        sa.Column('assigned_department_id', sa.Uuid(), nullable=True),
        sa.Column('assigned_staff_id', sa.Uuid(), nullable=True),
        sa.Column('department_head_id', sa.Uuid(), nullable=True),
        sa.Column('upvote_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('sla_deadline', sa.DateTime(), nullable=False),
        sa.Column('due_time', sa.DateTime(), nullable=True),
        sa.Column('escalation_level', sa.Integer(), server_default='1', nullable=False),
        sa.Column('escalation_history', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('penalty_points', sa.Integer(), server_default='0', nullable=False),
        sa.Column('resolution_time_hours', sa.Integer(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('feedback_rating', sa.Integer(), nullable=True),
        sa.Column('feedback_is_resolved', sa.Boolean(), nullable=True),
        sa.Column('feedback_comment', sa.Text(), nullable=True),
        sa.Column('feedback_submitted_at', sa.DateTime(), nullable=True),
        sa.Column('ai_analysis', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'acknowledged', 'assigned', 'in-progress', "
            "'resolved', 'rejected', 'reopened', 'escalated')",
            name='check_valid_status'
        ),
        sa.CheckConstraint(
            "priority IN ('low', 'medium', 'high', 'urgent')",
            name='check_valid_priority'
        ),
        sa.CheckConstraint(
            "category IN ('roads-infrastructure', 'street-lighting', 'waste-management', "
            "'water-drainage', 'parks-public-spaces', 'traffic-signage', "
            "'public-health-safety', 'other')",
            name='check_valid_category'
        ),
        sa.CheckConstraint(
            'latitude >= -90 AND latitude <= 90 AND longitude >= -180 AND longitude <= 180',
            name='check_coordinates_range'
        ),
        sa.CheckConstraint(
            'escalation_level >= 1 AND escalation_level <= 3',
            name='check_escalation_level'
        ),
        sa.CheckConstraint(
            'feedback_rating IS NULL OR (feedback_rating >= 1 AND feedback_rating <= 5)',
            name='check_feedback_rating'
        ),
        sa.ForeignKeyConstraint(['reported_by_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_department_id'], ['departments.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['assigned_staff_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['department_head_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['priority_overridden_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_issues_report_id', 'issues', ['report_id'], unique=True)
    op.create_index('ix_issues_category', 'issues', ['category'], unique=False)
    op.create_index('ix_issues_status', 'issues', ['status'], unique=False)
    op.create_index('ix_issues_priority', 'issues', ['priority'], unique=False)
    op.create_index('ix_issues_latitude', 'issues', ['latitude'], unique=False)
    op.create_index('ix_issues_longitude', 'issues', ['longitude'], unique=False)
    op.create_index('ix_issues_ward', 'issues', ['ward'], unique=False)
    op.create_index('ix_issues_reported_by_id', 'issues', ['reported_by_id'], unique=False)
    op.create_index('ix_issues_assigned_department_id', 'issues', ['assigned_department_id'], unique=False)
    op.create_index('ix_issues_sla_deadline', 'issues', ['sla_deadline'], unique=False)
    op.create_index('ix_issues_created_at', 'issues', ['created_at'], unique=False)

    # Create issue_comments table
    op.create_table(
        'issue_comments',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('author_id', sa.Uuid(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_issue_comments_issue_id', 'issue_comments', ['issue_id'], unique=False)

    # Create issue_upvotes table
    op.create_table(
        'issue_upvotes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('issue_id', 'user_id', name='uq_issue_upvote_user')
    )
    op.create_index('ix_issue_upvotes_issue_id', 'issue_upvotes', ['issue_id'], unique=False)

    # Create state_history table
    op.create_table(
        'state_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('from_status', sa.String(length=20), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('changed_by_id', sa.Uuid(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_state_history_issue_id', 'state_history', ['issue_id'], unique=False)
    op.create_index('ix_state_history_timestamp', 'state_history', ['timestamp'], unique=False)

    # Create staff_performance table
    op.create_table(
        'staff_performance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('department_id', sa.Uuid(), nullable=True),
        sa.Column('total_issues_assigned', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_issues_resolved', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_issues_escalated', sa.Integer(), server_default='0', nullable=False),
        sa.Column('average_resolution_time', sa.Float(), server_default='0', nullable=False),
        sa.Column('reward_points', sa.Integer(), server_default='0', nullable=False),
        sa.Column('penalty_points', sa.Integer(), server_default='0', nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['staff_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('staff_id')
    )
    op.create_index('ix_staff_performance_department_id', 'staff_performance', ['department_id'], unique=False)

    # Create department_performance table
    op.create_table(
        'department_performance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('department_id', sa.Uuid(), nullable=False),
        sa.Column('total_issues_received', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_issues_resolved', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_issues_escalated', sa.Integer(), server_default='0', nullable=False),
        sa.Column('sla_misses', sa.Integer(), server_default='0', nullable=False),
        sa.Column('average_resolution_time', sa.Float(), server_default='0', nullable=False),
        sa.Column('sla_compliance_rate', sa.Float(), server_default='100', nullable=False),
        sa.Column('penalty_points', sa.Integer(), server_default='0', nullable=False),
        sa.Column('performance_score', sa.Float(), server_default='100', nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('department_id')
    )

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=20), server_default='issue_update', nullable=False),
        sa.Column('related_issue_id', sa.Uuid(), nullable=True),
        sa.Column('read', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint(
            "type IN ('issue_update', 'assignment', 'comment', 'status_change', 'system')",
            name='check_valid_notification_type'
        ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['related_issue_id'], ['issues.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'], unique=False)
    op.create_index('ix_notifications_created_at', 'notifications', ['created_at'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('notifications')
    op.drop_table('department_performance')
    op.drop_table('staff_performance')
    op.drop_table('state_history')
    op.drop_table('issue_upvotes')
    op.drop_table('issue_comments')
    op.drop_table('issues')
    op.drop_table('users')
    op.drop_table('departments')
