"""initial schema

Revision ID: 001
Revises:
Create Date: 2025-01-06

Admin accounts, employee personal details, manager accounts,
department/designation history, performance history and refresh tokens.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the base tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('company_website', sa.String(255), nullable=True),
        sa.Column('pan_number', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'employee_personal_details',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.String(20), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('emergency_contact_name', sa.String(200), nullable=True),
        sa.Column('emergency_contact_phone', sa.String(20), nullable=True),
        sa.Column('current_address', sa.Text(), nullable=True),
        sa.Column('permanent_address', sa.Text(), nullable=True),
        sa.Column('marital_status', sa.String(20), nullable=True),
        sa.Column('blood_group', sa.String(5), nullable=True),
        sa.Column('manager_id', sa.String(20), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_employee_personal_details_id', 'employee_personal_details', ['id'])
    op.create_index(
        'ix_employee_personal_details_employee_id', 'employee_personal_details', ['employee_id'], unique=True
    )
    op.create_index('ix_employee_personal_details_email', 'employee_personal_details', ['email'])
    op.create_index(
        'ix_employee_personal_details_deleted_created',
        'employee_personal_details',
        ['deleted_at', 'created_at'],
    )

    op.create_table(
        'manager_role',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'employee_id',
            sa.String(20),
            sa.ForeignKey('employee_personal_details.employee_id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('manager_id', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_manager_role_id', 'manager_role', ['id'])
    op.create_index('ix_manager_role_manager_id', 'manager_role', ['manager_id'], unique=True)
    op.create_index('ix_manager_role_email', 'manager_role', ['email'], unique=True)

    op.create_table(
        'department_designation_history',
        sa.Column('history_id', sa.Integer(), primary_key=True),
        sa.Column(
            'employee_id',
            sa.String(20),
            sa.ForeignKey('employee_personal_details.employee_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('department_name', sa.String(100), nullable=False),
        sa.Column('designation', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('reporting_manager_id', sa.String(20), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('salary_per_month_npr', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_department_designation_history_history_id', 'department_designation_history', ['history_id'])
    op.create_index(
        'ix_department_history_employee_active',
        'department_designation_history',
        ['employee_id', 'is_active'],
    )
    op.create_index('ix_department_history_department', 'department_designation_history', ['department_name'])

    op.create_table(
        'performance_history',
        sa.Column('performance_id', sa.Integer(), primary_key=True),
        sa.Column(
            'employee_id',
            sa.String(20),
            sa.ForeignKey('employee_personal_details.employee_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('review_date', sa.Date(), nullable=False, server_default=sa.text('CURRENT_DATE')),
        sa.Column('reviewer_id', sa.String(20), nullable=True),
        sa.Column('performance_score', sa.Integer(), nullable=False),
        sa.Column('key_strengths', sa.Text(), nullable=True),
        sa.Column('areas_for_improvement', sa.Text(), nullable=True),
        sa.Column('goals_achieved', sa.Text(), nullable=True),
        sa.Column('next_period_goals', sa.Text(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('promotion_eligible', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('bonus_awarded', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('performance_score BETWEEN 0 AND 100', name='ck_performance_score_range'),
    )
    op.create_index('ix_performance_history_performance_id', 'performance_history', ['performance_id'])
    op.create_index('ix_performance_history_employee', 'performance_history', ['employee_id', 'review_date'])

    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('subject_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('device_info', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
    )
    op.create_index('ix_refresh_tokens_id', 'refresh_tokens', ['id'])
    op.create_index('ix_refresh_tokens_token_hash', 'refresh_tokens', ['token_hash'], unique=True)
    op.create_index('ix_refresh_tokens_subject', 'refresh_tokens', ['role', 'subject_id', 'expires_at'])
    op.create_index('ix_refresh_tokens_cleanup', 'refresh_tokens', ['expires_at', 'revoked_at'])


def downgrade() -> None:
    """Drop the base tables."""
    op.drop_table('refresh_tokens')
    op.drop_table('performance_history')
    op.drop_table('department_designation_history')
    op.drop_table('manager_role')
    op.drop_table('employee_personal_details')
    op.drop_table('users')
