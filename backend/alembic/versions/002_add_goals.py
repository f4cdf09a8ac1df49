"""add goals table

Revision ID: 002
Revises: 001
Create Date: 2025-02-03

Goals assigned to employees, tracked by progress, deadline, status and priority.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create goals table."""
    op.create_table(
        'goals',
        sa.Column('goal_id', sa.Integer(), primary_key=True),
        sa.Column(
            'employee_id',
            sa.String(20),
            sa.ForeignKey('employee_personal_details.employee_id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('assigned_by', sa.String(255), nullable=True),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Not Started'),
        sa.Column('priority', sa.String(10), nullable=False, server_default='Medium'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('progress BETWEEN 0 AND 100', name='ck_goals_progress_range'),
        sa.CheckConstraint("status IN ('Not Started', 'In Progress', 'Completed')", name='ck_goals_status'),
        sa.CheckConstraint("priority IN ('Low', 'Medium', 'High')", name='ck_goals_priority'),
    )
    op.create_index('ix_goals_goal_id', 'goals', ['goal_id'])
    op.create_index('ix_goals_employee', 'goals', ['employee_id'])
    op.create_index('ix_goals_status', 'goals', ['status'])


def downgrade() -> None:
    """Drop goals table."""
    op.drop_index('ix_goals_status', table_name='goals')
    op.drop_index('ix_goals_employee', table_name='goals')
    op.drop_index('ix_goals_goal_id', table_name='goals')
    op.drop_table('goals')
