"""Add capability overrides, project leadership flags and reporting lines.

Revision ID: 002
Revises: 001
Create Date: 2025-12-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Additive capability overrides per workspace member
    op.add_column(
        'workspace_members',
        sa.Column('permissions', sa.JSON, nullable=False, server_default='[]'),
    )

    op.add_column(
        'project_members',
        sa.Column('is_leader', sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.add_column(
        'project_members',
        sa.Column('manager_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL')),
    )
    op.create_check_constraint(
        'no_self_manager',
        'project_members',
        'manager_id IS NULL OR manager_id != user_id',
    )
    op.create_index('ix_project_members_project_manager', 'project_members', ['project_id', 'manager_id'])

    # Backfill leader flags from the denormalized project leader
    op.execute(
        """
        UPDATE project_members pm
        SET is_leader = TRUE
        FROM projects p
        WHERE pm.project_id = p.id AND pm.user_id = p.leader_id
        """
    )


def downgrade() -> None:
    op.drop_index('ix_project_members_project_manager', table_name='project_members')
    op.drop_constraint('no_self_manager', 'project_members', type_='check')
    op.drop_column('project_members', 'manager_id')
    op.drop_column('project_members', 'is_leader')
    op.drop_column('workspace_members', 'permissions')
