"""add tags and project owner

Revision ID: 8c2e5d41a7f3
Revises: 3f9a1c27d4b0
Create Date: 2026-10-19 09:41:07.518220

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c2e5d41a7f3'
down_revision: Union[str, None] = '3f9a1c27d4b0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # batch mode so the column + FK also apply on SQLite
    with op.batch_alter_table('projects') as batch_op:
        batch_op.add_column(sa.Column('owner_id', sa.Integer(), nullable=True))
        batch_op.create_foreign_key('fk_projects_owner_id_users', 'users', ['owner_id'], ['id'])

    op.create_table(
        'tags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('color', sa.String(), nullable=False, server_default='#6366f1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_tags_id', 'tags', ['id'])
    op.create_index('ix_tags_name', 'tags', ['name'], unique=True)

    op.create_table(
        'task_tags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('tasks.id'), nullable=False),
        sa.Column('tag_id', sa.Integer(), sa.ForeignKey('tags.id'), nullable=False),
        sa.UniqueConstraint('task_id', 'tag_id', name='uq_task_tag'),
    )
    op.create_index('ix_task_tags_id', 'task_tags', ['id'])
    op.create_index('ix_task_tags_task_id', 'task_tags', ['task_id'])


def downgrade() -> None:
    op.drop_table('task_tags')
    op.drop_table('tags')
    with op.batch_alter_table('projects') as batch_op:
        batch_op.drop_constraint('fk_projects_owner_id_users', type_='foreignkey')
        batch_op.drop_column('owner_id')
