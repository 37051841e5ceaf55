"""tasks_results_and_skips

Revision ID: 001
Revises: 
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Create tasks table
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.JSON(), nullable=False),
        sa.Column('standard', sa.String(32), nullable=False),
        sa.Column('timeout', sa.Integer(), nullable=True),
        sa.Column('wait', sa.Integer(), nullable=True),
        sa.Column('ignore', sa.JSON(), nullable=True),
        sa.Column('actions', sa.JSON(), nullable=True),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('password', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('headers', sa.JSON(), nullable=True),
        sa.Column('scan_sitemap', sa.Boolean(), nullable=False),
        sa.Column('hide_elements', sa.Text(), nullable=True),
        sa.Column('annotations', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tasks_id'), 'tasks', ['id'], unique=False)
    op.create_index('idx_tasks_name_standard', 'tasks', ['name', 'standard'], unique=False)

    # Create results table
    op.create_table(
        'results',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('page_list', sa.JSON(), nullable=False),
        sa.Column('ignore', sa.JSON(), nullable=True),
        sa.Column('count', sa.JSON(), nullable=True),
        sa.Column('results', sa.JSON(), nullable=True),
        sa.Column('failures', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_results_id'), 'results', ['id'], unique=False)
    op.create_index(op.f('ix_results_task_id'), 'results', ['task_id'], unique=False)
    op.create_index(op.f('ix_results_date'), 'results', ['date'], unique=False)
    op.create_index('idx_results_task_date', 'results', ['task_id', 'date'], unique=False)

    # Create skips table
    op.create_table(
        'skips',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('task_id', sa.String(), nullable=False),
        sa.Column('code', sa.String(255), nullable=False),
        sa.Column('context', sa.Text(), nullable=False),
        sa.Column('selector', sa.Text(), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('skip_all_pages', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_skips_id'), 'skips', ['id'], unique=False)
    op.create_index(op.f('ix_skips_task_id'), 'skips', ['task_id'], unique=False)
    op.create_index('idx_skips_match', 'skips', ['code', 'context', 'selector', 'url'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_skips_match', table_name='skips')
    op.drop_index(op.f('ix_skips_task_id'), table_name='skips')
    op.drop_index(op.f('ix_skips_id'), table_name='skips')
    op.drop_table('skips')
    op.drop_index('idx_results_task_date', table_name='results')
    op.drop_index(op.f('ix_results_date'), table_name='results')
    op.drop_index(op.f('ix_results_task_id'), table_name='results')
    op.drop_index(op.f('ix_results_id'), table_name='results')
    op.drop_table('results')
    op.drop_index('idx_tasks_name_standard', table_name='tasks')
    op.drop_index(op.f('ix_tasks_id'), table_name='tasks')
    op.drop_table('tasks')
