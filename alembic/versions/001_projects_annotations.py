"""Add projects and annotations tables

Revision ID: 001_projects_annotations
Revises:
Create Date: 2026-10-18

- projects: annotation projects with their tile counter
- annotations: one row per (project_id, image_index) tile
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_projects_annotations'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=False, server_default=''),
        sa.Column('status', sa.String(), nullable=False, server_default='DRAFT'),
        sa.Column('training_status', sa.String(), nullable=False, server_default='STOP'),
        sa.Column('total_images', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('suggest_image_indices', sa.JSON(), nullable=True),
        sa.Column('annotation_classes', sa.JSON(), nullable=True),
        sa.Column('training_progress', sa.Float(), nullable=False, server_default='0'),
        sa.Column('avg_dice_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('error_dice_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('avg_precision', sa.Float(), nullable=False, server_default='0'),
        sa.Column('avg_recall', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('annotation_updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('metric_updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_projects_status', 'projects', ['status'])

    op.create_table(
        'annotations',
        sa.Column('project_id', sa.String(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('image_index', sa.Integer(), nullable=False),
        sa.Column('annotations', sa.JSON(), nullable=True),
        sa.Column('lines', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('project_id', 'image_index'),
    )


def downgrade() -> None:
    op.drop_table('annotations')
    op.drop_index('ix_projects_status', 'projects')
    op.drop_table('projects')
