"""v1.4 enhancements: link passwords and branding, view identity and
duration, prototype_annotations and app_settings tables

Revision ID: f6d1b3e8a2c7
Revises: e9c4a7b2d1f5
Create Date: 2026-02-24 13:59:45.237610

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'f6d1b3e8a2c7'
down_revision: Union[str, None] = 'e9c4a7b2d1f5'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Password-protected and branded links
    op.add_column('magic_links', sa.Column('password_hash', sa.String(length=255), nullable=True))
    op.add_column('magic_links', sa.Column('branding_config', postgresql.JSONB(astext_type=sa.Text()), nullable=True))

    # Prospect identity and time on page per view
    op.add_column('link_views', sa.Column('prospect_name', sa.String(length=255), nullable=True))
    op.add_column('link_views', sa.Column('prospect_email', sa.String(length=255), nullable=True))
    op.add_column('link_views', sa.Column('prospect_company', sa.String(length=255), nullable=True))
    op.add_column('link_views', sa.Column('duration_seconds', sa.Integer(), nullable=True))

    # Guided-tour hotspots
    op.create_table('prototype_annotations',
        sa.Column('annotation_id', sa.UUID(), nullable=False),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('x_percent', sa.Integer(), server_default='50', nullable=False),
        sa.Column('y_percent', sa.Integer(), server_default='50', nullable=False),
        sa.Column('step_order', sa.Integer(), server_default='1', nullable=False),
        sa.Column('page_path', sa.String(length=1024), server_default='index.html', nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('annotation_id')
    )
    op.create_index('idx_annotations_prototype_step', 'prototype_annotations', ['prototype_id', 'step_order'], unique=False)

    # Runtime settings (Slack, default branding)
    op.create_table('app_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('setting_key', sa.String(length=100), nullable=False),
        sa.Column('setting_value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('setting_key')
    )


def downgrade() -> None:
    op.drop_table('app_settings')
    op.drop_index('idx_annotations_prototype_step', table_name='prototype_annotations')
    op.drop_table('prototype_annotations')
    op.drop_column('link_views', 'duration_seconds')
    op.drop_column('link_views', 'prospect_company')
    op.drop_column('link_views', 'prospect_email')
    op.drop_column('link_views', 'prospect_name')
    op.drop_column('magic_links', 'branding_config')
    op.drop_column('magic_links', 'password_hash')
