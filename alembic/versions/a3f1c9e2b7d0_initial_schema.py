"""initial schema: users, prototypes, magic_links, link_views, audit_logs

Revision ID: a3f1c9e2b7d0
Revises:
Create Date: 2026-01-12 10:02:11.418203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a3f1c9e2b7d0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('users',
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('invite_token', sa.String(length=128), nullable=True),
        sa.Column('invite_expires_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('prototypes',
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('file_path', sa.String(length=1024), nullable=True),
        sa.Column('thumbnail_path', sa.String(length=1024), nullable=True),
        sa.Column('version', sa.String(length=20), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('prototype_id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index('idx_prototypes_status', 'prototypes', ['status', 'created_at'], unique=False)

    op.create_table('magic_links',
        sa.Column('link_id', sa.UUID(), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.Column('view_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('link_id'),
        sa.UniqueConstraint('token')
    )
    op.create_index('idx_magic_links_prototype', 'magic_links', ['prototype_id'], unique=False)

    op.create_table('link_views',
        sa.Column('view_id', sa.UUID(), nullable=False),
        sa.Column('magic_link_id', sa.UUID(), nullable=True),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('viewed_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['magic_link_id'], ['magic_links.link_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('view_id')
    )
    op.create_index('idx_link_views_link', 'link_views', ['magic_link_id', 'viewed_at'], unique=False)
    op.create_index('idx_link_views_prototype', 'link_views', ['prototype_id', 'viewed_at'], unique=False)

    op.create_table('audit_logs',
        sa.Column('log_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('resource_type', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=255), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('method', sa.String(length=10), nullable=True),
        sa.Column('path', sa.String(length=2048), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index('idx_audit_logs_created', 'audit_logs', ['created_at'], unique=False)
    op.create_index('idx_audit_logs_user', 'audit_logs', ['user_id', 'created_at'], unique=False)
    op.create_index('idx_audit_logs_action', 'audit_logs', ['action'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_audit_logs_action', table_name='audit_logs')
    op.drop_index('idx_audit_logs_user', table_name='audit_logs')
    op.drop_index('idx_audit_logs_created', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('idx_link_views_prototype', table_name='link_views')
    op.drop_index('idx_link_views_link', table_name='link_views')
    op.drop_table('link_views')
    op.drop_index('idx_magic_links_prototype', table_name='magic_links')
    op.drop_table('magic_links')
    op.drop_index('idx_prototypes_status', table_name='prototypes')
    op.drop_table('prototypes')
    op.drop_table('users')
