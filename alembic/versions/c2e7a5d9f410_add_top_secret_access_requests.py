"""add is_top_secret to prototypes and prototype_access_requests table

Revision ID: c2e7a5d9f410
Revises: b84d2e6f1a93
Create Date: 2026-01-28 09:15:40.671925

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c2e7a5d9f410'
down_revision: Union[str, None] = 'b84d2e6f1a93'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('prototypes', sa.Column('is_top_secret', sa.Boolean(), server_default=sa.false(), nullable=False))

    op.create_table('prototype_access_requests',
        sa.Column('request_id', sa.UUID(), nullable=False),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('magic_link_id', sa.UUID(), nullable=False),
        sa.Column('requester_name', sa.String(length=255), nullable=False),
        sa.Column('requester_email', sa.String(length=255), nullable=False),
        sa.Column('requester_company', sa.String(length=255), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='pending', nullable=False),
        sa.Column('reviewed_by', sa.UUID(), nullable=True),
        sa.Column('reviewed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['magic_link_id'], ['magic_links.link_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reviewed_by'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('request_id')
    )
    op.create_index('idx_access_requests_status', 'prototype_access_requests', ['status', 'created_at'], unique=False)
    op.create_index('idx_access_requests_email', 'prototype_access_requests', ['requester_email', 'prototype_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_access_requests_email', table_name='prototype_access_requests')
    op.drop_index('idx_access_requests_status', table_name='prototype_access_requests')
    op.drop_table('prototype_access_requests')
    op.drop_column('prototypes', 'is_top_secret')
