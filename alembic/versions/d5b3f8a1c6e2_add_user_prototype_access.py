"""add user_prototype_access table

Revision ID: d5b3f8a1c6e2
Revises: c2e7a5d9f410
Create Date: 2026-02-04 16:48:03.552781

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'd5b3f8a1c6e2'
down_revision: Union[str, None] = 'c2e7a5d9f410'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('user_prototype_access',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('assigned_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['assigned_by'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'prototype_id', name='uq_user_prototype_access')
    )
    op.create_index('idx_user_prototype_access_user', 'user_prototype_access', ['user_id'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_user_prototype_access_user', table_name='user_prototype_access')
    op.drop_table('user_prototype_access')
