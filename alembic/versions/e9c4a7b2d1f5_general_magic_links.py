"""homepage magic links: prototype_id becomes optional

Revision ID: e9c4a7b2d1f5
Revises: d5b3f8a1c6e2
Create Date: 2026-02-11 11:26:19.804466

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'e9c4a7b2d1f5'
down_revision: Union[str, None] = 'd5b3f8a1c6e2'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # A NULL prototype_id marks a homepage link listing every published prototype
    op.alter_column('magic_links', 'prototype_id', existing_type=sa.UUID(), nullable=True)
    # Homepage visits are recorded without a prototype
    op.alter_column('link_views', 'prototype_id', existing_type=sa.UUID(), nullable=True)
    # Viewers request access from their dashboard, without a link
    op.alter_column('prototype_access_requests', 'magic_link_id', existing_type=sa.UUID(), nullable=True)


def downgrade() -> None:
    op.execute("DELETE FROM prototype_access_requests WHERE magic_link_id IS NULL")
    op.execute("DELETE FROM link_views WHERE prototype_id IS NULL")
    op.execute("DELETE FROM magic_links WHERE prototype_id IS NULL")
    op.alter_column('prototype_access_requests', 'magic_link_id', existing_type=sa.UUID(), nullable=False)
    op.alter_column('link_views', 'prototype_id', existing_type=sa.UUID(), nullable=False)
    op.alter_column('magic_links', 'prototype_id', existing_type=sa.UUID(), nullable=False)
