"""add prospect_feedback table and recipient_email to magic_links

Revision ID: b84d2e6f1a93
Revises: a3f1c9e2b7d0
Create Date: 2026-01-20 14:37:52.090114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b84d2e6f1a93'
down_revision: Union[str, None] = 'a3f1c9e2b7d0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Links addressed to a prospect's email
    op.add_column('magic_links', sa.Column('recipient_email', sa.String(length=255), nullable=True))
    op.create_index('idx_magic_links_recipient', 'magic_links', ['recipient_email'], unique=False)

    op.create_table('prospect_feedback',
        sa.Column('feedback_id', sa.UUID(), nullable=False),
        sa.Column('prototype_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('magic_link_id', sa.UUID(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('category', sa.String(length=50), server_default='general', nullable=False),
        sa.Column('reviewer_name', sa.String(length=255), nullable=True),
        sa.Column('reviewer_email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['magic_link_id'], ['magic_links.link_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['prototype_id'], ['prototypes.prototype_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('feedback_id')
    )
    op.create_index('idx_feedback_prototype', 'prospect_feedback', ['prototype_id', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_feedback_prototype', table_name='prospect_feedback')
    op.drop_table('prospect_feedback')
    op.drop_index('idx_magic_links_recipient', table_name='magic_links')
    op.drop_column('magic_links', 'recipient_email')
