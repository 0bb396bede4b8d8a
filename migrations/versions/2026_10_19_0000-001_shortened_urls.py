"""Create shortened_urls table

Revision ID: 001_shortened_urls
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_shortened_urls'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the shortened_urls table:
    - non-unique index on alias (distinct urls may share a fingerprint)
    - unique (alias, offset) so each collision slot is claimed once
    - unique index on url_safe_alias (the token handed to clients)
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'shortened_urls' in existing_tables:
        return

    op.create_table(
        'shortened_urls',
        sa.Column('row_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('alias', sa.String(length=16), nullable=False),
        sa.Column('offset', sa.SmallInteger(), nullable=False, server_default='0'),
        sa.Column('url_safe_alias', sa.String(length=32), nullable=False),
        sa.Column('full_url', sa.Text(), nullable=False),
        sa.Column('created', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_hit', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('row_id'),
        sa.UniqueConstraint('alias', 'offset', name='uq_shortened_urls_alias_offset')
    )

    op.create_index('ix_shortened_urls_alias', 'shortened_urls', ['alias'])
    op.create_index('ix_shortened_urls_url_safe_alias', 'shortened_urls', ['url_safe_alias'], unique=True)
    op.create_index('ix_shortened_urls_created', 'shortened_urls', ['created'])


def downgrade() -> None:
    op.drop_index('ix_shortened_urls_created', table_name='shortened_urls')
    op.drop_index('ix_shortened_urls_url_safe_alias', table_name='shortened_urls')
    op.drop_index('ix_shortened_urls_alias', table_name='shortened_urls')
    op.drop_table('shortened_urls')
