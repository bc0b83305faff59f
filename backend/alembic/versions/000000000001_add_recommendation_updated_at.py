"""add_recommendation_updated_at

Revision ID: 000000000001
Revises: 000000000000
Create Date: 2026-10-17 00:00:00.000000

Edits to an existing recommendation (source, link, person) must move the
catalog version the overlap index cache is keyed on.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '000000000001'
down_revision: Union[str, None] = '000000000000'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('recommendations', sa.Column('updated_at', sa.DateTime(), nullable=True))
    op.execute("UPDATE recommendations SET updated_at = created_at")


def downgrade() -> None:
    op.drop_column('recommendations', 'updated_at')
