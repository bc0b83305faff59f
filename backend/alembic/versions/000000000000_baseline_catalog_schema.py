"""baseline_catalog_schema

Revision ID: 000000000000
Revises:
Create Date: 2026-10-16 00:00:00.000000

Creates the catalog tables (books, people, recommendations), the
contribution queue and event_logs.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '000000000000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RECOMMENDER_TYPES = (
    "Technologist or Mathematician",
    "Librarian or Teacher",
    "Entrepreneur or Startup Founder",
    "Historian, Philosopher, or Theologian",
    "Anthropologist or Social Scientist",
    "Biologist, Physicist, or Medical Scientist",
    "Economist or Policy Expert",
    "Architect or Design Expert",
    "Broadcaster, Journalist, or Media Commentator",
    "Venture Capitalist or Investor",
    "Author or Writer",
    "Musician, Music Critic, or Filmmaker",
    "Biographer or Memoirist",
    "Cook, Food Writer, or Culinary Expert",
    "Comedian, Magician, or Entertainer",
    "Business Leader or Executive",
    "Product Manager, Designer, or Engineer",
    "Art Historian, Critic, or Visual Artist",
)

CONTRIBUTION_STATUSES = ("pending", "approved", "rejected")

# JSONB on Postgres, JSON elsewhere
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('author', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('genre', JSON_TYPE, nullable=False),
        sa.Column('amazon_url', sa.String(), nullable=True),
        sa.Column('title_embedding', JSON_TYPE, nullable=True),
        sa.Column('author_embedding', JSON_TYPE, nullable=True),
        sa.Column('description_embedding', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_books_title', 'books', ['title'])
    op.create_index('ix_books_author', 'books', ['author'])

    op.create_table(
        'people',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('type', sa.Enum(*RECOMMENDER_TYPES, name='recommender_type'), nullable=True),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('description_embedding', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_people_full_name', 'people', ['full_name'])

    op.create_table(
        'recommendations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('book_id', sa.String(length=36), nullable=False),
        sa.Column('person_id', sa.String(length=36), nullable=False),
        sa.Column('source', sa.String(), nullable=False),
        sa.Column('source_link', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['book_id'], ['books.id']),
        sa.ForeignKeyConstraint(['person_id'], ['people.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_recommendations_book_id', 'recommendations', ['book_id'])
    op.create_index('ix_recommendations_person_id', 'recommendations', ['person_id'])

    op.create_table(
        'pending_contributions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('person_name', sa.String(), nullable=False),
        sa.Column('person_url', sa.String(), nullable=True),
        sa.Column('books', JSON_TYPE, nullable=False),
        sa.Column('status', sa.Enum(*CONTRIBUTION_STATUSES, name='contribution_status'), nullable=False),
        sa.Column('approval_token', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_pending_contributions_approval_token',
        'pending_contributions',
        ['approval_token'],
        unique=True,
    )

    op.create_table(
        'event_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('event_name', sa.String(), nullable=False),
        sa.Column('properties', JSON_TYPE, nullable=True),
        sa.Column('request_id', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_logs_created_at', 'event_logs', ['created_at'])
    op.create_index('ix_event_logs_event_name', 'event_logs', ['event_name'])


def downgrade() -> None:
    op.drop_index('ix_event_logs_event_name', table_name='event_logs')
    op.drop_index('ix_event_logs_created_at', table_name='event_logs')
    op.drop_table('event_logs')
    op.drop_index('ix_pending_contributions_approval_token', table_name='pending_contributions')
    op.drop_table('pending_contributions')
    op.drop_index('ix_recommendations_person_id', table_name='recommendations')
    op.drop_index('ix_recommendations_book_id', table_name='recommendations')
    op.drop_table('recommendations')
    op.drop_index('ix_people_full_name', table_name='people')
    op.drop_table('people')
    op.drop_index('ix_books_author', table_name='books')
    op.drop_index('ix_books_title', table_name='books')
    op.drop_table('books')
    sa.Enum(name='contribution_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='recommender_type').drop(op.get_bind(), checkfirst=True)
