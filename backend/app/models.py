from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
import uuid
import secrets
from datetime import datetime
import enum
import sqlalchemy as sa
from app.database import Base

# JSON everywhere, JSONB on Postgres. None is stored as SQL NULL, not JSON null.
PortableJSON = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class RecommenderType(str, enum.Enum):
    TECHNOLOGIST = "Technologist or Mathematician"
    LIBRARIAN = "Librarian or Teacher"
    ENTREPRENEUR = "Entrepreneur or Startup Founder"
    HISTORIAN = "Historian, Philosopher, or Theologian"
    SOCIAL_SCIENTIST = "Anthropologist or Social Scientist"
    SCIENTIST = "Biologist, Physicist, or Medical Scientist"
    ECONOMIST = "Economist or Policy Expert"
    ARCHITECT = "Architect or Design Expert"
    JOURNALIST = "Broadcaster, Journalist, or Media Commentator"
    INVESTOR = "Venture Capitalist or Investor"
    AUTHOR = "Author or Writer"
    MUSICIAN = "Musician, Music Critic, or Filmmaker"
    BIOGRAPHER = "Biographer or Memoirist"
    COOK = "Cook, Food Writer, or Culinary Expert"
    ENTERTAINER = "Comedian, Magician, or Entertainer"
    EXECUTIVE = "Business Leader or Executive"
    PRODUCT = "Product Manager, Designer, or Engineer"
    ARTIST = "Art Historian, Critic, or Visual Artist"


class ContributionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Book(Base):
    __tablename__ = "books"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False, index=True)
    author = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    genre = Column(PortableJSON, nullable=False, default=list)
    amazon_url = Column(String, nullable=True)
    # Embeddings are materialized at ingestion; absent until computed
    title_embedding = Column(PortableJSON, nullable=True)
    author_embedding = Column(PortableJSON, nullable=True)
    description_embedding = Column(PortableJSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    recommendations = relationship("Recommendation", back_populates="book")


class Recommender(Base):
    __tablename__ = "people"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String, nullable=False, index=True)
    type = Column(
        SQLEnum(
            RecommenderType,
            name="recommender_type",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=True,  # contributed people are typed during review
    )
    url = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    description_embedding = Column(PortableJSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    recommendations = relationship("Recommendation", back_populates="recommender")


class Recommendation(Base):
    """
    A single endorsement edge. The same (book, person) pair may appear more
    than once with different sources; rows are never merged at storage.
    """
    __tablename__ = "recommendations"

    id = Column(String(36), primary_key=True, default=_new_id)
    book_id = Column(String(36), ForeignKey("books.id"), nullable=False, index=True)
    person_id = Column(String(36), ForeignKey("people.id"), nullable=False, index=True)
    source = Column(String, nullable=False)
    source_link = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    book = relationship("Book", back_populates="recommendations")
    recommender = relationship("Recommender", back_populates="recommendations")


class PendingContribution(Base):
    __tablename__ = "pending_contributions"

    id = Column(String(36), primary_key=True, default=_new_id)
    person_name = Column(String, nullable=False)
    person_url = Column(String, nullable=True)
    books = Column(PortableJSON, nullable=False)  # [{"title": ..., "author": ...}]
    status = Column(
        SQLEnum(
            ContributionStatus,
            name="contribution_status",
            values_callable=lambda enum: [e.value for e in enum],
        ),
        nullable=False,
        default=ContributionStatus.PENDING,
    )
    approval_token = Column(String, nullable=False, unique=True, index=True, default=lambda: secrets.token_urlsafe(32))
    created_at = Column(DateTime, default=datetime.utcnow)
    approved_at = Column(DateTime, nullable=True)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    created_at = Column(DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True)
    event_name = Column(String, nullable=False, index=True)
    properties = Column(PortableJSON, nullable=True)
    request_id = Column(String, nullable=True)
