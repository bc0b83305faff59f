"""
Contribution workflow: a visitor submits a person and the books they
recommend; an approval link turns the submission into catalog rows.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import CatalogError, InvalidRequest, NotFound, StoreUnavailable
from app.models import Book, ContributionStatus, PendingContribution, Recommendation, Recommender
from app.services.embedding_provider import EmbeddingProvider
from app.services.enrichment import BookMetadata
from app.services.entity_store import to_book_record
from app.services.semantic_search import BOOK_MATCH_MIN_SIMILARITY, find_matching_book
from app.utils.instrumentation import log_event
from app.utils.urls import generate_amazon_url, sanitize_twitter_url

logger = logging.getLogger(__name__)

MAX_CONTRIBUTION_BOOKS = 20
PERSONAL_SOURCE = "Personal"


class Enricher(Protocol):
    def lookup(self, title: str, author: str) -> BookMetadata: ...


@dataclass
class ApprovalResult:
    contribution_id: str
    person_id: str
    book_ids: List[str] = field(default_factory=list)
    created_book_ids: List[str] = field(default_factory=list)


def _clean_books(books: Optional[Sequence[Mapping[str, Any]]]) -> List[Dict[str, str]]:
    if not books:
        raise InvalidRequest("At least one book is required")
    if len(books) > MAX_CONTRIBUTION_BOOKS:
        raise InvalidRequest(f"At most {MAX_CONTRIBUTION_BOOKS} books per contribution")

    cleaned = []
    for i, book in enumerate(books):
        title = str(book.get("title") or "").strip()
        author = str(book.get("author") or "").strip()
        if not title or not author:
            raise InvalidRequest(f"Book #{i + 1} needs both a title and an author")
        cleaned.append({"title": title, "author": author})
    return cleaned


def submit_contribution(
    db: Session,
    name: Optional[str],
    url: Optional[str],
    books: Optional[Sequence[Mapping[str, Any]]],
) -> PendingContribution:
    """Validate and store a pending submission with a fresh approval token."""
    name = (name or "").strip()
    if not name:
        raise InvalidRequest("name is required")
    cleaned_books = _clean_books(books)
    url = (url or "").strip() or None

    contribution = PendingContribution(
        person_name=name,
        person_url=url,
        books=cleaned_books,
        status=ContributionStatus.PENDING,
    )
    try:
        db.add(contribution)
        db.flush()
        log_event(db, "contribution_submitted", properties={"book_count": len(cleaned_books)})
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to store contribution from %r: %s", name, e)
        raise StoreUnavailable("Could not store contribution") from e

    db.refresh(contribution)
    logger.info("Contribution %s submitted: person=%r books=%d", contribution.id, name, len(cleaned_books))
    return contribution


def _get_pending(db: Session, token: Optional[str]) -> PendingContribution:
    if token is None or not token.strip():
        raise InvalidRequest("Invalid approval token")
    contribution = (
        db.query(PendingContribution)
        .filter(PendingContribution.approval_token == token.strip())
        .one_or_none()
    )
    if contribution is None:
        raise NotFound("Invalid or expired approval token")
    if contribution.status != ContributionStatus.PENDING:
        raise InvalidRequest(f"Contribution already {contribution.status.value}")
    return contribution


def _find_or_create_person(db: Session, name: str, url: Optional[str]) -> Recommender:
    person = db.query(Recommender).filter(Recommender.full_name == name).first()
    url = sanitize_twitter_url(url)
    if person is not None:
        logger.info("Using existing person: %s", name)
        if url:
            person.url = url
        return person

    person = Recommender(full_name=name, url=url)
    db.add(person)
    db.flush()
    logger.info("Created new person: %s", name)
    return person


def _find_or_create_book(
    db: Session,
    title: str,
    author: str,
    provider: EmbeddingProvider,
    enricher: Optional[Enricher],
) -> tuple:
    """Returns (book, created)."""
    existing = (
        db.query(Book)
        .filter(func.lower(Book.title) == title.lower(), func.lower(Book.author) == author.lower())
        .order_by(Book.created_at.asc(), Book.id.asc())
        .first()
    )
    if existing is not None:
        logger.info("Exact match for '%s' by %s: %s", title, author, existing.id)
        return existing, False

    title_embedding = provider.embed(title)
    author_embedding = provider.embed(author)

    candidates = [to_book_record(b) for b in db.query(Book).all()]
    match = find_matching_book(candidates, title_embedding, author_embedding, BOOK_MATCH_MIN_SIMILARITY)
    if match is not None:
        record, title_sim, author_sim = match
        logger.info(
            "Found similar book for '%s' by %s: '%s' by %s (title=%.1f%%, author=%.1f%%)",
            title, author, record.title, record.author, title_sim * 100, author_sim * 100,
        )
        return db.query(Book).filter(Book.id == record.id).one(), False

    metadata = enricher.lookup(title, author) if enricher is not None else BookMetadata()
    description = (metadata.description or "").strip() or None
    book = Book(
        title=title,
        author=author,
        description=description,
        genre=list(metadata.genre),
        amazon_url=generate_amazon_url(title, author),
        title_embedding=title_embedding,
        author_embedding=author_embedding,
        description_embedding=provider.embed(description) if description else None,
    )
    db.add(book)
    db.flush()
    logger.info("Created new book: '%s' by %s", title, author)
    return book, True


def approve_contribution(
    db: Session,
    token: Optional[str],
    provider: EmbeddingProvider,
    enricher: Optional[Enricher] = None,
) -> ApprovalResult:
    """
    Apply a pending contribution in one transaction: the person (found by exact
    name or created), each book (matched or created with metadata and
    embeddings) and one "Personal" recommendation per distinct book. Any
    failure rolls everything back and leaves the contribution pending.
    """
    contribution = _get_pending(db, token)
    contribution_id = contribution.id
    try:
        person = _find_or_create_person(db, contribution.person_name, contribution.person_url)
        result = ApprovalResult(contribution_id=contribution_id, person_id=person.id)

        for entry in contribution.books:
            book, created = _find_or_create_book(db, entry["title"], entry["author"], provider, enricher)
            if created:
                result.created_book_ids.append(book.id)
            if book.id in result.book_ids:
                continue
            result.book_ids.append(book.id)
            db.add(Recommendation(book_id=book.id, person_id=person.id, source=PERSONAL_SOURCE))

        contribution.status = ContributionStatus.APPROVED
        contribution.approved_at = datetime.utcnow()
        log_event(
            db,
            "contribution_approved",
            properties={"book_count": len(result.book_ids), "created_books": len(result.created_book_ids)},
        )
        db.commit()
    except CatalogError:
        db.rollback()
        logger.warning("Approval of contribution %s rolled back", contribution_id)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Approval of contribution %s failed: %s", contribution_id, e)
        raise StoreUnavailable("Could not apply contribution") from e

    logger.info(
        "Contribution %s approved: person=%s books=%d created=%d",
        result.contribution_id,
        result.person_id,
        len(result.book_ids),
        len(result.created_book_ids),
    )
    return result


def reject_contribution(db: Session, token: Optional[str]) -> PendingContribution:
    contribution = _get_pending(db, token)
    contribution.status = ContributionStatus.REJECTED
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreUnavailable("Could not update contribution") from e
    logger.info("Contribution %s rejected", contribution.id)
    return contribution
