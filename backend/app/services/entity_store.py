"""
Read access to Books, Recommenders and Recommendation edges.

Queries go through SQLAlchemy; results are converted into frozen records so a
catalog snapshot can be shared across scoring requests without copying.
Any database error is surfaced as StoreUnavailable. Callers never get a
partially loaded catalog.
"""
from typing import Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field
from collections import defaultdict
import logging

from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import StoreUnavailable
from app.models import Book, Recommender, Recommendation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookRecord:
    id: str
    title: str
    author: str
    description: Optional[str] = None
    genre: frozenset = frozenset()
    amazon_url: Optional[str] = None
    title_embedding: Optional[Tuple[float, ...]] = None
    author_embedding: Optional[Tuple[float, ...]] = None
    description_embedding: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class RecommenderRecord:
    id: str
    full_name: str
    type: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
    description_embedding: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class RecommendationRecord:
    book_id: str
    recommender_id: str
    source: str
    source_link: Optional[str] = None


@dataclass(frozen=True)
class CatalogSnapshot:
    """Books, people and edges read together at the start of a request."""
    books: Dict[str, BookRecord] = field(default_factory=dict)
    recommenders: Dict[str, RecommenderRecord] = field(default_factory=dict)
    recommendations: Tuple[RecommendationRecord, ...] = ()

    def recommendations_for_book(self, book_id: str) -> List[RecommendationRecord]:
        return [r for r in self.recommendations if r.book_id == book_id]


def _as_tuple(values) -> Optional[Tuple[float, ...]]:
    if values is None:
        return None
    return tuple(float(v) for v in values)


def _type_value(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def to_book_record(book: Book) -> BookRecord:
    return BookRecord(
        id=str(book.id),
        title=book.title,
        author=book.author,
        description=book.description,
        genre=frozenset(g for g in (book.genre or []) if g),
        amazon_url=book.amazon_url,
        title_embedding=_as_tuple(book.title_embedding),
        author_embedding=_as_tuple(book.author_embedding),
        description_embedding=_as_tuple(book.description_embedding),
    )


def to_recommender_record(person: Recommender) -> RecommenderRecord:
    return RecommenderRecord(
        id=str(person.id),
        full_name=person.full_name,
        type=_type_value(person.type),
        url=person.url,
        description=person.description,
        description_embedding=_as_tuple(person.description_embedding),
    )


def to_recommendation_record(rec: Recommendation) -> RecommendationRecord:
    return RecommendationRecord(
        book_id=str(rec.book_id),
        recommender_id=str(rec.person_id),
        source=rec.source,
        source_link=rec.source_link,
    )


class EntityStore:
    """Query facade over the catalog tables bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    def _run(self, label: str, fn):
        try:
            return fn()
        except SQLAlchemyError as e:
            logger.error("Store query failed: op=%s error=%s", label, e)
            raise StoreUnavailable(f"Catalog store unavailable during {label}") from e

    def list_books(self) -> List[BookRecord]:
        return self._run(
            "list_books",
            lambda: [to_book_record(b) for b in self.db.query(Book).all()],
        )

    def get_book(self, book_id: str) -> Optional[BookRecord]:
        def fetch():
            book = self.db.query(Book).filter(Book.id == book_id).one_or_none()
            return to_book_record(book) if book else None
        return self._run("get_book", fetch)

    def list_recommenders(self) -> List[RecommenderRecord]:
        return self._run(
            "list_recommenders",
            lambda: [to_recommender_record(p) for p in self.db.query(Recommender).all()],
        )

    def get_recommender(self, recommender_id: str) -> Optional[RecommenderRecord]:
        def fetch():
            person = self.db.query(Recommender).filter(Recommender.id == recommender_id).one_or_none()
            return to_recommender_record(person) if person else None
        return self._run("get_recommender", fetch)

    def list_recommendations_for_books(self, ids: Iterable[str]) -> Dict[str, List[RecommendationRecord]]:
        ids = list(ids)

        def fetch():
            grouped: Dict[str, List[RecommendationRecord]] = defaultdict(list)
            if not ids:
                return grouped
            rows = self.db.query(Recommendation).filter(Recommendation.book_id.in_(ids)).all()
            for row in rows:
                grouped[str(row.book_id)].append(to_recommendation_record(row))
            return grouped
        return dict(self._run("list_recommendations_for_books", fetch))

    def list_recommendations_for_recommenders(self, ids: Iterable[str]) -> Dict[str, List[RecommendationRecord]]:
        ids = list(ids)

        def fetch():
            grouped: Dict[str, List[RecommendationRecord]] = defaultdict(list)
            if not ids:
                return grouped
            rows = self.db.query(Recommendation).filter(Recommendation.person_id.in_(ids)).all()
            for row in rows:
                grouped[str(row.person_id)].append(to_recommendation_record(row))
            return grouped
        return dict(self._run("list_recommendations_for_recommenders", fetch))

    def search_books_by_text(self, query: str, limit: int = 20) -> List[BookRecord]:
        """Case-insensitive substring match on title or author."""
        pattern = f"%{query.strip()}%"

        def fetch():
            rows = (
                self.db.query(Book)
                .filter(or_(Book.title.ilike(pattern), Book.author.ilike(pattern)))
                .order_by(Book.title.asc(), Book.id.asc())
                .limit(limit)
                .all()
            )
            return [to_book_record(b) for b in rows]
        return self._run("search_books_by_text", fetch)

    def search_recommenders_by_text(self, query: str, limit: int = 20) -> List[RecommenderRecord]:
        """Case-insensitive substring match on full name or archetype."""
        pattern = f"%{query.strip()}%"

        def fetch():
            # Enum columns are compared as their stored label
            rows = (
                self.db.query(Recommender)
                .filter(or_(
                    Recommender.full_name.ilike(pattern),
                    cast(Recommender.type, String).ilike(pattern),
                ))
                .order_by(Recommender.full_name.asc(), Recommender.id.asc())
                .limit(limit)
                .all()
            )
            return [to_recommender_record(p) for p in rows]
        return self._run("search_recommenders_by_text", fetch)

    def load_snapshot(self) -> CatalogSnapshot:
        """
        Read books, people and every recommendation edge.

        All three reads must succeed; a failure in any of them raises
        StoreUnavailable instead of returning a catalog with missing edges.
        """
        books = self.list_books()
        recommenders = self.list_recommenders()
        recommendations = self._run(
            "list_recommendations",
            lambda: [to_recommendation_record(r) for r in self.db.query(Recommendation).all()],
        )
        return CatalogSnapshot(
            books={b.id: b for b in books},
            recommenders={r.id: r for r in recommenders},
            recommendations=tuple(recommendations),
        )

    def catalog_version(self) -> Tuple:
        """
        Cheap last-modified signal for cache invalidation: row counts plus the
        latest update timestamps.
        """
        def fetch():
            book_count, book_updated = self.db.query(func.count(Book.id), func.max(Book.updated_at)).one()
            person_count, person_updated = self.db.query(
                func.count(Recommender.id), func.max(Recommender.updated_at)
            ).one()
            rec_count, rec_updated = self.db.query(
                func.count(Recommendation.id), func.max(Recommendation.updated_at)
            ).one()
            return (
                book_count, str(book_updated),
                person_count, str(person_updated),
                rec_count, str(rec_updated),
            )
        return self._run("catalog_version", fetch)
