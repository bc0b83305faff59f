"""
Read-side catalog views: book and people listings, detail pages, related
entities and aggregate insights. Everything here is computed from the shared
catalog snapshot and overlap index.
"""
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass
from collections import defaultdict
import logging
import random

from app.core.config import settings
from app.core.errors import NotFound
from app.services.entity_store import BookRecord, CatalogSnapshot, EntityStore, RecommenderRecord
from app.services.overlap_index import (
    GenreStat,
    NetworkEdge,
    OverlapIndex,
    OverlapIndexCache,
    RelatedBook,
    RelatedRecommender,
    TypeStat,
    overlap_index_cache,
)
from app.services.percentiles import bucket, compute_percentiles
from app.services.recommendation_engine import load_catalog
from app.services.semantic_search import BookMatch, PersonMatch
from app.services.similarity import nearest_by_embedding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Endorsement:
    """One recommendation edge as seen from a book."""
    recommender: RecommenderRecord
    source: str
    source_link: Optional[str] = None


@dataclass(frozen=True)
class EndorsedBook:
    """One recommendation edge as seen from a recommender."""
    book: BookRecord
    source: str
    source_link: Optional[str] = None


@dataclass(frozen=True)
class CatalogBook:
    book: BookRecord
    endorsements: Tuple[Endorsement, ...]
    recommendation_count: int
    percentile: float
    bucket: int


@dataclass(frozen=True)
class BookDetail:
    entry: CatalogBook
    related: List[RelatedBook]
    similar: List[BookMatch]


@dataclass(frozen=True)
class RecommenderSummary:
    recommender: RecommenderRecord
    book_count: int


@dataclass(frozen=True)
class SuggestedBook:
    """A book endorsed by endorser_count people who overlap with a recommender."""
    book: BookRecord
    endorser_count: int


@dataclass(frozen=True)
class RecommenderDetail:
    recommender: RecommenderRecord
    books: Tuple[EndorsedBook, ...]
    related: List[RelatedRecommender]
    similar: List[PersonMatch]
    suggested: List[SuggestedBook]


def _index(store: EntityStore, cache: Optional[OverlapIndexCache]) -> OverlapIndex:
    _, index = load_catalog(store, cache)
    return index


def _endorsements_by_book(snapshot: CatalogSnapshot) -> Dict[str, List[Endorsement]]:
    grouped: Dict[str, List[Endorsement]] = defaultdict(list)
    for rec in snapshot.recommendations:
        person = snapshot.recommenders.get(rec.recommender_id)
        if person is None or rec.book_id not in snapshot.books:
            continue
        grouped[rec.book_id].append(Endorsement(recommender=person, source=rec.source, source_link=rec.source_link))
    for entries in grouped.values():
        entries.sort(key=lambda e: (e.recommender.full_name.lower(), e.recommender.id, e.source))
    return grouped


def _catalog_entries(index: OverlapIndex) -> Dict[str, CatalogBook]:
    snapshot = index.snapshot
    counts = index.recommendation_counts()
    percentiles = compute_percentiles(counts)
    endorsements = _endorsements_by_book(snapshot)
    thresholds = settings.PERCENTILE_THRESHOLDS
    return {
        book_id: CatalogBook(
            book=book,
            endorsements=tuple(endorsements.get(book_id, ())),
            recommendation_count=counts[book_id],
            percentile=percentiles[book_id],
            bucket=bucket(percentiles[book_id], thresholds),
        )
        for book_id, book in snapshot.books.items()
    }


def list_catalog_books(
    store: EntityStore,
    genre: Optional[str] = None,
    query: Optional[str] = None,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[CatalogBook]:
    """
    Every book with its endorsements, most recommended first.

    Percentiles are ranked over the whole catalog; genre and text filters are
    applied afterwards so a filtered view keeps the same background buckets.
    """
    entries = _catalog_entries(_index(store, cache)).values()

    if genre:
        entries = [e for e in entries if genre in e.book.genre]
    if query and query.strip():
        needle = query.strip().lower()
        entries = [
            e for e in entries
            if needle in e.book.title.lower() or needle in e.book.author.lower()
        ]

    return sorted(entries, key=lambda e: (-e.recommendation_count, e.book.title.lower(), e.book.id))


def _similar_books(index: OverlapIndex, book_id: str, limit: int) -> List[BookMatch]:
    books = index.snapshot.books
    ranked = nearest_by_embedding(
        books[book_id].description_embedding,
        ((b.id, b.description_embedding) for b in books.values() if b.id != book_id),
        k=limit,
    )
    return [BookMatch(book=books[other_id], similarity=score) for other_id, score in ranked]


def _similar_recommenders(index: OverlapIndex, recommender_id: str, limit: int) -> List[PersonMatch]:
    people = index.snapshot.recommenders
    ranked = nearest_by_embedding(
        people[recommender_id].description_embedding,
        ((p.id, p.description_embedding) for p in people.values() if p.id != recommender_id),
        k=limit,
    )
    return [PersonMatch(recommender=people[other_id], similarity=score) for other_id, score in ranked]


def _suggested_books(index: OverlapIndex, recommender_id: str, limit: int) -> List[SuggestedBook]:
    books = index.snapshot.books
    return [
        SuggestedBook(book=books[book_id], endorser_count=count)
        for book_id, count in index.books_by_similar_recommenders(recommender_id, limit)
        if book_id in books
    ]


def book_detail(
    store: EntityStore,
    book_id: str,
    related_limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> BookDetail:
    index = _index(store, cache)
    if book_id not in index.snapshot.books:
        raise NotFound(f"Book {book_id} not found")
    entry = _catalog_entries(index)[book_id]
    return BookDetail(
        entry=entry,
        related=index.related_books_by_shared_recommenders(book_id, related_limit),
        similar=_similar_books(index, book_id, related_limit),
    )


def related_books(
    store: EntityStore,
    book_id: str,
    limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[RelatedBook]:
    index = _index(store, cache)
    if book_id not in index.snapshot.books:
        raise NotFound(f"Book {book_id} not found")
    return index.related_books_by_shared_recommenders(book_id, limit)


def similar_books(
    store: EntityStore,
    book_id: str,
    limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[BookMatch]:
    """
    Nearest books by stored description embedding, excluding book_id itself.
    A book without an embedding has no neighbours.
    """
    index = _index(store, cache)
    if book_id not in index.snapshot.books:
        raise NotFound(f"Book {book_id} not found")
    return _similar_books(index, book_id, limit)


def random_book(
    store: EntityStore,
    rng: Optional[random.Random] = None,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> CatalogBook:
    """A uniformly random catalog book (the "surprise me" pick)."""
    index = _index(store, cache)
    if not index.snapshot.books:
        raise NotFound("Catalog is empty")
    book_id = (rng or random).choice(sorted(index.snapshot.books))
    return _catalog_entries(index)[book_id]


def list_recommenders(
    store: EntityStore,
    query: Optional[str] = None,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[RecommenderSummary]:
    """People by name, optionally filtered by a name/archetype substring."""
    index = _index(store, cache)
    people = index.snapshot.recommenders.values()
    if query and query.strip():
        needle = query.strip().lower()
        people = [
            p for p in people
            if needle in p.full_name.lower() or (p.type and needle in p.type.lower())
        ]
    return [
        RecommenderSummary(recommender=p, book_count=len(index.books_of(p.id)))
        for p in sorted(people, key=lambda p: (p.full_name.lower(), p.id))
    ]


def recommender_detail(
    store: EntityStore,
    recommender_id: str,
    related_limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> RecommenderDetail:
    index = _index(store, cache)
    snapshot = index.snapshot
    person = snapshot.recommenders.get(recommender_id)
    if person is None:
        raise NotFound(f"Recommender {recommender_id} not found")

    books = [
        EndorsedBook(book=snapshot.books[rec.book_id], source=rec.source, source_link=rec.source_link)
        for rec in snapshot.recommendations
        if rec.recommender_id == recommender_id and rec.book_id in snapshot.books
    ]
    books.sort(key=lambda e: (e.book.title.lower(), e.book.id, e.source))

    return RecommenderDetail(
        recommender=person,
        books=tuple(books),
        related=index.related_recommenders_by_shared_books(recommender_id, related_limit),
        similar=_similar_recommenders(index, recommender_id, related_limit),
        suggested=_suggested_books(index, recommender_id, related_limit),
    )


def related_recommenders(
    store: EntityStore,
    recommender_id: str,
    limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[RelatedRecommender]:
    index = _index(store, cache)
    if recommender_id not in index.snapshot.recommenders:
        raise NotFound(f"Recommender {recommender_id} not found")
    return index.related_recommenders_by_shared_books(recommender_id, limit)


def similar_recommenders(
    store: EntityStore,
    recommender_id: str,
    limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[PersonMatch]:
    """People closest to recommender_id by profile embedding."""
    index = _index(store, cache)
    if recommender_id not in index.snapshot.recommenders:
        raise NotFound(f"Recommender {recommender_id} not found")
    return _similar_recommenders(index, recommender_id, limit)


def suggested_books(
    store: EntityStore,
    recommender_id: str,
    limit: int = 10,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> List[SuggestedBook]:
    """
    Books recommender_id has not endorsed but people with overlapping taste
    have, most widely endorsed first.
    """
    index = _index(store, cache)
    if recommender_id not in index.snapshot.recommenders:
        raise NotFound(f"Recommender {recommender_id} not found")
    return _suggested_books(index, recommender_id, limit)


def genre_insights(store: EntityStore, cache: Optional[OverlapIndexCache] = overlap_index_cache) -> List[GenreStat]:
    return _index(store, cache).genre_stats()


def type_insights(store: EntityStore, cache: Optional[OverlapIndexCache] = overlap_index_cache) -> List[TypeStat]:
    return _index(store, cache).type_stats()


def recommendation_network(
    store: EntityStore,
    min_shared: int = 1,
    cache: Optional[OverlapIndexCache] = overlap_index_cache,
) -> Tuple[List[RecommenderRecord], List[NetworkEdge]]:
    """People who share at least one edge, and the edges between them."""
    index = _index(store, cache)
    edges = index.recommendation_network(max(1, min_shared))
    node_ids = {e.source_id for e in edges} | {e.target_id for e in edges}
    nodes = sorted(
        (index.snapshot.recommenders[rid] for rid in node_ids),
        key=lambda p: (p.full_name.lower(), p.id),
    )
    logger.info("Recommendation network: nodes=%d edges=%d min_shared=%d", len(nodes), len(edges), min_shared)
    return nodes, edges
