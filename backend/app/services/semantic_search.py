"""
Free-text semantic search over stored description embeddings, plus the
title/author embedding match used to de-duplicate contributed books.
"""
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging

from app.core.config import settings
from app.core.errors import InvalidRequest
from app.services.embedding_provider import EmbeddingProvider
from app.services.entity_store import BookRecord, EntityStore, RecommenderRecord
from app.services.similarity import as_vector, cosine_similarity, nearest_by_embedding

logger = logging.getLogger(__name__)

# Both title and author must clear this for two books to be considered the same
BOOK_MATCH_MIN_SIMILARITY = 0.95


@dataclass(frozen=True)
class BookMatch:
    book: BookRecord
    similarity: float


@dataclass(frozen=True)
class PersonMatch:
    recommender: RecommenderRecord
    similarity: float


def _clean_query(query: Optional[str]) -> str:
    if query is None or not query.strip():
        raise InvalidRequest("query is required")
    return query.strip()


def semantic_search_books(
    store: EntityStore,
    provider: EmbeddingProvider,
    query: str,
    min_similarity: Optional[float] = None,
    match_count: Optional[int] = None,
) -> List[BookMatch]:
    """
    Embed query and return the closest books by description embedding.

    This call exists only to search, so EmbeddingUnavailable propagates to the
    caller instead of degrading to an empty result.
    """
    query = _clean_query(query)
    min_similarity = settings.SEMANTIC_SEARCH_MIN_SIMILARITY if min_similarity is None else min_similarity
    match_count = match_count or settings.SEMANTIC_SEARCH_MATCH_COUNT

    query_vector = provider.embed(query)
    books = {b.id: b for b in store.list_books()}
    ranked = nearest_by_embedding(
        query_vector,
        ((b.id, b.description_embedding) for b in books.values()),
        k=match_count,
        min_similarity=min_similarity,
    )
    logger.info("Semantic book search: candidates=%d matches=%d", len(books), len(ranked))
    return [BookMatch(book=books[book_id], similarity=score) for book_id, score in ranked]


def semantic_search_people(
    store: EntityStore,
    provider: EmbeddingProvider,
    query: str,
    min_similarity: Optional[float] = None,
    match_count: Optional[int] = None,
) -> List[PersonMatch]:
    """Same as semantic_search_books, over recommender profile embeddings."""
    query = _clean_query(query)
    min_similarity = settings.SEMANTIC_SEARCH_MIN_SIMILARITY if min_similarity is None else min_similarity
    match_count = match_count or settings.SEMANTIC_SEARCH_MATCH_COUNT

    query_vector = provider.embed(query)
    people = {p.id: p for p in store.list_recommenders()}
    ranked = nearest_by_embedding(
        query_vector,
        ((p.id, p.description_embedding) for p in people.values()),
        k=match_count,
        min_similarity=min_similarity,
    )
    logger.info("Semantic people search: candidates=%d matches=%d", len(people), len(ranked))
    return [PersonMatch(recommender=people[person_id], similarity=score) for person_id, score in ranked]


def find_matching_book(
    books: Sequence[BookRecord],
    title_embedding: Sequence[float],
    author_embedding: Sequence[float],
    min_similarity: float = BOOK_MATCH_MIN_SIMILARITY,
) -> Optional[Tuple[BookRecord, float, float]]:
    """
    Best existing book whose title and author embeddings are both at least
    min_similarity to the given ones, ranked by their mean. Returns
    (book, title_similarity, author_similarity) or None.
    """
    dim = len(title_embedding)
    best = None
    best_key = None
    for book in books:
        title_vec = as_vector(book.title_embedding, dim)
        author_vec = as_vector(book.author_embedding, dim)
        if title_vec is None or author_vec is None:
            continue
        title_sim = cosine_similarity(title_embedding, title_vec)
        author_sim = cosine_similarity(author_embedding, author_vec)
        if title_sim is None or author_sim is None:
            continue
        if title_sim < min_similarity or author_sim < min_similarity:
            continue
        key = (-(title_sim + author_sim) / 2, book.id)
        if best_key is None or key < best_key:
            best_key = key
            best = (book, title_sim, author_sim)
    return best
