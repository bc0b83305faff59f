from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass
import logging
import math

import numpy as np

from app.core.config import settings, Settings
from app.core.errors import InvalidRequest
from app.models import RecommenderType
from app.services.entity_store import BookRecord, CatalogSnapshot, EntityStore
from app.services.overlap_index import OverlapIndex, OverlapIndexCache
from app.services.percentiles import DEFAULT_THRESHOLDS, bucket, compute_percentiles
from app.services.similarity import as_vector, centroid, cosine_similarity
from app.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

# Maximum number of genres, inspirations and favorite books a user may pick
MAX_SELECTIONS = 3

MATCH_REASONS = (
    "similar_to_favorites",
    "recommended_by_inspiration",
    "recommended_by_similar_people",
    "genre_match",
    "recommended_by_similar_type",
)

VALID_USER_TYPES = frozenset(t.value for t in RecommenderType)


@dataclass(frozen=True)
class MatchReasons:
    """Five independent justifications for recommending a book to a user."""
    similar_to_favorites: bool = False
    recommended_by_inspiration: bool = False
    recommended_by_similar_people: bool = False
    genre_match: bool = False
    recommended_by_similar_type: bool = False

    def any(self) -> bool:
        return any(getattr(self, name) for name in MATCH_REASONS)

    def as_dict(self) -> Dict[str, bool]:
        return {name: getattr(self, name) for name in MATCH_REASONS}


@dataclass(frozen=True)
class ScoringConfig:
    """Tunable scoring constants; defaults come from Settings."""
    weights: Mapping[str, float]
    similarity_floor: float
    popularity_factor: float
    embedding_dim: int

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "ScoringConfig":
        return cls(
            weights=dict(s.match_reason_weights),
            similarity_floor=s.SIMILARITY_FLOOR,
            popularity_factor=s.POPULARITY_FACTOR,
            embedding_dim=s.EMBEDDING_DIM,
        )

    def popularity_multiplier(self, recommendation_count: int) -> float:
        return 1.0 + self.popularity_factor * math.log(1 + recommendation_count)

    def score(self, reasons: MatchReasons, recommendation_count: int) -> float:
        base = sum(self.weights[name] for name, matched in reasons.as_dict().items() if matched)
        return base * self.popularity_multiplier(recommendation_count)


@dataclass(frozen=True)
class RecommendationQuery:
    user_type: str
    genres: Tuple[str, ...] = ()
    inspiration_ids: Tuple[str, ...] = ()
    favorite_book_ids: Tuple[str, ...] = ()
    limit: int = 10

    @classmethod
    def from_payload(
        cls,
        user_type: Optional[str],
        genres: Optional[Sequence[str]] = None,
        inspiration_ids: Optional[Sequence[str]] = None,
        favorite_book_ids: Optional[Sequence[str]] = None,
        limit: Optional[int] = None,
    ) -> "RecommendationQuery":
        """
        Validate raw request values. Raises InvalidRequest for a missing or
        unknown user type, more than three picks in any list, or a limit
        outside 1..MAX_RECOMMENDATION_LIMIT.
        """
        if user_type is None or not str(user_type).strip():
            raise InvalidRequest("userType is required")
        user_type = str(user_type).strip()
        if user_type not in VALID_USER_TYPES:
            raise InvalidRequest(f"Unknown userType: {user_type!r}")

        cleaned = {}
        for name, values in (
            ("genres", genres),
            ("inspirationIds", inspiration_ids),
            ("favoriteBookIds", favorite_book_ids),
        ):
            deduped = _dedupe(values or [])
            if len(deduped) > MAX_SELECTIONS:
                raise InvalidRequest(f"{name} accepts at most {MAX_SELECTIONS} values, got {len(deduped)}")
            cleaned[name] = deduped

        if limit is None:
            limit = settings.DEFAULT_RECOMMENDATION_LIMIT
        if not 1 <= limit <= settings.MAX_RECOMMENDATION_LIMIT:
            raise InvalidRequest(f"limit must be between 1 and {settings.MAX_RECOMMENDATION_LIMIT}")

        return cls(
            user_type=user_type,
            genres=cleaned["genres"],
            inspiration_ids=cleaned["inspirationIds"],
            favorite_book_ids=cleaned["favoriteBookIds"],
            limit=limit,
        )


def _dedupe(values: Sequence[str]) -> Tuple[str, ...]:
    seen = []
    for value in values:
        value = str(value).strip()
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class ScoredBook:
    book: BookRecord
    score: float
    match_reasons: MatchReasons
    recommendation_count: int


@dataclass(frozen=True)
class PopularBook:
    book: BookRecord
    recommendation_count: int
    percentile: float
    bucket: int


@dataclass(frozen=True)
class _RequestContext:
    """Per-request lookups shared by every candidate evaluation."""
    favorites_centroid: Optional[np.ndarray]
    inspirations: frozenset
    similar_people: frozenset
    genres: frozenset
    user_type: str


def _build_context(snapshot: CatalogSnapshot, index: OverlapIndex, query: RecommendationQuery,
                   config: ScoringConfig) -> _RequestContext:
    favorite_vectors = [
        snapshot.books[book_id].description_embedding
        for book_id in query.favorite_book_ids
        if book_id in snapshot.books
    ]
    favorites_centroid = centroid(favorite_vectors, config.embedding_dim)
    if query.favorite_book_ids and favorites_centroid is None:
        logger.info(
            "No description embeddings among %d favorite(s); similar_to_favorites disabled for this request",
            len(query.favorite_book_ids),
        )

    inspirations = frozenset(query.inspiration_ids)
    # People who endorsed the user's own favorites say nothing new about taste
    favorite_recommenders = set()
    for book_id in query.favorite_book_ids:
        favorite_recommenders.update(index.recommenders_of(book_id))

    return _RequestContext(
        favorites_centroid=favorites_centroid,
        inspirations=inspirations,
        similar_people=index.overlapping_recommenders(inspirations) - favorite_recommenders,
        genres=frozenset(query.genres),
        user_type=query.user_type,
    )


def _evaluate_candidate(book: BookRecord, snapshot: CatalogSnapshot, index: OverlapIndex,
                        ctx: _RequestContext, config: ScoringConfig) -> MatchReasons:
    similar_to_favorites = False
    if ctx.favorites_centroid is not None:
        vector = as_vector(book.description_embedding, config.embedding_dim)
        if vector is not None:
            similarity = cosine_similarity(ctx.favorites_centroid, vector)
            similar_to_favorites = similarity is not None and similarity > config.similarity_floor

    recommenders = index.recommenders_of(book.id)
    recommender_types = {
        snapshot.recommenders[rid].type for rid in recommenders if rid in snapshot.recommenders
    }

    return MatchReasons(
        similar_to_favorites=similar_to_favorites,
        recommended_by_inspiration=bool(recommenders & ctx.inspirations),
        recommended_by_similar_people=bool(recommenders & ctx.similar_people),
        genre_match=bool(book.genre & ctx.genres),
        recommended_by_similar_type=ctx.user_type in recommender_types,
    )


def score_catalog(
    snapshot: CatalogSnapshot,
    index: OverlapIndex,
    query: RecommendationQuery,
    config: Optional[ScoringConfig] = None,
) -> List[ScoredBook]:
    """
    Rank the whole catalog for one user profile.

    Favorites are never returned, books with no matching reason are dropped,
    and ordering is (score desc, recommendation count desc, id asc) so the
    same inputs always give the same list.
    """
    config = config or ScoringConfig.from_settings()
    ctx = _build_context(snapshot, index, query, config)
    excluded = set(query.favorite_book_ids)

    scored: List[ScoredBook] = []
    for book in snapshot.books.values():
        if book.id in excluded:
            continue
        reasons = _evaluate_candidate(book, snapshot, index, ctx, config)
        if not reasons.any():
            continue
        count = index.recommendation_count(book.id)
        scored.append(
            ScoredBook(
                book=book,
                score=config.score(reasons, count),
                match_reasons=reasons,
                recommendation_count=count,
            )
        )

    scored.sort(key=lambda s: (-s.score, -s.recommendation_count, s.book.id))
    return scored[:query.limit]


def load_catalog(store: EntityStore, cache: Optional[OverlapIndexCache] = None) -> Tuple[CatalogSnapshot, OverlapIndex]:
    """Snapshot plus index, reusing the cached index while the catalog is unchanged."""
    if cache is not None:
        index = cache.get(store.catalog_version(), store.load_snapshot)
        return index.snapshot, index
    snapshot = store.load_snapshot()
    return snapshot, OverlapIndex.build(snapshot)


def get_personalized_recommendations(
    store: EntityStore,
    query: RecommendationQuery,
    config: Optional[ScoringConfig] = None,
    cache: Optional[OverlapIndexCache] = None,
) -> List[ScoredBook]:
    """
    Load the catalog and score it for query.

    StoreUnavailable from any fetch propagates; an empty catalog yields [].
    """
    t0 = now_ms() if settings.DEBUG else None

    snapshot, index = load_catalog(store, cache)
    if settings.DEBUG:
        t0 = log_elapsed(
            t0,
            f"user_type={query.user_type!r} phase=load_catalog books={len(snapshot.books)} "
            f"edges={len(snapshot.recommendations)}",
            logger.debug,
        )

    if not snapshot.books:
        logger.info("Empty catalog; returning no recommendations")
        return []

    results = score_catalog(snapshot, index, query, config)
    if settings.DEBUG:
        log_elapsed(t0, f"user_type={query.user_type!r} phase=score count={len(results)}", logger.debug)

    logger.info(
        "Scored catalog: user_type=%r genres=%d inspirations=%d favorites=%d returned=%d",
        query.user_type,
        len(query.genres),
        len(query.inspiration_ids),
        len(query.favorite_book_ids),
        len(results),
    )
    return results


def get_most_recommended(
    index: OverlapIndex,
    limit: int = 10,
    thresholds: Sequence[float] = DEFAULT_THRESHOLDS,
) -> List[PopularBook]:
    """
    Generic, non-personalized ranking by recommendation count, with each
    book's rank percentile and display bucket. Unrecommended books are left out.
    """
    counts = index.recommendation_counts()
    percentiles = compute_percentiles(counts)
    ranked = sorted(
        (book_id for book_id, count in counts.items() if count > 0),
        key=lambda book_id: (-counts[book_id], book_id),
    )
    return [
        PopularBook(
            book=index.snapshot.books[book_id],
            recommendation_count=counts[book_id],
            percentile=percentiles[book_id],
            bucket=bucket(percentiles[book_id], thresholds),
        )
        for book_id in ranked[:limit]
    ]
