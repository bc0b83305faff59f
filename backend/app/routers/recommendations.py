import uuid as uuid_lib

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.core.config import settings
from app.core.errors import CatalogError, to_http_exception
from app.services import recommendation_engine
from app.services.entity_store import EntityStore
from app.services.overlap_index import overlap_index_cache
from app.services.percentiles import percentile_label
from app.services.recommendation_engine import RecommendationQuery
from app.schemas.recommendation import (
    MatchReasonsResponse,
    PopularBookResponse,
    PopularBooksResponse,
    RecommendationRequest,
    RecommendationsResponse,
    RecommendedBook,
)
from app.utils.instrumentation import log_event_best_effort
from app.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.post("", response_model=RecommendationsResponse)
def get_recommendations(
    payload: RecommendationRequest,
    db: Session = Depends(get_db),
):
    """Personalized, explained recommendations for an archetype + picks profile."""
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())

    try:
        query = RecommendationQuery.from_payload(
            user_type=payload.userType,
            genres=payload.genres,
            inspiration_ids=payload.inspirationIds,
            favorite_book_ids=payload.favoriteBookIds,
            limit=payload.limit,
        )
        results = recommendation_engine.get_personalized_recommendations(
            EntityStore(db),
            query,
            cache=overlap_index_cache,
        )
    except CatalogError as e:
        logger.info("req_id=%s recommendations rejected: %s: %s", request_id, type(e).__name__, e)
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(
            "[POST /api/recommendations ERROR] req_id=%s error_type=%s error=%s",
            request_id,
            type(e).__name__,
            str(e),
        )
        raise HTTPException(status_code=500, detail="internal_error")

    if settings.DEBUG:
        t0 = log_elapsed(t0, f"req_id={request_id} recommendations_engine", logger.debug)

    book_ids = [r.book.id for r in results]
    log_event_best_effort(
        "recommendations_impression",
        properties={
            "user_type": query.user_type,
            "count": len(results),
            "top_book_id": book_ids[0] if book_ids else None,
            "book_ids": book_ids,
        },
        request_id=request_id,
    )

    if settings.DEBUG:
        log_elapsed(t0, f"req_id={request_id} event_log", logger.debug)

    return RecommendationsResponse(
        books=[
            RecommendedBook(
                id=r.book.id,
                title=r.book.title,
                author=r.book.author,
                description=r.book.description,
                score=r.score,
                match_reasons=MatchReasonsResponse(**r.match_reasons.as_dict()),
            )
            for r in results
        ]
    )


@router.get("/popular", response_model=PopularBooksResponse)
def get_popular(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Most recommended books, for visitors who have not picked anything yet."""
    try:
        _, index = recommendation_engine.load_catalog(EntityStore(db), overlap_index_cache)
        popular = recommendation_engine.get_most_recommended(index, limit, settings.PERCENTILE_THRESHOLDS)
    except CatalogError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[GET /api/recommendations/popular ERROR] error=%s", str(e))
        raise HTTPException(status_code=500, detail="internal_error")

    return PopularBooksResponse(
        books=[
            PopularBookResponse(
                id=p.book.id,
                title=p.book.title,
                author=p.book.author,
                description=p.book.description,
                recommendation_count=p.recommendation_count,
                percentile=p.percentile,
                percentile_label=percentile_label(p.percentile),
                bucket=p.bucket,
            )
            for p in popular
        ]
    )
