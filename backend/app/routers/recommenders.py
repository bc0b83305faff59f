from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.database import get_db
from app.core.errors import CatalogError, to_http_exception
from app.services import catalog_service
from app.services.entity_store import EntityStore, RecommenderRecord
from app.services.catalog_service import SuggestedBook
from app.services.overlap_index import RelatedRecommender
from app.services.semantic_search import PersonMatch
from app.schemas.recommender import (
    EndorsedBookResponse,
    RecommenderDetailResponse,
    RecommenderSummaryResponse,
    RelatedRecommenderResponse,
    SimilarRecommenderResponse,
    SuggestedBookResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommenders", tags=["recommenders"])


def _person_fields(person: RecommenderRecord) -> dict:
    return {
        "id": person.id,
        "full_name": person.full_name,
        "type": person.type,
        "url": person.url,
        "description": person.description,
    }


def _related(related: RelatedRecommender) -> RelatedRecommenderResponse:
    return RelatedRecommenderResponse(
        id=related.recommender.id,
        full_name=related.recommender.full_name,
        type=related.recommender.type,
        shared_books=list(related.shared_book_titles),
        shared_count=related.shared_count,
    )


def _similar(match: PersonMatch) -> SimilarRecommenderResponse:
    return SimilarRecommenderResponse(
        id=match.recommender.id,
        full_name=match.recommender.full_name,
        type=match.recommender.type,
        similarity=match.similarity,
    )


def _suggested(suggestion: SuggestedBook) -> SuggestedBookResponse:
    book = suggestion.book
    return SuggestedBookResponse(
        id=book.id,
        title=book.title,
        author=book.author,
        genre=sorted(book.genre),
        amazon_url=book.amazon_url,
        endorser_count=suggestion.endorser_count,
    )


@router.get("", response_model=List[RecommenderSummaryResponse])
def get_recommenders(
    search: Optional[str] = Query(None, description="Search in name or archetype"),
    db: Session = Depends(get_db),
):
    try:
        people = catalog_service.list_recommenders(EntityStore(db), query=search)
    except CatalogError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[GET /api/recommenders ERROR] error=%s", str(e))
        raise HTTPException(status_code=500, detail="internal_error")

    return [RecommenderSummaryResponse(**_person_fields(p.recommender), book_count=p.book_count) for p in people]


@router.get("/{recommender_id}", response_model=RecommenderDetailResponse)
def get_recommender(
    recommender_id: str,
    related_limit: int = Query(10, ge=0, le=50),
    db: Session = Depends(get_db),
):
    try:
        detail = catalog_service.recommender_detail(EntityStore(db), recommender_id, related_limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return RecommenderDetailResponse(
        **_person_fields(detail.recommender),
        books=[
            EndorsedBookResponse(
                id=e.book.id,
                title=e.book.title,
                author=e.book.author,
                genre=sorted(e.book.genre),
                amazon_url=e.book.amazon_url,
                source=e.source,
                source_link=e.source_link,
            )
            for e in detail.books
        ],
        related_recommenders=[_related(r) for r in detail.related],
        similar_recommenders=[_similar(m) for m in detail.similar],
        suggested_books=[_suggested(s) for s in detail.suggested],
    )


@router.get("/{recommender_id}/related", response_model=List[RelatedRecommenderResponse])
def get_related_recommenders(
    recommender_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """People who recommended the same books as recommender_id."""
    try:
        related = catalog_service.related_recommenders(EntityStore(db), recommender_id, limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return [_related(r) for r in related]


@router.get("/{recommender_id}/similar", response_model=List[SimilarRecommenderResponse])
def get_similar_recommenders(
    recommender_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Nearest people by profile embedding."""
    try:
        similar = catalog_service.similar_recommenders(EntityStore(db), recommender_id, limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return [_similar(m) for m in similar]


@router.get("/{recommender_id}/suggested-books", response_model=List[SuggestedBookResponse])
def get_suggested_books(
    recommender_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Books endorsed by people with overlapping taste but not by recommender_id."""
    try:
        suggested = catalog_service.suggested_books(EntityStore(db), recommender_id, limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return [_suggested(s) for s in suggested]
