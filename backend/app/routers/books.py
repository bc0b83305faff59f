from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.database import get_db
from app.core.errors import CatalogError, to_http_exception
from app.services import catalog_service
from app.services.catalog_service import CatalogBook
from app.services.entity_store import BookRecord, EntityStore
from app.services.overlap_index import RelatedBook
from app.services.percentiles import percentile_label
from app.services.semantic_search import BookMatch
from app.schemas.book import (
    BookDetailResponse,
    BookListResponse,
    CatalogBookResponse,
    EndorsementResponse,
    RelatedBookResponse,
    SimilarBookResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/books", tags=["books"])


def _book_fields(book: BookRecord) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "description": book.description,
        "genre": sorted(book.genre),
        "amazon_url": book.amazon_url,
    }


def _catalog_fields(entry: CatalogBook) -> dict:
    return {
        **_book_fields(entry.book),
        "recommendations": [
            EndorsementResponse(
                recommender_id=e.recommender.id,
                full_name=e.recommender.full_name,
                type=e.recommender.type,
                url=e.recommender.url,
                source=e.source,
                source_link=e.source_link,
            )
            for e in entry.endorsements
        ],
        "recommendation_count": entry.recommendation_count,
        "percentile": entry.percentile,
        "percentile_label": percentile_label(entry.percentile),
        "bucket": entry.bucket,
    }


def _related(related: RelatedBook) -> RelatedBookResponse:
    book = related.book
    return RelatedBookResponse(
        id=book.id,
        title=book.title,
        author=book.author,
        recommender_count=related.shared_count,
        recommenders=", ".join(p.full_name for p in related.recommenders),
        recommender_types=", ".join(p.type or "Unknown" for p in related.recommenders),
    )


def _similar(match: BookMatch) -> SimilarBookResponse:
    book = match.book
    return SimilarBookResponse(
        id=book.id,
        title=book.title,
        author=book.author,
        genre=sorted(book.genre),
        amazon_url=book.amazon_url,
        similarity=match.similarity,
    )


@router.get("", response_model=BookListResponse)
def get_books(
    genre: Optional[str] = Query(None, description="Filter by genre label"),
    search: Optional[str] = Query(None, description="Search in title or author"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Catalog listing, most recommended first, with percentile buckets."""
    try:
        entries = catalog_service.list_catalog_books(EntityStore(db), genre=genre, query=search)
    except CatalogError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[GET /api/books ERROR] error=%s", str(e))
        raise HTTPException(status_code=500, detail="internal_error")

    page = entries[offset:offset + limit]
    return BookListResponse(total=len(entries), books=[CatalogBookResponse(**_catalog_fields(e)) for e in page])


@router.get("/random", response_model=CatalogBookResponse)
def get_random_book(db: Session = Depends(get_db)):
    try:
        entry = catalog_service.random_book(EntityStore(db))
    except CatalogError as e:
        raise to_http_exception(e)
    return CatalogBookResponse(**_catalog_fields(entry))


@router.get("/{book_id}", response_model=BookDetailResponse)
def get_book(
    book_id: str,
    related_limit: int = Query(10, ge=0, le=50),
    db: Session = Depends(get_db),
):
    try:
        detail = catalog_service.book_detail(EntityStore(db), book_id, related_limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return BookDetailResponse(
        **_catalog_fields(detail.entry),
        related_books=[_related(r) for r in detail.related],
        similar_books=[_similar(m) for m in detail.similar],
    )


@router.get("/{book_id}/related", response_model=List[RelatedBookResponse])
def get_related_books(
    book_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Books that share recommenders with book_id."""
    try:
        related = catalog_service.related_books(EntityStore(db), book_id, limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return [_related(r) for r in related]


@router.get("/{book_id}/similar", response_model=List[SimilarBookResponse])
def get_similar_books(
    book_id: str,
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Nearest books by description embedding; empty when book_id has none."""
    try:
        similar = catalog_service.similar_books(EntityStore(db), book_id, limit)
    except CatalogError as e:
        raise to_http_exception(e)

    return [_similar(m) for m in similar]
