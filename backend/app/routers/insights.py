from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List
import logging

from app.database import get_db
from app.core.errors import CatalogError, to_http_exception
from app.services import catalog_service
from app.services.entity_store import EntityStore
from app.schemas.insights import (
    GenreStatResponse,
    NetworkEdgeResponse,
    NetworkResponse,
    TypeStatResponse,
)
from app.schemas.recommender import RecommenderResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["insights"])


@router.get("/insights/genres", response_model=List[GenreStatResponse])
def get_genre_insights(db: Session = Depends(get_db)):
    try:
        stats = catalog_service.genre_insights(EntityStore(db))
    except CatalogError as e:
        raise to_http_exception(e)
    return [GenreStatResponse(genre=s.genre, book_count=s.book_count, recommendation_count=s.recommendation_count)
            for s in stats]


@router.get("/insights/types", response_model=List[TypeStatResponse])
def get_type_insights(db: Session = Depends(get_db)):
    try:
        stats = catalog_service.type_insights(EntityStore(db))
    except CatalogError as e:
        raise to_http_exception(e)
    return [TypeStatResponse(type=s.type, recommender_count=s.recommender_count,
                             recommendation_count=s.recommendation_count)
            for s in stats]


@router.get("/graph/network", response_model=NetworkResponse)
def get_network(
    min_shared: int = Query(1, ge=1, le=50, description="Minimum shared books for an edge"),
    db: Session = Depends(get_db),
):
    """Recommender graph: an edge for every pair of people with shared books."""
    try:
        nodes, edges = catalog_service.recommendation_network(EntityStore(db), min_shared)
    except CatalogError as e:
        raise to_http_exception(e)

    return NetworkResponse(
        nodes=[
            RecommenderResponse(id=p.id, full_name=p.full_name, type=p.type, url=p.url, description=p.description)
            for p in nodes
        ],
        edges=[
            NetworkEdgeResponse(
                source=e.source_id,
                target=e.target_id,
                shared_count=e.shared_count,
                shared_books=list(e.shared_book_titles),
            )
            for e in edges
        ],
    )
