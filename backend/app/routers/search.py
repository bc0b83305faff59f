import uuid as uuid_lib
from typing import List, Union

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.core.config import settings
from app.core.errors import CatalogError, to_http_exception
from app.services.embedding_provider import EmbeddingProvider, get_embedding_provider
from app.services.entity_store import EntityStore
from app.services.semantic_search import semantic_search_books, semantic_search_people
from app.schemas.search import BookSearchResult, PersonSearchResult, SearchRequest
from app.utils.instrumentation import log_event_best_effort
from app.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.post("/search", response_model=Union[List[BookSearchResult], List[PersonSearchResult]])
def search(
    payload: SearchRequest,
    db: Session = Depends(get_db),
    provider: EmbeddingProvider = Depends(get_embedding_provider),
):
    """
    Semantic search over books (default) or people. The query text is
    embedded live; an embedding failure fails the call with 502.
    """
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())
    store = EntityStore(db)

    try:
        if payload.viewMode == "people":
            matches = semantic_search_people(store, provider, payload.query)
            results = [
                PersonSearchResult(
                    id=m.recommender.id,
                    similarity=m.similarity,
                    full_name=m.recommender.full_name,
                    type=m.recommender.type,
                    url=m.recommender.url,
                    description=m.recommender.description,
                )
                for m in matches
            ]
        else:
            matches = semantic_search_books(store, provider, payload.query)
            results = [
                BookSearchResult(
                    id=m.book.id,
                    similarity=m.similarity,
                    title=m.book.title,
                    author=m.book.author,
                    description=m.book.description,
                    genre=sorted(m.book.genre),
                    amazon_url=m.book.amazon_url,
                )
                for m in matches
            ]
    except CatalogError as e:
        logger.warning("req_id=%s search failed: %s: %s", request_id, type(e).__name__, e)
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[POST /api/search ERROR] req_id=%s error=%s", request_id, str(e))
        raise HTTPException(status_code=500, detail="internal_error")

    if settings.DEBUG:
        log_elapsed(t0, f"req_id={request_id} semantic_search view={payload.viewMode}", logger.debug)

    log_event_best_effort(
        "semantic_search_performed",
        properties={"view_mode": payload.viewMode, "count": len(results)},
        request_id=request_id,
    )
    return results
