from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.core.errors import CatalogError, to_http_exception
from app.services import contribution_service
from app.services.embedding_provider import EmbeddingProvider, get_embedding_provider
from app.services.enrichment import GoogleBooksEnricher
from app.schemas.contribution import ApprovalResponse, ContributionRequest, ContributionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contribute", tags=["contributions"])


def get_enricher() -> Optional[GoogleBooksEnricher]:
    """FastAPI dependency; override in tests."""
    return GoogleBooksEnricher()


@router.post("", response_model=ContributionResponse)
def submit(payload: ContributionRequest, db: Session = Depends(get_db)):
    try:
        contribution = contribution_service.submit_contribution(
            db,
            name=payload.name,
            url=payload.url,
            books=[b.model_dump() for b in payload.books],
        )
    except CatalogError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("Error processing submission: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to process submission")

    logger.info("Contribution %s awaiting approval", contribution.id)
    return ContributionResponse(success=True, id=contribution.id)


@router.get("/approve", response_model=ApprovalResponse)
def approve(
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    provider: EmbeddingProvider = Depends(get_embedding_provider),
    enricher: Optional[GoogleBooksEnricher] = Depends(get_enricher),
):
    """Approval link target: applies the contribution to the catalog."""
    try:
        result = contribution_service.approve_contribution(db, token, provider, enricher)
    except CatalogError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("Error processing approval: %s", str(e))
        raise HTTPException(status_code=500, detail="Failed to process approval")

    return ApprovalResponse(
        success=True,
        person_id=result.person_id,
        book_ids=result.book_ids,
        created_book_ids=result.created_book_ids,
    )


@router.post("/reject")
def reject(token: Optional[str] = Query(None), db: Session = Depends(get_db)):
    try:
        contribution = contribution_service.reject_contribution(db, token)
    except CatalogError as e:
        raise to_http_exception(e)
    return {"success": True, "id": contribution.id}
