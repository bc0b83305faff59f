from pydantic import BaseModel
from typing import Optional, List


class EndorsementResponse(BaseModel):
    recommender_id: str
    full_name: str
    type: Optional[str] = None
    url: Optional[str] = None
    source: str
    source_link: Optional[str] = None


class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    description: Optional[str] = None
    genre: List[str]
    amazon_url: Optional[str] = None


class CatalogBookResponse(BookResponse):
    recommendations: List[EndorsementResponse]
    recommendation_count: int
    percentile: float
    percentile_label: int  # "Nth percentile" for display
    bucket: int  # background intensity, 0..len(thresholds)


class RelatedBookResponse(BaseModel):
    id: str
    title: str
    author: str
    recommender_count: int
    recommenders: str  # comma-joined names of the shared recommenders
    recommender_types: str


class SimilarBookResponse(BaseModel):
    id: str
    title: str
    author: str
    genre: List[str]
    amazon_url: Optional[str] = None
    similarity: float  # cosine of the description embeddings


class BookDetailResponse(CatalogBookResponse):
    related_books: List[RelatedBookResponse]
    similar_books: List[SimilarBookResponse]


class BookListResponse(BaseModel):
    total: int
    books: List[CatalogBookResponse]
