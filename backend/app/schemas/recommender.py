from pydantic import BaseModel
from typing import Optional, List


class RecommenderResponse(BaseModel):
    id: str
    full_name: str
    type: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None


class RecommenderSummaryResponse(RecommenderResponse):
    book_count: int


class RelatedRecommenderResponse(BaseModel):
    id: str
    full_name: str
    type: Optional[str] = None
    shared_books: List[str]  # titles
    shared_count: int


class EndorsedBookResponse(BaseModel):
    id: str
    title: str
    author: str
    genre: List[str]
    amazon_url: Optional[str] = None
    source: str
    source_link: Optional[str] = None


class SimilarRecommenderResponse(BaseModel):
    id: str
    full_name: str
    type: Optional[str] = None
    similarity: float


class SuggestedBookResponse(BaseModel):
    id: str
    title: str
    author: str
    genre: List[str]
    amazon_url: Optional[str] = None
    endorser_count: int  # overlapping people who recommended it


class RecommenderDetailResponse(RecommenderResponse):
    books: List[EndorsedBookResponse]
    related_recommenders: List[RelatedRecommenderResponse]
    similar_recommenders: List[SimilarRecommenderResponse]
    suggested_books: List[SuggestedBookResponse]
