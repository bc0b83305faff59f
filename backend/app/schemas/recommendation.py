from pydantic import BaseModel
from typing import Optional, List


class RecommendationRequest(BaseModel):
    # Validation of values (archetype, list sizes, limit range) happens in the
    # engine so it can report InvalidRequest as a 400.
    userType: Optional[str] = None
    genres: List[str] = []
    inspirationIds: List[str] = []
    favoriteBookIds: List[str] = []
    limit: Optional[int] = None


class MatchReasonsResponse(BaseModel):
    similar_to_favorites: bool
    recommended_by_inspiration: bool
    recommended_by_similar_people: bool
    genre_match: bool
    recommended_by_similar_type: bool


class RecommendedBook(BaseModel):
    id: str
    title: str
    author: str
    description: Optional[str] = None
    score: float
    match_reasons: MatchReasonsResponse


class RecommendationsResponse(BaseModel):
    books: List[RecommendedBook]


class PopularBookResponse(BaseModel):
    id: str
    title: str
    author: str
    description: Optional[str] = None
    recommendation_count: int
    percentile: float
    percentile_label: int
    bucket: int


class PopularBooksResponse(BaseModel):
    books: List[PopularBookResponse]
