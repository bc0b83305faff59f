from pydantic import BaseModel
from typing import List

from app.schemas.recommender import RecommenderResponse


class GenreStatResponse(BaseModel):
    genre: str
    book_count: int
    recommendation_count: int


class TypeStatResponse(BaseModel):
    type: str
    recommender_count: int
    recommendation_count: int


class NetworkEdgeResponse(BaseModel):
    source: str
    target: str
    shared_count: int
    shared_books: List[str]


class NetworkResponse(BaseModel):
    nodes: List[RecommenderResponse]
    edges: List[NetworkEdgeResponse]
