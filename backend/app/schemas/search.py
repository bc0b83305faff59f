from pydantic import BaseModel
from typing import Literal, Optional, List


class SearchRequest(BaseModel):
    query: Optional[str] = None
    viewMode: Literal["books", "people"] = "books"


class BookSearchResult(BaseModel):
    id: str
    similarity: float
    title: str
    author: str
    description: Optional[str] = None
    genre: List[str]
    amazon_url: Optional[str] = None


class PersonSearchResult(BaseModel):
    id: str
    similarity: float
    full_name: str
    type: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None
