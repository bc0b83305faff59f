from pydantic import BaseModel
from typing import Optional, List


class ContributedBook(BaseModel):
    title: str
    author: str


class ContributionRequest(BaseModel):
    name: str
    url: Optional[str] = None
    books: List[ContributedBook]


class ContributionResponse(BaseModel):
    success: bool
    id: str


class ApprovalResponse(BaseModel):
    success: bool
    person_id: str
    book_ids: List[str]
    created_book_ids: List[str]
