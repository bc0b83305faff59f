"""
Description and genre lookup for contributed books via the Google Books API.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from app.core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_BOOKS_BASE_URL = "https://www.googleapis.com/books/v1/volumes"


@dataclass
class BookMetadata:
    description: Optional[str] = None
    genre: List[str] = field(default_factory=list)


def _build_query(title: str, author: str, api_key: Optional[str]) -> Dict[str, Any]:
    # Example: q=intitle:Thinking, Fast and Slow inauthor:Daniel Kahneman
    params: Dict[str, Any] = {
        "q": f"intitle:{title} inauthor:{author}",
        "maxResults": 5,
    }
    if api_key:
        params["key"] = api_key
    return params


def _closeness(wanted: str, found: str) -> int:
    """2 for an exact (case-insensitive) match, 1 when one contains the other."""
    wanted, found = wanted.strip().lower(), found.strip().lower()
    if not wanted or not found:
        return 0
    if wanted == found:
        return 2
    return 1 if wanted in found or found in wanted else 0


def _match_score(title: str, author: str, info: Dict[str, Any]) -> int:
    """
    0 rejects the volume. A title match is required; the author match and
    the presence of the metadata we want (description, categories) rank
    the acceptable volumes.
    """
    title_score = _closeness(title, info.get("title") or "")
    if title_score == 0:
        return 0
    author_score = max((_closeness(author, a) for a in info.get("authors") or []), default=0)
    has_metadata = bool(info.get("description")) + bool(info.get("categories"))
    return 3 * title_score + 3 * author_score + has_metadata


def _pick_best_match(title: str, author: str, items: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # Ties keep Google's relevance order
    best_item, best_score = None, 0
    for item in items:
        score = _match_score(title, author, item.get("volumeInfo", {}))
        if score > best_score:
            best_item, best_score = item, score
    return best_item


def _split_categories(categories: List[str]) -> List[str]:
    # Google returns hierarchical labels like "Business & Economics / Leadership"
    genres: List[str] = []
    for category in categories:
        for part in category.split("/"):
            part = part.strip()
            if part and part not in genres:
                genres.append(part)
    return genres


class GoogleBooksEnricher:
    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None, timeout: float = 10):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_BOOKS_API_KEY
        self.session = session or requests.Session()
        self.timeout = timeout

    def lookup(self, title: str, author: str) -> BookMetadata:
        """
        Best-effort metadata for title/author. Failures return empty metadata:
        a contributed book is still added, just without description or genre.
        """
        try:
            resp = self.session.get(
                GOOGLE_BOOKS_BASE_URL,
                params=_build_query(title, author, self.api_key),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            items = resp.json().get("items") or []
        except (requests.RequestException, ValueError) as e:
            logger.warning("Google Books request failed for '%s' by '%s': %s", title, author, e)
            return BookMetadata()

        if not items:
            logger.info("No Google Books results for '%s' by '%s'", title, author)
            return BookMetadata()

        best = _pick_best_match(title, author, items)
        if not best:
            logger.info("No suitable Google Books match for '%s' by '%s'", title, author)
            return BookMetadata()

        info = best.get("volumeInfo", {})
        return BookMetadata(
            description=info.get("description"),
            genre=_split_categories(info.get("categories") or []),
        )
