"""
Text -> embedding vector through an OpenAI-compatible /embeddings endpoint.

Only query-time text (a user's search string) and ingestion paths call this;
the scoring path reads embeddings already stored on books and people.
"""
import logging
from typing import Dict, List, Optional

import requests

from app.core.config import settings
from app.core.errors import EmbeddingUnavailable, InvalidRequest

logger = logging.getLogger(__name__)


class EmbeddingProvider:
    def __init__(
        self,
        api_url: str = None,
        api_key: Optional[str] = None,
        model: str = None,
        dim: int = None,
        timeout: float = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = api_url or settings.EMBEDDING_API_URL
        self.api_key = api_key if api_key is not None else settings.EMBEDDING_API_KEY
        self.model = model or settings.EMBEDDING_MODEL
        self.dim = dim or settings.EMBEDDING_DIM
        self.timeout = timeout or settings.EMBEDDING_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def embed(self, text: str) -> List[float]:
        """
        Embed one text. Raises InvalidRequest for blank text and
        EmbeddingUnavailable for any upstream or payload problem.
        """
        if text is None or not text.strip():
            raise InvalidRequest("Cannot embed empty text")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            resp = self.session.post(
                self.api_url,
                json={"model": self.model, "input": text},
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("Embedding request failed (model=%s): %s", self.model, e)
            raise EmbeddingUnavailable(f"Embedding request failed: {e}") from e

        try:
            vector = [float(v) for v in payload["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("Malformed embedding response (model=%s): %s", self.model, e)
            raise EmbeddingUnavailable("Malformed embedding response") from e

        if len(vector) != self.dim:
            raise EmbeddingUnavailable(
                f"Embedding has dimension {len(vector)}, expected {self.dim}"
            )
        return vector

    def embed_book(self, title: str, author: str, description: Optional[str]) -> Dict[str, Optional[List[float]]]:
        """
        The three stored book embeddings. A book without a description gets no
        description embedding rather than an embedding of empty text.
        """
        return {
            "title_embedding": self.embed(title),
            "author_embedding": self.embed(author),
            "description_embedding": self.embed(description) if description and description.strip() else None,
        }


def get_embedding_provider() -> EmbeddingProvider:
    """FastAPI dependency; override in tests."""
    return EmbeddingProvider()
