"""Tests for the embedding and Google Books HTTP clients, with a fake requests session."""
import pytest
import requests

from app.core.errors import EmbeddingUnavailable, InvalidRequest
from app.services.embedding_provider import EmbeddingProvider
from app.services.enrichment import GoogleBooksEnricher


class FakeResponse:
    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self.invalid_json:
            raise ValueError("not json")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def _respond(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)


def _provider(session, dim=3):
    return EmbeddingProvider(api_url="https://embeddings.test/v1/embeddings", api_key="k", model="m",
                             dim=dim, timeout=1, session=session)


class TestEmbeddingProvider:
    def test_embed_returns_vector(self):
        session = FakeSession(FakeResponse({"data": [{"embedding": [0.1, 0.2, 0.3]}]}))
        assert _provider(session).embed("hello") == [0.1, 0.2, 0.3]

        method, url, kwargs = session.requests[0]
        assert kwargs["json"] == {"model": "m", "input": "hello"}
        assert kwargs["headers"]["Authorization"] == "Bearer k"

    def test_blank_text_is_invalid(self):
        session = FakeSession()
        with pytest.raises(InvalidRequest):
            _provider(session).embed("  ")
        assert session.requests == []

    @pytest.mark.parametrize(
        "session",
        [
            FakeSession(error=requests.ConnectionError("refused")),
            FakeSession(FakeResponse(status_code=500)),
            FakeSession(FakeResponse(invalid_json=True)),
            FakeSession(FakeResponse({"data": []})),
            FakeSession(FakeResponse({"data": [{"embedding": [0.1, 0.2]}]})),  # wrong dimension
        ],
    )
    def test_upstream_problems_raise_embedding_unavailable(self, session):
        with pytest.raises(EmbeddingUnavailable):
            _provider(session).embed("hello")

    def test_embed_book_skips_missing_description(self):
        session = FakeSession(FakeResponse({"data": [{"embedding": [1.0, 0.0, 0.0]}]}))
        result = _provider(session).embed_book("Dune", "Frank Herbert", None)
        assert result["description_embedding"] is None
        assert len(session.requests) == 2


class TestGoogleBooksEnricher:
    def test_picks_best_match_and_splits_categories(self):
        payload = {
            "items": [
                {"volumeInfo": {"title": "Dune Messiah", "authors": ["Frank Herbert"],
                                "description": "Sequel", "categories": ["Fiction"]}},
                {"volumeInfo": {"title": "Dune", "authors": ["Frank Herbert"],
                                "description": "Desert planet", "categories": ["Fiction / Science Fiction"]}},
            ]
        }
        enricher = GoogleBooksEnricher(api_key="", session=FakeSession(FakeResponse(payload)))
        metadata = enricher.lookup("Dune", "Frank Herbert")

        assert metadata.description == "Desert planet"
        assert metadata.genre == ["Fiction", "Science Fiction"]

    def test_failures_return_empty_metadata(self):
        enricher = GoogleBooksEnricher(api_key="", session=FakeSession(error=requests.Timeout("slow")))
        metadata = enricher.lookup("Dune", "Frank Herbert")
        assert metadata.description is None
        assert metadata.genre == []

    def test_no_plausible_match(self):
        payload = {"items": [{"volumeInfo": {"title": "Cookbook", "authors": ["Chef"]}}]}
        enricher = GoogleBooksEnricher(api_key="", session=FakeSession(FakeResponse(payload)))
        assert enricher.lookup("Dune", "Frank Herbert").description is None

    def test_prefers_edition_with_metadata(self):
        payload = {
            "items": [
                {"volumeInfo": {"title": "Dune", "authors": ["Frank Herbert"]}},
                {"volumeInfo": {"title": "Dune", "authors": ["Frank Herbert"],
                                "description": "Desert planet", "categories": ["Fiction"]}},
            ]
        }
        enricher = GoogleBooksEnricher(api_key="", session=FakeSession(FakeResponse(payload)))
        assert enricher.lookup("Dune", "Frank Herbert").description == "Desert planet"

    def test_author_only_match_is_rejected(self):
        payload = {"items": [{"volumeInfo": {"title": "Whipping Star", "authors": ["Frank Herbert"],
                                             "description": "Other book"}},
                             {"volumeInfo": {"title": "The Dosadi Experiment", "authors": ["Frank Herbert"],
                                             "description": "Other book"}}]}
        enricher = GoogleBooksEnricher(api_key="", session=FakeSession(FakeResponse(payload)))
        assert enricher.lookup("Dune", "Frank Herbert").description is None
