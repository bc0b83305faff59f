"""Tests for query-time semantic search and contributed-book matching."""
import pytest

from app.core.errors import EmbeddingUnavailable, InvalidRequest
from app.models import RecommenderType
from app.services.entity_store import BookRecord, EntityStore
from app.services.semantic_search import find_matching_book, semantic_search_books, semantic_search_people


@pytest.fixture
def store(db, factory):
    factory.book("stoic", title="Meditations", description_embedding=[1.0, 0.0, 0.0, 0.0])
    factory.book("stoic2", title="Letters from a Stoic", description_embedding=[0.9, 0.1, 0.0, 0.0])
    factory.book("space", title="Cosmos", description_embedding=[0.0, 1.0, 0.0, 0.0])
    factory.book("bare", title="No Embedding Yet")
    factory.person("p1", full_name="Ryan Holiday", type=RecommenderType.AUTHOR,
                   description_embedding=[1.0, 0.0, 0.0, 0.0])
    factory.person("p2", full_name="Carl Sagan", type=RecommenderType.SCIENTIST,
                   description_embedding=[0.0, 1.0, 0.0, 0.0])
    return EntityStore(db)


def test_books_ranked_by_similarity(store, fake_provider):
    fake_provider.vectors["stoicism"] = [1.0, 0.0, 0.0, 0.0]
    results = semantic_search_books(store, fake_provider, "stoicism", min_similarity=0.8)

    assert [r.book.id for r in results] == ["stoic", "stoic2"]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[0].similarity >= results[1].similarity


def test_match_count_caps_results(store, fake_provider):
    fake_provider.vectors["stoicism"] = [1.0, 0.0, 0.0, 0.0]
    results = semantic_search_books(store, fake_provider, "stoicism", min_similarity=0.0, match_count=1)
    assert [r.book.id for r in results] == ["stoic"]


def test_people_search(store, fake_provider):
    fake_provider.vectors["astronomy"] = [0.0, 1.0, 0.0, 0.0]
    results = semantic_search_people(store, fake_provider, "astronomy")
    assert [r.recommender.full_name for r in results] == ["Carl Sagan"]


def test_blank_query_rejected_before_embedding(store, fake_provider):
    with pytest.raises(InvalidRequest):
        semantic_search_books(store, fake_provider, "   ")
    assert fake_provider.calls == []


def test_embedding_failure_propagates(store, fake_provider):
    fake_provider.fail = True
    with pytest.raises(EmbeddingUnavailable):
        semantic_search_books(store, fake_provider, "anything")


def test_find_matching_book_requires_both_fields():
    books = [
        BookRecord(id="same", title="Dune", author="Frank Herbert",
                   title_embedding=(1.0, 0.0, 0.0, 0.0), author_embedding=(0.0, 1.0, 0.0, 0.0)),
        BookRecord(id="other_author", title="Dune", author="Someone Else",
                   title_embedding=(1.0, 0.0, 0.0, 0.0), author_embedding=(0.0, 0.0, 1.0, 0.0)),
        BookRecord(id="no_vectors", title="Dune", author="Frank Herbert"),
    ]
    match = find_matching_book(books, [1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0])
    assert match is not None
    assert match[0].id == "same"

    assert find_matching_book(books, [1.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 1.0]) is None
