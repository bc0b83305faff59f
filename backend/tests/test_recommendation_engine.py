"""Tests for the personalized recommendation scorer."""
import math

import pytest

from app.core.errors import InvalidRequest, StoreUnavailable
from app.services.entity_store import BookRecord, CatalogSnapshot, RecommendationRecord, RecommenderRecord
from app.services.overlap_index import OverlapIndex
from app.services.recommendation_engine import (
    RecommendationQuery,
    ScoringConfig,
    get_most_recommended,
    get_personalized_recommendations,
    score_catalog,
)

AUTHOR = "Author or Writer"
INVESTOR = "Venture Capitalist or Investor"
FOUNDER = "Entrepreneur or Startup Founder"

CONFIG = ScoringConfig(
    weights={
        "similar_to_favorites": 3,
        "recommended_by_inspiration": 3,
        "recommended_by_similar_people": 2,
        "genre_match": 1,
        "recommended_by_similar_type": 1,
    },
    similarity_floor=0.80,
    popularity_factor=0.1,
    embedding_dim=4,
)


def book(id, genre=(), embedding=None):
    return BookRecord(id=id, title=f"Title {id}", author="A", genre=frozenset(genre),
                      description_embedding=tuple(embedding) if embedding else None)


def person(id, type=AUTHOR):
    return RecommenderRecord(id=id, full_name=f"Person {id}", type=type)


def snapshot(books, people, edges):
    return CatalogSnapshot(
        books={b.id: b for b in books},
        recommenders={p.id: p for p in people},
        recommendations=tuple(RecommendationRecord(book_id=b, recommender_id=p, source="Twitter") for b, p in edges),
    )


def run(snap, user_type=INVESTOR, genres=(), inspirations=(), favorites=(), limit=10):
    query = RecommendationQuery(
        user_type=user_type,
        genres=tuple(genres),
        inspiration_ids=tuple(inspirations),
        favorite_book_ids=tuple(favorites),
        limit=limit,
    )
    return score_catalog(snap, OverlapIndex.build(snap), query, CONFIG)


class StubStore:
    def __init__(self, snap=None, error=None):
        self.snap = snap
        self.error = error

    def load_snapshot(self):
        if self.error:
            raise self.error
        return self.snap

    def catalog_version(self):
        return ("stub",)


def test_empty_catalog_returns_empty_list():
    query = RecommendationQuery.from_payload(AUTHOR)
    assert get_personalized_recommendations(StubStore(CatalogSnapshot()), query, CONFIG) == []


def test_type_match_only_scenario():
    snap = snapshot([book("X")], [person("R1", AUTHOR)], [("X", "R1")])
    results = run(snap, user_type=AUTHOR)

    assert [r.book.id for r in results] == ["X"]
    reasons = results[0].match_reasons.as_dict()
    assert reasons == {
        "similar_to_favorites": False,
        "recommended_by_inspiration": False,
        "recommended_by_similar_people": False,
        "genre_match": False,
        "recommended_by_similar_type": True,
    }
    assert results[0].score == pytest.approx(1 * (1 + 0.1 * math.log(2)))


def test_inspiration_books_included_and_favorites_excluded():
    snap = snapshot(
        [book("X"), book("Y"), book("F")],
        [person("R1", FOUNDER)],
        [("X", "R1"), ("Y", "R1"), ("F", "R1")],
    )
    results = run(snap, inspirations=["R1"], favorites=["F"])

    ids = [r.book.id for r in results]
    assert set(ids) == {"X", "Y"}
    assert "F" not in ids
    assert all(r.match_reasons.recommended_by_inspiration for r in results)


def test_books_without_reasons_are_dropped():
    snap = snapshot(
        [book("X", genre=["Business"]), book("unrelated", genre=["Poetry"]), book("orphan")],
        [person("R1", FOUNDER), person("R2", FOUNDER)],
        [("X", "R1"), ("unrelated", "R2")],
    )
    results = run(snap, user_type=AUTHOR, genres=["Business"])

    assert [r.book.id for r in results] == ["X"]
    assert all(r.match_reasons.any() for r in results)


def test_equal_score_and_count_ordered_by_id():
    snap = snapshot(
        [book("b-2"), book("b-1"), book("b-3")],
        [person("R1", AUTHOR)],
        [("b-2", "R1"), ("b-1", "R1"), ("b-3", "R1")],
    )
    results = run(snap, user_type=AUTHOR)
    assert [r.book.id for r in results] == ["b-1", "b-2", "b-3"]


def test_popularity_breaks_ties_between_equally_explained_books():
    snap = snapshot(
        [book("a"), book("z")],
        [person("R1", AUTHOR), person("R2", AUTHOR), person("R3", AUTHOR)],
        [("a", "R1"), ("z", "R1"), ("z", "R2"), ("z", "R3")],
    )
    results = run(snap, user_type=AUTHOR)

    assert [r.book.id for r in results] == ["z", "a"]
    assert results[0].recommendation_count == 3
    assert results[0].score > results[1].score


def test_more_reasons_rank_higher():
    snap = snapshot(
        [book("genre_only", genre=["History"]), book("inspired", genre=["History"])],
        [person("R1", FOUNDER), person("R2", FOUNDER)],
        [("genre_only", "R2"), ("inspired", "R1")],
    )
    results = run(snap, genres=["History"], inspirations=["R1"])
    assert [r.book.id for r in results] == ["inspired", "genre_only"]


def test_recommended_by_similar_people():
    # R2 shares book S with inspiration R1, so R2's other picks qualify
    snap = snapshot(
        [book("S"), book("W"), book("far")],
        [person("R1", FOUNDER), person("R2", FOUNDER), person("R3", FOUNDER)],
        [("S", "R1"), ("S", "R2"), ("W", "R2"), ("far", "R3")],
    )
    results = {r.book.id: r.match_reasons for r in run(snap, inspirations=["R1"])}

    assert set(results) == {"S", "W"}
    assert results["W"].recommended_by_similar_people
    assert not results["W"].recommended_by_inspiration
    assert results["S"].recommended_by_inspiration


def test_favorite_book_recommenders_are_not_similar_people():
    # R2 overlaps with inspiration R1 through S but also endorsed favorite F
    snap = snapshot(
        [book("S"), book("F"), book("W")],
        [person("R1", FOUNDER), person("R2", FOUNDER)],
        [("S", "R1"), ("S", "R2"), ("F", "R2"), ("W", "R2")],
    )
    results = {r.book.id: r.match_reasons for r in run(snap, inspirations=["R1"], favorites=["F"])}

    assert "F" not in results
    assert "W" not in results
    assert results["S"].recommended_by_inspiration
    assert not results["S"].recommended_by_similar_people


def test_inspiration_alone_is_not_a_similar_person():
    snap = snapshot([book("X")], [person("R1", FOUNDER)], [("X", "R1")])
    results = run(snap, inspirations=["R1"])
    assert not results[0].match_reasons.recommended_by_similar_people


def test_similar_to_favorites_uses_centroid_and_floor():
    snap = snapshot(
        [
            book("fav1", embedding=[1, 0, 0, 0]),
            book("fav2", embedding=[1, 0.2, 0, 0]),
            book("close", embedding=[1, 0.1, 0, 0]),
            book("far", embedding=[0, 1, 0, 0]),
            book("no_embedding"),
            book("wrong_dim", embedding=[1, 0.1, 0]),
        ],
        [],
        [],
    )
    results = run(snap, favorites=["fav1", "fav2"])

    assert [r.book.id for r in results] == ["close"]
    assert results[0].match_reasons.similar_to_favorites
    # Unrecommended book: no popularity boost
    assert results[0].score == pytest.approx(3.0)


def test_favorites_without_embeddings_disable_similarity_signal():
    snap = snapshot(
        [book("fav"), book("other", embedding=[1, 0, 0, 0])],
        [person("R1", AUTHOR)],
        [("other", "R1")],
    )
    results = run(snap, user_type=AUTHOR, favorites=["fav"])

    assert [r.book.id for r in results] == ["other"]
    assert not results[0].match_reasons.similar_to_favorites


def test_limit_truncates():
    snap = snapshot(
        [book(f"b{i}") for i in range(5)],
        [person("R1", AUTHOR)],
        [(f"b{i}", "R1") for i in range(5)],
    )
    assert len(run(snap, user_type=AUTHOR, limit=2)) == 2


def test_scoring_is_deterministic():
    snap = snapshot(
        [book("a", genre=["G"]), book("b", genre=["G"]), book("c")],
        [person("R1", AUTHOR), person("R2", INVESTOR)],
        [("a", "R1"), ("b", "R2"), ("c", "R1"), ("c", "R2")],
    )
    first = run(snap, user_type=AUTHOR, genres=["G"], inspirations=["R2"])
    second = run(snap, user_type=AUTHOR, genres=["G"], inspirations=["R2"])
    assert first == second


def test_store_failure_aborts_scoring():
    query = RecommendationQuery.from_payload(AUTHOR)
    with pytest.raises(StoreUnavailable):
        get_personalized_recommendations(StubStore(error=StoreUnavailable("down")), query, CONFIG)


class TestQueryValidation:
    def test_missing_user_type(self):
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload(None)
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload("  ")

    def test_unknown_user_type(self):
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload("Astronaut")

    def test_too_many_selections(self):
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload(AUTHOR, genres=["a", "b", "c", "d"])
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload(AUTHOR, inspiration_ids=["1", "2", "3", "4"])

    def test_duplicates_collapse_before_counting(self):
        query = RecommendationQuery.from_payload(AUTHOR, genres=["a", "a", "b", "c", "c"])
        assert query.genres == ("a", "b", "c")

    def test_limit_bounds(self):
        assert RecommendationQuery.from_payload(AUTHOR).limit == 10
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload(AUTHOR, limit=0)
        with pytest.raises(InvalidRequest):
            RecommendationQuery.from_payload(AUTHOR, limit=51)


def test_most_recommended_ranks_by_count_with_buckets():
    snap = snapshot(
        [book("one"), book("three"), book("two"), book("none")],
        [person("R1"), person("R2"), person("R3")],
        [("one", "R1"), ("two", "R1"), ("two", "R2"), ("three", "R1"), ("three", "R2"), ("three", "R3")],
    )
    popular = get_most_recommended(OverlapIndex.build(snap), limit=10)

    assert [(p.book.id, p.recommendation_count) for p in popular] == [("three", 3), ("two", 2), ("one", 1)]
    assert popular[0].percentile == 1.0
    assert popular[0].bucket == 5
    assert popular[2].percentile == pytest.approx(1 / 3)
    assert popular[2].bucket == 0
