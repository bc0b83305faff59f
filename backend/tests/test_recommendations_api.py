"""Integration tests for /api/recommendations against a seeded test database."""
import pytest

from app.models import RecommenderType

AUTHOR = RecommenderType.AUTHOR.value


@pytest.fixture
def seeded(factory):
    factory.book("b1", title="On Writing", genre=["Memoir", "Writing"])
    factory.book("b2", title="Dune", genre=["Fiction"])
    factory.book("b3", title="Bird by Bird", genre=["Writing"])
    factory.person("p1", full_name="Stephen King", type=RecommenderType.AUTHOR)
    factory.person("p2", full_name="Marc Andreessen", type=RecommenderType.INVESTOR)
    factory.recommend("p1", "b1")
    factory.recommend("p2", "b2", "b3")
    return factory


def test_response_shape(client, seeded):
    response = client.post("/api/recommendations", json={"userType": AUTHOR, "genres": ["Writing"]})
    assert response.status_code == 200

    books = response.json()["books"]
    assert [b["id"] for b in books] == ["b1", "b3"]
    first = books[0]
    assert set(first) == {"id", "title", "author", "description", "score", "match_reasons"}
    assert first["match_reasons"] == {
        "similar_to_favorites": False,
        "recommended_by_inspiration": False,
        "recommended_by_similar_people": False,
        "genre_match": True,
        "recommended_by_similar_type": True,
    }
    assert first["score"] > books[1]["score"]


def test_inspiration_and_limit(client, seeded):
    response = client.post(
        "/api/recommendations",
        json={"userType": AUTHOR, "inspirationIds": ["p2"], "limit": 1},
    )
    assert response.status_code == 200
    books = response.json()["books"]
    assert len(books) == 1
    assert books[0]["match_reasons"]["recommended_by_inspiration"] is True


def test_favorites_are_excluded(client, seeded):
    response = client.post("/api/recommendations", json={"userType": AUTHOR, "favoriteBookIds": ["b1"]})
    assert "b1" not in [b["id"] for b in response.json()["books"]]


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"userType": "  "},
        {"userType": "Astronaut"},
        {"userType": AUTHOR, "genres": ["a", "b", "c", "d"]},
        {"userType": AUTHOR, "limit": 0},
        {"userType": AUTHOR, "limit": 51},
    ],
)
def test_invalid_requests_are_400(client, payload):
    response = client.post("/api/recommendations", json=payload)
    assert response.status_code == 400


def test_empty_catalog_returns_empty_list(client):
    response = client.post("/api/recommendations", json={"userType": AUTHOR})
    assert response.status_code == 200
    assert response.json() == {"books": []}


def test_popular(client, seeded):
    response = client.get("/api/recommendations/popular", params={"limit": 2})
    assert response.status_code == 200
    books = response.json()["books"]
    assert len(books) == 2
    assert books[0]["recommendation_count"] == 1
    assert {"percentile", "bucket"} <= set(books[0])
