"""Integration tests for the catalog, insight, search and contribution endpoints."""
import pytest

from app.models import PendingContribution, RecommenderType


@pytest.fixture
def seeded(factory):
    factory.book("b1", title="Zero to One", author="Peter Thiel", genre=["Business"],
                 description_embedding=[1.0, 0.0, 0.0, 0.0])
    factory.book("b2", title="Antifragile", author="Nassim Taleb", genre=["Business", "Philosophy"],
                 description_embedding=[0.0, 1.0, 0.0, 0.0])
    factory.person("p1", full_name="Naval Ravikant", type=RecommenderType.INVESTOR,
                   description_embedding=[0.0, 0.0, 1.0, 0.0])
    factory.person("p2", full_name="Ada Palmer", type=None)
    factory.recommend("p1", "b1", "b2")
    factory.recommend("p2", "b2", source="Podcast", source_link="https://example.com/ep")
    return factory


class TestBooks:
    def test_list(self, client, seeded):
        response = client.get("/api/books")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        top = data["books"][0]
        assert top["id"] == "b2"
        assert top["recommendation_count"] == 2
        assert (top["percentile"], top["percentile_label"]) == (1.0, 100)
        assert [r["full_name"] for r in top["recommendations"]] == ["Ada Palmer", "Naval Ravikant"]
        assert top["recommendations"][0]["source_link"] == "https://example.com/ep"

    def test_list_filters_and_paginates(self, client, seeded):
        assert [b["id"] for b in client.get("/api/books", params={"genre": "Philosophy"}).json()["books"]] == ["b2"]
        assert [b["id"] for b in client.get("/api/books", params={"search": "thiel"}).json()["books"]] == ["b1"]

        page = client.get("/api/books", params={"limit": 1, "offset": 1}).json()
        assert page["total"] == 2
        assert [b["id"] for b in page["books"]] == ["b1"]

    def test_detail_and_related(self, client, seeded):
        detail = client.get("/api/books/b1").json()
        assert detail["title"] == "Zero to One"
        assert [r["id"] for r in detail["related_books"]] == ["b2"]

        related = client.get("/api/books/b1/related").json()
        assert related == [{
            "id": "b2",
            "title": "Antifragile",
            "author": "Nassim Taleb",
            "recommender_count": 1,
            "recommenders": "Naval Ravikant",
            "recommender_types": RecommenderType.INVESTOR.value,
        }]

    def test_similar_by_embedding(self, client, seeded):
        similar = client.get("/api/books/b1/similar").json()
        assert [b["id"] for b in similar] == ["b2"]
        assert set(similar[0]) == {"id", "title", "author", "genre", "amazon_url", "similarity"}
        assert [b["id"] for b in client.get("/api/books/b1").json()["similar_books"]] == ["b2"]

    def test_unknown_book_is_404(self, client, seeded):
        assert client.get("/api/books/missing").status_code == 404
        assert client.get("/api/books/missing/similar").status_code == 404
        assert client.get("/api/books/missing/related").status_code == 404

    def test_random(self, client, seeded):
        response = client.get("/api/books/random")
        assert response.status_code == 200
        assert response.json()["id"] in {"b1", "b2"}

    def test_random_on_empty_catalog_is_404(self, client):
        assert client.get("/api/books/random").status_code == 404


class TestRecommenders:
    def test_list_and_detail(self, client, seeded):
        people = client.get("/api/recommenders").json()
        assert [(p["full_name"], p["book_count"]) for p in people] == [("Ada Palmer", 1), ("Naval Ravikant", 2)]

        detail = client.get("/api/recommenders/p1").json()
        assert [b["title"] for b in detail["books"]] == ["Antifragile", "Zero to One"]
        assert detail["related_recommenders"] == [{
            "id": "p2",
            "full_name": "Ada Palmer",
            "type": None,
            "shared_books": ["Antifragile"],
            "shared_count": 1,
        }]

    def test_similar_and_suggested(self, client, seeded):
        # p2 has no profile embedding
        assert client.get("/api/recommenders/p1/similar").json() == []

        suggested = client.get("/api/recommenders/p2/suggested-books").json()
        assert [(b["id"], b["endorser_count"]) for b in suggested] == [("b1", 1)]
        assert client.get("/api/recommenders/p2").json()["suggested_books"] == suggested

    def test_unknown_recommender_is_404(self, client, seeded):
        assert client.get("/api/recommenders/missing/suggested-books").status_code == 404
        assert client.get("/api/recommenders/missing").status_code == 404
        assert client.get("/api/recommenders/missing/related").status_code == 404


class TestInsights:
    def test_genres_and_types(self, client, seeded):
        genres = {g["genre"]: g for g in client.get("/api/insights/genres").json()}
        assert genres["Business"]["book_count"] == 2
        assert genres["Business"]["recommendation_count"] == 3

        types = {t["type"]: t["recommender_count"] for t in client.get("/api/insights/types").json()}
        assert types[RecommenderType.INVESTOR.value] == 1
        assert types["Unknown"] == 1

    def test_network(self, client, seeded):
        data = client.get("/api/graph/network").json()
        assert {n["id"] for n in data["nodes"]} == {"p1", "p2"}
        assert data["edges"] == [{"source": "p1", "target": "p2", "shared_count": 1, "shared_books": ["Antifragile"]}]

        assert client.get("/api/graph/network", params={"min_shared": 2}).json() == {"nodes": [], "edges": []}


class TestSearch:
    def test_books(self, client, seeded, fake_provider):
        fake_provider.vectors["startups"] = [1.0, 0.0, 0.0, 0.0]
        response = client.post("/api/search", json={"query": "startups"})
        assert response.status_code == 200
        results = response.json()
        assert [r["id"] for r in results] == ["b1"]
        assert results[0]["similarity"] == pytest.approx(1.0)

    def test_people(self, client, seeded, fake_provider):
        fake_provider.vectors["angel investing"] = [0.0, 0.0, 1.0, 0.0]
        response = client.post("/api/search", json={"query": "angel investing", "viewMode": "people"})
        assert [r["full_name"] for r in response.json()] == ["Naval Ravikant"]

    def test_blank_query_is_400(self, client, seeded):
        assert client.post("/api/search", json={"query": "  "}).status_code == 400
        assert client.post("/api/search", json={}).status_code == 400

    def test_embedding_failure_is_502(self, client, seeded, fake_provider):
        fake_provider.fail = True
        assert client.post("/api/search", json={"query": "startups"}).status_code == 502


class TestContributions:
    def _submit(self, client):
        response = client.post("/api/contribute", json={
            "name": "Jane Reader",
            "url": "https://twitter.com/janereader",
            "books": [{"title": "Zero to One", "author": "Peter Thiel"}, {"title": "Dune", "author": "Frank Herbert"}],
        })
        assert response.status_code == 200
        return response.json()["id"]

    def _token(self, session_factory, contribution_id):
        session = session_factory()
        try:
            return session.query(PendingContribution).filter(PendingContribution.id == contribution_id).one().approval_token
        finally:
            session.close()

    def test_submit_validation(self, client):
        response = client.post("/api/contribute", json={"name": " ", "books": [{"title": "Dune", "author": "Frank Herbert"}]})
        assert response.status_code == 400
        assert client.post("/api/contribute", json={"name": "Jane", "books": []}).status_code == 400

    def test_approve_flow(self, client, seeded, session_factory):
        token = self._token(session_factory, self._submit(client))

        response = client.get("/api/contribute/approve", params={"token": token})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert "b1" in body["book_ids"]
        assert len(body["created_book_ids"]) == 1

        people = client.get("/api/recommenders", params={"search": "jane"}).json()
        assert [(p["full_name"], p["book_count"], p["url"]) for p in people] == [
            ("Jane Reader", 2, "https://x.com/janereader"),
        ]

        # A used token cannot be applied twice
        assert client.get("/api/contribute/approve", params={"token": token}).status_code == 400

    def test_token_errors(self, client):
        assert client.get("/api/contribute/approve").status_code == 400
        assert client.get("/api/contribute/approve", params={"token": "nope"}).status_code == 404
        assert client.post("/api/contribute/reject", params={"token": "nope"}).status_code == 404

    def test_reject(self, client, session_factory):
        token = self._token(session_factory, self._submit(client))
        response = client.post("/api/contribute/reject", params={"token": token})
        assert response.status_code == 200
        assert client.get("/api/contribute/approve", params={"token": token}).status_code == 400
