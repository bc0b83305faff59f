"""Pytest configuration for backend tests."""
import sys
import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time: point the app at an in-memory database
# and use 4-dimensional embeddings so test vectors stay readable.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["EMBEDDING_DIM"] = "4"
os.environ["DEBUG"] = "false"

from app.core.errors import EmbeddingUnavailable, InvalidRequest  # noqa: E402
from app.database import Base, get_db  # noqa: E402
import app.database  # noqa: E402

# Import the entire models module to ensure all models are registered with Base.metadata
import app.models  # noqa: E402,F401
from app.models import Book, Recommendation, Recommender, RecommenderType  # noqa: E402
from app.services.overlap_index import overlap_index_cache  # noqa: E402

# Best-effort event logging opens its own sessions on the app engine
Base.metadata.create_all(bind=app.database.engine)


class FakeEmbeddingProvider:
    """
    Stand-in for EmbeddingProvider. Known texts map to fixed vectors; anything
    else gets a one-hot vector derived from the text.
    """

    def __init__(self, vectors: Optional[Dict[str, Sequence[float]]] = None, dim: int = 4):
        self.vectors = dict(vectors or {})
        self.dim = dim
        self.fail = False
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        if text is None or not text.strip():
            raise InvalidRequest("Cannot embed empty text")
        self.calls.append(text)
        if self.fail:
            raise EmbeddingUnavailable("embedding upstream down")
        if text in self.vectors:
            return list(self.vectors[text])
        vector = [0.0] * self.dim
        vector[sum(map(ord, text)) % self.dim] = 1.0
        return vector

    def embed_book(self, title, author, description):
        return {
            "title_embedding": self.embed(title),
            "author_embedding": self.embed(author),
            "description_embedding": self.embed(description) if description and description.strip() else None,
        }


class CatalogFactory:
    """Inserts catalog rows with readable, explicit ids."""

    def __init__(self, db: Session):
        self.db = db

    def book(self, id: str, title: Optional[str] = None, author: str = "Some Author", genre=(),
             description: Optional[str] = None, **embeddings) -> Book:
        book = Book(
            id=id,
            title=title or f"Title {id}",
            author=author,
            genre=list(genre),
            description=description,
            **embeddings,
        )
        self.db.add(book)
        self.db.commit()
        return book

    def person(self, id: str, full_name: Optional[str] = None,
               type: Optional[RecommenderType] = RecommenderType.AUTHOR, **fields) -> Recommender:
        person = Recommender(id=id, full_name=full_name or f"Person {id}", type=type, **fields)
        self.db.add(person)
        self.db.commit()
        return person

    def recommend(self, person_id: str, *book_ids: str, source: str = "Twitter",
                  source_link: Optional[str] = None) -> None:
        for book_id in book_ids:
            self.db.add(Recommendation(book_id=book_id, person_id=person_id, source=source,
                                       source_link=source_link))
        self.db.commit()


@pytest.fixture(autouse=True)
def _fresh_overlap_index():
    """The process-wide index cache must not leak between test databases."""
    overlap_index_cache.invalidate()
    yield
    overlap_index_cache.invalidate()


@pytest.fixture(scope="function")
def engine():
    """
    A fresh in-memory SQLite database per test.

    Services commit (contribution approval, event logging), so isolation comes
    from a new database rather than an outer rolled-back transaction.
    """
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    if not Base.metadata.tables:
        raise RuntimeError(
            "No tables registered in Base.metadata. "
            "Did you import app.models? All model classes must be imported before create_all()."
        )
    Base.metadata.create_all(bind=test_engine)

    yield test_engine

    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db(session_factory) -> Session:
    """Database session for each test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(db: Session) -> CatalogFactory:
    return CatalogFactory(db)


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def client(session_factory, fake_provider):
    """TestClient bound to the test database with external services faked."""
    from fastapi.testclient import TestClient
    from app.main import app
    from app.routers.contributions import get_enricher
    from app.services.embedding_provider import get_embedding_provider

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_embedding_provider] = lambda: fake_provider
    app.dependency_overrides[get_enricher] = lambda: None

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
