# backend/app/scripts/backfill_embeddings.py

"""
Compute missing embeddings for books (title, author, description) and
people (description) through the configured embedding endpoint.

Usage:

  cd backend
  python -m app.scripts.backfill_embeddings
  python -m app.scripts.backfill_embeddings --limit 100 --dry-run
"""

import argparse
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import EmbeddingUnavailable
from app.database import SessionLocal
from app import models
from app.services.embedding_provider import EmbeddingProvider

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

COMMIT_EVERY = 25


def backfill_books(db: Session, provider: EmbeddingProvider, limit: Optional[int] = None,
                   dry_run: bool = False) -> dict:
    query = db.query(models.Book).filter(
        or_(
            models.Book.title_embedding.is_(None),
            models.Book.author_embedding.is_(None),
            models.Book.description_embedding.is_(None),
        )
    ).order_by(models.Book.created_at.asc(), models.Book.id.asc())
    if limit:
        query = query.limit(limit)

    stats = {"updated": 0, "failed": 0, "skipped": 0}
    for i, book in enumerate(query.all(), start=1):
        needs_description = book.description_embedding is None and bool((book.description or "").strip())
        if book.title_embedding is not None and book.author_embedding is not None and not needs_description:
            stats["skipped"] += 1
            continue
        if dry_run:
            logger.info("[dry-run] Would embed book: %s by %s", book.title, book.author)
            stats["updated"] += 1
            continue

        try:
            if book.title_embedding is None:
                book.title_embedding = provider.embed(book.title)
            if book.author_embedding is None:
                book.author_embedding = provider.embed(book.author)
            if needs_description:
                book.description_embedding = provider.embed(book.description)
        except EmbeddingUnavailable as e:
            logger.warning("Failed to embed book %s (%s): %s", book.id, book.title, e)
            stats["failed"] += 1
            continue

        stats["updated"] += 1
        if i % COMMIT_EVERY == 0:
            db.commit()
            logger.info("Committed %d books so far", stats["updated"])

    if not dry_run:
        db.commit()
    return stats


def backfill_people(db: Session, provider: EmbeddingProvider, limit: Optional[int] = None,
                    dry_run: bool = False) -> dict:
    query = db.query(models.Recommender).filter(
        models.Recommender.description_embedding.is_(None),
        models.Recommender.description.isnot(None),
    ).order_by(models.Recommender.full_name.asc(), models.Recommender.id.asc())
    if limit:
        query = query.limit(limit)

    stats = {"updated": 0, "failed": 0, "skipped": 0}
    for person in query.all():
        if not (person.description or "").strip():
            stats["skipped"] += 1
            continue
        if dry_run:
            logger.info("[dry-run] Would embed person: %s", person.full_name)
            stats["updated"] += 1
            continue
        try:
            person.description_embedding = provider.embed(person.description)
        except EmbeddingUnavailable as e:
            logger.warning("Failed to embed person %s (%s): %s", person.id, person.full_name, e)
            stats["failed"] += 1
            continue
        stats["updated"] += 1

    if not dry_run:
        db.commit()
    return stats


def main():
    parser = argparse.ArgumentParser(description="Backfill missing book and people embeddings.")
    parser.add_argument("--limit", type=int, default=None, help="Max rows per entity type")
    parser.add_argument("--dry-run", action="store_true", help="Report what would change without calling the API")
    parser.add_argument("--books-only", action="store_true")
    parser.add_argument("--people-only", action="store_true")
    args = parser.parse_args()

    provider = EmbeddingProvider()
    db = SessionLocal()
    try:
        if not args.people_only:
            stats = backfill_books(db, provider, args.limit, args.dry_run)
            logger.info("Books: %s", stats)
        if not args.books_only:
            stats = backfill_people(db, provider, args.limit, args.dry_run)
            logger.info("People: %s", stats)
    finally:
        db.close()


if __name__ == "__main__":
    main()
