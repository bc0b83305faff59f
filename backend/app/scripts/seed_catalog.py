# backend/app/scripts/seed_catalog.py

"""
Seed the Booklist catalog (people, books, recommendations) from JSON files.

File shape:

  {
    "people": [{"full_name": ..., "type": ..., "url": ..., "description": ...}],
    "books": [{
      "title": ..., "author": ..., "description": ..., "genre": [...],
      "amazon_url": ...,
      "recommenders": [{"full_name": ..., "source": ..., "source_link": ...}]
    }]
  }

Re-running is safe: books are matched by title + author, people by
full_name, recommendations by (book, person, source).

Usage:

  cd backend
  python -m app.scripts.seed_catalog --file app/data/catalog.json
"""

import argparse
import json
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app import models
from app.utils.urls import generate_amazon_url, sanitize_twitter_url

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_FILES = [BASE_DIR / "data" / "catalog.json"]


def _coerce_type(raw) -> Optional[models.RecommenderType]:
    """Map an archetype label to RecommenderType; unknown labels become None."""
    if not raw:
        return None
    try:
        return models.RecommenderType(str(raw).strip())
    except ValueError:
        print(f"[seed_catalog] Unknown recommender type, leaving empty: {raw!r}")
        return None


def _load_file(path: Path) -> dict:
    if not path.exists():
        print(f"[seed_catalog] File not found, skipping: {path}")
        return {}

    print(f"[seed_catalog] Loading catalog from: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Expected an object with 'people' and 'books' in {path}, got {type(data)}")
    return data


def _upsert_person(db: Session, raw: dict, stats: dict) -> Optional[models.Recommender]:
    full_name = (raw.get("full_name") or "").strip()
    if not full_name:
        stats["skipped"] += 1
        return None

    person = db.query(models.Recommender).filter(models.Recommender.full_name == full_name).first()
    if person is None:
        person = models.Recommender(full_name=full_name)
        db.add(person)
        stats["people_created"] += 1

    if raw.get("type"):
        person.type = _coerce_type(raw.get("type"))
    if raw.get("url"):
        person.url = sanitize_twitter_url(raw.get("url"))
    if raw.get("description"):
        person.description = raw.get("description")
    db.flush()
    return person


def _upsert_book(db: Session, raw: dict, stats: dict) -> Optional[models.Book]:
    title = (raw.get("title") or "").strip()
    author = (raw.get("author") or "").strip()
    if not title or not author:
        stats["skipped"] += 1
        return None

    book = (
        db.query(models.Book)
        .filter(models.Book.title == title, models.Book.author == author)
        .first()
    )
    if book is None:
        book = models.Book(title=title, author=author, genre=[])
        db.add(book)
        stats["books_created"] += 1
    else:
        stats["books_updated"] += 1

    if raw.get("description"):
        if book.description != raw["description"]:
            # Stale once the text changes; backfill_embeddings recomputes it
            book.description_embedding = None
        book.description = raw["description"]
    if raw.get("genre"):
        book.genre = sorted({g.strip() for g in raw["genre"] if g and g.strip()})
    book.amazon_url = raw.get("amazon_url") or book.amazon_url or generate_amazon_url(title, author)
    db.flush()
    return book


def seed_catalog(files: list[Path]) -> dict:
    data = [_load_file(path) for path in files]
    if not any(data):
        raise FileNotFoundError(
            "No catalog loaded. Checked files:\n" + "\n".join(str(p) for p in files)
        )

    stats = {
        "people_created": 0,
        "books_created": 0,
        "books_updated": 0,
        "recommendations_created": 0,
        "skipped": 0,
    }

    db: Session = SessionLocal()
    try:
        for catalog in data:
            for raw in catalog.get("people") or []:
                _upsert_person(db, raw, stats)

            for raw in catalog.get("books") or []:
                book = _upsert_book(db, raw, stats)
                if book is None:
                    continue
                for rec in raw.get("recommenders") or []:
                    person = _upsert_person(db, rec, stats)
                    if person is None:
                        continue
                    source = (rec.get("source") or "Unknown").strip()
                    exists = (
                        db.query(models.Recommendation)
                        .filter(
                            models.Recommendation.book_id == book.id,
                            models.Recommendation.person_id == person.id,
                            models.Recommendation.source == source,
                        )
                        .first()
                    )
                    if exists:
                        continue
                    db.add(models.Recommendation(
                        book_id=book.id,
                        person_id=person.id,
                        source=source,
                        source_link=rec.get("source_link"),
                    ))
                    stats["recommendations_created"] += 1

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print(
        "[seed_catalog] Done. "
        f"people_created={stats['people_created']} books_created={stats['books_created']} "
        f"books_updated={stats['books_updated']} recommendations_created={stats['recommendations_created']} "
        f"skipped={stats['skipped']}"
    )
    return stats


def main():
    parser = argparse.ArgumentParser(description="Seed the Booklist catalog from JSON files.")
    parser.add_argument(
        "--file",
        action="append",
        dest="files",
        help="Path to a catalog JSON file. Can be passed multiple times.",
    )
    args = parser.parse_args()

    files = [Path(f) for f in args.files] if args.files else DEFAULT_FILES
    seed_catalog(files)


if __name__ == "__main__":
    main()
