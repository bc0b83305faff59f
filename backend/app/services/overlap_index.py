"""
Co-occurrence index over recommendation edges.

Built once from a CatalogSnapshot and read-only afterwards, so a single
instance can be shared by concurrent requests. OverlapIndexCache swaps in a
freshly built index when the store's version signal changes.
"""
from typing import Callable, Dict, FrozenSet, Hashable, List, Optional, Tuple
from dataclasses import dataclass
from collections import Counter, defaultdict
from itertools import combinations
from types import MappingProxyType
import logging
import threading

from app.services.entity_store import BookRecord, CatalogSnapshot, RecommenderRecord

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class RelatedBook:
    book_id: str
    shared_count: int
    recommenders: Tuple[RecommenderRecord, ...]  # the shared recommenders, by name
    book: BookRecord


@dataclass(frozen=True)
class RelatedRecommender:
    recommender_id: str
    shared_count: int
    shared_book_titles: Tuple[str, ...]
    recommender: RecommenderRecord


@dataclass(frozen=True)
class NetworkEdge:
    source_id: str
    target_id: str
    shared_count: int
    shared_book_titles: Tuple[str, ...]


@dataclass(frozen=True)
class GenreStat:
    genre: str
    book_count: int
    recommendation_count: int


@dataclass(frozen=True)
class TypeStat:
    type: str
    recommender_count: int
    recommendation_count: int


class OverlapIndex:
    def __init__(
        self,
        snapshot: CatalogSnapshot,
        recommenders_by_book: Dict[str, FrozenSet[str]],
        books_by_recommender: Dict[str, FrozenSet[str]],
        edge_counts: Dict[str, int],
    ):
        self.snapshot = snapshot
        self._recommenders_by_book = MappingProxyType(recommenders_by_book)
        self._books_by_recommender = MappingProxyType(books_by_recommender)
        self._edge_counts = MappingProxyType(edge_counts)

    @classmethod
    def build(cls, snapshot: CatalogSnapshot) -> "OverlapIndex":
        recommenders_by_book: Dict[str, set] = defaultdict(set)
        books_by_recommender: Dict[str, set] = defaultdict(set)
        edge_counts: Counter = Counter()

        for rec in snapshot.recommendations:
            # Edges pointing at rows missing from the snapshot are ignored
            if rec.book_id not in snapshot.books or rec.recommender_id not in snapshot.recommenders:
                continue
            recommenders_by_book[rec.book_id].add(rec.recommender_id)
            books_by_recommender[rec.recommender_id].add(rec.book_id)
            edge_counts[rec.book_id] += 1

        return cls(
            snapshot=snapshot,
            recommenders_by_book={k: frozenset(v) for k, v in recommenders_by_book.items()},
            books_by_recommender={k: frozenset(v) for k, v in books_by_recommender.items()},
            edge_counts=dict(edge_counts),
        )

    def recommenders_of(self, book_id: str) -> FrozenSet[str]:
        return self._recommenders_by_book.get(book_id, _EMPTY)

    def books_of(self, recommender_id: str) -> FrozenSet[str]:
        return self._books_by_recommender.get(recommender_id, _EMPTY)

    def recommendation_count(self, book_id: str) -> int:
        """Number of recommendation edges for a book, duplicates across sources included."""
        return self._edge_counts.get(book_id, 0)

    def recommendation_counts(self) -> Dict[str, int]:
        """Counts for every book in the snapshot, zero for unrecommended books."""
        return {book_id: self.recommendation_count(book_id) for book_id in self.snapshot.books}

    def shared_recommender_count(self, book_a: str, book_b: str) -> int:
        return len(self.recommenders_of(book_a) & self.recommenders_of(book_b))

    def shared_book_count(self, person_a: str, person_b: str) -> int:
        return len(self.books_of(person_a) & self.books_of(person_b))

    def _sort_names(self, recommender_ids) -> Tuple[RecommenderRecord, ...]:
        people = [self.snapshot.recommenders[rid] for rid in recommender_ids]
        return tuple(sorted(people, key=lambda p: (p.full_name.lower(), p.id)))

    def _sort_titles(self, book_ids) -> Tuple[str, ...]:
        books = [self.snapshot.books[bid] for bid in book_ids]
        return tuple(b.title for b in sorted(books, key=lambda b: (b.title.lower(), b.id)))

    def related_books_by_shared_recommenders(self, book_id: str, limit: int = 10) -> List[RelatedBook]:
        """Books sharing recommenders with book_id, most shared first, then id ascending."""
        own = self.recommenders_of(book_id)
        if not own or limit <= 0:
            return []

        shared: Dict[str, set] = defaultdict(set)
        for recommender_id in own:
            for other_id in self.books_of(recommender_id):
                if other_id != book_id:
                    shared[other_id].add(recommender_id)

        ranked = sorted(shared.items(), key=lambda item: (-len(item[1]), item[0]))
        return [
            RelatedBook(
                book_id=other_id,
                shared_count=len(people),
                recommenders=self._sort_names(people),
                book=self.snapshot.books[other_id],
            )
            for other_id, people in ranked[:limit]
        ]

    def related_recommenders_by_shared_books(self, recommender_id: str, limit: int = 10) -> List[RelatedRecommender]:
        """People who recommended the same books, most shared first, then id ascending."""
        own = self.books_of(recommender_id)
        if not own or limit <= 0:
            return []

        shared: Dict[str, set] = defaultdict(set)
        for book_id in own:
            for other_id in self.recommenders_of(book_id):
                if other_id != recommender_id:
                    shared[other_id].add(book_id)

        ranked = sorted(shared.items(), key=lambda item: (-len(item[1]), item[0]))
        return [
            RelatedRecommender(
                recommender_id=other_id,
                shared_count=len(books),
                shared_book_titles=self._sort_titles(books),
                recommender=self.snapshot.recommenders[other_id],
            )
            for other_id, books in ranked[:limit]
        ]

    def overlapping_recommenders(self, recommender_ids) -> FrozenSet[str]:
        """Everyone with at least one shared book with any of recommender_ids, excluding them."""
        anchors = set(recommender_ids)
        found = set()
        for anchor in anchors:
            for book_id in self.books_of(anchor):
                found.update(self.recommenders_of(book_id))
        return frozenset(found - anchors)

    def books_by_similar_recommenders(self, recommender_id: str, limit: int = 10) -> List[Tuple[str, int]]:
        """
        Books endorsed by people who overlap with recommender_id but not by
        recommender_id themselves, ranked by how many such people endorsed them.
        """
        own = self.books_of(recommender_id)
        votes: Counter = Counter()
        for person_id in self.overlapping_recommenders([recommender_id]):
            for book_id in self.books_of(person_id) - own:
                votes[book_id] += 1
        ranked = sorted(votes.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]

    def recommendation_network(self, min_shared: int = 1) -> List[NetworkEdge]:
        """Every pair of people with at least min_shared books in common."""
        pair_books: Dict[Tuple[str, str], set] = defaultdict(set)
        for book_id, people in self._recommenders_by_book.items():
            for a, b in combinations(sorted(people), 2):
                pair_books[(a, b)].add(book_id)

        edges = [
            NetworkEdge(
                source_id=a,
                target_id=b,
                shared_count=len(books),
                shared_book_titles=self._sort_titles(books),
            )
            for (a, b), books in pair_books.items()
            if len(books) >= min_shared
        ]
        edges.sort(key=lambda e: (-e.shared_count, e.source_id, e.target_id))
        return edges

    def genre_stats(self) -> List[GenreStat]:
        book_counts: Counter = Counter()
        rec_counts: Counter = Counter()
        for book in self.snapshot.books.values():
            for genre in book.genre:
                book_counts[genre] += 1
                rec_counts[genre] += self.recommendation_count(book.id)
        return [
            GenreStat(genre=g, book_count=book_counts[g], recommendation_count=rec_counts[g])
            for g in sorted(book_counts, key=lambda g: (-rec_counts[g], g))
        ]

    def type_stats(self) -> List[TypeStat]:
        people_counts: Counter = Counter()
        rec_counts: Counter = Counter()
        for rec in self.snapshot.recommendations:
            person = self.snapshot.recommenders.get(rec.recommender_id)
            if person is not None and rec.book_id in self.snapshot.books:
                rec_counts[person.type or "Unknown"] += 1
        for person in self.snapshot.recommenders.values():
            people_counts[person.type or "Unknown"] += 1
        return [
            TypeStat(type=t, recommender_count=people_counts[t], recommendation_count=rec_counts[t])
            for t in sorted(people_counts, key=lambda t: (-rec_counts[t], t))
        ]


class OverlapIndexCache:
    """
    Holds one published (version, index) pair.

    Readers take whatever index is published; a rebuild happens under the lock
    and replaces the reference only once the new index is complete.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._published: Optional[Tuple[Hashable, OverlapIndex]] = None

    def get(self, version: Hashable, load_snapshot: Callable[[], CatalogSnapshot]) -> OverlapIndex:
        published = self._published
        if published is not None and published[0] == version:
            return published[1]

        with self._lock:
            published = self._published
            if published is not None and published[0] == version:
                return published[1]
            logger.info("Rebuilding overlap index for catalog version %s", version)
            index = OverlapIndex.build(load_snapshot())
            self._published = (version, index)
            return index

    def invalidate(self) -> None:
        with self._lock:
            self._published = None


overlap_index_cache = OverlapIndexCache()
