"""
Similarity primitives shared by the recommendation scorer, semantic search
and the related-content panels.

Embedding comparisons are always cosine (normalized) similarity. A missing or
zero-length vector means "similarity undefined" and is reported as None, which
callers must keep distinct from a real score of 0.0.
"""
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


class DimensionMismatch(ValueError):
    """Two vectors of different length were compared."""
    pass


def as_vector(values: Optional[Sequence[float]], dim: Optional[int] = None) -> Optional[np.ndarray]:
    """
    Convert a stored embedding into a numpy vector.

    Returns None when the embedding is absent, empty, or (when dim is given)
    has the wrong dimensionality.
    """
    if values is None:
        return None
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1 or vector.size == 0:
        return None
    if dim is not None and vector.size != dim:
        logger.warning("Ignoring embedding with dimension %d (expected %d)", vector.size, dim)
        return None
    return vector


def cosine_similarity(vec_a: Optional[Sequence[float]], vec_b: Optional[Sequence[float]]) -> Optional[float]:
    """
    Normalized dot product in [-1, 1].

    Returns None if either vector is absent or has zero norm. Raises
    DimensionMismatch if the vectors have different lengths.
    """
    a = as_vector(vec_a)
    b = as_vector(vec_b)
    if a is None or b is None:
        return None
    if a.shape != b.shape:
        raise DimensionMismatch(f"Cannot compare vectors of length {a.size} and {b.size}")
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return None
    score = float(np.dot(a, b) / (norm_a * norm_b))
    # Float error can push parallel vectors slightly past 1
    return max(-1.0, min(1.0, score))


def centroid(vectors: Iterable[Optional[Sequence[float]]], dim: Optional[int] = None) -> Optional[np.ndarray]:
    """Mean of the usable vectors, or None if there are none."""
    usable = [v for v in (as_vector(values, dim) for values in vectors) if v is not None]
    if not usable:
        return None
    sizes = {v.size for v in usable}
    if len(sizes) > 1:
        raise DimensionMismatch(f"Cannot average vectors of lengths {sorted(sizes)}")
    return np.mean(np.vstack(usable), axis=0)


def nearest_by_embedding(
    query_vector: Optional[Sequence[float]],
    candidates: Iterable[Tuple[str, Optional[Sequence[float]]]],
    k: int,
    min_similarity: Optional[float] = None,
) -> List[Tuple[str, float]]:
    """
    Exact top-k cosine search.

    Returns (id, score) pairs sorted by score descending, ties broken by id
    ascending. Candidates without a usable vector (absent, zero norm, or a
    different dimension than the query) are skipped.
    """
    query = as_vector(query_vector)
    if query is None or k <= 0:
        return []

    scored: List[Tuple[str, float]] = []
    for candidate_id, values in candidates:
        vector = as_vector(values, query.size)
        if vector is None:
            continue
        score = cosine_similarity(query, vector)
        if score is None:
            continue
        if min_similarity is not None and score < min_similarity:
            continue
        scored.append((candidate_id, score))

    scored.sort(key=lambda item: (-item[1], item[0]))
    return scored[:k]


def jaccard_overlap(set_a: Iterable, set_b: Iterable) -> float:
    """|A ∩ B| / |A ∪ B|, defined as 0.0 when both sets are empty."""
    a = set(set_a)
    b = set(set_b)
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)
