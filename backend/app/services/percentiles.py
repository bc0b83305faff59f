"""Rank-based percentiles over recommendation counts, and display buckets."""
from bisect import bisect_left, bisect_right
from typing import Dict, Hashable, Mapping, Sequence

DEFAULT_THRESHOLDS = (0.50, 0.80, 0.90, 0.95, 0.98)


def compute_percentiles(counts: Mapping[Hashable, int]) -> Dict[Hashable, float]:
    """
    Percentile of each id = (ids with a strictly lower count) / (total ids - 1).

    Rank based rather than count/max, so one heavily recommended book does not
    flatten everyone else. A single id gets 0.0.
    """
    total = len(counts)
    if total == 0:
        return {}
    if total == 1:
        return {key: 0.0 for key in counts}

    ordered = sorted(counts.values())
    denominator = total - 1
    return {
        key: bisect_left(ordered, count) / denominator
        for key, count in counts.items()
    }


def bucket(percentile: float, thresholds: Sequence[float] = DEFAULT_THRESHOLDS) -> int:
    """
    Bucket index for a percentile: the number of thresholds it reaches.

    A percentile equal to a threshold belongs to the higher bucket, so with the
    default thresholds 0.5 -> 1 and 0.98 -> 5.
    """
    if any(a >= b for a, b in zip(thresholds, thresholds[1:])):
        raise ValueError(f"Thresholds must be strictly ascending: {list(thresholds)}")
    return bisect_right(list(thresholds), percentile)


def percentile_label(percentile: float) -> int:
    """Whole-number percentile for display ("87th percentile")."""
    return int(round(percentile * 100))
