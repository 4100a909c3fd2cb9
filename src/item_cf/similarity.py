"""Item-item cosine similarity over co-raters.

Only pairs with at least one common rater get an entry; a missing pair means
"similarity unknown", never zero.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from multiprocessing import Pool
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as np

from ..utils import log_stage
from .index import RatingIndex
from .metrics import DegenerateVectorError, cosine_similarity


logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 1_000_000


@dataclass(frozen=True, order=True)
class PairKey:
    """Unordered pair of distinct item ids, stored in sorted order."""

    first: str
    second: str

    def __post_init__(self) -> None:
        if not self.first < self.second:
            raise ValueError(f"PairKey ids must be distinct and sorted, got ({self.first!r}, {self.second!r})")


def pair_key(item_a: str, item_b: str) -> PairKey:
    if item_a == item_b:
        raise ValueError(f"pair_key requires two distinct items, got {item_a!r} twice")
    if item_a < item_b:
        return PairKey(item_a, item_b)
    return PairKey(item_b, item_a)


class SimilarityMap:
    """Sparse symmetric item-item similarity scores keyed by PairKey."""

    def __init__(self, scores: Mapping[PairKey, float] | None = None) -> None:
        self._scores: Dict[PairKey, float] = dict(scores or {})

    def get(self, item_a: str, item_b: str) -> float | None:
        """Similarity of two items in either order, or None if unknown."""
        if item_a == item_b:
            return None
        return self._scores.get(pair_key(item_a, item_b))

    def __contains__(self, key: object) -> bool:
        return key in self._scores

    def __iter__(self) -> Iterator[PairKey]:
        return iter(self._scores)

    def __len__(self) -> int:
        return len(self._scores)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SimilarityMap):
            return NotImplemented
        return self._scores == other._scores

    def items(self):
        return self._scores.items()


def _pair_similarity(common: Sequence[str], ratings: Mapping[str, int], other_ratings: Mapping[str, int]) -> float:
    raters = sorted(common)
    vec = [ratings[u] for u in raters]
    other_vec = [other_ratings[u] for u in raters]
    # Stored as float32 to keep the map small.
    return float(np.float32(cosine_similarity(vec, other_vec)))


def _similarity_rows(index: RatingIndex, items: List[str], rows: Sequence[int]) -> Tuple[Dict[PairKey, float], int]:
    """Upper-triangle scores for the given outer-loop rows.

    Returns (scores, degenerate_count). Rows are disjoint across callers, so
    partial results merge without key conflicts.
    """
    scores: Dict[PairKey, float] = {}
    degenerate = 0
    n = len(items)
    for i in rows:
        item = items[i]
        ratings = index.ratings_for(item)
        for j in range(i + 1, n):
            other = items[j]
            other_ratings = index.ratings_for(other)
            common = ratings.keys() & other_ratings.keys()
            if not common:
                continue
            try:
                sim = _pair_similarity(list(common), ratings, other_ratings)
            except DegenerateVectorError:
                degenerate += 1
                continue
            scores[pair_key(item, other)] = sim
            if len(scores) % PROGRESS_INTERVAL == 0:
                logger.info("%dM sim computed", len(scores) // PROGRESS_INTERVAL)
    return scores, degenerate


# Per-process state for pool workers, set once by the initializer.
_worker_index: RatingIndex | None = None
_worker_items: List[str] = []


def _init_worker(index: RatingIndex, items: List[str]) -> None:
    global _worker_index, _worker_items
    _worker_index = index
    _worker_items = items


def _similarity_rows_worker(rows: Sequence[int]) -> Tuple[Dict[PairKey, float], int]:
    assert _worker_index is not None
    return _similarity_rows(_worker_index, _worker_items, rows)


def compute_similarity_map(index: RatingIndex, *, workers: int = 1) -> SimilarityMap:
    """Compute cosine similarity for every item pair with common raters.

    Iterates the upper triangle only (i < j). With `workers > 1` the outer rows
    are dealt round-robin to a process pool; the result is identical.
    """
    if int(workers) < 1:
        raise ValueError("workers must be >= 1")

    items = index.items()
    with log_stage("similarityMatrix", logger):
        if int(workers) == 1 or len(items) < 2:
            scores, degenerate = _similarity_rows(index, items, range(len(items)))
        else:
            n_workers = int(workers)
            # Round-robin rows: early rows have the longest inner loops.
            blocks = [list(range(w, len(items), n_workers)) for w in range(n_workers)]
            scores = {}
            degenerate = 0
            with Pool(processes=n_workers, initializer=_init_worker, initargs=(index, items)) as pool:
                for part, part_degenerate in pool.imap_unordered(_similarity_rows_worker, blocks):
                    scores.update(part)
                    degenerate += part_degenerate

        if degenerate:
            logger.warning("%d item pairs skipped: zero-magnitude rating vectors", degenerate)
        logger.info("%d sim computed over %d items", len(scores), len(items))
    return SimilarityMap(scores)
