from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List

from ..data import MAX_RATING
from .index import RatingIndex
from .similarity import SimilarityMap


# "weighted_sum": every known similarity contributes.
# "positive_only": drop neighbours with similarity <= 0.
COMBINATION_RULES = ("weighted_sum", "positive_only")

# Lowest explicit rating; 0 is reserved for implicit interactions.
MIN_EXPLICIT_RATING = 1


@dataclass(frozen=True)
class Neighbour:
    item_id: str
    similarity: float
    rating: int


def explain(
    user_id: str,
    item_id: str,
    index: RatingIndex,
    similarities: SimilarityMap,
    *,
    combination: str = "weighted_sum",
) -> List[Neighbour]:
    """Items the user rated that have a known similarity to `item_id`.

    Sorted by similarity, highest first.
    """
    if combination not in COMBINATION_RULES:
        raise ValueError(f"Unknown combination rule: {combination!r} (expected one of {COMBINATION_RULES})")

    out: List[Neighbour] = []
    for other, rating in index.ratings_by(user_id).items():
        if other == item_id:
            continue
        sim = similarities.get(item_id, other)
        if sim is None:
            continue
        if combination == "positive_only" and sim <= 0.0:
            continue
        out.append(Neighbour(item_id=other, similarity=float(sim), rating=int(rating)))
    out.sort(key=lambda n: (-n.similarity, n.item_id))
    return out


def predict(
    user_id: str,
    item_id: str,
    index: RatingIndex,
    similarities: SimilarityMap,
    min_ratings_count: int = 0,
    *,
    combination: str = "weighted_sum",
    clamp: bool = False,
    round_result: bool = False,
) -> float | None:
    """Estimate `user_id`'s rating of `item_id`, or None when no prediction can be made.

    Estimate: sum(sim(item, j) * rating(user, j)) / sum(|sim(item, j)|) over the
    user's other rated items j with a known similarity.

    None is returned when:
    - the user has rated fewer than `min_ratings_count` items
    - no rated item has a known similarity to `item_id`
    - all contributing similarities are zero

    `clamp` bounds the estimate to the explicit 1..10 scale; `round_result`
    rounds it half-up to an integral rating.
    """
    if int(min_ratings_count) < 0:
        raise ValueError("min_ratings_count must be >= 0")

    if len(index.ratings_by(user_id)) < int(min_ratings_count):
        return None

    neighbours = explain(user_id, item_id, index, similarities, combination=combination)
    if not neighbours:
        return None

    weight_sum = sum(abs(n.similarity) for n in neighbours)
    if weight_sum == 0.0:
        return None

    value = sum(n.similarity * n.rating for n in neighbours) / weight_sum
    if clamp:
        value = min(max(value, float(MIN_EXPLICIT_RATING)), float(MAX_RATING))
    if round_result:
        value = float(math.floor(value + 0.5))
    return float(value)
