from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping

from ..data import RatingRecord


logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, int] = MappingProxyType({})


class RatingIndex:
    """Sparse two-way rating lookup built from one training set.

    Rows are items, columns are users: `ratings_for(item)` gives `{user: rating}`,
    and a user->items map backs `items_of`. Read-only after `build`.
    """

    def __init__(self, by_item: Dict[str, Dict[str, int]], by_user: Dict[str, Dict[str, int]]) -> None:
        self._by_item = by_item
        self._by_user = by_user
        self._n_ratings = sum(len(v) for v in by_item.values())

    @classmethod
    def build(cls, records: Iterable[RatingRecord]) -> "RatingIndex":
        """Index records by item then user.

        Duplicate (item, user) pairs overwrite the earlier rating; the number of
        overwrites is logged.
        """
        by_item: Dict[str, Dict[str, int]] = {}
        by_user: Dict[str, Dict[str, int]] = {}
        n_records = 0
        overwritten = 0
        for rec in records:
            n_records += 1
            raters = by_item.setdefault(rec.item_id, {})
            if rec.user_id in raters:
                overwritten += 1
            raters[rec.user_id] = int(rec.rating)
            by_user.setdefault(rec.user_id, {})[rec.item_id] = int(rec.rating)

        if n_records == 0:
            raise ValueError("Cannot build a RatingIndex from an empty record set")
        if overwritten:
            logger.warning("RatingIndex: %d duplicate (item, user) ratings overwritten", overwritten)

        index = cls(by_item, by_user)
        logger.info(
            "RatingIndex built: items=%d users=%d ratings=%d",
            index.n_items,
            index.n_users,
            index.n_ratings,
        )
        return index

    @property
    def n_items(self) -> int:
        return len(self._by_item)

    @property
    def n_users(self) -> int:
        return len(self._by_user)

    @property
    def n_ratings(self) -> int:
        return self._n_ratings

    def items(self) -> List[str]:
        """Distinct item ids in insertion order (fixed for this index)."""
        return list(self._by_item)

    def ratings_for(self, item_id: str) -> Mapping[str, int]:
        raters = self._by_item.get(item_id)
        return MappingProxyType(raters) if raters is not None else _EMPTY

    def ratings_by(self, user_id: str) -> Mapping[str, int]:
        rated = self._by_user.get(user_id)
        return MappingProxyType(rated) if rated is not None else _EMPTY

    def raters_of(self, item_id: str) -> FrozenSet[str]:
        return frozenset(self._by_item.get(item_id, ()))

    def items_of(self, user_id: str) -> FrozenSet[str]:
        return frozenset(self._by_user.get(user_id, ()))

    def rating_of(self, item_id: str, user_id: str) -> int | None:
        return self._by_item.get(item_id, {}).get(user_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_item

    def __len__(self) -> int:
        return self._n_ratings
