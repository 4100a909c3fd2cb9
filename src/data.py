from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

import pandas as pd


RATING_COLUMNS: Tuple[str, ...] = ("userId", "itemId", "rating")

# Book-Crossing rating scale; 0 marks an implicit interaction.
MIN_RATING = 0
MAX_RATING = 10

# Book-Crossing rows look like `"276725";"034545104X";"0"`.
DEFAULT_SEPARATORS = '";\\'


@dataclass(frozen=True)
class RatingRecord:
    user_id: str
    item_id: str
    rating: int


def separator_pattern(separators: str) -> str:
    """Regex that splits on any run of the given separator characters."""
    if not separators:
        raise ValueError("separators must be a non-empty character set")
    return "[" + "".join(re.escape(c) for c in separators) + "]+"


def load_ratings(
    path: Path,
    *,
    separators: str = DEFAULT_SEPARATORS,
    n_header_rows: int = 1,
) -> pd.DataFrame:
    """Load a delimited `userId, itemId, rating` file.

    Notes
    -----
    - Every character in `separators` is a delimiter and empty tokens are dropped,
      so quoted fields split on the quote character come out clean.
    - Ids are read as strings without NA coercion (ISBNs such as "NA" are valid)
      and lower-cased.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Ratings file not found: {path}")

    try:
        raw = pd.read_csv(
            path,
            sep=separator_pattern(separators),
            engine="python",
            header=None,
            skiprows=int(n_header_rows),
            dtype=str,
            keep_default_na=False,
            quoting=csv.QUOTE_NONE,
        )
    except pd.errors.EmptyDataError as exc:
        raise ValueError(f"{path.name} has no rating rows") from exc

    # Leading/trailing separators produce all-empty columns.
    raw = raw.loc[:, (raw != "").any(axis=0)]
    if raw.shape[1] != len(RATING_COLUMNS):
        raise ValueError(
            f"{path.name}: expected {len(RATING_COLUMNS)} columns (userId, itemId, rating), "
            f"found {raw.shape[1]}"
        )
    raw.columns = list(RATING_COLUMNS)

    incomplete = raw.isna().any(axis=1) | (raw == "").any(axis=1)
    if incomplete.any():
        first = int(incomplete.to_numpy().nonzero()[0][0]) + int(n_header_rows) + 1
        raise ValueError(f"{path.name}: {int(incomplete.sum())} incomplete rows (first at line {first})")

    tokens = raw["rating"].str.strip()
    non_integer = ~tokens.str.fullmatch(r"\d+")
    if non_integer.any():
        bad_tokens = sorted(set(tokens[non_integer].tolist()))
        raise ValueError(f"{path.name} has {int(non_integer.sum())} non-numeric or non-integer rating tokens: {bad_tokens}")

    ratings = pd.DataFrame(
        {
            "userId": raw["userId"].str.strip().str.lower(),
            "itemId": raw["itemId"].str.strip().str.lower(),
            "rating": pd.to_numeric(tokens, errors="coerce"),
        }
    )
    validate_ratings(ratings, source=path.name)
    ratings["rating"] = ratings["rating"].astype("int64")
    return ratings


def validate_ratings(ratings: pd.DataFrame, *, source: str = "ratings") -> None:
    """Validate required columns and the integer 0..10 rating contract."""
    missing = [c for c in RATING_COLUMNS if c not in ratings.columns]
    if missing:
        raise ValueError(f"{source} missing columns: {missing}")

    values = ratings["rating"]
    non_numeric = values.isna()
    if non_numeric.any():
        raise ValueError(f"{source} has {int(non_numeric.sum())} non-numeric rating values")

    bad_mask = (values != values.round()) | ~values.between(MIN_RATING, MAX_RATING)
    if bad_mask.any():
        bad_values = sorted(set(ratings.loc[bad_mask, "rating"].tolist()))
        raise ValueError(
            f"{source} has invalid rating values (expected integers {MIN_RATING}..{MAX_RATING}): {bad_values}"
        )


def records_from_frame(ratings: pd.DataFrame) -> List[RatingRecord]:
    cols = list(RATING_COLUMNS)
    return [
        RatingRecord(user_id=str(u), item_id=str(i), rating=int(r))
        for u, i, r in ratings[cols].itertuples(index=False, name=None)
    ]
