from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from ..data import load_ratings, records_from_frame
from ..utils import setup_logging
from .config import load_validation_config
from .index import RatingIndex
from .predictor import explain, predict
from .similarity import compute_similarity_map
from .validation import remove_implicit_ratings


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Predict one user's rating of one item (item-based CF, all explicit ratings)")
    p.add_argument("--user-id", type=str, required=True, help="User id as it appears in the ratings file")
    p.add_argument("--item-id", type=str, required=True, help="Item id (e.g. ISBN) as it appears in the ratings file")
    p.add_argument("--config", type=Path, default=None, help="Path to config YAML (default: <repo>/config.yaml)")
    p.add_argument("--ratings", type=Path, default=None, help="Override item_cf.ratings_path")
    p.add_argument("--min-ratings", type=int, default=None, help="Override item_cf.min_ratings_count")
    p.add_argument("--top-neighbours", type=int, default=10, help="How many contributing items to show")
    return p


def main(argv: list[str] | None = None) -> None:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)
    cfg = load_validation_config(
        args.config,
        overrides={"ratings_path": args.ratings, "min_ratings_count": args.min_ratings},
    )

    ratings = load_ratings(cfg.ratings_path, separators=cfg.separators, n_header_rows=cfg.n_header_rows)
    index = RatingIndex.build(remove_implicit_ratings(records_from_frame(ratings)))
    sims = compute_similarity_map(index, workers=cfg.similarity_workers)

    user_id = args.user_id.strip().lower()
    item_id = args.item_id.strip().lower()
    p = predict(
        user_id,
        item_id,
        index,
        sims,
        cfg.min_ratings_count,
        combination=cfg.combination,
        clamp=cfg.clamp,
        round_result=cfg.round_predictions,
    )

    print("\n=== Prediction ===")
    if p is None:
        print(f"No prediction for user={user_id} item={item_id} (try lowering min_ratings_count).")
    else:
        print(f"user={user_id} item={item_id} predicted_rating={p:.3f}")

    actual = index.rating_of(item_id, user_id)
    if actual is not None:
        print(f"actual_rating={actual}")

    print("\n=== Contributing Items ===")
    neighbours = explain(user_id, item_id, index, sims, combination=cfg.combination)
    if neighbours:
        df_n = pd.DataFrame([n.__dict__ for n in neighbours[: int(args.top_neighbours)]])
        print(df_n.to_string(index=False))
    else:
        print("No rated items with a known similarity to this item.")


if __name__ == "__main__":
    main()
