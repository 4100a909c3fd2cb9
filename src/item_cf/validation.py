"""k-fold cross-validation of the item-based CF predictor.

Pipeline: drop implicit ratings -> shuffle -> split into k contiguous folds ->
for each fold, train on the other folds and score the held-out one -> average
per-fold MAE/RMSE and sum prediction/skip counts.

Each fold builds its own RatingIndex and SimilarityMap and returns a FoldResult;
nothing is shared between folds, so folds may run in a process pool.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from multiprocessing import Pool
from typing import Any, Dict, Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from ..data import RatingRecord
from ..utils import log_stage, make_rng
from .config import ValidationConfig
from .index import RatingIndex
from .metrics import mean_absolute_error, root_mean_squared_error
from .predictor import predict
from .similarity import compute_similarity_map


logger = logging.getLogger(__name__)

Fold = Tuple[RatingRecord, ...]


@dataclass(frozen=True)
class FoldResult:
    fold_index: int
    mean_absolute_error: float | None
    root_mean_squared_error: float | None
    # Number of test ratings predicted / skipped because no prediction could be made.
    prediction_count: int
    skipped_count: int


@dataclass(frozen=True)
class AggregateResult:
    n_folds: int
    mean_absolute_error: float | None
    root_mean_squared_error: float | None
    prediction_count: int
    skipped_count: int


@dataclass(frozen=True)
class CrossValidationReport:
    folds: Tuple[FoldResult, ...]
    aggregate: AggregateResult

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(r) for r in self.folds])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "folds": [asdict(r) for r in self.folds],
            "aggregate": asdict(self.aggregate),
        }


def remove_implicit_ratings(records: Iterable[RatingRecord]) -> List[RatingRecord]:
    """Discard implicit ratings (0 on the rating scale)."""
    return [r for r in records if int(r.rating) != 0]


def shuffle_records(records: Sequence[RatingRecord], seed: int | None) -> List[RatingRecord]:
    rng = make_rng(seed)
    order = rng.permutation(len(records))
    return [records[int(i)] for i in order]


def partition_folds(records: Sequence[RatingRecord], n_folds: int) -> List[Fold]:
    """Split into `n_folds` contiguous folds of len // n_folds; the last takes the remainder."""
    if int(n_folds) <= 1:
        raise ValueError(f"n_folds must be > 1, got {n_folds}")
    n = len(records)
    if n < int(n_folds):
        raise ValueError(f"Need at least n_folds={n_folds} ratings to partition, got {n}")

    size = n // int(n_folds)
    folds: List[Fold] = []
    start = 0
    for k in range(int(n_folds)):
        end = n if k == int(n_folds) - 1 else start + size
        folds.append(tuple(records[start:end]))
        start = end
    return folds


def extract(records: Iterable[RatingRecord], *, n_folds: int, seed: int | None) -> List[Fold]:
    """Filter implicit ratings, shuffle and partition into folds."""
    with log_stage("Extract", logger):
        records = list(records)
        logger.info("ratings size=%d, before removing implicit ratings", len(records))
        explicit = remove_implicit_ratings(records)
        logger.info("ratings size=%d, after removing implicit ratings", len(explicit))
        folds = partition_folds(shuffle_records(explicit, seed), n_folds)
    return folds


def training_set(folds: Sequence[Fold], k: int) -> List[RatingRecord]:
    """Union of every fold except fold `k`."""
    out: List[RatingRecord] = []
    for i, fold in enumerate(folds):
        if i != k:
            out.extend(fold)
    return out


def evaluate_fold(
    fold_index: int,
    train: Sequence[RatingRecord],
    test: Sequence[RatingRecord],
    cfg: ValidationConfig,
    *,
    similarity_workers: int | None = None,
) -> FoldResult:
    """Train on `train`, predict every rating in `test` and score the predictions."""
    with log_stage(f"validate fold={fold_index + 1}", logger):
        index = RatingIndex.build(train)
        sims = compute_similarity_map(
            index,
            workers=int(cfg.similarity_workers if similarity_workers is None else similarity_workers),
        )

        predictions: List[float] = []
        actuals: List[float] = []
        skipped = 0
        for rec in test:
            p = predict(
                rec.user_id,
                rec.item_id,
                index,
                sims,
                cfg.min_ratings_count,
                combination=cfg.combination,
                clamp=cfg.clamp,
                round_result=cfg.round_predictions,
            )
            if p is None:
                skipped += 1
                continue
            predictions.append(p)
            actuals.append(float(rec.rating))
            logger.debug("a=%s, p=%s", rec.rating, p)

    if not predictions:
        logger.warning("Fold %d: no predictions made (%d skipped); errors undefined", fold_index + 1, skipped)
        return FoldResult(
            fold_index=fold_index,
            mean_absolute_error=None,
            root_mean_squared_error=None,
            prediction_count=0,
            skipped_count=skipped,
        )

    return FoldResult(
        fold_index=fold_index,
        mean_absolute_error=mean_absolute_error(predictions, actuals),
        root_mean_squared_error=root_mean_squared_error(predictions, actuals),
        prediction_count=len(predictions),
        skipped_count=skipped,
    )


def aggregate(results: Sequence[FoldResult]) -> AggregateResult:
    """Unweighted mean of per-fold errors plus summed counts.

    Folds without predictions have no error and are left out of the means.
    """
    if not results:
        raise ValueError("Cannot aggregate zero fold results")

    maes = [r.mean_absolute_error for r in results if r.mean_absolute_error is not None]
    rmses = [r.root_mean_squared_error for r in results if r.root_mean_squared_error is not None]
    if len(maes) < len(results):
        logger.warning("%d of %d folds had no predictions; averaging the rest", len(results) - len(maes), len(results))

    return AggregateResult(
        n_folds=len(results),
        mean_absolute_error=(float(np.mean(maes)) if maes else None),
        root_mean_squared_error=(float(np.mean(rmses)) if rmses else None),
        prediction_count=sum(r.prediction_count for r in results),
        skipped_count=sum(r.skipped_count for r in results),
    )


def _log_fold(r: FoldResult) -> None:
    logger.info(
        "=====\nResults for k=%d:\nmeanAbsoluteError=%s\nrootMeanSquaredError=%s\n#predictions=%d\n#skipped=%d\n=====",
        r.fold_index + 1,
        r.mean_absolute_error,
        r.root_mean_squared_error,
        r.prediction_count,
        r.skipped_count,
    )


# Per-process state for fold workers, set once by the initializer.
_worker_folds: List[Fold] = []
_worker_cfg: ValidationConfig | None = None


def _init_worker(folds: List[Fold], cfg: ValidationConfig) -> None:
    global _worker_folds, _worker_cfg
    _worker_folds = folds
    _worker_cfg = cfg


def _evaluate_fold_worker(k: int) -> FoldResult:
    assert _worker_cfg is not None
    # Pool workers are daemonic and cannot start their own pool.
    return evaluate_fold(k, training_set(_worker_folds, k), _worker_folds[k], _worker_cfg, similarity_workers=1)


def cross_validate(folds: Sequence[Fold], cfg: ValidationConfig) -> CrossValidationReport:
    """Evaluate every fold (sequentially or with `cfg.workers` processes) and aggregate."""
    folds = list(folds)
    n_folds = len(folds)

    if int(cfg.workers) > 1:
        if int(cfg.similarity_workers) > 1:
            logger.warning("similarity_workers ignored when folds run in parallel (workers=%d)", cfg.workers)
        with Pool(processes=min(int(cfg.workers), n_folds), initializer=_init_worker, initargs=(folds, cfg)) as pool:
            results = pool.map(_evaluate_fold_worker, range(n_folds))
    else:
        results = [evaluate_fold(k, training_set(folds, k), folds[k], cfg) for k in range(n_folds)]

    results = sorted(results, key=lambda r: r.fold_index)
    for r in results:
        _log_fold(r)

    agg = aggregate(results)
    logger.info(
        "=====\n%d-fold validation results:\naverage meanAbsoluteError=%s\naverage rootMeanSquaredError=%s\n"
        "total #predictions=%d\ntotal #skipped=%d\n=====",
        agg.n_folds,
        agg.mean_absolute_error,
        agg.root_mean_squared_error,
        agg.prediction_count,
        agg.skipped_count,
    )
    return CrossValidationReport(folds=tuple(results), aggregate=agg)


def run_cross_validation(records: Iterable[RatingRecord], cfg: ValidationConfig) -> CrossValidationReport:
    """Extract folds from raw records and run the full k-fold validation."""
    folds = extract(records, n_folds=cfg.n_folds, seed=cfg.seed)
    return cross_validate(folds, cfg)
