from __future__ import annotations

import math
from pathlib import Path

import pytest

from src.data import RatingRecord
from src.item_cf.config import ValidationConfig
from src.item_cf.validation import (
    FoldResult,
    aggregate,
    cross_validate,
    evaluate_fold,
    extract,
    partition_folds,
    remove_implicit_ratings,
    run_cross_validation,
    shuffle_records,
    training_set,
)


def _cfg(**kwargs) -> ValidationConfig:
    base = {"ratings_path": Path("unused.csv"), "n_folds": 4, "min_ratings_count": 0, "seed": 123}
    base.update(kwargs)
    return ValidationConfig(**base)


def _dense_records(n_users: int = 8, n_items: int = 6) -> list[RatingRecord]:
    out = [RatingRecord(f"u{u}", f"i{i}", (u * 3 + i * 5) % 10 + 1) for u in range(n_users) for i in range(n_items)]
    # Implicit interactions, dropped before folding.
    out += [RatingRecord(f"u{u}", "implicit", 0) for u in range(n_users)]
    return out


def test_implicit_ratings_are_removed() -> None:
    records = [
        RatingRecord("u1", "i1", 5),
        RatingRecord("u1", "i2", 3),
        RatingRecord("u2", "i1", 4),
        RatingRecord("u2", "i2", 2),
        RatingRecord("u1", "i3", 0),
    ]

    explicit = remove_implicit_ratings(records)
    assert len(explicit) == 4
    assert RatingRecord("u1", "i3", 0) not in explicit
    assert all(1 <= r.rating <= 10 for r in explicit)


def test_partition_sizes_and_disjointness() -> None:
    records = [RatingRecord(f"u{n}", "i", 5) for n in range(23)]

    folds = partition_folds(records, 5)

    assert [len(f) for f in folds] == [4, 4, 4, 4, 7]
    assert sum(len(f) for f in folds) == len(records)
    seen = [r for f in folds for r in f]
    assert len(set(seen)) == len(records)
    assert max(len(f) for f in folds) - min(len(f) for f in folds) <= len(records) % 5


def test_partition_rejects_bad_fold_counts() -> None:
    records = [RatingRecord(f"u{n}", "i", 5) for n in range(3)]
    with pytest.raises(ValueError):
        partition_folds(records, 1)
    with pytest.raises(ValueError):
        partition_folds(records, 4)


def test_shuffle_is_seeded_permutation() -> None:
    records = [RatingRecord(f"u{n}", "i", 5) for n in range(50)]

    a = shuffle_records(records, 42)
    b = shuffle_records(records, 42)
    c = shuffle_records(records, 43)

    assert a == b
    assert a != c
    assert sorted(a, key=lambda r: r.user_id) == sorted(records, key=lambda r: r.user_id)


def test_extract_filters_then_partitions() -> None:
    records = _dense_records()
    folds = extract(records, n_folds=4, seed=1)

    assert len(folds) == 4
    assert sum(len(f) for f in folds) == 48
    assert all(r.rating != 0 for f in folds for r in f)


def test_training_set_is_union_of_other_folds() -> None:
    folds = partition_folds([RatingRecord(f"u{n}", "i", 5) for n in range(10)], 3)

    train = training_set(folds, 1)
    assert len(train) == len(folds[0]) + len(folds[2])
    assert not set(train) & set(folds[1])


def test_evaluate_fold_counts_predictions_and_skips() -> None:
    train = [
        RatingRecord("u1", "i1", 5),
        RatingRecord("u1", "i2", 3),
        RatingRecord("u2", "i1", 4),
        RatingRecord("u2", "i2", 2),
        RatingRecord("u3", "i1", 6),
    ]
    test = [
        RatingRecord("u3", "i2", 4),  # predicted 6.0 from u3's rating of i1
        RatingRecord("u4", "i1", 5),  # unknown user: skipped
    ]

    result = evaluate_fold(0, train, test, _cfg())

    assert result.prediction_count == 1
    assert result.skipped_count == 1
    assert result.mean_absolute_error == pytest.approx(2.0)
    assert result.root_mean_squared_error == pytest.approx(2.0)


def test_evaluate_fold_without_predictions_has_undefined_errors() -> None:
    train = [RatingRecord("u1", "i1", 5), RatingRecord("u2", "i2", 3)]
    test = [RatingRecord("u1", "i2", 4)]

    result = evaluate_fold(2, train, test, _cfg())

    assert result == FoldResult(
        fold_index=2,
        mean_absolute_error=None,
        root_mean_squared_error=None,
        prediction_count=0,
        skipped_count=1,
    )


def test_min_ratings_count_skips_light_users() -> None:
    train = [
        RatingRecord("u1", "i1", 5),
        RatingRecord("u1", "i2", 3),
        RatingRecord("u2", "i1", 4),
        RatingRecord("u2", "i2", 2),
        RatingRecord("u3", "i1", 6),
    ]
    test = [RatingRecord("u3", "i2", 4)]

    result = evaluate_fold(0, train, test, _cfg(min_ratings_count=2))
    assert result.prediction_count == 0
    assert result.skipped_count == 1


def test_aggregate_averages_folds_and_sums_counts() -> None:
    results = [
        FoldResult(0, 1.0, 2.0, 10, 1),
        FoldResult(1, 3.0, 4.0, 30, 2),
        FoldResult(2, None, None, 0, 5),
    ]

    agg = aggregate(results)

    assert agg.n_folds == 3
    # Unweighted by prediction count; empty fold left out.
    assert agg.mean_absolute_error == pytest.approx(2.0)
    assert agg.root_mean_squared_error == pytest.approx(3.0)
    assert agg.prediction_count == 40
    assert agg.skipped_count == 8


def test_aggregate_of_only_empty_folds() -> None:
    agg = aggregate([FoldResult(0, None, None, 0, 3), FoldResult(1, None, None, 0, 4)])
    assert agg.mean_absolute_error is None
    assert agg.root_mean_squared_error is None
    assert agg.skipped_count == 7

    with pytest.raises(ValueError):
        aggregate([])


def test_run_cross_validation_end_to_end() -> None:
    records = _dense_records()
    report = run_cross_validation(records, _cfg())

    assert len(report.folds) == 4
    assert [r.fold_index for r in report.folds] == [0, 1, 2, 3]
    agg = report.aggregate
    assert agg.prediction_count + agg.skipped_count == 48
    assert agg.prediction_count > 0
    assert agg.mean_absolute_error is not None and agg.mean_absolute_error >= 0.0
    assert agg.root_mean_squared_error is not None and agg.root_mean_squared_error >= 0.0
    assert not math.isnan(agg.mean_absolute_error)

    frame = report.to_frame()
    assert list(frame.columns) == [
        "fold_index",
        "mean_absolute_error",
        "root_mean_squared_error",
        "prediction_count",
        "skipped_count",
    ]
    assert report.to_dict()["aggregate"]["n_folds"] == 4


def test_same_seed_gives_same_report() -> None:
    records = _dense_records()
    assert run_cross_validation(records, _cfg(seed=9)) == run_cross_validation(records, _cfg(seed=9))


def test_parallel_folds_match_sequential() -> None:
    folds = extract(_dense_records(), n_folds=4, seed=5)

    sequential = cross_validate(folds, _cfg())
    parallel = cross_validate(folds, _cfg(workers=2, similarity_workers=2))
    assert parallel == sequential
