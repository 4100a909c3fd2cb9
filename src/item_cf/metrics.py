"""Error and similarity metrics over equal-length numeric sequences."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from sklearn.metrics import mean_absolute_error as _sk_mae
from sklearn.metrics import mean_squared_error as _sk_mse


class DegenerateVectorError(ValueError):
    """Raised when a cosine similarity would divide by a zero magnitude."""


def _as_pair(first: Sequence[float], second: Sequence[float], *, names: Tuple[str, str]) -> Tuple[np.ndarray, np.ndarray]:
    a = np.asarray(first, dtype=np.float64)
    b = np.asarray(second, dtype=np.float64)
    if a.ndim != 1 or a.size == 0:
        raise ValueError(f"{names[0]} must be a non-empty 1-d sequence")
    if b.ndim != 1 or b.size == 0:
        raise ValueError(f"{names[1]} must be a non-empty 1-d sequence")
    if a.size != b.size:
        raise ValueError(f"{names[0]}/{names[1]} length mismatch: {a.size} vs {b.size}")
    return a, b


def mean_absolute_error(predicted: Sequence[float], actual: Sequence[float]) -> float:
    p, a = _as_pair(predicted, actual, names=("predicted", "actual"))
    return float(_sk_mae(a, p))


def root_mean_squared_error(predicted: Sequence[float], actual: Sequence[float]) -> float:
    p, a = _as_pair(predicted, actual, names=("predicted", "actual"))
    return float(np.sqrt(_sk_mse(a, p)))


def dot_product(first: Sequence[float], second: Sequence[float]) -> float:
    a, b = _as_pair(first, second, names=("first", "second"))
    return float(np.dot(a, b))


def magnitude(values: Sequence[float]) -> float:
    """Euclidean (L2) norm."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError("values must be a non-empty 1-d sequence")
    return float(np.linalg.norm(arr))


def cosine_similarity(first: Sequence[float], second: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), in [-1, 1].

    Raises DegenerateVectorError if either vector has zero magnitude.
    """
    denom = magnitude(first) * magnitude(second)
    dot = dot_product(first, second)
    if denom == 0.0:
        raise DegenerateVectorError("cosine similarity undefined for a zero-magnitude vector")
    # Guard against float drift pushing |sim| a hair past 1.
    return float(np.clip(dot / denom, -1.0, 1.0))
