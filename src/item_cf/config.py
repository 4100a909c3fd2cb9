from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from ..data import DEFAULT_SEPARATORS
from ..paths import get_repo_root, resolve_path
from .predictor import COMBINATION_RULES


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationConfig:
    ratings_path: Path
    n_folds: int = 10
    min_ratings_count: int = 0
    seed: int | None = None
    separators: str = DEFAULT_SEPARATORS
    n_header_rows: int = 1
    workers: int = 1
    similarity_workers: int = 1
    combination: str = "weighted_sum"
    clamp: bool = False
    round_predictions: bool = False

    def __post_init__(self) -> None:
        if int(self.n_folds) <= 1:
            raise ValueError(f"n_folds must be > 1, got {self.n_folds}")
        if int(self.min_ratings_count) < 0:
            raise ValueError(f"min_ratings_count must be >= 0, got {self.min_ratings_count}")
        if int(self.n_header_rows) < 0:
            raise ValueError(f"n_header_rows must be >= 0, got {self.n_header_rows}")
        if int(self.workers) < 1 or int(self.similarity_workers) < 1:
            raise ValueError("workers and similarity_workers must be >= 1")
        if not self.separators:
            raise ValueError("separators must be a non-empty character set")
        if self.combination not in COMBINATION_RULES:
            raise ValueError(f"Unknown combination rule: {self.combination!r} (expected one of {COMBINATION_RULES})")

    def snapshot(self) -> dict[str, Any]:
        out = asdict(self)
        out["ratings_path"] = str(self.ratings_path)
        return out


def load_validation_config(
    config_path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
) -> ValidationConfig:
    """Build a ValidationConfig from the `item_cf:` section of config.yaml.

    Non-None `overrides` (typically CLI flags) win over file values. A relative
    `ratings_path` resolves against the repo root.
    """
    repo_root = get_repo_root()
    config_path = Path(config_path) if config_path is not None else repo_root / "config.yaml"
    if not config_path.is_absolute():
        config_path = (repo_root / config_path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    cfg_yaml = yaml.safe_load(config_path.read_text())
    if not isinstance(cfg_yaml, dict):
        raise ValueError(f"Expected config YAML to be a mapping, got: {type(cfg_yaml)}")

    raw = cfg_yaml.get("item_cf", {}) if isinstance(cfg_yaml.get("item_cf"), dict) else {}
    raw = dict(raw)
    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value

    if not raw.get("ratings_path"):
        raise ValueError("item_cf.ratings_path is required")

    seed = raw.get("seed")
    cfg = ValidationConfig(
        ratings_path=resolve_path(repo_root, str(raw["ratings_path"])),
        n_folds=_as_int(raw, "n_folds", 10),
        min_ratings_count=_as_int(raw, "min_ratings_count", 0),
        seed=(None if seed is None else _as_int(raw, "seed", 0)),
        separators=str(raw.get("separators", DEFAULT_SEPARATORS)),
        n_header_rows=_as_int(raw, "n_header_rows", 1),
        workers=_as_int(raw, "workers", 1),
        similarity_workers=_as_int(raw, "similarity_workers", 1),
        combination=str(raw.get("combination", "weighted_sum")),
        clamp=_as_bool(raw, "clamp", False),
        round_predictions=_as_bool(raw, "round_predictions", False),
    )
    logger.info("Loaded config from %s: %s", config_path, cfg.snapshot())
    return cfg


def _as_int(raw: Mapping[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool):
        raise ValueError(f"item_cf.{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"item_cf.{key} must be an integer, got {value!r}") from exc


def _as_bool(raw: Mapping[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"item_cf.{key} must be true or false, got {value!r}")
    return value
