from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

import numpy as np


logger = logging.getLogger(__name__)


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., notebooks + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def resolve_seed(seed: int | None) -> int:
    """Return `seed` unchanged, or draw a fresh one from OS entropy when None.

    The drawn seed is logged so a nondeterministic run can still be replayed.
    """
    if seed is not None:
        return int(seed)
    drawn = int(np.random.SeedSequence().generate_state(1)[0])
    logger.info("No seed configured; using seed=%d", drawn)
    return drawn


def make_rng(seed: int | None) -> np.random.Generator:
    return np.random.default_rng(resolve_seed(seed))


@contextmanager
def log_stage(name: str, log: logging.Logger | None = None) -> Iterator[None]:
    """Log `<name>: started...` / `<name>: completed (Xs)` around a block."""
    log = log or logger
    start = time.perf_counter()
    log.info("%s: started...", name)
    yield
    log.info("%s: completed (%.1fs)", name, time.perf_counter() - start)
