"""Random seed helpers."""

from __future__ import annotations

import os
import random
from typing import Optional

import numpy as np


def seed_everything(seed: Optional[int] = None) -> int:
    """Seed the Python and NumPy global RNGs.

    Args:
        seed: Optional manual seed. If ``None``, one will be sampled from ``os.urandom``.
    Returns:
        The seed used.
    """

    if seed is None:
        seed = int.from_bytes(os.urandom(4), "little")
    random.seed(seed)
    np.random.seed(seed)
    return seed


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Return a dedicated generator for the simulation components.

    The simulator never draws from the global RNG; every component receives
    a generator so runs can be replayed from a single seed.
    """

    return np.random.default_rng(seed_everything(seed))


__all__ = ["seed_everything", "make_rng"]
