"""Random draws used to vary generated content ("verbalized sampling")."""

from __future__ import annotations

import math
import random
from typing import Mapping, Sequence, TypeVar

T = TypeVar("T")


def _rng(rng: random.Random | None):
    # The `random` module exposes the shared generator's `random()` directly.
    return rng if rng is not None else random


def sample_gaussian(mean: float, std_dev: float, rng: random.Random | None = None) -> float:
    """Box-Muller draw from N(mean, std_dev) clamped to [0, 1]."""

    gen = _rng(rng)
    u1 = gen.random() or 1e-12  # log(0) guard
    u2 = gen.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return max(0.0, min(1.0, mean + z * std_dev))


def weighted_choice(weights: Mapping[T, float], rng: random.Random | None = None) -> T:
    gen = _rng(rng)
    items = list(weights.items())
    total = sum(weight for _, weight in items)
    threshold = gen.random() * total
    for key, weight in items:
        threshold -= weight
        if threshold <= 0:
            return key
    return items[-1][0]


def sample_from(options: Sequence[T], rng: random.Random | None = None) -> T:
    if not options:
        raise ValueError("Cannot sample from an empty sequence")
    gen = _rng(rng)
    return options[int(gen.random() * len(options))]


def round_factors(values: Mapping[str, float], digits: int = 2) -> dict[str, float]:
    return {key: round(float(value), digits) for key, value in values.items()}
