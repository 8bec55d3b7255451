"""Uniform random question sampling (Fisher-Yates)."""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a uniformly shuffled copy of `items`.

    Walks from the last index down to 1 and swaps each position with a
    uniformly drawn index in [0, i]. The input is left untouched.
    """
    randint = rng.randint if rng is not None else random.randint
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def sample(items: Sequence[T], count: int, rng: random.Random | None = None) -> list[T]:
    """Draw `count` distinct elements uniformly from `items`.

    Raises:
        ValueError: If count is negative or larger than the input
    """
    if count < 0 or count > len(items):
        raise ValueError(f"Cannot sample {count} items from {len(items)}")
    return shuffle(items, rng)[:count]
