"""
Victim sampling.

Selects k distinct targets uniformly at random without replacement.
"""

import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


def sample(items: Sequence[T], k: int, rng: Optional[random.Random] = None) -> list[T]:
    """
    Select ``min(k, len(items))`` distinct items, uniformly over all k-subsets.

    Partial Fisher-Yates over a working copy: draw a random index in the
    remaining pool, take that item, remove it from the pool. The caller's
    sequence is never mutated.

    Args:
        items: Candidate pool
        k: Number of items requested
        rng: Random source (seedable); a fresh unseeded random.Random when omitted

    Returns:
        Selected items in draw order
    """
    if k <= 0:
        return []
    if k >= len(items):
        return list(items)

    rng = rng or random.Random()
    pool = list(items)
    selected: list[T] = []
    for _ in range(k):
        index = rng.randrange(len(pool))
        selected.append(pool.pop(index))
    return selected
