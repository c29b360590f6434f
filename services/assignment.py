"""Reviewer selection.

Randomness always comes from the ``random.Random`` passed by the caller, so a
seeded generator makes every draw reproducible.
"""
import random
from typing import Iterable, List, Optional

from models.entities import User


MAX_REVIEWERS = 2


def select_reviewers(candidates: Iterable[User], max_count: int, rng: random.Random) -> List[str]:
    """Draw up to ``max_count`` distinct reviewer ids, uniformly at random.

    ``candidates`` must already exclude the author and inactive users.
    """
    ids = [c.id for c in candidates]
    if not ids or max_count <= 0:
        return []
    return rng.sample(ids, min(max_count, len(ids)))


def take_random(pool: List[str], rng: random.Random) -> Optional[str]:
    """Remove and return a random id from ``pool``, ``None`` when it is empty."""
    if not pool:
        return None
    idx = rng.randrange(len(pool))
    pool[idx], pool[-1] = pool[-1], pool[idx]
    return pool.pop()
