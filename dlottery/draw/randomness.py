"""Random sources used for ticket allocation and winner selection."""

from __future__ import annotations

import random
import secrets
from typing import Optional, Protocol


class RandomSource(Protocol):
    """Anything exposing :meth:`random.Random.randrange`.

    The engine calls ``randrange(n)`` to pick an index into the available
    tickets and ``randrange(1, max_tickets + 1)`` to pick the winning ticket.
    """

    def randrange(self, start: int, stop: Optional[int] = None) -> int: ...


def default_random_source() -> RandomSource:
    """Return a source backed by the operating system CSPRNG."""
    return secrets.SystemRandom()


def seeded_random_source(seed: int) -> RandomSource:
    """Return a reproducible source, for tests and simulations only."""
    return random.Random(seed)


__all__ = ["RandomSource", "default_random_source", "seeded_random_source"]
