"""Injectable randomness used for spawning, weather and health drift."""

from __future__ import annotations

import random
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Subset of :class:`random.Random` the simulation depends on."""

    def random(self) -> float: ...

    def uniform(self, a: float, b: float) -> float: ...

    def choice(self, seq: Sequence[T]) -> T: ...


def make_random_source(seed: int | None = None) -> RandomSource:
    return random.Random(seed)
