"""
Seeded random source for eremos.

A linear congruential generator, so that a seed reproduces the exact same
sequence everywhere it is used: escape damage, blockade rolls, drone
damage, deck shuffles.
"""

import time
from typing import Sequence, TypeVar

T = TypeVar("T")

MULTIPLIER = 9301
INCREMENT = 49297
MODULUS = 233280


class SeededRng:
    """Deterministic pseudo-random source."""

    def __init__(self, seed: int | None = None):
        if seed is None:
            seed = int(time.time() * 1000)
        self.seed = seed % MODULUS or 1
        self.state = self.seed

    @classmethod
    def from_state(cls, *parts: str | int) -> "SeededRng":
        """
        Derive a generator from game state.

        Same parts give the same sequence, e.g. (run_id, turn, player).
        """
        value = 0
        for char in "|".join(str(p) for p in parts):
            value = (value * 31 + ord(char)) & 0xFFFFFFFF
        return cls(value)

    def random(self) -> float:
        """Next float in [0, 1)."""
        self.state = (self.state * MULTIPLIER + INCREMENT) % MODULUS
        return self.state / MODULUS

    def random_int(self, low: int, high: int) -> int:
        """Integer in [low, high)."""
        return int(self.random() * (high - low)) + low

    def random_int_inclusive(self, low: int, high: int) -> int:
        """Integer in [low, high]."""
        return int(self.random() * (high - low + 1)) + low

    def chance(self, percent: float) -> bool:
        return self.random() * 100 < percent

    def select(self, items: Sequence[T]) -> T | None:
        if not items:
            return None
        return items[self.random_int(0, len(items))]

    def shuffle(self, items: Sequence[T]) -> list[T]:
        """Fisher-Yates shuffle into a new list; the input is untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.random_int(0, i + 1)
            result[i], result[j] = result[j], result[i]
        return result
