"""
Random sources for match simulation and pack draws.
SeededRNG gives replayable runs; SystemRNG draws from OS entropy for production.
"""
from __future__ import annotations

import random
from typing import Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """Minimal interface the simulator and draw engine depend on."""

    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, seq: Sequence[T]) -> T: ...


class SeededRNG:
    """Wrapper around random.Random for reproducible simulations."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)
        self._seed = seed

    @property
    def seed(self) -> int | None:
        return self._seed

    def random(self) -> float:
        return self._rng.random()

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def choice(self, seq):
        return self._rng.choice(seq)

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def getstate(self):
        return self._rng.getstate()

    def setstate(self, state) -> None:
        self._rng.setstate(state)


class SystemRNG(SeededRNG):
    """OS entropy source; not reproducible."""

    def __init__(self) -> None:
        self._rng = random.SystemRandom()
        self._seed = None

    def getstate(self):
        raise NotImplementedError("SystemRNG has no state")

    def setstate(self, state) -> None:
        raise NotImplementedError("SystemRNG has no state")
