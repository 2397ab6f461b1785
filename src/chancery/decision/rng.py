"""Seeded pseudo-random source for the deterministic synthesizer.

Implements the 32-bit mulberry32 generator so that a given seed always
yields the same stream, independent of Python's ``random`` module state.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")

_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


def hash_string(value: str) -> int:
    """Hash a string to an unsigned 32-bit integer (``h * 31 + c`` rolling hash)."""
    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & _MASK
    return h


def derive_seed(seed: int, turn_index: int, task_id: str) -> int:
    """Combine game seed, turn and task into one 32-bit stream seed."""
    return (seed ^ turn_index ^ hash_string(task_id)) & _MASK


class SeededRandom:
    """Deterministic uniform source in ``[0, 1)`` with mulberry32 state.

    Each helper consumes exactly one draw, so call order fully determines
    the output.
    """

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK

    def next(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK
        a = self._state
        t = _imul(a ^ (a >> 15), 1 | a)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK) ^ t
        return ((t ^ (t >> 14)) & _MASK) / 4294967296

    def rand_int(self, low: int, high: int) -> int:
        """Integer in ``[low, high]`` inclusive."""
        span = max(0, math.floor(high) - math.ceil(low))
        return math.floor(low + self.next() * (span + 1))

    def rand_float(self, low: float, high: float) -> float:
        """Float in ``[low, high)`` rounded to two decimals."""
        return round(low + self.next() * (high - low), 2)

    def rand_bool(self) -> bool:
        return self.next() < 0.5

    def pick(self, values: Sequence[T]) -> T:
        """Pick one element uniformly.

        Raises:
            ValueError: If ``values`` is empty.
        """
        if not values:
            raise ValueError("Cannot pick from empty sequence")
        index = math.floor(self.next() * len(values))
        return values[min(len(values) - 1, max(0, index))]
