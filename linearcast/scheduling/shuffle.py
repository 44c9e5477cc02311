"""Deterministic seeded shuffling.

The generator is Mulberry32 computed entirely in unsigned 32-bit integer
arithmetic, so a given seed yields the same permutation on every platform
and interpreter.  Schedules are reproducible from ``(content, seed)`` alone,
which is what lets two devices show the same program at the same time
without talking to each other.

Typical usage::

    from linearcast.scheduling.shuffle import permute

    order = permute(items, seed=20260101)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Final, TypeVar

__all__ = [
    "Mulberry32",
    "permute",
    "shuffle_indices",
    "random_in_range",
    "hash_seed",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MASK32: Final[int] = 0xFFFFFFFF
_GOLDEN_GAMMA: Final[int] = 0x6D2B79F5

_FNV_OFFSET_BASIS: Final[int] = 2166136261
_FNV_PRIME: Final[int] = 16777619


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class Mulberry32:
    """Mulberry32 pseudo-random generator over 32-bit unsigned integers.

    Args:
        seed: Initial state; reduced modulo 2**32.
    """

    __slots__ = ("_state",)

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    def next_uint32(self) -> int:
        """Advance the generator and return the next value in ``[0, 2**32)``."""
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK32
        t = self._state
        t = ((t ^ (t >> 15)) * (t | 1)) & _MASK32
        t ^= (t + (((t ^ (t >> 7)) * (t | 61)) & _MASK32)) & _MASK32
        return (t ^ (t >> 14)) & _MASK32

    def next_below(self, bound: int) -> int:
        """Return a value in ``[0, bound)`` scaled from the next 32-bit draw.

        Raises:
            ValueError: If *bound* is not positive.
        """
        if bound <= 0:
            raise ValueError(f"bound must be positive, got {bound}")
        return (self.next_uint32() * bound) >> 32


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def permute(items: Sequence[T], seed: int) -> list[T]:
    """Return a seeded Fisher–Yates permutation of *items*.

    The input is never mutated.  Sequences of length 0 or 1 come back as a
    plain copy.
    """
    result = list(items)
    if len(result) <= 1:
        return result

    rng = Mulberry32(seed)
    for i in range(len(result) - 1, 0, -1):
        j = rng.next_below(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def shuffle_indices(count: int, seed: int) -> list[int]:
    """Return ``permute(range(count), seed)``.

    Useful for callers that keep their content elsewhere and only need the
    play order.
    """
    return permute(range(count), seed)


def random_in_range(seed: int, max_exclusive: int) -> int:
    """Return the first draw of a fresh generator, scaled to ``[0, max_exclusive)``.

    Raises:
        ValueError: If *max_exclusive* is not positive.
    """
    if max_exclusive <= 0:
        raise ValueError(f"max_exclusive must be positive, got {max_exclusive}")
    return Mulberry32(seed).next_below(max_exclusive)


def hash_seed(text: str) -> int:
    """32-bit FNV-1a hash of *text*, used to derive stable per-channel seeds.

    Hashes UTF-16 code units so that identifiers containing non-BMP
    characters produce the same seed as other clients of the same schedule.
    """
    h = _FNV_OFFSET_BASIS
    data = text.encode("utf-16-le")
    for k in range(0, len(data), 2):
        h ^= data[k] | (data[k + 1] << 8)
        h = (h * _FNV_PRIME) & _MASK32
    return h
