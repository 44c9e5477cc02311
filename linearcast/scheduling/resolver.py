"""Time-window resolver.

Maps wall-clock instants and ranges onto concrete airings of a
:class:`~linearcast.scheduling.index.ScheduleIndex` anchored at a given
epoch millisecond.

Locating an instant
~~~~~~~~~~~~~~~~~~~
::

    elapsed     = instant - anchor
    loop_number = floor(elapsed / loop_duration)     # may be negative
    position    = elapsed - loop_number * loop_duration   # in [0, loop)
    entry       = last i with offsets[i] <= position      # binary search

Floor division is written out explicitly so that instants before the anchor
land in loop ``-1``, ``-2``, ... with a non-negative position, instead of the
truncating behaviour a remainder operator has in some languages.

All functions here are pure; nothing reads the clock.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from linearcast.core.exceptions import InvalidTimeRangeError
from linearcast.core.models import MediaItem
from linearcast.scheduling.index import ScheduleIndex

__all__ = [
    "ScheduledProgram",
    "ScheduleWindow",
    "locate",
    "window",
    "schedule_window",
    "next_program",
    "previous_program",
    "upcoming",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ScheduledProgram:
    """One airing of one item.

    Attributes:
        item: The media item airing.
        scheduled_start_time: Epoch ms at which this airing starts.
        scheduled_end_time: Epoch ms at which it ends
            (``start + item.duration_ms``).
        elapsed_ms: Milliseconds already aired at the query instant.
        remaining_ms: Milliseconds left at the query instant.
        schedule_index: Position of the item in the index's play order.
        loop_number: Which repetition of the loop this airing belongs to.
    """

    item: MediaItem
    scheduled_start_time: int
    scheduled_end_time: int
    elapsed_ms: int
    remaining_ms: int
    schedule_index: int
    loop_number: int

    @property
    def airing_key(self) -> tuple[int, int]:
        """Identity of this airing: ``(schedule_index, loop_number)``."""
        return (self.schedule_index, self.loop_number)

    def contains(self, instant: int) -> bool:
        """``True`` if *instant* falls in ``[start, end)``."""
        return self.scheduled_start_time <= instant < self.scheduled_end_time


@dataclass(frozen=True, slots=True)
class ScheduleWindow:
    """Materialised list of programs covering ``[start_time, end_time)``."""

    start_time: int
    end_time: int
    programs: tuple[ScheduledProgram, ...]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _airing(
    index: ScheduleIndex,
    anchor_time: int,
    position: int,
    loop_number: int,
    elapsed_ms: int = 0,
) -> ScheduledProgram:
    item = index.ordered_items[position]
    start = anchor_time + loop_number * index.loop_duration_ms + index.item_start_offsets[position]
    elapsed_ms = min(max(elapsed_ms, 0), item.duration_ms)
    return ScheduledProgram(
        item=item,
        scheduled_start_time=start,
        scheduled_end_time=start + item.duration_ms,
        elapsed_ms=elapsed_ms,
        remaining_ms=item.duration_ms - elapsed_ms,
        schedule_index=position,
        loop_number=loop_number,
    )


def _successor(index: ScheduleIndex, position: int, loop_number: int) -> tuple[int, int]:
    if position + 1 < len(index):
        return position + 1, loop_number
    return 0, loop_number + 1


def _predecessor(index: ScheduleIndex, position: int, loop_number: int) -> tuple[int, int]:
    if position > 0:
        return position - 1, loop_number
    return len(index) - 1, loop_number - 1


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def locate(index: ScheduleIndex, anchor_time: int, instant: int) -> ScheduledProgram:
    """Return the airing covering *instant*.

    The result always satisfies ``start <= instant < end`` and
    ``elapsed_ms + remaining_ms == item.duration_ms``.
    """
    loop = index.loop_duration_ms
    elapsed = instant - anchor_time
    loop_number = elapsed // loop
    position_in_loop = elapsed - loop_number * loop

    position = bisect.bisect_right(index.item_start_offsets, position_in_loop) - 1
    return _airing(
        index,
        anchor_time,
        position,
        loop_number,
        elapsed_ms=position_in_loop - index.item_start_offsets[position],
    )


def window(
    index: ScheduleIndex,
    anchor_time: int,
    start_time: int,
    end_time: int,
) -> Iterator[ScheduledProgram]:
    """Lazily yield every airing that intersects ``[start_time, end_time)``.

    Airings come out in chronological order, contiguous and non-overlapping.
    The first one is the airing covering ``start_time`` and reports its
    elapsed time relative to ``start_time``; later ones report zero elapsed.

    The returned iterator is single-use.  Each call is independent, so
    several windows over the same index may be consumed side by side.

    Raises:
        InvalidTimeRangeError: If ``start_time > end_time``.  Raised by this
            call itself, not on first iteration.
    """
    if start_time > end_time:
        raise InvalidTimeRangeError(start_time, end_time)
    return _walk(index, anchor_time, start_time, end_time)


def _walk(
    index: ScheduleIndex,
    anchor_time: int,
    start_time: int,
    end_time: int,
) -> Iterator[ScheduledProgram]:
    if start_time == end_time:
        return

    program = locate(index, anchor_time, start_time)
    while program.scheduled_start_time < end_time:
        yield program
        position, loop_number = _successor(index, program.schedule_index, program.loop_number)
        program = _airing(index, anchor_time, position, loop_number)


def schedule_window(
    index: ScheduleIndex,
    anchor_time: int,
    start_time: int,
    end_time: int,
) -> ScheduleWindow:
    """Materialise :func:`window` into a :class:`ScheduleWindow`."""
    programs = tuple(window(index, anchor_time, start_time, end_time))
    return ScheduleWindow(start_time=start_time, end_time=end_time, programs=programs)


def next_program(
    index: ScheduleIndex,
    anchor_time: int,
    program: ScheduledProgram,
) -> ScheduledProgram:
    """Airing immediately after *program*, wrapping into the next loop."""
    position, loop_number = _successor(index, program.schedule_index, program.loop_number)
    return _airing(index, anchor_time, position, loop_number)


def previous_program(
    index: ScheduleIndex,
    anchor_time: int,
    program: ScheduledProgram,
) -> ScheduledProgram:
    """Airing immediately before *program*, wrapping into the previous loop."""
    position, loop_number = _predecessor(index, program.schedule_index, program.loop_number)
    return _airing(index, anchor_time, position, loop_number)


def upcoming(
    index: ScheduleIndex,
    anchor_time: int,
    instant: int,
    count: int,
) -> list[ScheduledProgram]:
    """*count* consecutive airings starting with the one covering *instant*."""
    if count <= 0:
        return []
    program = locate(index, anchor_time, instant)
    programs = [program]
    while len(programs) < count:
        program = next_program(index, anchor_time, program)
        programs.append(program)
    return programs
