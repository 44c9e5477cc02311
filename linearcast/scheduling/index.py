"""Schedule index builder.

Turns a :class:`~linearcast.core.models.ScheduleConfig` into an immutable,
time-addressable :class:`ScheduleIndex`: the play order for one loop plus
the start offset of every entry within that loop.

Building is the only place structural content errors are raised; a built
index is always valid (non-empty, every duration positive, loop duration
positive).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from linearcast.core.exceptions import EmptyContentError, InvalidDurationError
from linearcast.core.models import MediaItem, PlaybackMode, ScheduleConfig
from linearcast.scheduling.shuffle import permute

__all__ = [
    "ScheduleIndex",
    "build_schedule_index",
    "filter_playable",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScheduleIndex:
    """Play order and loop offsets for one channel.

    Attributes:
        channel_id: Channel this index was built for.
        ordered_items: Items in play order.
        item_start_offsets: ``item_start_offsets[i]`` is the sum of the
            durations of entries ``0..i-1``.
        loop_duration_ms: Sum of all durations.
    """

    channel_id: str
    ordered_items: tuple[MediaItem, ...]
    item_start_offsets: tuple[int, ...]
    loop_duration_ms: int

    def __len__(self) -> int:
        return len(self.ordered_items)

    def end_offset(self, position: int) -> int:
        """Offset within the loop at which entry *position* ends."""
        return self.item_start_offsets[position] + self.ordered_items[position].duration_ms


def build_schedule_index(config: ScheduleConfig) -> ScheduleIndex:
    """Build the :class:`ScheduleIndex` for *config*.

    Sequential mode keeps the supplied order; shuffle mode applies
    :func:`~linearcast.scheduling.shuffle.permute` with ``shuffle_seed``.

    Raises:
        EmptyContentError: If ``config.content`` is empty.
        InvalidDurationError: If any item has a non-positive duration.
    """
    if not config.content:
        raise EmptyContentError(config.channel_id)
    for item in config.content:
        if item.duration_ms <= 0:
            raise InvalidDurationError(item.id, item.duration_ms)

    if config.playback_mode is PlaybackMode.SHUFFLE:
        ordered = tuple(permute(config.content, config.shuffle_seed))
    else:
        ordered = tuple(config.content)

    offsets: list[int] = []
    total = 0
    for item in ordered:
        offsets.append(total)
        total += item.duration_ms

    logger.debug(
        "Built schedule index for %s: %d items, loop %d ms (%s).",
        config.channel_id,
        len(ordered),
        total,
        config.playback_mode,
    )
    return ScheduleIndex(
        channel_id=config.channel_id,
        ordered_items=ordered,
        item_start_offsets=tuple(offsets),
        loop_duration_ms=total,
    )


def filter_playable(items: Iterable[MediaItem]) -> list[MediaItem]:
    """Drop items whose duration is zero or negative.

    Content resolvers call this before building a config, so that an
    unplayable catalog entry is skipped upstream rather than failing the
    whole load.
    """
    playable: list[MediaItem] = []
    for item in items:
        if item.duration_ms > 0:
            playable.append(item)
        else:
            logger.debug("Dropping unplayable item %s (duration %d ms).", item.id, item.duration_ms)
    return playable
