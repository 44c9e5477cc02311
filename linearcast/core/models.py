"""Linearcast core domain models.

This module defines the immutable inputs to the scheduling engine: the
:class:`MediaItem` catalog entry, the per-load :class:`ScheduleConfig` and
the static per-channel :class:`ChannelConfig` consumed by the daily composer.

Models are **frozen** pydantic models so they can be shared freely between
the session, the composer and guide builds without accidental mutation.

Typical usage::

    from linearcast.core.models import MediaItem, PlaybackMode, ScheduleConfig

    config = ScheduleConfig(
        channel_id="ch-1",
        anchor_time=0,
        content=[
            MediaItem(id="a", title="Pilot", duration_ms=1_320_000),
            MediaItem(id="b", title="Episode 2", duration_ms=1_290_000),
        ],
        playback_mode=PlaybackMode.SHUFFLE,
        shuffle_seed=42,
    )
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any, Final

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "MAX_SEED",
    "PlaybackMode",
    "MediaItem",
    "ScheduleConfig",
    "ChannelConfig",
]

logger = logging.getLogger(__name__)

#: Largest value representable by the 32-bit seed space.
MAX_SEED: Final[int] = 0xFFFFFFFF

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PlaybackMode(StrEnum):
    """Order in which a channel's content loop is played."""

    SEQUENTIAL = "sequential"
    """Items air in the order supplied."""

    SHUFFLE = "shuffle"
    """Items air in a seeded, deterministic permutation."""


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class MediaItem(BaseModel):
    """One playable catalog entry.

    The engine only reads ``id`` and ``duration_ms``; everything else is
    passed through untouched to whoever renders the guide or starts playback.

    ``duration_ms`` is not range-checked here; the schedule builder rejects
    non-positive durations with :class:`InvalidDurationError`.

    Attributes:
        id: Stable, non-empty item identifier.
        title: Display title.
        duration_ms: Runtime in whole milliseconds.
        metadata: Opaque mapping carried alongside the item.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1, description="Stable item identifier.")
    title: str = Field(default="", description="Display title.")
    duration_ms: int = Field(..., description="Runtime in milliseconds.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque pass-through metadata.",
    )


# ---------------------------------------------------------------------------
# Schedule configuration
# ---------------------------------------------------------------------------


class ScheduleConfig(BaseModel):
    """Everything needed to build one schedule index.

    Constructed fresh on every load (channel switch or daily rollover).

    Attributes:
        channel_id: Channel the schedule belongs to.
        anchor_time: Epoch ms at which item 0 of loop 0 starts.
        content: Ordered content list.
        playback_mode: Sequential or shuffle.
        shuffle_seed: Unsigned 32-bit seed used in shuffle mode.
        loop_schedule: Must be ``True``; non-looping schedules are not
            supported.
    """

    model_config = {"frozen": True}

    channel_id: str = Field(..., min_length=1)
    anchor_time: int = Field(..., description="Epoch ms of loop 0, item 0.")
    content: tuple[MediaItem, ...] = Field(default_factory=tuple)
    playback_mode: PlaybackMode = PlaybackMode.SEQUENTIAL
    shuffle_seed: int = Field(default=0, ge=0, le=MAX_SEED)
    loop_schedule: bool = True

    @field_validator("loop_schedule")
    @classmethod
    def _require_looping(cls, v: bool) -> bool:
        if not v:
            raise ValueError("loop_schedule=False is not supported; schedules always loop")
        return v


class ChannelConfig(BaseModel):
    """Static per-channel settings used to derive each day's schedule.

    Attributes:
        id: Channel identifier.
        name: Display name.
        number: Optional channel number shown in the guide.
        playback_mode: Sequential or shuffle.
        shuffle_seed: Base seed.  ``None`` derives one from ``id``.
        phase_seed: Seed for the per-channel phase offset.  ``None`` or ``0``
            means no offset.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    number: int | None = Field(default=None, ge=0)
    playback_mode: PlaybackMode = PlaybackMode.SEQUENTIAL
    shuffle_seed: int | None = Field(default=None, ge=0, le=MAX_SEED)
    phase_seed: int | None = Field(default=None, ge=0, le=MAX_SEED)
