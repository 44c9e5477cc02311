"""Electronic program guide pre-computation.

Guide rows are computed straight from the index builder and resolver, using
the same per-day derivation as live playback, so a channel's guide and its
session always agree on what airs when.  No session is touched.

Channels are resolved concurrently with
``asyncio.gather(..., return_exceptions=True)`` so one failing channel only
produces an error row.  A build captures the current
:class:`~linearcast.orchestrator.generation.Generation` token first and
returns ``None`` if the token moved while it was running (channel list
changed, shutdown); the stale result is dropped without raising.

Typical usage::

    from linearcast.orchestrator.guide import build_guide

    result = await build_guide(channels, resolve_content, start, start + 3 * HOUR)
    if result is not None:
        render(result.rows)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import tzinfo

from linearcast.core import events
from linearcast.core.exceptions import InvalidTimeRangeError
from linearcast.core.models import ChannelConfig, MediaItem
from linearcast.orchestrator.composer import ContentResolver, derive_daily_config, resolve_timezone
from linearcast.orchestrator.generation import Generation
from linearcast.scheduling.index import build_schedule_index, filter_playable
from linearcast.scheduling.resolver import ScheduledProgram, window

__all__ = [
    "GuideRow",
    "GuideResult",
    "build_channel_guide",
    "build_guide",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GuideRow:
    """One channel's programs for the requested window.

    Attributes:
        channel: The channel this row describes.
        programs: Airings intersecting the window, in order.  Empty when
            ``error`` is set.
        error: ``"<ExceptionType>: <message>"`` if the row failed.
    """

    channel: ChannelConfig
    programs: tuple[ScheduledProgram, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GuideResult:
    """All rows of one guide build plus summary counters.

    Attributes:
        start_time: Window start (epoch ms).
        end_time: Window end (epoch ms).
        rows: One row per requested channel, in request order.
        duration_s: Wall-clock seconds the build took.
    """

    start_time: int
    end_time: int
    rows: list[GuideRow] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def total_programs(self) -> int:
        return sum(len(r.programs) for r in self.rows)

    @property
    def failed_channels(self) -> list[str]:
        return [r.channel.id for r in self.rows if not r.ok]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_channel_guide(
    channel: ChannelConfig,
    content: Sequence[MediaItem],
    start_time: int,
    end_time: int,
    tz: tzinfo | None = None,
) -> GuideRow:
    """Compute one channel's row from already resolved content.

    The schedule is derived for the local day of ``start_time``.

    Raises:
        EmptyContentError: If no playable content remains after filtering.
        InvalidTimeRangeError: If ``start_time > end_time``.
    """
    config = derive_daily_config(channel, filter_playable(content), start_time, tz)
    index = build_schedule_index(config)
    programs = tuple(window(index, config.anchor_time, start_time, end_time))
    return GuideRow(channel=channel, programs=programs)


async def build_guide(
    channels: Sequence[ChannelConfig],
    content_resolver: ContentResolver,
    start_time: int,
    end_time: int,
    *,
    tz: tzinfo | str | None = None,
    generation: Generation | None = None,
) -> GuideResult | None:
    """Build guide rows for *channels* concurrently.

    Args:
        channels: Channels to include, in display order.
        content_resolver: Coroutine function returning a channel's content.
        start_time: Window start (epoch ms).
        end_time: Window end (epoch ms).
        tz: Zone for day boundaries (``None`` = host local time).
        generation: If given, the build is dropped when the generation
            moves before it finishes.

    Returns:
        A :class:`GuideResult`, or ``None`` if the build went stale.

    Raises:
        InvalidTimeRangeError: If ``start_time > end_time``.
    """
    if start_time > end_time:
        raise InvalidTimeRangeError(start_time, end_time)

    zone = resolve_timezone(tz)
    token = generation.current if generation is not None else None
    started = time.monotonic()

    async def _row(channel: ChannelConfig) -> GuideRow:
        content = await content_resolver(channel)
        return build_channel_guide(channel, content, start_time, end_time, zone)

    raw_results = await asyncio.gather(*(_row(c) for c in channels), return_exceptions=True)

    if generation is not None and token is not None and not generation.is_current(token):
        logger.debug(
            "Discarding guide build for %d channels: generation moved.",
            len(channels),
            extra={"event": events.GUIDE_STALE},
        )
        return None

    result = GuideResult(start_time=start_time, end_time=end_time)
    for channel, row in zip(channels, raw_results):
        if isinstance(row, BaseException):
            logger.warning(
                "Guide row for %s failed: %s",
                channel.id,
                row,
                exc_info=row,
                extra={"event": events.GUIDE_CHANNEL_ERROR},
            )
            result.rows.append(GuideRow(channel=channel, error=f"{type(row).__name__}: {row}"))
        else:
            result.rows.append(row)

    result.duration_s = time.monotonic() - started
    logger.info(
        "Guide built: channels=%d programs=%d failed=%s",
        len(result.rows),
        result.total_programs,
        result.failed_channels or "none",
        extra={"event": events.GUIDE_BUILT},
    )
    return result
