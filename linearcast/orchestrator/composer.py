"""Daily schedule composition and day-boundary rollover.

Each local calendar day a channel gets a freshly derived
:class:`~linearcast.core.models.ScheduleConfig`:

1. ``day_start`` is local midnight of the reference instant and ``day_key``
   encodes that date as ``year*10000 + month*100 + day``.
2. ``phase_offset`` is a per-channel constant in ``[0, loop_duration)``
   drawn from the channel's phase seed.  It keeps otherwise identical
   channels from changing items at the same instant.
3. In shuffle mode the effective seed is ``base_seed XOR day_key`` so every
   day airs a different, reproducible order.
4. ``anchor_time = day_start - phase_offset``.

Derivation is a pure function of ``(channel, content, reference instant)``,
which is what lets the guide pre-compute windows that agree with live
playback.

Rollover
~~~~~~~~
The :class:`DailyScheduleComposer` listens to the session's
``schedule_sync`` notification.  When the day key changes it looks at the
current airing: a program that started before midnight and is still running
is not interrupted; the rollover is deferred to a one-shot timer that fires
just after the program ends.  Otherwise the new day is loaded immediately.

A failed rollover is logged, leaves the active day untouched and is retried
on the next sync.  The ``on_rollover`` hook runs after the new day is
active; a hook that raises is logged and does not trigger a reload.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from datetime import datetime, tzinfo
from typing import Any, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from linearcast.core import events
from linearcast.core.clock import TimerHandle
from linearcast.core.exceptions import ConfigError, RolloverError
from linearcast.core.logging_config import CHANNEL_ID_CTX
from linearcast.core.models import MAX_SEED, ChannelConfig, MediaItem, PlaybackMode, ScheduleConfig
from linearcast.orchestrator.generation import Generation
from linearcast.orchestrator.notifications import SessionEvent
from linearcast.orchestrator.session import ChannelSchedulerSession, SchedulerState
from linearcast.scheduling.index import filter_playable
from linearcast.scheduling.shuffle import hash_seed, random_in_range

__all__ = [
    "ContentResolver",
    "RolloverHook",
    "resolve_timezone",
    "local_midnight_ms",
    "local_day_key",
    "loop_duration_ms",
    "phase_offset_ms",
    "base_seed",
    "effective_seed",
    "derive_daily_config",
    "DailyScheduleComposer",
]

logger = logging.getLogger(__name__)

#: Resolves a channel's playable content.  Supplied by the embedding app.
ContentResolver = Callable[[ChannelConfig], Awaitable[Sequence[MediaItem]]]

#: Awaited after a rollover has been loaded, e.g. to refresh guide windows.
RolloverHook = Callable[[ScheduleConfig], Awaitable[None]]

#: Delay past a deferred program's end before the rollover fires.
_DEFAULT_GRACE_MS: Final[int] = 50


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def resolve_timezone(tz: tzinfo | str | None) -> tzinfo | None:
    """Normalise *tz*; strings are IANA names, ``None``/``""`` mean host local.

    Raises:
        ConfigError: If a string names an unknown zone.
    """
    if tz is None or isinstance(tz, tzinfo):
        return tz
    if not tz.strip():
        return None
    try:
        return ZoneInfo(tz.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown time zone {tz!r}") from exc


def _local_datetime(instant_ms: int, tz: tzinfo | None) -> datetime:
    # Naive local time when tz is None; .timestamp() then goes through mktime,
    # which handles DST correctly for the host zone.
    return datetime.fromtimestamp(instant_ms // 1000, tz=tz)


def local_midnight_ms(instant_ms: int, tz: tzinfo | None = None) -> int:
    """Epoch ms of the local midnight starting the day containing *instant_ms*."""
    midnight = _local_datetime(instant_ms, tz).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp()) * 1000


def local_day_key(instant_ms: int, tz: tzinfo | None = None) -> int:
    """``year*10000 + month*100 + day`` of the local date of *instant_ms*."""
    local = _local_datetime(instant_ms, tz)
    return local.year * 10000 + local.month * 100 + local.day


# ---------------------------------------------------------------------------
# Per-day derivation
# ---------------------------------------------------------------------------


def loop_duration_ms(content: Sequence[MediaItem]) -> int:
    return sum(item.duration_ms for item in content)


def phase_offset_ms(phase_seed: int | None, loop_duration: int) -> int:
    """Per-channel phase offset; 0 for an unset/zero seed or empty loop."""
    if not phase_seed or loop_duration <= 0:
        return 0
    return random_in_range(phase_seed, loop_duration)


def base_seed(channel: ChannelConfig) -> int:
    """Configured shuffle seed, or a stable hash of the channel id."""
    if channel.shuffle_seed is not None:
        return channel.shuffle_seed
    return hash_seed(channel.id)


def effective_seed(channel: ChannelConfig, day_key: int) -> int:
    seed = base_seed(channel)
    if channel.playback_mode is PlaybackMode.SHUFFLE:
        return (seed ^ day_key) & MAX_SEED
    return seed


def derive_daily_config(
    channel: ChannelConfig,
    content: Sequence[MediaItem],
    reference_ms: int,
    tz: tzinfo | None = None,
) -> ScheduleConfig:
    """Build the :class:`ScheduleConfig` for the local day of *reference_ms*.

    Same inputs on the same local day always give an identical config.
    """
    day_start = local_midnight_ms(reference_ms, tz)
    day_key = local_day_key(day_start, tz)
    offset = phase_offset_ms(channel.phase_seed, loop_duration_ms(content))
    return ScheduleConfig(
        channel_id=channel.id,
        anchor_time=day_start - offset,
        content=tuple(content),
        playback_mode=channel.playback_mode,
        shuffle_seed=effective_seed(channel, day_key),
        loop_schedule=True,
    )


# ---------------------------------------------------------------------------
# Composer
# ---------------------------------------------------------------------------


class DailyScheduleComposer:
    """Detects and applies day rollovers for one channel's session.

    One composer exists per active channel.  It captures the generation
    token current at construction; once the owner advances the generation
    (channel switch, shutdown) every pending or in-flight rollover of this
    composer is discarded.

    Args:
        session: Session the channel is loaded into.
        channel: Static channel configuration.
        content_resolver: Coroutine function returning the channel's content.
        tz: Zone for day boundaries (``None`` = host local time).
        grace_ms: Delay past a deferred program's end before rolling over.
        generation: Shared generation counter; a private one if omitted.
        on_rollover: Optional hook awaited after each applied rollover.
    """

    def __init__(
        self,
        session: ChannelSchedulerSession,
        channel: ChannelConfig,
        content_resolver: ContentResolver,
        *,
        tz: tzinfo | str | None = None,
        grace_ms: int = _DEFAULT_GRACE_MS,
        generation: Generation | None = None,
        on_rollover: RolloverHook | None = None,
    ) -> None:
        if grace_ms < 0:
            raise ConfigError(f"grace_ms must be >= 0, got {grace_ms}")
        self._session = session
        self._driver = session.driver
        self._channel = channel
        self._content_resolver = content_resolver
        self._tz = resolve_timezone(tz)
        self._grace_ms = grace_ms
        self._generation = generation or Generation()
        self._token = self._generation.current
        self._on_rollover = on_rollover

        self._active_day_key: int | None = None
        self._pending_day_key: int | None = None
        self._deferred: TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe: Callable[[], None] | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def channel(self) -> ChannelConfig:
        return self._channel

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    @property
    def active_day_key(self) -> int | None:
        return self._active_day_key

    @property
    def pending_day_key(self) -> int | None:
        return self._pending_day_key

    @property
    def has_deferred_rollover(self) -> bool:
        return self._deferred is not None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Start listening to the session's ``schedule_sync``.  Idempotent."""
        if self._unsubscribe is None and not self._closed:
            self._unsubscribe = self._session.on(SessionEvent.SCHEDULE_SYNC, self._on_schedule_sync)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def adopt(self, reference_ms: int | None = None) -> int:
        """Mark the schedule just loaded as belonging to *reference_ms*'s day.

        Clears any pending rollover.  Returns the adopted day key.
        """
        reference_ms = self._driver.now_ms() if reference_ms is None else reference_ms
        self.cancel_pending()
        self._active_day_key = local_day_key(reference_ms, self._tz)
        return self._active_day_key

    def successor(self) -> DailyScheduleComposer:
        """A detached composer for the same channel bound to the current generation.

        Carries over the active day key so a channel kept on air after a
        superseding attempt (e.g. a failed switch) still rolls over on the
        next day change.
        """
        composer = DailyScheduleComposer(
            self._session,
            self._channel,
            self._content_resolver,
            tz=self._tz,
            grace_ms=self._grace_ms,
            generation=self._generation,
            on_rollover=self._on_rollover,
        )
        composer._active_day_key = self._active_day_key
        return composer

    def derive(self, content: Sequence[MediaItem], reference_ms: int | None = None) -> ScheduleConfig:
        """:func:`derive_daily_config` for this channel and zone."""
        reference_ms = self._driver.now_ms() if reference_ms is None else reference_ms
        return derive_daily_config(self._channel, content, reference_ms, self._tz)

    def cancel_pending(self) -> None:
        """Cancel a deferred rollover timer and forget the pending day."""
        if self._deferred is not None:
            self._deferred.cancel()
            self._deferred = None
        self._pending_day_key = None

    async def wait_idle(self) -> None:
        """Wait until every rollover task spawned from a sync has finished."""
        while pending := [t for t in self._tasks if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Detach, cancel timers and in-flight rollovers.  Idempotent."""
        self._closed = True
        self.detach()
        self.cancel_pending()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Rollover
    # ------------------------------------------------------------------

    async def handle_schedule_sync(self) -> bool:
        """Run one rollover check against the current time.

        Returns:
            ``True`` if a rollover was applied by this call.
        """
        if self._evaluate():
            return await self.apply_rollover()
        return False

    async def apply_rollover(self) -> bool:
        """Load the schedule for the current local day.

        Returns:
            ``True`` if a new day was loaded.  ``False`` when the day is
            already active, the composer is stale or closed, or the attempt
            failed (failures are logged and retried on the next sync).
        """
        if not self._is_current():
            logger.debug(
                "Dropping rollover for %s: composer superseded.",
                self._channel.id,
                extra={"event": events.ROLLOVER_STALE},
            )
            return False

        now = self._driver.now_ms()
        day_key = local_day_key(now, self._tz)
        if self._active_day_key == day_key:
            self._pending_day_key = None
            return False

        ctx_token = CHANNEL_ID_CTX.set(self._channel.id)
        try:
            return await self._apply(now, day_key)
        finally:
            CHANNEL_ID_CTX.reset(ctx_token)

    async def _apply(self, now: int, day_key: int) -> bool:
        try:
            try:
                resolved = await self._content_resolver(self._channel)
            except Exception as exc:
                raise RolloverError(self._channel.id, f"content resolution failed: {exc}") from exc
            content = filter_playable(resolved)
            if not self._is_current():
                logger.debug(
                    "Discarding rollover content for %s: composer superseded.",
                    self._channel.id,
                    extra={"event": events.ROLLOVER_STALE},
                )
                return False
            config = derive_daily_config(self._channel, content, now, self._tz)
            self._session.load_channel(config)
            self._session.sync_to_current_time()
        except Exception:
            logger.exception(
                "Rollover to day %d failed for %s; will retry on next sync.",
                day_key,
                self._channel.id,
                extra={"event": events.ROLLOVER_FAILED},
            )
            self._pending_day_key = None
            return False

        self._active_day_key = day_key
        self._pending_day_key = None
        logger.info(
            "Rolled %s over to day %d (seed %d, anchor %d).",
            self._channel.id,
            day_key,
            config.shuffle_seed,
            config.anchor_time,
            extra={"event": events.ROLLOVER_APPLIED},
        )

        # The new day is live from here on; a hook failure must not reload it.
        if self._on_rollover is not None:
            try:
                await self._on_rollover(config)
            except Exception:
                logger.exception(
                    "Rollover hook failed for %s on day %d.",
                    self._channel.id,
                    day_key,
                    extra={"event": events.ROLLOVER_HOOK_FAILED},
                )
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _is_current(self) -> bool:
        return not self._closed and self._generation.is_current(self._token)

    def _evaluate(self) -> bool:
        """Decide what the current instant requires.

        Returns ``True`` when a rollover should be applied now.  Arms the
        deferred timer (and returns ``False``) when the live program spans
        midnight.
        """
        if not self._is_current() or not self._session.is_loaded:
            return False

        now = self._driver.now_ms()
        day_key = local_day_key(now, self._tz)
        if self._active_day_key is None:
            self._active_day_key = day_key
            return False
        if day_key == self._active_day_key or day_key == self._pending_day_key:
            return False

        day_start = local_midnight_ms(now, self._tz)
        current = self._session.get_current_program()
        self._pending_day_key = day_key

        if current.scheduled_start_time < day_start < current.scheduled_end_time:
            if self._deferred is not None:
                self._deferred.cancel()
            delay = max(0, current.scheduled_end_time - now + self._grace_ms)
            self._deferred = self._driver.call_later(delay, self._on_deferred)
            logger.info(
                "Day changed to %d mid-program on %s; rollover deferred %d ms until %s ends.",
                day_key,
                self._channel.id,
                delay,
                current.item.id,
                extra={"event": events.ROLLOVER_DEFERRED},
            )
            return False
        return True

    def _on_schedule_sync(self, state: SchedulerState) -> None:
        if self._evaluate():
            self._spawn(self.apply_rollover())

    def _on_deferred(self) -> None:
        self._deferred = None
        if not self._is_current():
            return
        self._spawn(self.apply_rollover())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self._pending_day_key = None
            logger.error(
                "Rollover for %s needs a running event loop; will retry on next sync.",
                self._channel.id,
                extra={"event": events.ROLLOVER_FAILED},
            )
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
