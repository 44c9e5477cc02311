"""Single-channel scheduler session.

A :class:`ChannelSchedulerSession` holds the schedule currently loaded for
one channel, re-resolves "now" on a periodic timer and publishes change
notifications through a :class:`~linearcast.orchestrator.notifications.NotificationHub`.

State machine
~~~~~~~~~~~~~
::

    UNLOADED ──(load_channel)──▶ LOADED ──(unload_channel)──▶ UNLOADED
                                   │ ▲
                  (load_channel)   └─┘   atomic replace

    RUNNING ◀──(resume_sync_timer / pause_sync_timer)──▶ PAUSED

Loaded state is a single immutable ``(config, index, anchor)`` record that is
swapped in one assignment, so a timer tick that fires after a reload always
resolves against the new schedule.

Sync timer
~~~~~~~~~~
The timer is a chain of one-shot callbacks on the session's
:class:`~linearcast.core.clock.TimerDriver`.  Each tick records how late it
fired relative to when it was expected:

* drift above ``resync_threshold_ms`` (host suspended, loop blocked) is a
  **hard resync**: logged at WARNING and flagged in the emitted state;
* drift of at least ``max_drift_ms`` pulls the next tick forward by at most 100 ms;
* otherwise the next tick is one interval away.

Every armed timer carries a generation token; ticks from a timer that has
since been cancelled or replaced are ignored.

Typical usage::

    session = ChannelSchedulerSession(AsyncioTimerDriver())
    session.on(SessionEvent.PROGRAM_START, player.play)
    session.load_channel(config)
    session.sync_to_current_time()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from functools import partial
from typing import Final

from linearcast.core import events
from linearcast.core.clock import TimerDriver, TimerHandle
from linearcast.core.exceptions import NotLoadedError
from linearcast.core.models import ScheduleConfig
from linearcast.core.settings import Settings
from linearcast.orchestrator.generation import Generation
from linearcast.orchestrator.notifications import Handler, NotificationHub, SessionEvent
from linearcast.scheduling.index import ScheduleIndex, build_schedule_index
from linearcast.scheduling.resolver import (
    ScheduledProgram,
    ScheduleWindow,
    locate,
    next_program,
    previous_program,
    schedule_window,
    window,
)

__all__ = ["SchedulerState", "ChannelSchedulerSession"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_DEFAULT_SYNC_INTERVAL_MS: Final[int] = 1000
_DEFAULT_MAX_DRIFT_MS: Final[int] = 500
_DEFAULT_RESYNC_THRESHOLD_MS: Final[int] = 2000

#: Largest correction applied to the next tick after a minor drift.
_MAX_DRIFT_ADJUSTMENT_MS: Final[int] = 100


# ---------------------------------------------------------------------------
# State types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SchedulerState:
    """Snapshot published with every ``schedule_sync`` notification.

    Attributes:
        channel_id: Loaded channel, or ``""`` when unloaded.
        is_active: ``True`` while a channel is loaded.
        is_running: ``True`` while loaded and the sync timer is not paused.
        current_program: Last resolved current airing.
        next_program: Airing after ``current_program``.
        loop_number: Loop of the current airing (0 when unloaded).
        item_index: Index position of the current airing (0 when unloaded).
        offset_ms: Elapsed time into the current airing.
        last_sync_time: Epoch ms of the last sync, ``None`` before the first.
        was_hard_resync: ``True`` if this sync followed a late timer tick.
        detected_drift_ms: How late that tick was; 0 otherwise.
    """

    channel_id: str
    is_active: bool
    is_running: bool
    current_program: ScheduledProgram | None
    next_program: ScheduledProgram | None
    loop_number: int
    item_index: int
    offset_ms: int
    last_sync_time: int | None
    was_hard_resync: bool = False
    detected_drift_ms: int = 0


@dataclass(frozen=True, slots=True)
class _LoadedSchedule:
    config: ScheduleConfig
    index: ScheduleIndex
    anchor_time: int


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class ChannelSchedulerSession:
    """Stateful, single-channel-at-a-time scheduler.

    Args:
        driver: Clock and timer source.
        sync_interval_ms: Period of the sync timer.
        max_drift_ms: Drift that triggers a small next-tick correction.
        resync_threshold_ms: Drift that triggers a hard resync.
        hub: Notification hub; a private one is created if omitted.
    """

    def __init__(
        self,
        driver: TimerDriver,
        *,
        sync_interval_ms: int = _DEFAULT_SYNC_INTERVAL_MS,
        max_drift_ms: int = _DEFAULT_MAX_DRIFT_MS,
        resync_threshold_ms: int = _DEFAULT_RESYNC_THRESHOLD_MS,
        hub: NotificationHub | None = None,
    ) -> None:
        self._driver = driver
        self._sync_interval_ms = sync_interval_ms
        self._max_drift_ms = max_drift_ms
        self._resync_threshold_ms = resync_threshold_ms
        self._hub = hub or NotificationHub()

        self._loaded: _LoadedSchedule | None = None
        self._current: ScheduledProgram | None = None
        self._last_notified_key: tuple[int, int] | None = None
        self._last_sync_time: int | None = None
        self._paused = False

        self._timer: TimerHandle | None = None
        self._timer_generation = Generation()
        self._expected_tick_ms = 0

    @classmethod
    def from_settings(cls, driver: TimerDriver, settings: Settings) -> ChannelSchedulerSession:
        return cls(
            driver,
            sync_interval_ms=settings.sync_interval_ms,
            max_drift_ms=settings.max_drift_ms,
            resync_threshold_ms=settings.resync_threshold_ms,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def driver(self) -> TimerDriver:
        return self._driver

    @property
    def is_loaded(self) -> bool:
        return self._loaded is not None

    @property
    def is_running(self) -> bool:
        return self._loaded is not None and not self._paused

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def channel_id(self) -> str | None:
        loaded = self._loaded
        return loaded.config.channel_id if loaded else None

    @property
    def anchor_time(self) -> int:
        """Effective anchor, including any re-anchoring by skips."""
        return self._require_loaded().anchor_time

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def on(self, event: SessionEvent, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that unregisters it."""
        return self._hub.on(event, handler)

    def off(self, event: SessionEvent, handler: Handler) -> None:
        self._hub.off(event, handler)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load_channel(self, config: ScheduleConfig) -> ScheduledProgram:
        """Build and install a schedule for *config*.

        The index is built before anything is touched, so a structural error
        leaves the previous schedule (or the unloaded state) intact.  No
        notification is emitted here; the next sync always emits
        ``program_start``.

        Returns:
            The airing current at load time.

        Raises:
            EmptyContentError: If ``config.content`` is empty.
            InvalidDurationError: If any item has a non-positive duration.
        """
        index = build_schedule_index(config)
        loaded = _LoadedSchedule(config=config, index=index, anchor_time=config.anchor_time)

        self._loaded = loaded
        self._last_notified_key = None
        self._current = locate(index, loaded.anchor_time, self._driver.now_ms())

        if not self._paused:
            self._arm_timer(self._sync_interval_ms)

        logger.info(
            "Loaded channel %s: %d items, loop %d ms, anchor %d.",
            config.channel_id,
            len(index),
            index.loop_duration_ms,
            loaded.anchor_time,
            extra={"event": events.CHANNEL_LOADED},
        )
        return self._current

    def unload_channel(self) -> None:
        """Cancel the timer and drop the loaded schedule."""
        self._cancel_timer()
        channel_id = self.channel_id
        self._loaded = None
        self._current = None
        self._last_notified_key = None
        self._last_sync_time = None
        self._paused = False
        if channel_id is not None:
            logger.info("Unloaded channel %s.", channel_id, extra={"event": events.CHANNEL_UNLOADED})

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync_to_current_time(self) -> ScheduledProgram | None:
        """Resolve "now" and publish notifications.

        Emits ``program_end`` then ``program_start`` when the current airing
        changed since the last notification, then always emits
        ``schedule_sync``.  Does nothing when no channel is loaded.

        Returns:
            The current airing, or ``None`` when unloaded.
        """
        return self._sync()

    def recalculate_from_time(self, instant: int) -> ScheduledProgram | None:
        """Treat *instant* as "now" for the current-program marker.

        Emits ``program_end``/``program_start`` if the airing changed but not
        ``schedule_sync``.  Does nothing when no channel is loaded.
        """
        loaded = self._loaded
        if loaded is None:
            return None
        program = locate(loaded.index, loaded.anchor_time, instant)
        self._transition_to(program)
        self._last_sync_time = self._driver.now_ms()
        return program

    def is_schedule_stale(self, now: int | None = None) -> bool:
        """``True`` if the last sync is older than the resync threshold."""
        if self._current is None or self._last_sync_time is None:
            return True
        now = self._driver.now_ms() if now is None else now
        return abs(now - self._last_sync_time) > self._resync_threshold_ms

    def pause_sync_timer(self) -> None:
        """Stop the sync timer, keeping the loaded schedule.  Idempotent."""
        if self._loaded is None or self._paused:
            return
        self._paused = True
        self._cancel_timer()
        logger.debug("Sync timer paused.", extra={"event": events.SYNC_TIMER_PAUSED})

    def resume_sync_timer(self) -> None:
        """Restart the sync timer.  Idempotent.

        Does not sync; call :meth:`sync_to_current_time` afterwards to
        reconcile time spent paused.
        """
        if self._loaded is None or not self._paused:
            return
        self._paused = False
        self._arm_timer(self._sync_interval_ms)
        logger.debug("Sync timer resumed.", extra={"event": events.SYNC_TIMER_RESUMED})

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def skip_to_next(self) -> ScheduledProgram | None:
        """Make the entry after the current one start now.

        Past the last index entry this wraps to entry 0 of the next loop.
        Does nothing when no channel is loaded.
        """
        loaded = self._loaded
        if loaded is None or self._current is None:
            return None
        return self.jump_to_program(next_program(loaded.index, loaded.anchor_time, self._current))

    def skip_to_previous(self) -> ScheduledProgram | None:
        """Make the entry before the current one start now.

        Before entry 0 this wraps to the last entry of the previous loop.
        Does nothing when no channel is loaded.
        """
        loaded = self._loaded
        if loaded is None or self._current is None:
            return None
        return self.jump_to_program(
            previous_program(loaded.index, loaded.anchor_time, self._current)
        )

    def jump_to_program(self, program: ScheduledProgram) -> ScheduledProgram | None:
        """Re-anchor the schedule so *program* starts at the current instant.

        *program* must have been resolved against the schedule currently
        loaded.  Timing from then on follows the shifted anchor until the
        next load.
        """
        loaded = self._loaded
        if loaded is None:
            return None

        now = self._driver.now_ms()
        shift = now - program.scheduled_start_time
        self._loaded = _LoadedSchedule(
            config=loaded.config,
            index=loaded.index,
            anchor_time=loaded.anchor_time + shift,
        )
        logger.debug(
            "Re-anchored %s by %+d ms onto %s (index %d, loop %d).",
            loaded.config.channel_id,
            shift,
            program.item.id,
            program.schedule_index,
            program.loop_number,
            extra={"event": events.PROGRAM_SKIP},
        )
        return self._sync()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_program(self) -> ScheduledProgram:
        """The airing resolved by the last sync (or load)."""
        self._require_loaded()
        assert self._current is not None  # noqa: S101
        return self._current

    def get_next_program(self) -> ScheduledProgram:
        loaded = self._require_loaded()
        return next_program(loaded.index, loaded.anchor_time, self.get_current_program())

    def get_previous_program(self) -> ScheduledProgram:
        loaded = self._require_loaded()
        return previous_program(loaded.index, loaded.anchor_time, self.get_current_program())

    def get_program_at_time(self, instant: int) -> ScheduledProgram:
        loaded = self._require_loaded()
        return locate(loaded.index, loaded.anchor_time, instant)

    def get_upcoming(self, count: int) -> list[ScheduledProgram]:
        """*count* consecutive airings starting with the current one."""
        loaded = self._require_loaded()
        if count <= 0:
            return []
        program = self.get_current_program()
        programs = [program]
        while len(programs) < count:
            program = next_program(loaded.index, loaded.anchor_time, program)
            programs.append(program)
        return programs

    def window(self, start_time: int, end_time: int) -> Iterator[ScheduledProgram]:
        """Lazy airings intersecting ``[start_time, end_time)``."""
        loaded = self._require_loaded()
        return window(loaded.index, loaded.anchor_time, start_time, end_time)

    def get_schedule_window(self, start_time: int, end_time: int) -> ScheduleWindow:
        loaded = self._require_loaded()
        return schedule_window(loaded.index, loaded.anchor_time, start_time, end_time)

    def get_schedule_index(self) -> ScheduleIndex:
        return self._require_loaded().index

    def get_state(self, *, was_hard_resync: bool = False, drift_ms: int = 0) -> SchedulerState:
        loaded = self._loaded
        current = self._current
        following = (
            next_program(loaded.index, loaded.anchor_time, current)
            if loaded is not None and current is not None
            else None
        )
        return SchedulerState(
            channel_id=loaded.config.channel_id if loaded else "",
            is_active=loaded is not None,
            is_running=self.is_running,
            current_program=current,
            next_program=following,
            loop_number=current.loop_number if current else 0,
            item_index=current.schedule_index if current else 0,
            offset_ms=current.elapsed_ms if current else 0,
            last_sync_time=self._last_sync_time,
            was_hard_resync=was_hard_resync,
            detected_drift_ms=drift_ms,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loaded(self) -> _LoadedSchedule:
        loaded = self._loaded
        if loaded is None:
            raise NotLoadedError()
        return loaded

    def _transition_to(self, program: ScheduledProgram) -> None:
        previous = self._current
        previously_notified = self._last_notified_key
        self._current = program
        if previously_notified == program.airing_key:
            return

        self._last_notified_key = program.airing_key
        if previously_notified is not None and previous is not None:
            self._hub.emit(SessionEvent.PROGRAM_END, previous)
        logger.debug(
            "Now airing %s (index %d, loop %d), %d ms elapsed.",
            program.item.id,
            program.schedule_index,
            program.loop_number,
            program.elapsed_ms,
            extra={"event": events.PROGRAM_START},
        )
        self._hub.emit(SessionEvent.PROGRAM_START, program)

    def _sync(self, *, was_hard_resync: bool = False, drift_ms: int = 0) -> ScheduledProgram | None:
        loaded = self._loaded
        if loaded is None:
            return None

        now = self._driver.now_ms()
        program = locate(loaded.index, loaded.anchor_time, now)
        self._transition_to(program)
        self._last_sync_time = now
        self._hub.emit(
            SessionEvent.SCHEDULE_SYNC,
            self.get_state(was_hard_resync=was_hard_resync, drift_ms=drift_ms),
        )
        return program

    def _arm_timer(self, delay_ms: int) -> None:
        self._cancel_timer()
        token = self._timer_generation.current
        self._expected_tick_ms = self._driver.now_ms() + delay_ms
        self._timer = self._driver.call_later(delay_ms, partial(self._on_tick, token))

    def _cancel_timer(self) -> None:
        self._timer_generation.advance()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self, token: int) -> None:
        if not self._timer_generation.is_current(token) or self._loaded is None:
            return
        self._timer = None

        now = self._driver.now_ms()
        drift = now - self._expected_tick_ms
        next_delay = self._sync_interval_ms

        if drift > self._resync_threshold_ms:
            logger.warning(
                "Sync timer fired %d ms late; performing hard resync.",
                drift,
                extra={"event": events.SYNC_HARD_RESYNC},
            )
            self._sync(was_hard_resync=True, drift_ms=drift)
        else:
            self._sync()
            if drift >= self._max_drift_ms:
                next_delay -= min(drift, _MAX_DRIFT_ADJUSTMENT_MS)

        # A handler may have reloaded, unloaded or paused the session.
        if self._timer_generation.is_current(token) and self._loaded is not None and not self._paused:
            self._arm_timer(next_delay)
