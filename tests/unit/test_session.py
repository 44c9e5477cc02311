"""Unit tests for ChannelSchedulerSession.

All tests run against a :class:`VirtualTimerDriver` so the sync timer and
"now" are fully deterministic.

Tests cover:
- Loading — returned airing, atomic replace, failed load keeps old state.
- Notifications — program_start / program_end / schedule_sync ordering and
  change detection by airing (same item in a new loop still counts).
- Sync timer — periodic ticks, pause/resume, hard resync on a late tick,
  minor drift correction, handlers that reload during a tick.
- Navigation — skip/jump re-anchoring and loop wrap.
- Queries — NotLoadedError when unloaded, upcoming, windows, state.
- Staleness.
"""

from __future__ import annotations

import pytest

from linearcast.core.clock import VirtualTimerDriver
from linearcast.core.exceptions import EmptyContentError, InvalidTimeRangeError, NotLoadedError
from linearcast.core.models import MediaItem, ScheduleConfig
from linearcast.core.settings import Settings
from linearcast.orchestrator.notifications import SessionEvent
from linearcast.orchestrator.session import ChannelSchedulerSession, SchedulerState

# 2026-03-14T12:00:00Z; matches the ``driver`` fixture's start time.
T0 = 1_773_489_600_000


class _Recorder:
    """Collect ``(event, payload)`` pairs from every session notification."""

    def __init__(self, session: ChannelSchedulerSession) -> None:
        self.calls: list[tuple[SessionEvent, object]] = []
        for event in SessionEvent:
            session.on(event, lambda payload, event=event: self.calls.append((event, payload)))

    def names(self) -> list[str]:
        return [str(e) for e, _ in self.calls]

    def of(self, event: SessionEvent) -> list:
        return [p for e, p in self.calls if e is event]

    def clear(self) -> None:
        self.calls.clear()


@pytest.fixture()
def config(abc_items: list[MediaItem]) -> ScheduleConfig:
    return ScheduleConfig(channel_id="abc", anchor_time=T0, content=abc_items)


@pytest.fixture()
def session(driver: VirtualTimerDriver) -> ChannelSchedulerSession:
    return ChannelSchedulerSession(driver)


@pytest.fixture()
def recorder(session: ChannelSchedulerSession) -> _Recorder:
    return _Recorder(session)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_returns_current_airing(self, session, config) -> None:
        program = session.load_channel(config)
        assert program.item.id == "A"
        assert program.elapsed_ms == 0
        assert session.is_loaded
        assert session.is_running
        assert session.channel_id == "abc"
        assert session.anchor_time == T0

    def test_load_emits_nothing(self, session, config, recorder) -> None:
        session.load_channel(config)
        assert recorder.calls == []

    def test_load_arms_timer(self, session, config, driver) -> None:
        session.load_channel(config)
        assert driver.pending == 1

    def test_failed_load_keeps_previous_schedule(self, session, config) -> None:
        session.load_channel(config)
        with pytest.raises(EmptyContentError):
            session.load_channel(ScheduleConfig(channel_id="empty", anchor_time=0, content=[]))
        assert session.channel_id == "abc"
        assert session.get_current_program().item.id == "A"

    def test_failed_first_load_stays_unloaded(self, session) -> None:
        with pytest.raises(EmptyContentError):
            session.load_channel(ScheduleConfig(channel_id="empty", anchor_time=0, content=[]))
        assert not session.is_loaded

    def test_reload_replaces_schedule(self, session, config, make_items, driver) -> None:
        session.load_channel(config)
        other = ScheduleConfig(channel_id="other", anchor_time=T0, content=make_items(60_000))
        program = session.load_channel(other)
        assert program.item.id == "item-0"
        assert session.channel_id == "other"
        assert driver.pending == 1

    def test_reload_emits_program_start_again(self, session, config, recorder) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        recorder.clear()
        session.load_channel(config)
        session.sync_to_current_time()
        assert recorder.names() == ["program_start", "schedule_sync"]

    def test_unload(self, session, config, driver) -> None:
        session.load_channel(config)
        session.unload_channel()
        assert not session.is_loaded
        assert not session.is_running
        assert session.channel_id is None
        assert driver.pending == 0

    def test_unload_when_unloaded_is_noop(self, session) -> None:
        session.unload_channel()
        assert not session.is_loaded

    def test_from_settings(self, clean_env, driver) -> None:
        settings = Settings(sync_interval_ms=250, max_drift_ms=100, resync_threshold_ms=400)
        session = ChannelSchedulerSession.from_settings(driver, settings)
        session.load_channel(ScheduleConfig(channel_id="x", anchor_time=T0, content=[
            MediaItem(id="a", duration_ms=10_000),
        ]))
        syncs: list[object] = []
        session.on(SessionEvent.SCHEDULE_SYNC, syncs.append)
        driver.advance(1000)
        assert len(syncs) == 4


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotifications:
    def test_first_sync_emits_start_then_sync(self, session, config, recorder) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        assert recorder.names() == ["program_start", "schedule_sync"]
        assert recorder.of(SessionEvent.PROGRAM_START)[0].item.id == "A"

    def test_unchanged_airing_only_syncs(self, session, config, recorder) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        recorder.clear()
        session.sync_to_current_time()
        assert recorder.names() == ["schedule_sync"]

    def test_transition_emits_end_before_start(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        recorder.clear()
        driver.advance(10_000)
        transitions = [(str(e), p.item.id) for e, p in recorder.calls if e is not SessionEvent.SCHEDULE_SYNC]
        assert transitions == [("program_end", "A"), ("program_start", "B")]

    def test_tick_emits_sync_every_interval(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        driver.advance(5_000)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 5

    def test_same_item_new_loop_is_a_transition(self, session, driver, recorder) -> None:
        solo = ScheduleConfig(
            channel_id="solo",
            anchor_time=T0,
            content=[MediaItem(id="only", duration_ms=3_000)],
        )
        session.load_channel(solo)
        session.sync_to_current_time()
        recorder.clear()
        driver.advance(3_000)
        starts = recorder.of(SessionEvent.PROGRAM_START)
        ends = recorder.of(SessionEvent.PROGRAM_END)
        assert [p.loop_number for p in starts] == [1]
        assert [p.loop_number for p in ends] == [0]

    def test_state_payload(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        driver.advance(12_000)
        state: SchedulerState = recorder.of(SessionEvent.SCHEDULE_SYNC)[-1]
        assert state.channel_id == "abc"
        assert state.is_active
        assert state.is_running
        assert state.current_program.item.id == "B"
        assert state.next_program.item.id == "C"
        assert state.item_index == 1
        assert state.loop_number == 0
        assert state.offset_ms == 2_000
        assert state.last_sync_time == T0 + 12_000
        assert not state.was_hard_resync
        assert state.detected_drift_ms == 0

    def test_raising_handler_does_not_break_sync(self, session, config, driver) -> None:
        def boom(_: object) -> None:
            raise RuntimeError("bad handler")

        seen: list[object] = []
        session.on(SessionEvent.PROGRAM_START, boom)
        session.on(SessionEvent.PROGRAM_START, seen.append)
        session.load_channel(config)
        driver.advance(1_000)
        driver.advance(10_000)
        assert [p.item.id for p in seen] == ["A", "B"]

    def test_off_unregisters(self, session, config) -> None:
        seen: list[object] = []
        session.on(SessionEvent.SCHEDULE_SYNC, seen.append)
        session.off(SessionEvent.SCHEDULE_SYNC, seen.append)
        session.load_channel(config)
        session.sync_to_current_time()
        assert seen == []

    def test_recalculate_does_not_emit_sync(self, session, config, recorder) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        recorder.clear()
        program = session.recalculate_from_time(T0 + 16_000)
        assert program.item.id == "C"
        assert recorder.names() == ["program_end", "program_start"]
        assert session.get_current_program().item.id == "C"

    def test_sync_when_unloaded_returns_none(self, session, recorder) -> None:
        assert session.sync_to_current_time() is None
        assert session.recalculate_from_time(T0) is None
        assert recorder.calls == []


# ---------------------------------------------------------------------------
# Sync timer
# ---------------------------------------------------------------------------


class TestSyncTimer:
    def test_pause_stops_ticks(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.pause_sync_timer()
        assert session.is_paused
        assert not session.is_running
        assert driver.pending == 0
        driver.advance(5_000)
        assert recorder.calls == []

    def test_resume_rearms_without_syncing(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.pause_sync_timer()
        driver.advance(5_000)
        session.resume_sync_timer()
        assert recorder.calls == []
        driver.advance(1_000)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 1

    def test_pause_and_resume_are_idempotent(self, session, config, driver) -> None:
        session.load_channel(config)
        session.pause_sync_timer()
        session.pause_sync_timer()
        session.resume_sync_timer()
        session.resume_sync_timer()
        assert driver.pending == 1

    def test_pause_when_unloaded_is_noop(self, session) -> None:
        session.pause_sync_timer()
        assert not session.is_paused

    def test_load_while_paused_stays_paused(self, session, config, driver) -> None:
        session.load_channel(config)
        session.pause_sync_timer()
        session.load_channel(config)
        assert session.is_paused
        assert driver.pending == 0

    def test_unload_clears_pause(self, session, config) -> None:
        session.load_channel(config)
        session.pause_sync_timer()
        session.unload_channel()
        assert not session.is_paused

    def test_late_tick_is_hard_resync(self, session, config, recorder, driver, caplog) -> None:
        session.load_channel(config)
        driver.skew(5_000)
        with caplog.at_level("WARNING"):
            driver.advance(0)
        state: SchedulerState = recorder.of(SessionEvent.SCHEDULE_SYNC)[-1]
        assert state.was_hard_resync
        assert state.detected_drift_ms == 4_000
        assert any("hard resync" in r.getMessage() for r in caplog.records)

    def test_hard_resync_resolves_true_now(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        driver.skew(3_600_000 + 12_000)
        driver.advance(0)
        assert session.get_current_program().item.id == "B"
        assert session.get_current_program().elapsed_ms == 2_000

    def test_minor_drift_shortens_next_interval(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        driver.skew(1_700)
        driver.advance(0)  # fires 700 ms late
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 1
        assert not recorder.of(SessionEvent.SCHEDULE_SYNC)[0].was_hard_resync
        driver.advance(899)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 1
        driver.advance(1)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 2

    def test_small_lateness_keeps_interval(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        driver.skew(1_200)
        driver.advance(0)  # 200 ms late, below max drift
        driver.advance(999)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 1
        driver.advance(1)
        assert len(recorder.of(SessionEvent.SCHEDULE_SYNC)) == 2

    def test_handler_unloading_stops_chain(self, session, config, driver) -> None:
        session.load_channel(config)
        session.on(SessionEvent.SCHEDULE_SYNC, lambda _: session.unload_channel())
        driver.advance(1_000)
        assert driver.pending == 0

    def test_handler_reloading_keeps_single_timer(self, session, config, make_items, driver) -> None:
        other = ScheduleConfig(channel_id="other", anchor_time=T0, content=make_items(60_000))
        session.load_channel(config)
        unsubscribe = session.on(SessionEvent.SCHEDULE_SYNC, lambda _: session.load_channel(other))
        driver.advance(1_000)
        unsubscribe()
        assert session.channel_id == "other"
        assert driver.pending == 1

    def test_tick_after_unload_is_ignored(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.unload_channel()
        driver.advance(10_000)
        assert recorder.calls == []


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


class TestNavigation:
    def test_skip_to_next_starts_next_item_now(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(2_000)
        program = session.skip_to_next()
        assert program.item.id == "B"
        assert program.elapsed_ms == 0
        assert program.scheduled_start_time == T0 + 2_000
        assert session.anchor_time == T0 - 8_000

    def test_skip_is_durable(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(2_000)
        session.skip_to_next()
        driver.advance(5_000)
        assert session.get_current_program().item.id == "C"
        assert session.get_program_at_time(driver.now_ms()).item.id == "C"

    def test_skip_emits_transition(self, session, config, recorder, driver) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        recorder.clear()
        session.skip_to_next()
        assert recorder.names() == ["program_end", "program_start", "schedule_sync"]

    def test_skip_past_last_wraps_to_next_loop(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(20_000)
        program = session.skip_to_next()
        assert program.item.id == "A"
        assert program.loop_number == 1

    def test_skip_to_previous_wraps_to_previous_loop(self, session, config) -> None:
        session.load_channel(config)
        program = session.skip_to_previous()
        assert program.item.id == "C"
        assert program.loop_number == -1
        assert program.elapsed_ms == 0

    def test_jump_to_program(self, session, config, driver) -> None:
        session.load_channel(config)
        target = session.get_program_at_time(T0 + 45_000)
        program = session.jump_to_program(target)
        assert program.airing_key == target.airing_key
        assert program.scheduled_start_time == driver.now_ms()

    def test_navigation_when_unloaded(self, session) -> None:
        assert session.skip_to_next() is None
        assert session.skip_to_previous() is None

    def test_reload_discards_reanchor(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(2_000)
        session.skip_to_next()
        session.load_channel(config)
        assert session.anchor_time == T0
        assert session.get_current_program().item.id == "A"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.get_current_program(),
            lambda s: s.get_next_program(),
            lambda s: s.get_previous_program(),
            lambda s: s.get_program_at_time(0),
            lambda s: s.get_upcoming(3),
            lambda s: s.window(0, 1),
            lambda s: s.get_schedule_window(0, 1),
            lambda s: s.get_schedule_index(),
            lambda s: s.anchor_time,
        ],
    )
    def test_unloaded_raises(self, session, call) -> None:
        with pytest.raises(NotLoadedError, match="No channel loaded"):
            call(session)

    def test_state_when_unloaded(self, session) -> None:
        state = session.get_state()
        assert state.channel_id == ""
        assert not state.is_active
        assert state.current_program is None
        assert state.next_program is None
        assert state.last_sync_time is None

    def test_neighbours(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(12_000)
        assert session.get_next_program().item.id == "C"
        assert session.get_previous_program().item.id == "A"

    def test_upcoming_starts_with_current(self, session, config, driver) -> None:
        session.load_channel(config)
        driver.advance(12_000)
        assert [p.item.id for p in session.get_upcoming(4)] == ["B", "C", "A", "B"]
        assert session.get_upcoming(0) == []

    def test_window_and_schedule_window(self, session, config) -> None:
        session.load_channel(config)
        assert [p.item.id for p in session.window(T0, T0 + 30_000)] == ["A", "B", "C"]
        sw = session.get_schedule_window(T0, T0 + 60_000)
        assert len(sw.programs) == 6

    def test_window_rejects_inverted_range(self, session, config) -> None:
        session.load_channel(config)
        with pytest.raises(InvalidTimeRangeError):
            session.window(T0 + 1, T0)

    def test_schedule_index(self, session, config) -> None:
        session.load_channel(config)
        assert session.get_schedule_index().loop_duration_ms == 30_000


# ---------------------------------------------------------------------------
# Staleness
# ---------------------------------------------------------------------------


class TestStaleness:
    def test_stale_before_first_sync(self, session, config) -> None:
        assert session.is_schedule_stale()
        session.load_channel(config)
        assert session.is_schedule_stale()

    def test_fresh_after_sync(self, session, config, driver) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        assert not session.is_schedule_stale()
        assert not session.is_schedule_stale(driver.now_ms() + 2_000)
        assert session.is_schedule_stale(driver.now_ms() + 2_001)

    def test_stale_after_pause(self, session, config, driver) -> None:
        session.load_channel(config)
        session.sync_to_current_time()
        session.pause_sync_timer()
        driver.advance(10_000)
        assert session.is_schedule_stale()
