"""Unit tests for the playback failure guard.

Tests cover:
- Closed (armed) state — failures below the threshold do not trip.
- Tripping — ``trip_count`` failures inside the window.
- Sliding window — stale failures are pruned; the boundary is inclusive.
- Tripped state — further failures are ignored; ``reset`` re-arms.
- Construction validation.
"""

from __future__ import annotations

import pytest

from linearcast.orchestrator.failure_guard import PlaybackFailureGuard


class _FakeClock:
    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now


@pytest.fixture()
def clock() -> _FakeClock:
    return _FakeClock(start=10_000)


@pytest.fixture()
def guard(clock: _FakeClock) -> PlaybackFailureGuard:
    return PlaybackFailureGuard(trip_count=3, window_ms=2000, clock=clock)


class TestArmed:
    def test_initial_state(self, guard: PlaybackFailureGuard) -> None:
        assert not guard.is_tripped()
        assert guard.failure_count == 0

    def test_below_threshold_does_not_trip(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        assert guard.record_failure() is False
        clock.now += 500
        assert guard.record_failure() is False
        assert guard.failure_count == 2
        assert not guard.is_tripped()


class TestTripping:
    def test_trips_on_third_failure_within_window(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        guard.record_failure()
        clock.now += 100
        guard.record_failure()
        clock.now += 100
        assert guard.record_failure() is True
        assert guard.is_tripped()

    def test_window_boundary_is_inclusive(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        guard.record_failure()
        clock.now += 1000
        guard.record_failure()
        clock.now += 1000  # first failure exactly window_ms old
        assert guard.record_failure() is True

    def test_old_failures_are_pruned(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        guard.record_failure()
        clock.now += 1500
        guard.record_failure()
        clock.now += 501  # first failure now 2001 ms old
        assert guard.record_failure() is False
        assert guard.failure_count == 2

    def test_slow_failures_never_trip(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        for _ in range(20):
            assert guard.record_failure() is False
            clock.now += 1001
        assert not guard.is_tripped()

    def test_trip_count_one(self, clock: _FakeClock) -> None:
        guard = PlaybackFailureGuard(trip_count=1, window_ms=0, clock=clock)
        assert guard.record_failure() is True


class TestTripped:
    def test_further_failures_are_ignored(self, guard: PlaybackFailureGuard, clock: _FakeClock) -> None:
        for _ in range(3):
            guard.record_failure()
        count = guard.failure_count
        clock.now += 10_000
        assert guard.record_failure() is True
        assert guard.failure_count == count

    def test_reset_rearms(self, guard: PlaybackFailureGuard) -> None:
        for _ in range(3):
            guard.record_failure()
        guard.reset()
        assert not guard.is_tripped()
        assert guard.failure_count == 0
        assert guard.record_failure() is False

    def test_reset_when_clean_is_noop(self, guard: PlaybackFailureGuard) -> None:
        guard.reset()
        assert not guard.is_tripped()


class TestConstruction:
    @pytest.mark.parametrize("trip_count", [0, -1])
    def test_rejects_bad_trip_count(self, trip_count: int) -> None:
        with pytest.raises(ValueError, match="trip_count"):
            PlaybackFailureGuard(trip_count=trip_count)

    def test_rejects_negative_window(self) -> None:
        with pytest.raises(ValueError, match="window_ms"):
            PlaybackFailureGuard(window_ms=-1)

    def test_default_clock_is_usable(self) -> None:
        guard = PlaybackFailureGuard()
        assert guard.record_failure() is False
