"""Playback failure guard.

Stops the tuner from skipping endlessly through a channel whose every item
fails to play.  Each failure is timestamped; once ``trip_count`` failures
fall inside a sliding window of ``window_ms`` the guard **trips** and
auto-skip is disabled until a successful playback (or a channel change)
resets it.

State machine
~~~~~~~~~~~~~
::

    ARMED ──(trip_count failures within window_ms)──▶ TRIPPED
      ▲                                                  │
      └───────────────(reset: playback ok / switch)──────┘

While TRIPPED, further failures are ignored.  A failure exactly
``window_ms`` older than the newest one still counts.

Thread-safety
~~~~~~~~~~~~~
Plain in-process object with no locking; intended for a single event loop.

Typical usage::

    guard = PlaybackFailureGuard()

    if not guard.record_failure():
        session.skip_to_next()
    else:
        session.pause_sync_timer()
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from typing import Final

from linearcast.core import events

__all__ = ["PlaybackFailureGuard"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Default number of failures inside the window that trips the guard.
_DEFAULT_TRIP_COUNT: Final[int] = 3

#: Default sliding-window length in milliseconds.
_DEFAULT_WINDOW_MS: Final[int] = 2000


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


class PlaybackFailureGuard:
    """Sliding-window failure counter.

    Args:
        trip_count: Failures inside the window required to trip.
        window_ms: Window length in milliseconds.
        clock: Callable returning a millisecond timestamp.  Defaults to a
            monotonic clock.  Override in tests for deterministic behaviour.
    """

    def __init__(
        self,
        trip_count: int = _DEFAULT_TRIP_COUNT,
        window_ms: int = _DEFAULT_WINDOW_MS,
        *,
        clock: Callable[[], int] | None = None,
    ) -> None:
        if trip_count < 1:
            raise ValueError(f"trip_count must be >= 1, got {trip_count}")
        if window_ms < 0:
            raise ValueError(f"window_ms must be >= 0, got {window_ms}")
        self._trip_count = trip_count
        self._window_ms = window_ms
        self._clock = clock or _monotonic_ms
        self._failures: deque[int] = deque()
        self._tripped = False

    @property
    def failure_count(self) -> int:
        """Failures currently inside the window (as of the last record)."""
        return len(self._failures)

    def is_tripped(self) -> bool:
        return self._tripped

    def record_failure(self) -> bool:
        """Record one playback failure.

        Returns:
            ``True`` if the guard is tripped after this call.
        """
        if self._tripped:
            return True

        now = self._clock()
        while self._failures and now - self._failures[0] > self._window_ms:
            self._failures.popleft()
        self._failures.append(now)

        logger.debug(
            "Playback failure %d/%d within %d ms.",
            len(self._failures),
            self._trip_count,
            self._window_ms,
            extra={"event": events.FAILURE_RECORDED},
        )

        if len(self._failures) >= self._trip_count:
            self._tripped = True
            logger.warning(
                "Failure guard tripped: %d failures within %d ms, auto-skip disabled.",
                len(self._failures),
                self._window_ms,
                extra={"event": events.FAILURE_GUARD_TRIPPED},
            )
        return self._tripped

    def reset(self) -> None:
        """Clear all recorded failures and the tripped flag."""
        if self._tripped or self._failures:
            logger.debug("Failure guard reset.", extra={"event": events.FAILURE_GUARD_RESET})
        self._failures.clear()
        self._tripped = False
