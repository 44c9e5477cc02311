"""Structured log event name constants for the Linearcast engine.

Every key transition in a session, composer or tuner emits a log record with
an ``event`` field (passed via ``extra={"event": events.X}``).  In
``LOG_FORMAT=json`` mode the value surfaces as ``extra.event``; in text mode
the message is self-describing and the event is not interpolated.

Usage example::

    import logging
    from linearcast.core import events

    logger = logging.getLogger(__name__)

    logger.info("Channel loaded", extra={"event": events.CHANNEL_LOADED})
"""

from __future__ import annotations

__all__ = [
    # Session lifecycle
    "CHANNEL_LOADED",
    "CHANNEL_UNLOADED",
    "PROGRAM_START",
    "PROGRAM_SKIP",
    "SYNC_HARD_RESYNC",
    "SYNC_TIMER_PAUSED",
    "SYNC_TIMER_RESUMED",
    "HANDLER_ERROR",
    # Daily rollover
    "ROLLOVER_DEFERRED",
    "ROLLOVER_APPLIED",
    "ROLLOVER_FAILED",
    "ROLLOVER_STALE",
    "ROLLOVER_HOOK_FAILED",
    # Failure guard
    "FAILURE_RECORDED",
    "FAILURE_GUARD_TRIPPED",
    "FAILURE_GUARD_RESET",
    # Channel switching
    "SWITCH_REJECTED",
    "SWITCH_COMPLETE",
    "SWITCH_FAILED",
    "SWITCH_STALE",
    "SWITCH_REVERTED",
    # Guide
    "GUIDE_BUILT",
    "GUIDE_CHANNEL_ERROR",
    "GUIDE_STALE",
]

# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------

#: A schedule index was built and atomically installed into a session.
CHANNEL_LOADED: str = "CHANNEL_LOADED"

#: A session was unloaded and its timer cancelled.
CHANNEL_UNLOADED: str = "CHANNEL_UNLOADED"

#: A new airing became current and ``program_start`` was emitted.
PROGRAM_START: str = "PROGRAM_START"

#: The schedule was re-anchored by a skip or jump.
PROGRAM_SKIP: str = "PROGRAM_SKIP"

#: A sync tick arrived later than the resync threshold.
SYNC_HARD_RESYNC: str = "SYNC_HARD_RESYNC"

#: The periodic sync timer was paused (lifecycle or failure guard).
SYNC_TIMER_PAUSED: str = "SYNC_TIMER_PAUSED"

#: The periodic sync timer was resumed.
SYNC_TIMER_RESUMED: str = "SYNC_TIMER_RESUMED"

#: A notification handler raised; remaining handlers still ran.
HANDLER_ERROR: str = "HANDLER_ERROR"

# ---------------------------------------------------------------------------
# Daily rollover
# ---------------------------------------------------------------------------

#: The day changed mid-program; rollover armed for the program's end.
ROLLOVER_DEFERRED: str = "ROLLOVER_DEFERRED"

#: The next day's schedule was loaded.
ROLLOVER_APPLIED: str = "ROLLOVER_APPLIED"

#: A rollover attempt failed; it will be retried on the next sync.
ROLLOVER_FAILED: str = "ROLLOVER_FAILED"

#: A deferred rollover fired after its generation was superseded.
ROLLOVER_STALE: str = "ROLLOVER_STALE"

#: The rollover hook raised after the new day was already loaded.
ROLLOVER_HOOK_FAILED: str = "ROLLOVER_HOOK_FAILED"

# ---------------------------------------------------------------------------
# Failure guard
# ---------------------------------------------------------------------------

#: A playback failure was counted inside the sliding window.
FAILURE_RECORDED: str = "FAILURE_RECORDED"

#: Too many failures inside the window; auto-skip disabled.
FAILURE_GUARD_TRIPPED: str = "FAILURE_GUARD_TRIPPED"

#: Playback succeeded or the channel changed; the guard was cleared.
FAILURE_GUARD_RESET: str = "FAILURE_GUARD_RESET"

# ---------------------------------------------------------------------------
# Channel switching
# ---------------------------------------------------------------------------

#: A switch request arrived while another was in flight; rejected.
SWITCH_REJECTED: str = "SWITCH_REJECTED"

#: A channel switch finished loading and syncing.
SWITCH_COMPLETE: str = "SWITCH_COMPLETE"

#: Content resolution or loading failed during a switch.
SWITCH_FAILED: str = "SWITCH_FAILED"

#: A switch's content arrived after the tuner moved on; discarded.
SWITCH_STALE: str = "SWITCH_STALE"

#: A failed switch left the previous channel on air; its rollovers were re-armed.
SWITCH_REVERTED: str = "SWITCH_REVERTED"

# ---------------------------------------------------------------------------
# Guide
# ---------------------------------------------------------------------------

#: A multi-channel guide window was computed.
GUIDE_BUILT: str = "GUIDE_BUILT"

#: One channel's guide row failed; other rows are unaffected.
GUIDE_CHANNEL_ERROR: str = "GUIDE_CHANNEL_ERROR"

#: A guide build finished after its generation was superseded; discarded.
GUIDE_STALE: str = "GUIDE_STALE"
