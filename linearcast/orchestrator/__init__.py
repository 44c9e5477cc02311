"""Live scheduling: session, daily rollover, failure guard, tuner and guide.

Public API
----------
* :class:`~linearcast.orchestrator.session.ChannelSchedulerSession` — the
  stateful single-channel scheduler with its sync timer and notifications.
* :class:`~linearcast.orchestrator.composer.DailyScheduleComposer` — per-day
  schedule derivation and midnight rollover without cutting programs.
* :class:`~linearcast.orchestrator.failure_guard.PlaybackFailureGuard` —
  sliding-window breaker for auto-skip on playback failures.
* :class:`~linearcast.orchestrator.tuner.ChannelTuner` — serialised channel
  switching wired to the guard and composer.
* :func:`~linearcast.orchestrator.guide.build_guide` — concurrent guide
  pre-computation for many channels.
"""

from linearcast.orchestrator.composer import (
    DailyScheduleComposer,
    derive_daily_config,
    local_day_key,
    local_midnight_ms,
    phase_offset_ms,
)
from linearcast.orchestrator.failure_guard import PlaybackFailureGuard
from linearcast.orchestrator.generation import Generation
from linearcast.orchestrator.guide import GuideResult, GuideRow, build_channel_guide, build_guide
from linearcast.orchestrator.notifications import NotificationHub, SessionEvent
from linearcast.orchestrator.session import ChannelSchedulerSession, SchedulerState
from linearcast.orchestrator.tuner import ChannelTuner

__all__ = [
    # Session
    "ChannelSchedulerSession",
    "SchedulerState",
    "NotificationHub",
    "SessionEvent",
    "Generation",
    # Daily composition
    "DailyScheduleComposer",
    "derive_daily_config",
    "local_day_key",
    "local_midnight_ms",
    "phase_offset_ms",
    # Failure guard
    "PlaybackFailureGuard",
    # Tuning
    "ChannelTuner",
    # Guide
    "GuideRow",
    "GuideResult",
    "build_channel_guide",
    "build_guide",
]
