"""Linearcast exception taxonomy.

Every custom exception inherits from :class:`LinearcastError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    LinearcastError
    ├── ConfigError
    ├── ScheduleError
    │   ├── EmptyContentError
    │   ├── InvalidDurationError
    │   └── InvalidTimeRangeError
    ├── SessionError
    │   └── NotLoadedError
    └── TuningError
        ├── ChannelUnavailableError
        └── RolloverError

Usage:

    from linearcast.core.exceptions import EmptyContentError

    raise EmptyContentError("ch-7")
"""

from __future__ import annotations

import logging

__all__ = [
    "LinearcastError",
    # Config
    "ConfigError",
    # Schedule
    "ScheduleError",
    "EmptyContentError",
    "InvalidDurationError",
    "InvalidTimeRangeError",
    # Session
    "SessionError",
    "NotLoadedError",
    # Tuning
    "TuningError",
    "ChannelUnavailableError",
    "RolloverError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class LinearcastError(Exception):
    """Root exception for all Linearcast errors.

    Catch this to handle any library-level error uniformly.  Prefer catching
    layer-specific subclasses wherever possible.
    """


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(LinearcastError):
    """Raised when runtime configuration is invalid or incomplete.

    Examples:
        - A composer or tuner is given a zone name that is not in the tz
          database.
        - A negative rollover grace period.
    """


# ---------------------------------------------------------------------------
# Schedule layer
# ---------------------------------------------------------------------------


class ScheduleError(LinearcastError):
    """Base class for structural errors raised while building or querying
    a schedule index.

    These are raised synchronously and never leave a session half-loaded.
    """


class EmptyContentError(ScheduleError):
    """Raised when a schedule is built from an empty content list.

    Args:
        channel_id: Channel whose content list was empty.
    """

    def __init__(self, channel_id: str) -> None:
        self.channel_id = channel_id
        super().__init__(f"Cannot schedule empty channel: {channel_id!r}")


class InvalidDurationError(ScheduleError):
    """Raised when a content item has a zero or negative duration.

    The whole build fails; the offending item is never silently skipped.

    Args:
        item_id: Identifier of the offending item.
        duration_ms: The rejected duration.
    """

    def __init__(self, item_id: str, duration_ms: int) -> None:
        self.item_id = item_id
        self.duration_ms = duration_ms
        super().__init__(
            f"Item {item_id!r} has non-positive duration {duration_ms} ms"
        )


class InvalidTimeRangeError(ScheduleError):
    """Raised when a window query has ``start_time > end_time``.

    Args:
        start_time: Requested window start (epoch ms).
        end_time: Requested window end (epoch ms).
    """

    def __init__(self, start_time: int, end_time: int) -> None:
        self.start_time = start_time
        self.end_time = end_time
        super().__init__(
            f"Invalid time range: start must be before end ({start_time} > {end_time})"
        )


# ---------------------------------------------------------------------------
# Session layer
# ---------------------------------------------------------------------------


class SessionError(LinearcastError):
    """Base class for errors raised by a channel scheduler session."""


class NotLoadedError(SessionError):
    """Raised when a schedule query is made on a session with no channel loaded."""

    def __init__(self) -> None:
        super().__init__("No channel loaded")


# ---------------------------------------------------------------------------
# Tuning layer
# ---------------------------------------------------------------------------


class TuningError(LinearcastError):
    """Base class for errors raised while switching or recomposing channels.

    Args:
        channel_id: Channel the operation targeted.
        message: Human-readable error description.
    """

    def __init__(self, channel_id: str, message: str) -> None:
        self.channel_id = channel_id
        super().__init__(f"[{channel_id}] {message}")


class ChannelUnavailableError(TuningError):
    """Raised when a channel's content cannot be resolved during a switch.

    Covers content-resolver failures and channels whose content list is
    empty after filtering out unplayable items.
    """


class RolloverError(TuningError):
    """Raised inside the daily composer when a rollover cannot be applied.

    Never escapes the composer: it is logged and the rollover is retried on
    the next schedule sync.
    """
