"""Core domain models, settings, logging configuration, and shared utilities."""

from linearcast.core.clock import AsyncioTimerDriver, TimerDriver, TimerHandle, VirtualTimerDriver
from linearcast.core.exceptions import (
    ChannelUnavailableError,
    ConfigError,
    EmptyContentError,
    InvalidDurationError,
    InvalidTimeRangeError,
    LinearcastError,
    NotLoadedError,
    RolloverError,
    ScheduleError,
    SessionError,
    TuningError,
)
from linearcast.core.logging_config import JsonFormatter, configure_logging
from linearcast.core.models import ChannelConfig, MediaItem, PlaybackMode, ScheduleConfig
from linearcast.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Clock
    "TimerDriver",
    "TimerHandle",
    "AsyncioTimerDriver",
    "VirtualTimerDriver",
    # Domain models
    "MediaItem",
    "PlaybackMode",
    "ScheduleConfig",
    "ChannelConfig",
    # Settings
    "Settings",
    # Exceptions
    "LinearcastError",
    "ConfigError",
    "ScheduleError",
    "EmptyContentError",
    "InvalidDurationError",
    "InvalidTimeRangeError",
    "SessionError",
    "NotLoadedError",
    "TuningError",
    "ChannelUnavailableError",
    "RolloverError",
]
