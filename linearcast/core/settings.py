"""Linearcast runtime settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.  The field name is the
lowercase version of the env-var name (e.g. ``SYNC_INTERVAL_MS`` →
``sync_interval_ms``).

Typical usage::

    from linearcast.core.settings import Settings

    settings = Settings()
    guard = settings.build_failure_guard()
    tz = settings.tzinfo
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from linearcast.orchestrator.failure_guard import PlaybackFailureGuard

__all__ = ["Settings"]

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Timing, failure-guard and logging configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Sync timer
    # ------------------------------------------------------------------
    sync_interval_ms: int = Field(
        default=1000,
        ge=1,
        description="Period of the session's sync timer.",
    )
    max_drift_ms: int = Field(
        default=500,
        ge=0,
        description="Drift at which the next tick is pulled forward by up to 100 ms.",
    )
    resync_threshold_ms: int = Field(
        default=2000,
        ge=1,
        description="Drift above which a tick is treated as a hard resync.",
    )

    # ------------------------------------------------------------------
    # Daily rollover
    # ------------------------------------------------------------------
    rollover_grace_ms: int = Field(
        default=50,
        ge=0,
        description="Delay past a program's end before a deferred rollover fires.",
    )
    schedule_timezone: str = Field(
        default="",
        description="IANA zone used for day boundaries; empty means host local time.",
    )

    # ------------------------------------------------------------------
    # Failure guard
    # ------------------------------------------------------------------
    failure_window_ms: int = Field(
        default=2000,
        ge=1,
        description="Sliding window for counting playback failures.",
    )
    failure_trip_count: int = Field(
        default=3,
        ge=1,
        description="Failures inside the window that disable auto-skip.",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("schedule_timezone")
    @classmethod
    def _validate_timezone(cls, v: str) -> str:
        v = v.strip()
        if not v:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"schedule_timezone {v!r} is not a known IANA zone") from exc
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    # ------------------------------------------------------------------
    # Model validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def _validate_drift_bounds(self) -> Settings:
        """Ensure the soft drift bound does not exceed the hard resync bound."""
        if self.max_drift_ms > self.resync_threshold_ms:
            raise ValueError(
                f"max_drift_ms ({self.max_drift_ms}) "
                f"> resync_threshold_ms ({self.resync_threshold_ms})"
            )
        return self

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    @property
    def tzinfo(self) -> tzinfo | None:
        """Zone for day boundaries, or ``None`` for host local time."""
        return ZoneInfo(self.schedule_timezone) if self.schedule_timezone else None

    def build_failure_guard(self) -> PlaybackFailureGuard:
        """Build a :class:`PlaybackFailureGuard` from the failure settings."""
        from linearcast.orchestrator.failure_guard import PlaybackFailureGuard

        return PlaybackFailureGuard(
            trip_count=self.failure_trip_count,
            window_ms=self.failure_window_ms,
        )
