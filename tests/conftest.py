"""Shared pytest fixtures and configuration for the Linearcast test suite.

This file is loaded automatically by pytest before any test module.
"""

from __future__ import annotations

import logging
import os

import pytest
from pydantic_settings import SettingsConfigDict

from linearcast.core import configure_logging
from linearcast.core.clock import VirtualTimerDriver
from linearcast.core.models import ChannelConfig, MediaItem, PlaybackMode, ScheduleConfig
from linearcast.core.settings import Settings

#: 2026-03-14T12:00:00Z, a Saturday well away from any DST change.
NOON_UTC_MS = 1_773_489_600_000
#: 2026-03-14T00:00:00Z.
MIDNIGHT_UTC_MS = 1_773_446_400_000
DAY_MS = 86_400_000


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test."""
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Linearcast env vars and disable ``.env`` loading for a test."""
    prefixes = (
        "SYNC_",
        "MAX_DRIFT",
        "RESYNC_",
        "ROLLOVER_",
        "SCHEDULE_",
        "FAILURE_",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(env_file=None, env_file_encoding="utf-8", extra="ignore"),
    )


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


@pytest.fixture()
def driver() -> VirtualTimerDriver:
    """Virtual clock starting at noon UTC on a fixed day."""
    return VirtualTimerDriver(start_ms=NOON_UTC_MS)


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def _make_items(*durations: int, prefix: str = "item") -> list[MediaItem]:
    return [
        MediaItem(id=f"{prefix}-{i}", title=f"{prefix.title()} {i}", duration_ms=d)
        for i, d in enumerate(durations)
    ]


@pytest.fixture()
def make_items():
    """Factory building items ``item-0``, ``item-1``, ... with given durations."""
    return _make_items


@pytest.fixture()
def abc_items() -> list[MediaItem]:
    """The classic three-item loop: A 10 s, B 5 s, C 15 s (loop 30 s)."""
    return [
        MediaItem(id="A", title="A", duration_ms=10_000),
        MediaItem(id="B", title="B", duration_ms=5_000),
        MediaItem(id="C", title="C", duration_ms=15_000),
    ]


@pytest.fixture()
def abc_config(abc_items: list[MediaItem]) -> ScheduleConfig:
    return ScheduleConfig(channel_id="abc", anchor_time=0, content=abc_items)


@pytest.fixture()
def channel() -> ChannelConfig:
    return ChannelConfig(id="ch-1", name="Channel One", number=1)


@pytest.fixture()
def shuffle_channel() -> ChannelConfig:
    return ChannelConfig(
        id="ch-shuffle",
        name="Shuffle",
        playback_mode=PlaybackMode.SHUFFLE,
        shuffle_seed=1234,
        phase_seed=99,
    )


@pytest.fixture()
def logger() -> logging.Logger:
    return logging.getLogger("tests")
