"""Channel tuner: serialised channel switching and failure-driven skipping.

The tuner is the orchestrating layer that ties one
:class:`~linearcast.orchestrator.session.ChannelSchedulerSession` to a
:class:`~linearcast.orchestrator.failure_guard.PlaybackFailureGuard` and a
per-channel :class:`~linearcast.orchestrator.composer.DailyScheduleComposer`.

Switching
~~~~~~~~~
A switch resolves content, derives today's config, loads it and syncs.  Only
one switch runs at a time: a request that arrives while another is in flight
is rejected (``False``), not queued.  Every switch advances the tuner's
generation token, which retires the previous channel's composer and any
rollover it had pending.  A switch that fails leaves the previous channel on
air with a fresh composer, so it keeps rolling over at midnight.

Failures
~~~~~~~~
The embedding player reports playback outcomes.  Below the guard's threshold
a failure skips to the next program; once the guard trips, auto-skip stops,
the sync timer is paused and the caller is expected to surface a persistent
error.  A successful playback start (or a switch) resets the guard and
resumes the timer.

Typical usage::

    tuner = ChannelTuner(session, resolve_content)
    await tuner.switch_to_channel(channel)

    player.on_error(lambda: tuner.report_playback_failure() or show_error())
    player.on_playing(tuner.report_playback_started)
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Final

from linearcast.core import events
from linearcast.core.exceptions import ChannelUnavailableError, ScheduleError
from linearcast.core.logging_config import CHANNEL_ID_CTX
from linearcast.core.models import ChannelConfig
from linearcast.core.settings import Settings
from linearcast.orchestrator.composer import (
    ContentResolver,
    DailyScheduleComposer,
    RolloverHook,
    resolve_timezone,
)
from linearcast.orchestrator.failure_guard import PlaybackFailureGuard
from linearcast.orchestrator.generation import Generation
from linearcast.orchestrator.session import ChannelSchedulerSession
from linearcast.scheduling.index import filter_playable

__all__ = ["ChannelTuner"]

logger = logging.getLogger(__name__)

_DEFAULT_GRACE_MS: Final[int] = 50


class ChannelTuner:
    """Owns the live channel of one session.

    Args:
        session: The session to load channels into.
        content_resolver: Coroutine function returning a channel's content.
        guard: Failure guard; a default one is created if omitted.
        tz: Zone for day boundaries (``None`` = host local time).
        grace_ms: Deferred-rollover grace passed to each composer.
        on_rollover: Hook awaited after each applied daily rollover.
        generation: Generation counter shared with guide builds, if any.
    """

    def __init__(
        self,
        session: ChannelSchedulerSession,
        content_resolver: ContentResolver,
        *,
        guard: PlaybackFailureGuard | None = None,
        tz: tzinfo | str | None = None,
        grace_ms: int = _DEFAULT_GRACE_MS,
        on_rollover: RolloverHook | None = None,
        generation: Generation | None = None,
    ) -> None:
        self._session = session
        self._content_resolver = content_resolver
        self._guard = guard or PlaybackFailureGuard()
        self._tz = resolve_timezone(tz)
        self._grace_ms = grace_ms
        self._on_rollover = on_rollover
        self._generation = generation or Generation()

        self._channel: ChannelConfig | None = None
        self._composer: DailyScheduleComposer | None = None
        self._switching = False
        self._paused_by_guard = False
        self._paused_by_lifecycle = False

    @classmethod
    def from_settings(
        cls,
        session: ChannelSchedulerSession,
        content_resolver: ContentResolver,
        settings: Settings,
        **kwargs,
    ) -> ChannelTuner:
        return cls(
            session,
            content_resolver,
            guard=settings.build_failure_guard(),
            tz=settings.tzinfo,
            grace_ms=settings.rollover_grace_ms,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def session(self) -> ChannelSchedulerSession:
        return self._session

    @property
    def guard(self) -> PlaybackFailureGuard:
        return self._guard

    @property
    def generation(self) -> Generation:
        return self._generation

    @property
    def current_channel(self) -> ChannelConfig | None:
        return self._channel

    @property
    def composer(self) -> DailyScheduleComposer | None:
        return self._composer

    @property
    def is_switching(self) -> bool:
        return self._switching

    # ------------------------------------------------------------------
    # Switching
    # ------------------------------------------------------------------

    async def switch_to_channel(self, channel: ChannelConfig) -> bool:
        """Tune the session to *channel*.

        Returns:
            ``True`` once the channel is loaded and synced.  ``False`` if the
            request was rejected because another switch is in flight, or if
            the tuner moved on (closed) while content was being resolved.

        Raises:
            ChannelUnavailableError: If content resolution fails or no
                playable content remains.  The previous channel stays loaded
                and keeps rolling over at midnight.
        """
        if self._switching:
            logger.warning(
                "Switch to %s rejected: another switch is in progress.",
                channel.id,
                extra={"event": events.SWITCH_REJECTED},
            )
            return False

        self._switching = True
        ctx_token = CHANNEL_ID_CTX.set(channel.id)
        try:
            return await self._switch(channel)
        finally:
            self._switching = False
            CHANNEL_ID_CTX.reset(ctx_token)

    async def _switch(self, channel: ChannelConfig) -> bool:
        token = self._generation.advance()
        self._guard.reset()
        previous = self._composer
        await self._retire_composer()

        try:
            return await self._tune(channel, token)
        except ChannelUnavailableError:
            self._keep_previous(previous, token)
            raise

    async def _tune(self, channel: ChannelConfig, token: int) -> bool:
        try:
            resolved = await self._content_resolver(channel)
        except Exception as exc:
            logger.error(
                "Switch to %s failed: content resolution raised %s",
                channel.id,
                exc,
                extra={"event": events.SWITCH_FAILED},
            )
            raise ChannelUnavailableError(channel.id, f"content resolution failed: {exc}") from exc

        if not self._generation.is_current(token):
            logger.debug(
                "Discarding content for %s: tuner moved on.",
                channel.id,
                extra={"event": events.SWITCH_STALE},
            )
            return False

        composer = DailyScheduleComposer(
            self._session,
            channel,
            self._content_resolver,
            tz=self._tz,
            grace_ms=self._grace_ms,
            generation=self._generation,
            on_rollover=self._on_rollover,
        )
        now = self._session.driver.now_ms()
        config = composer.derive(filter_playable(resolved), now)

        try:
            self._session.load_channel(config)
        except ScheduleError as exc:
            logger.error(
                "Switch to %s failed: %s",
                channel.id,
                exc,
                extra={"event": events.SWITCH_FAILED},
            )
            raise ChannelUnavailableError(channel.id, str(exc)) from exc

        composer.adopt(now)
        composer.attach()
        self._composer = composer
        self._channel = channel

        if self._paused_by_lifecycle:
            self._session.pause_sync_timer()
        elif self._paused_by_guard:
            self._session.resume_sync_timer()
        self._paused_by_guard = False

        self._session.sync_to_current_time()
        logger.info(
            "Tuned to %s (%d items, %s).",
            channel.id,
            len(config.content),
            config.playback_mode,
            extra={"event": events.SWITCH_COMPLETE},
        )
        return True

    def _keep_previous(self, previous: DailyScheduleComposer | None, token: int) -> None:
        """Re-arm rollovers for the channel still on air after a failed switch."""
        if previous is None or not self._session.is_loaded or not self._generation.is_current(token):
            return
        composer = previous.successor()
        composer.attach()
        self._composer = composer
        logger.info(
            "Keeping %s on air after failed switch.",
            previous.channel.id,
            extra={"event": events.SWITCH_REVERTED},
        )

    # ------------------------------------------------------------------
    # Playback outcomes
    # ------------------------------------------------------------------

    def report_playback_failure(self) -> bool:
        """Record a failure and skip ahead while the guard allows it.

        Returns:
            ``True`` if the session skipped to the next program.  ``False``
            when nothing is loaded or the guard has tripped, in which case the
            caller should surface a persistent error.
        """
        if not self._session.is_loaded:
            return False
        if self._guard.record_failure():
            if not self._paused_by_guard:
                self._paused_by_guard = True
                self._session.pause_sync_timer()
            return False
        self._session.skip_to_next()
        return True

    def report_playback_started(self) -> None:
        """Clear the failure guard and undo any pause it caused."""
        self._guard.reset()
        if self._paused_by_guard:
            self._paused_by_guard = False
            if not self._paused_by_lifecycle:
                self._session.resume_sync_timer()
                self._session.sync_to_current_time()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """App moved to the background."""
        self._paused_by_lifecycle = True
        self._session.pause_sync_timer()

    def resume(self) -> None:
        """App returned to the foreground; reconcile time spent paused."""
        self._paused_by_lifecycle = False
        if self._paused_by_guard:
            return
        self._session.resume_sync_timer()
        self._session.sync_to_current_time()

    async def aclose(self) -> None:
        """Retire the composer and unload the session."""
        self._generation.advance()
        await self._retire_composer()
        self._session.unload_channel()
        self._channel = None

    async def _retire_composer(self) -> None:
        composer, self._composer = self._composer, None
        if composer is not None:
            await composer.aclose()
