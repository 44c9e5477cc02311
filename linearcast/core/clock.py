"""Wall-clock and timer abstraction.

Everything in the engine that reads the time or arms a timer goes through a
:class:`TimerDriver`.  Production code uses :class:`AsyncioTimerDriver`
(epoch milliseconds from :func:`time.time_ns`, timers on the running event
loop); tests use :class:`VirtualTimerDriver`, which only moves when told to.

Timers are owned handles: whoever arms one keeps the handle and is the only
party that cancels it.

Typical usage::

    driver = VirtualTimerDriver(start_ms=1_700_000_000_000)
    handle = driver.call_later(1000, on_tick)
    driver.advance(1000)      # on_tick fires here
    handle.cancel()           # no-op once fired
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

__all__ = [
    "TimerHandle",
    "TimerDriver",
    "AsyncioTimerDriver",
    "VirtualTimerDriver",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class TimerHandle(Protocol):
    """A cancelable one-shot timer."""

    def cancel(self) -> None: ...


@runtime_checkable
class TimerDriver(Protocol):
    """Source of epoch-millisecond time and one-shot timers."""

    def now_ms(self) -> int:
        """Current wall-clock time in integer epoch milliseconds."""
        ...

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run *callback* once after *delay_ms* milliseconds."""
        ...


# ---------------------------------------------------------------------------
# Production driver
# ---------------------------------------------------------------------------


class AsyncioTimerDriver:
    """Timers scheduled on an asyncio event loop.

    Args:
        loop: Loop to schedule on.  Defaults to the loop running at the time
            :meth:`call_later` is invoked.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0, delay_ms) / 1000.0, callback)


# ---------------------------------------------------------------------------
# Virtual driver
# ---------------------------------------------------------------------------


class _VirtualTimer:
    __slots__ = ("due_ms", "callback", "cancelled")

    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualTimerDriver:
    """Deterministic driver whose clock advances only on request.

    Timers fire in due order (ties in arming order) while :meth:`advance` or
    :meth:`advance_to` walks the clock forward.  A callback that arms a new
    timer inside the advanced span sees it fire in the same call.

    :meth:`skew` moves the clock without firing anything, which simulates a
    host that was suspended: overdue timers then fire late on the next
    advance, with the clock already past their due time.

    Args:
        start_ms: Initial epoch-millisecond time.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._heap: list[tuple[int, int, _VirtualTimer]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = _VirtualTimer(self._now + max(0, delay_ms), callback)
        heapq.heappush(self._heap, (timer.due_ms, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of armed, not yet cancelled timers."""
        return sum(1 for _, _, t in self._heap if not t.cancelled)

    def advance(self, delta_ms: int) -> None:
        """Move the clock forward by *delta_ms*, firing timers on the way."""
        self.advance_to(self._now + delta_ms)

    def advance_to(self, target_ms: int) -> None:
        """Move the clock to *target_ms*, firing every timer due on the way."""
        if target_ms < self._now:
            raise ValueError(f"Cannot move virtual clock backwards ({target_ms} < {self._now})")
        while self._heap and self._heap[0][0] <= target_ms:
            due, _, timer = heapq.heappop(self._heap)
            if timer.cancelled:
                continue
            self._now = max(self._now, due)
            timer.cancelled = True
            timer.callback()
        self._now = target_ms

    def skew(self, delta_ms: int) -> None:
        """Jump the clock forward by *delta_ms* without firing any timer."""
        self._now += delta_ms
