"""Monotonic generation token used to discard stale asynchronous results.

A task captures ``generation.current`` before it awaits anything; when it
resumes it checks :meth:`Generation.is_current` and drops its result if the
owner has moved on (channel switched, composer closed, guide rebuilt).
"""

from __future__ import annotations

__all__ = ["Generation"]


class Generation:
    """Integer counter where only the latest value is current."""

    __slots__ = ("_value",)

    def __init__(self) -> None:
        self._value = 0

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        """Invalidate every outstanding token and return the new one."""
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value

    def __repr__(self) -> str:
        return f"Generation({self._value})"
