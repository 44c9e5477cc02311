"""Linearcast logging configuration.

The engine is a library, so nothing here runs on import.  Host applications
(or the test-suite) call :func:`configure_logging` once; every module defines
its own logger at module scope:

    import logging
    logger = logging.getLogger(__name__)

Supported environment variables (read at call time):
    LOG_LEVEL   DEBUG | INFO | WARNING | ERROR   (default: INFO)
    LOG_FORMAT  text | json                      (default: text)
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = ["configure_logging", "JsonFormatter", "CHANNEL_ID_CTX", "ChannelContextFilter"]

# ---------------------------------------------------------------------------
# Channel-scoped context variable
# ---------------------------------------------------------------------------

#: Context variable holding the channel a log record relates to.  The tuner
#: and composer set it around their work; tasks they spawn inherit it.
#: Defaults to ``"-"`` outside any channel.
CHANNEL_ID_CTX: ContextVar[str] = ContextVar("channel_id", default="-")

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_FORMATS = {"text", "json"}

# ``%(channel_id)s`` is injected by :class:`ChannelContextFilter`.
_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(channel_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ChannelContextFilter(logging.Filter):
    """Copy :data:`CHANNEL_ID_CTX` onto every record as ``record.channel_id``.

    Installed on the handler by :func:`configure_logging`, so it runs after
    propagation and just before formatting.  Never suppresses records.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.channel_id = CHANNEL_ID_CTX.get("-")
        return True


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Configure the root logger.

    Args:
        level: Logging level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
            Falls back to ``$LOG_LEVEL``, then "INFO".
        fmt: Output format ("text" or "json").
            Falls back to ``$LOG_FORMAT``, then "text".
        force: Replace existing root handlers.  Without it an already
            configured root logger only has its level updated.

    Raises:
        ValueError: If *level* or *fmt* contain an unrecognised value.
    """
    resolved_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    resolved_fmt = (fmt or os.environ.get("LOG_FORMAT", "text")).lower()

    if resolved_level not in _VALID_LEVELS:
        raise ValueError(
            f"Unknown LOG_LEVEL {resolved_level!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_LEVELS))}"
        )
    if resolved_fmt not in _VALID_FORMATS:
        raise ValueError(
            f"Unknown LOG_FORMAT {resolved_fmt!r}. "
            f"Must be one of: {', '.join(sorted(_VALID_FORMATS))}"
        )

    root = logging.getLogger()

    if root.handlers and not force:
        root.setLevel(resolved_level)
        return

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(resolved_level)
    handler.addFilter(ChannelContextFilter())

    if resolved_fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT))

    root.setLevel(resolved_level)
    root.addHandler(handler)

    if resolved_level != "DEBUG":
        logging.getLogger("asyncio").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Emit one JSON object per log record.

    Output shape::

        {
            "ts":      "2026-02-28T12:34:56.789Z",
            "level":   "INFO",
            "logger":  "linearcast.orchestrator.session",
            "message": "Channel loaded",
            "extra":   {"event": "CHANNEL_LOADED", "channel_id": "ch-1"}
        }

    ``exc_info`` and ``stack_info`` keys are added only when present.
    """

    # LogRecord attributes that are not surfaced under "extra".
    _RECORD_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "taskName",
            "thread",
            "threadName",
        }
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        """Serialise *record* to a JSON string."""
        record.message = record.getMessage()
        stamp = datetime.fromtimestamp(record.created, tz=UTC)

        payload: dict[str, Any] = {
            "ts": stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "extra": {
                k: v for k, v in record.__dict__.items() if k not in self._RECORD_ATTRS
            },
        }

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exc_info"] = record.exc_text
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)

        # default=str covers models and enums passed through ``extra``.
        return json.dumps(payload, default=str)
