"""Structured logging for tickethub.

Modules log through `get_logger(__name__)` and pass structured fields
with ``extra=``; `StructuredFormatter` renders those fields after the
message as ``key=value`` pairs::

    2024-01-01 10:00:00 | INFO     | tickethub.providers.jira | Fetched Jira ticket | ticket_id=PROJ-1 | duration_ms=84

Library code never installs handlers. Entry points (the CLI, or a host
application) call `setup_logging()` once.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import IO, Any

from tickethub.constants import LOG_DATE_FORMAT, LOG_FORMAT

# Attributes every LogRecord carries, plus the ones Formatter.format adds
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore")


class StructuredFormatter(logging.Formatter):
    """Formatter that appends ``extra=`` fields to the rendered line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = [
            f"{key}={value}"
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        ]
        if not fields:
            return line
        return " | ".join([line, *fields])


def setup_logging(
    level: int = logging.INFO,
    *,
    include_timestamp: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """Route all logging to one handler using `StructuredFormatter`.

    Replaces any handlers already on the root logger, so calling it
    twice does not duplicate output.

    Args:
        level: Level for the root and ``tickethub`` loggers.
        include_timestamp: Prefix lines with the time.
        stream: Where to write, stderr by default.
    """
    fmt = LOG_FORMAT if include_timestamp else LOG_FORMAT.split(" | ", 1)[1]
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter(fmt, datefmt=LOG_DATE_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    logging.getLogger("tickethub").setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)


class LogContext:
    """Stamp fields on every record created inside the ``with`` block.

    Usage:
        with LogContext(logger, provider="slack", channel="C123"):
            logger.warning("Skipping channel")
            # -> ... | Skipping channel | provider=slack | channel=C123

    Contexts nest; leaving one restores the record factory that was
    active when it was entered.
    """

    def __init__(self, logger: logging.Logger, **fields: Any) -> None:
        self.logger = logger
        self.fields = fields
        self._previous: Callable[..., logging.LogRecord] | None = None

    def __enter__(self) -> LogContext:
        previous = logging.getLogRecordFactory()
        fields = self.fields

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.__dict__.update(fields)
            return record

        self._previous = previous
        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._previous is not None:
            logging.setLogRecordFactory(self._previous)
            self._previous = None
