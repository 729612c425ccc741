"""Package logger and the calibration trace sinks.

Library code logs under ``vanilla_local_vol.*`` and never configures output
itself; the root package logger only carries a ``NullHandler``. The per-model
diagnostic trace is separate: it is collected by a :class:`TraceSink` when
``enable_logging`` is set and mirrored to ``vanilla_local_vol.trace`` at DEBUG.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

ROOT_LOGGER_NAME = "vanilla_local_vol"
_NULL_HANDLER = logging.NullHandler()


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Logger ``name`` with the shared null handler attached once."""
    logger = logging.getLogger(name)
    if _NULL_HANDLER not in logger.handlers:
        logger.addHandler(_NULL_HANDLER)
    return logger


def configure_logging(
    level: int = logging.INFO,
    *,
    handlers: Iterable[logging.Handler] | None = None,
    format_string: str | None = None,
) -> None:
    """Set the package log level and attach output handlers.

    Parameters
    ----------
    level : int
        Level of the ``vanilla_local_vol`` logger.
    handlers : iterable of logging.Handler, optional
        Handlers to attach. Nothing is attached when omitted.
    format_string : str, optional
        Format applied to each handler in ``handlers``.
    """
    logger = get_logger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    formatter = logging.Formatter(format_string) if format_string else None
    for handler in handlers or ():
        if formatter is not None:
            handler.setFormatter(formatter)
        if handler not in logger.handlers:
            logger.addHandler(handler)


@runtime_checkable
class TraceSink(Protocol):
    """Append-only receiver of calibration diagnostics."""

    @property
    def enabled(self) -> bool: ...

    def record(self, message: str) -> None: ...


class NullTrace:
    """Sink that drops everything; callers skip message formatting."""

    enabled = False

    def record(self, message: str) -> None:
        return None


class ListTrace:
    """Collect trace records in memory and mirror them to ``logger`` at DEBUG."""

    enabled = True

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._records: list[str] = []
        self._logger = logger if logger is not None else get_logger(
            f"{ROOT_LOGGER_NAME}.trace"
        )

    def record(self, message: str) -> None:
        self._records.append(message)
        self._logger.debug(message)

    @property
    def records(self) -> tuple[str, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)


def make_trace(enabled: bool) -> TraceSink:
    return ListTrace() if enabled else NullTrace()


__all__ = [
    "ROOT_LOGGER_NAME",
    "ListTrace",
    "NullTrace",
    "TraceSink",
    "configure_logging",
    "get_logger",
    "make_trace",
]
