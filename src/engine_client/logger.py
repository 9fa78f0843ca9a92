"""Logging wrapper shared by every client component."""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

LogLevel = Literal["trace", "debug", "info", "warn", "error"]

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

DEFAULT_LOGGER_NAME = "engine_client"


class LoggerProtocol(Protocol):
    def log(self, level: int, msg: str, *args: Any, **kwargs: Any) -> None: ...


_PYTHON_LEVELS: dict[LogLevel, int] = {
    "trace": TRACE_LEVEL,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class BoundLogger:
    """Wraps a logging.Logger (or anything with ``log``) behind a minimum level.

    Components never talk to :mod:`logging` directly; they receive a
    BoundLogger from the client and derive their own with :meth:`child`, so a
    caller-supplied logger and level apply to the whole stack.
    """

    def __init__(
        self,
        logger: LoggerProtocol | None = None,
        *,
        level: LogLevel = "info",
    ) -> None:
        self._logger = logger if logger is not None else logging.getLogger(DEFAULT_LOGGER_NAME)
        self._level = level

    @property
    def level(self) -> LogLevel:
        return self._level

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("trace", msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("debug", msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("info", msg, *args, **kwargs)

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("warn", msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log("error", msg, *args, **kwargs)

    def child(self, name: str) -> "BoundLogger":
        """Create a child logger anchored to the same Python logger."""
        if isinstance(self._logger, logging.Logger):
            return BoundLogger(self._logger.getChild(name), level=self._level)
        return BoundLogger(self._logger, level=self._level)

    def _log(self, level: LogLevel, msg: str, *args: Any, **kwargs: Any) -> None:
        if _PYTHON_LEVELS[level] < _PYTHON_LEVELS[self._level]:
            return
        self._logger.log(_PYTHON_LEVELS[level], msg, *args, **kwargs)


def create_logger(*, logger: Any | None = None, level: LogLevel = "info") -> BoundLogger:
    if isinstance(logger, BoundLogger):
        return logger
    return BoundLogger(logger, level=level)


__all__ = ["BoundLogger", "LogLevel", "LoggerProtocol", "create_logger"]
