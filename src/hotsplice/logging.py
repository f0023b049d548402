"""Logging setup for the ``hotsplice`` command line.

Reload announcements go to stderr with a one-character level marker. An
optional rotating log file receives everything at DEBUG and above.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import ConfigError, LoggingConfig

FILE_FORMAT = "%(asctime)s [%(threadName)s] %(levelname)-7s %(name)s: %(message)s"

# (threshold, marker, colour); the highest threshold not above the record wins.
_MARKERS: tuple[tuple[int, str, str], ...] = (
    (logging.DEBUG, ".", "\x1b[2m"),
    (logging.INFO, "*", "\x1b[32m"),
    (logging.WARNING, "!", "\x1b[33m"),
    (logging.ERROR, "X", "\x1b[31m"),
)


class ConsoleFormatter(logging.Formatter):
    """Prefix each message with a level marker, coloured on terminals."""

    RESET = "\x1b[0m"

    def __init__(self, use_color: bool) -> None:
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        marker, color = _marker_for(record.levelno)
        message = super().format(record)
        if self.use_color:
            marker = f"{color}{marker}{self.RESET}"
        return f"{marker} {message}"


def _marker_for(levelno: int) -> tuple[str, str]:
    marker, color = " ", ""
    for threshold, candidate, candidate_color in _MARKERS:
        if levelno >= threshold:
            marker, color = candidate, candidate_color
    return marker, color


def configure_logging(logging_config: LoggingConfig) -> None:
    """Install the console handler and, when configured, the log file."""

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter(_is_terminal(console.stream)))
    handlers: list[logging.Handler] = [console]
    if logging_config.file is not None:
        handlers.append(_file_handler(logging_config.file.expanduser()))

    logging.basicConfig(
        level=level_from_string(logging_config.level),
        handlers=handlers,
        force=True,
    )


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _is_terminal(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def level_from_string(level: str) -> int:
    """Translate a level name such as ``"debug"`` to its numeric value."""

    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ConfigError(f"Unknown log level: {level}")
    return value


__all__ = ["configure_logging", "level_from_string", "ConsoleFormatter"]
