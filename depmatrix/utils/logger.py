"""
Logging utilities for depmatrix.

All library modules log through loggers in the ``depmatrix`` namespace.
Nothing is emitted until :func:`setup_logging` installs a handler, which
the CLI does once per invocation based on ``-v`` flags. Third-party HTTP
loggers are kept quiet unless debug output was requested.
"""

from __future__ import annotations

import os
import sys
import time
import logging
import threading
from typing import IO, Iterator, Optional
from contextlib import contextmanager

from depmatrix.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

ROOT_LOGGER_NAME = "depmatrix"

#: Third-party loggers that are noisy at INFO level.
_CHATTY_LOGGERS = ("httpx", "httpcore", "hpack")

_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps the level name in ANSI color codes."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if not (self.use_color and _stream_supports_color()):
            return super().format(record)

        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # Restore the record afterwards; other handlers may share it.
        original = record.levelname
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _stream_supports_color() -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stderr.isatty()
    except (AttributeError, OSError):
        return False


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Install the depmatrix log handler.

    Safe to call repeatedly; each call replaces the previous handler.

    Args:
        level: Logging level for the ``depmatrix`` namespace.
        verbose: Use the timestamped format including logger names.
        stream: Output stream; defaults to ``sys.stderr``.
    """
    with _lock:
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.handlers.clear()
        root_logger.setLevel(level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setLevel(level)
        handler.setFormatter(
            ColoredFormatter(
                LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
                datefmt=LOG_DATE_FORMAT,
                use_color=not os.environ.get("NO_COLOR"),
            )
        )

        root_logger.addHandler(handler)
        root_logger.propagate = False

        third_party_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(third_party_level)



def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger inside the ``depmatrix`` hierarchy.

    ``get_logger("cache")`` and ``get_logger("depmatrix.cache")`` return
    the same logger.
    """
    if not name or name == ROOT_LOGGER_NAME:
        logger = logging.getLogger(ROOT_LOGGER_NAME)
    elif name.startswith(ROOT_LOGGER_NAME + "."):
        logger = logging.getLogger(name)
    else:
        logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")

    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


@contextmanager
def log_duration(logger: logging.Logger, label: str) -> Iterator[None]:
    """Log how long the enclosed block took, at INFO level.

    Example::

        with log_duration(logger, "prefetch"):
            await store.prefetch(repos, columns)
    """
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info("%s finished in %.2fs", label, time.perf_counter() - started)
