"""
Logging setup and the operator-visible running log.

Every module logs through a child of the ``geo_writer`` logger. The CLI
installs a console handler via ``configure_logging``; a batch run attaches an
``OperatorLogHandler`` that keeps only the most recent entries, formatted
with a wall-clock timestamp, as the primary debugging surface.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

ROOT_LOGGER_NAME = "geo_writer"
OPERATOR_LOG_LIMIT = 25

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: str) -> logging.Logger:
    """Return the package logger for a module short name."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """Install a single console handler on the package logger."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    if not any(getattr(h, "_geo_console", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        handler._geo_console = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root


class OperatorLogHandler(logging.Handler):
    """Keep the last ``limit`` log lines as ``[HH:MM:SS] message`` strings."""

    def __init__(self, limit: int = OPERATOR_LOG_LIMIT, level: int = logging.INFO):
        super().__init__(level)
        self._entries: Deque[str] = deque(maxlen=limit)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
            self._entries.append(f"[{stamp}] {record.getMessage()}")
        except Exception:
            self.handleError(record)

    def lines(self) -> List[str]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def attach(self, logger: Optional[logging.Logger] = None) -> "OperatorLogHandler":
        target = logger or logging.getLogger(ROOT_LOGGER_NAME)
        if target.level == logging.NOTSET or target.level > self.level:
            target.setLevel(self.level)
        target.addHandler(self)
        return self

    def detach(self, logger: Optional[logging.Logger] = None) -> None:
        target = logger or logging.getLogger(ROOT_LOGGER_NAME)
        target.removeHandler(self)
