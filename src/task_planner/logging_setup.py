# src/task_planner/logging_setup.py

"""
Process-wide logging.

Two sinks share one format:
- stderr, filtered so the console REPL stays readable while the Matrix and
  Telegram connectors poll in their own threads;
- a size-rotated planner.log under the data directory with everything.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers of our own that run in background threads.
_BACKGROUND_PREFIXES = (
    "task_planner.connectors.matrix_",
    "task_planner.connectors.telegram_",
)

# Libraries that log each HTTP request or poll at INFO.
_CHATTY_LIBRARIES = ("httpx", "httpcore", "openai", "telegram", "apscheduler", "nio")


class _ConsoleNoiseFilter(logging.Filter):
    """Planner logs pass; background connectors need WARNING, everything else ERROR."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(_BACKGROUND_PREFIXES):
            return record.levelno >= logging.WARNING
        if name == "task_planner" or name.startswith("task_planner."):
            return True
        return record.levelno >= logging.ERROR


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(_ConsoleNoiseFilter())
    return handler


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    *,
    log_dir: str | Path = ".local/planner",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console and file handlers on the root logger.

    Safe to call again (handlers are replaced, not stacked). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "planner.log"

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(console_level, formatter))
    root.addHandler(_file_handler(log_file, file_level, formatter))

    logging.captureWarnings(True)

    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
