#!/usr/bin/env python3
# utils/logger.py
"""Logger Module using QueueHandler for non-blocking file IO and RichHandler for console output.

Features:

1.  **Rich Console Output:** ``rich.logging.RichHandler`` for the ``console_logger``.
2.  **Non-Blocking File Logging:** the ``error_logger`` writes through a
    ``QueueHandler``; a ``QueueListener`` thread owns the file handler so that
    log IO never blocks the event loop between host requests.
3.  **Compact Formatting:** ``CompactFormatter`` abbreviates level names in file logs.
4.  **Configuration Driven:** paths and levels come from the ``logging`` section.
"""

import logging
import os
import queue
import sys

from logging.handlers import QueueHandler, QueueListener
from typing import Any

from rich.console import Console
from rich.logging import RichHandler

LEVEL_ABBREV = {
    "DEBUG": "D",
    "INFO": "I",
    "WARNING": "W",
    "ERROR": "E",
    "CRITICAL": "C",
}
CONSOLE_LOGGER_NAME = "console_logger"
ERROR_LOGGER_NAME = "main_logger"


def ensure_directory(path: str, error_logger: logging.Logger | None = None) -> None:
    """Ensure that the given directory path exists, creating it if necessary."""
    try:
        if path and not os.path.exists(path):
            os.makedirs(path, exist_ok=True)
    except OSError as e:
        if error_logger:
            error_logger.error(f"Error creating directory {path}: {e}")
        else:
            print(f"ERROR: Error creating directory {path}: {e}", file=sys.stderr)


def get_full_log_path(
    config: dict[str, Any] | None,
    key: str,
    default: str,
    error_logger: logging.Logger | None = None,
    section: str = "logging",
) -> str:
    """Return ``logs_base_dir`` joined with the relative path stored at ``config[section][key]``.

    Ensures the file's directory exists.
    """
    base_dir = "."
    relative_path = default
    if isinstance(config, dict):
        base_dir = config.get("logs_base_dir", ".") or "."
        section_config = config.get(section, {})
        if isinstance(section_config, dict):
            relative_path = section_config.get(key, default) or default
        elif error_logger:
            error_logger.error(f"Invalid '{section}' section in config.")

    full_path = os.path.join(base_dir, relative_path)
    ensure_directory(os.path.dirname(full_path), error_logger)
    return full_path


class CompactFormatter(logging.Formatter):
    """File log formatter with one-letter level names."""

    def __init__(self, fmt: str | None = None, datefmt: str = "%Y-%m-%d %H:%M:%S"):
        super().__init__(
            fmt or "%(asctime)s %(levelname)s [%(name)s] %(module)s:%(lineno)d - %(message)s",
            datefmt,
        )

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        record.levelname = LEVEL_ABBREV.get(original_levelname, original_levelname[:1])
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def _level(name: Any, default: int = logging.INFO) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else default


def get_loggers(
    config: dict[str, Any],
) -> tuple[logging.Logger, logging.Logger, QueueListener | None]:
    """Create the console and error loggers.

    Returns:
        (console_logger, error_logger, listener). Stop the listener on shutdown
        to flush pending file records.

    """
    logging_config = config.get("logging", {}) or {}
    levels = logging_config.get("levels", {}) or {}
    console_level = _level(levels.get("console", "INFO"))
    file_level = _level(levels.get("main_file", "INFO"))

    console_logger = logging.getLogger(CONSOLE_LOGGER_NAME)
    if not console_logger.handlers:
        handler = RichHandler(
            level=console_level,
            console=Console(stderr=True),
            show_time=True,
            show_level=True,
            show_path=False,
            log_time_format="%H:%M:%S",
        )
        console_logger.addHandler(handler)
        console_logger.setLevel(console_level)
        console_logger.propagate = False

    error_logger = logging.getLogger(ERROR_LOGGER_NAME)
    listener: QueueListener | None = None
    if not error_logger.handlers:
        log_file = get_full_log_path(config, "main_log_file", "main/main.log")
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(CompactFormatter())
        file_handler.setLevel(file_level)

        log_queue: queue.Queue[logging.LogRecord] = queue.Queue(-1)
        listener = QueueListener(log_queue, file_handler, respect_handler_level=True)
        listener.start()

        error_logger.addHandler(QueueHandler(log_queue))
        error_logger.setLevel(file_level)
        error_logger.propagate = False

    return console_logger, error_logger, listener
