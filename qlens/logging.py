"""Where log records go.

The terminal and the log file are filtered separately:

- the terminal shows WARNING and up, or everything with ``--verbose``;
- ``<output_dir>/.qlens/qlens.log`` records at ``QLENS_LOG_LEVEL``
  (INFO unless set), whatever the terminal is doing.

LLM failures are logged with their traceback but only a fixed message is
shown to the user, so the log file is the place to look when a report
fails.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_LEVEL_ENV = "QLENS_LOG_LEVEL"

_TERMINAL_FORMAT = "%(levelname)s | %(name)s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ROTATE_AT_BYTES = 2 * 1024 * 1024
_KEEP_ROTATED = 3

# SDK and transport loggers print request lines at INFO
_QUIET = ("httpx", "httpcore", "google_genai", "anthropic", "openai")


def log_path_for(output_dir: Path) -> Path:
    """Return the log file location for an output directory."""
    return output_dir / ".qlens" / "qlens.log"


def file_log_level() -> int:
    """Level for the log file from ``QLENS_LOG_LEVEL``; INFO if unset or unknown."""
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _terminal_handler(verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    handler.setFormatter(logging.Formatter(_TERMINAL_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=_ROTATE_AT_BYTES, backupCount=_KEEP_ROTATED, encoding="utf-8"
    )
    handler.setLevel(file_log_level())
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def setup_logging(*, output_dir: Path | None = None, verbose: bool = False) -> Path | None:
    """Install the terminal handler and, given ``output_dir``, the log file.

    Replaces whatever handlers the root logger had, so calling it twice
    (the CLI then the server factory) leaves one of each.

    Returns:
        The log file path, or None when only the terminal is logging.
    """
    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    root.setLevel(logging.DEBUG)

    root.addHandler(_terminal_handler(verbose))

    log_path = None
    if output_dir is not None:
        log_path = log_path_for(output_dir)
        root.addHandler(_file_handler(log_path))

    for name in _QUIET:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path
