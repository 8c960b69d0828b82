"""Centralized logging helpers.

Keeps handler/format setup in one place and provides the structured
``extra`` payloads used for DEBUG traces across the engine.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from constants import Constants

_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once.

    The level comes from ``level``, then the ``LIBFORGE_LOG_LEVEL``
    environment variable, then INFO. Calling again only adjusts the level.
    """
    global _CONFIGURED  # pylint: disable=global-statement
    level_name = (level or os.environ.get(Constants.LOG_LEVEL_ENV) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    root = logging.getLogger()
    if not _CONFIGURED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(Constants.LOG_FORMAT))
        root.addHandler(handler)
        _CONFIGURED = True
    root.setLevel(level_value)


def add_file_handler(path: str) -> logging.Handler:
    """Attach a file handler with timestamps to the root logger."""
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    logging.getLogger().addHandler(file_handler)
    return file_handler


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when ``logger`` would emit DEBUG records."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra`` mapping for structured log records.

    None values are dropped so records only carry populated fields.
    """
    return {k: v for k, v in fields.items() if v is not None}


def safe_url(url: str) -> str:
    """Strip credentials and query strings from a URL before logging it."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds so far, or total once the block exited."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
