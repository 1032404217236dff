"""Logging configuration for backup and monitoring runs.

Configures the root logger with:
- A custom TRACE level.
- Console output.
- Rotating file output under the log directory, plus error-only and daily
  log files for easier triage.

Safe to call multiple times; only the first call installs handlers.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional


TRACE_LEVEL_NUM = 5

_CONFIGURED_FLAG = "_backup_lifecycle_logging_configured"


def _install_trace_level() -> None:
    """Install the TRACE logging level and `Logger.trace` helper."""

    if logging.getLevelName(TRACE_LEVEL_NUM) != "TRACE":
        logging.addLevelName(TRACE_LEVEL_NUM, "TRACE")

    if not hasattr(logging.Logger, "trace"):

        def trace(self: logging.Logger, message: str, *args, **kwargs) -> None:
            if self.isEnabledFor(TRACE_LEVEL_NUM):
                self._log(TRACE_LEVEL_NUM, message, args, **kwargs)

        logging.Logger.trace = trace  # type: ignore[attr-defined]


def resolve_level(log_level: Optional[str], *, debug: bool = False) -> int:
    """Translate a level name into a numeric level.

    Args:
        log_level: Level name (TRACE, DEBUG, INFO, ...). Empty falls back to
            DEBUG when debug is set, INFO otherwise.
        debug: Debug mode flag.

    Returns:
        int: Numeric level.

    Raises:
        ValueError: When the level name is invalid.
    """

    name = str(log_level or "").strip().upper()
    if not name:
        name = "DEBUG" if debug else "INFO"
    if name == "TRACE":
        return TRACE_LEVEL_NUM

    level = getattr(logging, name, None)
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {log_level}")
    return level


def configure_logging(
    *,
    log_dir: str = "/app/logs",
    log_level: str = "INFO",
    debug: bool = False,
    log_filename: str = "backup-lifecycle.log",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure process-wide logging.

    Args:
        log_dir: Directory where log files are stored.
        log_level: Root log level name (e.g. INFO, DEBUG, TRACE).
        debug: When True, defaults to DEBUG unless log_level overrides it.
        log_filename: Log file name (within log_dir).
        max_bytes: Rotate the log file after this size.
        backup_count: Number of rotated files to keep.

    Raises:
        ValueError: When the provided log_level is invalid.
    """

    _install_trace_level()

    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG, False):
        return

    level = resolve_level(log_level, debug=debug)
    root.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    stem = Path(log_filename).stem
    suffix = Path(log_filename).suffix or ".log"
    base = Path(log_dir)

    try:
        base.mkdir(parents=True, exist_ok=True)
        handlers = [
            (RotatingFileHandler(base / f"{stem}{suffix}", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"), level),
            (RotatingFileHandler(base / f"{stem}.error{suffix}", maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"), logging.ERROR),
            (TimedRotatingFileHandler(base / f"{stem}.day{suffix}", when="midnight", backupCount=backup_count, utc=True, encoding="utf-8"), level),
            (TimedRotatingFileHandler(base / f"{stem}.day.error{suffix}", when="midnight", backupCount=backup_count, utc=True, encoding="utf-8"), logging.ERROR),
        ]
        for handler, handler_level in handlers:
            if isinstance(handler, TimedRotatingFileHandler):
                handler.suffix = "%Y-%m-%d"
            handler.setLevel(handler_level)
            handler.setFormatter(formatter)
            root.addHandler(handler)
    except OSError:
        logging.getLogger(__name__).warning(
            "Failed to configure file logging under %s; continuing with console-only logging",
            log_dir,
        )

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True

    for name in ("botocore", "boto3", "s3transfer", "paramiko", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.captureWarnings(True)
    setattr(root, _CONFIGURED_FLAG, True)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger instance."""

    return logging.getLogger(name or __name__)
