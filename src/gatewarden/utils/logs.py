"""
Logging setup for the agent.

Lines look like ``[2025-01-31 12:00:00] [INFO] message``; fired alerts are
logged at the custom ALERT level.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from gatewarden.config.logging import LoggingSettings

ALERT = logging.WARNING + 5
logging.addLevelName(ALERT, "ALERT")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class SecureRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler that keeps every log file owner-only."""

    def _open(self):  # type: ignore[no-untyped-def]
        stream = super()._open()
        try:
            os.chmod(self.baseFilename, 0o600)
        except OSError:
            pass
        return stream


def setup_logging(settings: LoggingSettings, verbose: bool = False) -> RotatingFileHandler:
    """
    Configure root logging: rotating file plus console.

    Args:
        settings: Logging configuration
        verbose: Force DEBUG level

    Returns:
        The file handler, so the monitor loop can check its size each cycle
    """
    log_file = Path(settings.file).expanduser()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else getattr(logging, settings.level.upper())
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    file_handler = SecureRotatingFileHandler(
        log_file,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler], force=True)

    # Silence noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return file_handler


def rotate_if_oversized(handler: RotatingFileHandler | None, max_bytes: int) -> bool:
    """
    Roll the log over when the file on disk is larger than max_bytes.

    The handler only checks size when it writes; this also catches growth
    from other writers such as a supervisor redirecting stdout to the file.
    """
    if handler is None:
        return False
    try:
        size = os.path.getsize(handler.baseFilename)
    except OSError:
        return False
    if size <= max_bytes:
        return False

    handler.acquire()
    try:
        handler.doRollover()
    finally:
        handler.release()
    logging.getLogger(__name__).info(f"Rotated logs (size: {size // (1024 * 1024)}MB)")
    return True
