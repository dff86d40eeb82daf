"""
Logging configuration for the tbd command line and host applications.

Provides:
- Coloured console output with timestamps
- Optional JSON-lines file output (always at DEBUG)
- Level and log directory taken from settings (TBD_LOG_LEVEL, TBD_LOG_DIR)
- Context fields (surface, edge, PSI set) appended when passed via ``extra``

The library itself never configures logging on import; applications
call ``setup_logging`` (or ``ensure_logging``) once at start-up.

Usage:
    from thermal_bridging.utils.logging_config import get_logger, setup_logging

    setup_logging("DEBUG")
    logger = get_logger(__name__)
    logger.info("Derated surface", extra={"surface_id": "wall 1"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..core.config import settings


CONTEXT_KEYS = ("surface_id", "edge_id", "psi_set")


def _context(record: logging.LogRecord) -> dict:
    return {key: getattr(record, key) for key in CONTEXT_KEYS if hasattr(record, key)}


class TbdFormatter(logging.Formatter):
    """Console formatter with colour support."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors and sys.stdout.isatty()
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        extras = _context(record)
        if extras:
            formatted += " [" + ", ".join(f"{k}={v}" for k, v in extras.items()) + "]"

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            return f"{color}{formatted}{self.RESET}"
        return formatted


class FileFormatter(logging.Formatter):
    """JSON-lines formatter for file output."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: Optional[str] = None,
    log_to_file: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL), default from settings
        log_to_file: Also log to a file, default from settings
        log_file: Custom log file path (default: <log_dir>/tbd_YYYYMMDD.log)
    """
    level = (level or settings.log_level).upper()
    if log_to_file is None:
        log_to_file = settings.log_to_file

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(TbdFormatter(use_colors=True))
    console_handler.setLevel(getattr(logging, level, logging.INFO))
    root_logger.addHandler(console_handler)

    if log_to_file:
        if log_file is None:
            settings.log_dir.mkdir(parents=True, exist_ok=True)
            path = settings.log_dir / f"tbd_{datetime.now().strftime('%Y%m%d')}.log"
        else:
            path = Path(log_file)

        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(FileFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    # Geometry backends can be chatty at DEBUG
    logging.getLogger("shapely").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (typically ``__name__``)."""
    return logging.getLogger(name)


_initialized = False


def ensure_logging() -> None:
    """Set up logging once, with settings defaults."""
    global _initialized
    if not _initialized:
        setup_logging()
        _initialized = True
