"""Utility modules."""

from .logging_config import (
    FileFormatter,
    TbdFormatter,
    ensure_logging,
    get_logger,
    setup_logging,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "ensure_logging",
    "TbdFormatter",
    "FileFormatter",
]
