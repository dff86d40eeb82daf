"""
Structured processing log.

Every call to the processing pipeline accumulates (severity, message)
entries in a LogSink owned by the caller. The sink tracks the highest
severity seen so far, which doubles as the overall run status:

- DEBUG / INFO: informative only
- WARN:  partial success, e.g. a derated layer hit a physical bound
- ERROR: partial success, an object was skipped
- FATAL: the run could not proceed (e.g. incomplete PSI set)

Entries are mirrored to the standard ``logging`` module so console and
file handlers configured by the application see them too.

Usage:
    sink = LogSink()
    sink.warn("Won't assign 1.200 W/K to 'wall 1': too conductive")
    sink.status         # Severity.WARN
    sink.status_message # "Partial success, raised non-fatal warnings"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional

logger = logging.getLogger(__name__)


MAX_MESSAGE_LENGTH = 160


class Severity(IntEnum):
    """Log severities, ordered."""

    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5

    @property
    def tag(self) -> str:
        return "WARNING" if self is Severity.WARN else self.name


STATUS_MESSAGES = {
    Severity.DEBUG: "Debugging ...",
    Severity.INFO: "Success! No errors, no warnings",
    Severity.WARN: "Partial success, raised non-fatal warnings",
    Severity.ERROR: "Partial success, encountered non-fatal errors",
    Severity.FATAL: "Failure, triggered fatal errors",
}

# Severity -> stdlib logging level
_STDLIB_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARN: logging.WARNING,
    Severity.ERROR: logging.ERROR,
    Severity.FATAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class LogEntry:
    """One log record."""

    severity: Severity
    message: str

    def to_dict(self) -> dict:
        return {"level": self.severity.tag, "message": self.message}


class LogSink:
    """
    Accumulates log entries for one processing run.

    Args:
        level: Entries below this severity are dropped
        mirror: Also forward entries to the stdlib logger
    """

    def __init__(self, level: Severity = Severity.INFO, mirror: bool = True):
        self.level = Severity(level)
        self.mirror = mirror
        self._entries: List[LogEntry] = []
        self._status: Optional[Severity] = None

    def log(self, severity: Severity, message: str) -> None:
        severity = Severity(severity)
        if severity < self.level:
            return
        if len(message) > MAX_MESSAGE_LENGTH:
            message = message[: MAX_MESSAGE_LENGTH - 3] + "..."
        self._entries.append(LogEntry(severity, message))
        if self._status is None or severity > self._status:
            self._status = severity
        if self.mirror:
            logger.log(_STDLIB_LEVELS[severity], message)

    def debug(self, message: str) -> None:
        self.log(Severity.DEBUG, message)

    def info(self, message: str) -> None:
        self.log(Severity.INFO, message)

    def warn(self, message: str) -> None:
        self.log(Severity.WARN, message)

    def error(self, message: str) -> None:
        self.log(Severity.ERROR, message)

    def fatal(self, message: str) -> None:
        self.log(Severity.FATAL, message)

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def filter(self, severity: Severity) -> List[LogEntry]:
        """Entries at exactly one severity."""
        return [e for e in self._entries if e.severity == severity]

    @property
    def status(self) -> Severity:
        """Highest severity logged (INFO when nothing has been logged)."""
        return self._status or Severity.INFO

    @property
    def status_message(self) -> str:
        return STATUS_MESSAGES[self.status]

    @property
    def is_fatal(self) -> bool:
        return self.status == Severity.FATAL

    @property
    def has_errors(self) -> bool:
        return self.status >= Severity.ERROR

    @property
    def has_warnings(self) -> bool:
        return self.status >= Severity.WARN

    def clean(self) -> None:
        self._entries.clear()
        self._status = None

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
