"""Session log — an audit trail of what the executor did.

The output sink is for the person at the terminal; the session log is
for whoever needs to find out later what happened.  Background job
failures in particular never reach the terminal inline, so the log is
the one place where their full pipeline error survives.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — one immutable record (level, message, source, user).
- **Logger** — an append-only buffer with filtering.

Sources used by the executor: ``executor`` (command-line failures),
``jobs`` (spawn/finish/kill), ``prompts`` (scripted answers) and
``script`` (script runner failures).
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3

    @classmethod
    def parse(cls, name: str) -> "LogLevel":
        """Return the level called *name* (case-insensitive).

        Raises:
            ValueError: If no level has that name.

        """
        try:
            return cls[name.upper()]
        except KeyError:
            msg = f"unknown log level '{name}'"
            raise ValueError(msg) from None


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: What happened.
        source: The component that reported it (e.g. "jobs").
        user: The acting user at the time of the event.

    """

    level: LogLevel
    message: str
    source: str
    user: str = "root"

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering."""

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        user: str = "root",
    ) -> None:
        """Append a new entry to the log."""
        self._entries.append(LogEntry(level=level, message=message, source=source, user=user))

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        return result

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)
