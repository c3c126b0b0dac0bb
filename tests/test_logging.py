"""Tests for the session log.

The logger records structured entries for what the executor did: failed
command lines, job lifecycle events and scripted prompt answers.
"""

import pytest

from sandsh.logging import LogEntry, Logger, LogLevel


class TestLogLevel:
    """Verify log level ordering and parsing."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO < LogLevel.WARNING < LogLevel.ERROR

    def test_parse_is_case_insensitive(self) -> None:
        """Level names parse regardless of case."""
        assert LogLevel.parse("warning") is LogLevel.WARNING

    def test_parse_unknown(self) -> None:
        """An unknown name raises ValueError."""
        with pytest.raises(ValueError, match="unknown log level 'loud'"):
            LogLevel.parse("loud")


class TestLogEntry:
    """Verify log entry formatting."""

    def test_str(self) -> None:
        """Entries render as ``[LEVEL] source: message``."""
        entry = LogEntry(level=LogLevel.INFO, message="job 1 started", source="jobs")
        assert str(entry) == "[INFO] jobs: job 1 started"
        assert entry.user == "root"


class TestLogger:
    """Verify recording and filtering."""

    def _populated(self) -> Logger:
        logger = Logger()
        logger.log(LogLevel.DEBUG, "answered", source="prompts")
        logger.log(LogLevel.WARNING, "'x' failed", source="executor", user="alice")
        logger.log(LogLevel.ERROR, "job 2 failed", source="jobs")
        return logger

    def test_entries_in_order(self) -> None:
        """Entries are kept chronologically."""
        logger = self._populated()
        assert [e.source for e in logger.entries] == ["prompts", "executor", "jobs"]
        assert logger.entries[1].user == "alice"

    def test_filter_by_level(self) -> None:
        """``min_level`` keeps entries at or above that level."""
        logger = self._populated()
        assert len(logger.filter(min_level=LogLevel.WARNING)) == 2

    def test_filter_by_source(self) -> None:
        """``source`` keeps one component's entries."""
        logger = self._populated()
        assert [e.message for e in logger.filter(source="jobs")] == ["job 2 failed"]

    def test_clear(self) -> None:
        """``clear`` empties the log."""
        logger = self._populated()
        logger.clear()
        assert len(logger) == 0
