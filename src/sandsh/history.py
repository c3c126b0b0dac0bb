"""Command history — what the user typed, in order.

Only interactive lines are recorded; lines played back by a script are
not the user's own input.  Consecutive duplicates are collapsed the
way most shells do, and the list is capped so a long session cannot
grow it without bound.
"""

_DEFAULT_LIMIT = 500


class History:
    """Bounded list of previously entered command lines."""

    def __init__(self, *, limit: int = _DEFAULT_LIMIT) -> None:
        """Create an empty history holding at most *limit* entries."""
        self._limit = limit
        self._entries: list[str] = []

    def add(self, line: str) -> None:
        """Record *line* unless it is blank or repeats the last entry."""
        stripped = line.strip()
        if not stripped:
            return
        if self._entries and self._entries[-1] == stripped:
            return
        self._entries.append(stripped)
        if len(self._entries) > self._limit:
            del self._entries[0]

    def entries(self) -> list[str]:
        """Return all entries, oldest first."""
        return list(self._entries)

    def clear(self) -> None:
        """Forget everything."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)
