"""Aliases — user-defined names for longer command lines.

``alias ll="ls -l"`` makes ``ll /home`` run ``ls -l /home``.  Only the
leading word of a line is ever replaced, and the replacement's own
arguments go *before* the caller's remaining arguments.

An alias may expand to another alias, so resolution repeats until the
leading word is no longer an alias.  A cycle (``alias x="x"``, or
``a → b → a``) would repeat forever, so the resolver stops after
``MAX_ALIAS_EXPANSIONS`` substitutions and raises ``AliasLoopError``.
A genuine chain of up to that many aliases still resolves fully.
"""

from sandsh.errors import AliasLoopError

MAX_ALIAS_EXPANSIONS = 10


def _split_head(line: str) -> tuple[str, str]:
    """Split *line* into its leading word and the untouched remainder."""
    stripped = line.strip()
    head, _, rest = stripped.partition(" ")
    return head, rest.strip()


class AliasTable:
    """Name → replacement text, plus the resolver."""

    def __init__(
        self,
        initial: dict[str, str] | None = None,
        *,
        max_expansions: int = MAX_ALIAS_EXPANSIONS,
    ) -> None:
        """Create a table, optionally pre-populated."""
        self._aliases: dict[str, str] = dict(initial) if initial else {}
        self._max_expansions = max_expansions

    def set(self, name: str, value: str) -> None:
        """Define (or redefine) alias *name*.

        Raises:
            ValueError: If *name* is empty or contains whitespace.

        """
        if not name or any(ch.isspace() for ch in name):
            msg = f"invalid alias name '{name}'"
            raise ValueError(msg)
        self._aliases[name] = value.strip()

    def remove(self, name: str) -> bool:
        """Remove alias *name*, returning False if it did not exist."""
        return self._aliases.pop(name, None) is not None

    def get(self, name: str) -> str | None:
        """Return the replacement for *name*, or None."""
        return self._aliases.get(name)

    def items(self) -> list[tuple[str, str]]:
        """Return all aliases, sorted by name."""
        return sorted(self._aliases.items())

    def resolve(self, line: str) -> str:
        """Expand the leading word of *line* until it is not an alias.

        Returns:
            The expanded command line (unchanged if no alias applies).

        Raises:
            AliasLoopError: If more than ``max_expansions`` substitutions
                would be needed.

        """
        original, remaining = _split_head(line)
        head = original
        expanded = line.strip()
        count = 0
        while head in self._aliases:
            if count == self._max_expansions:
                raise AliasLoopError(original)
            head, alias_args = _split_head(self._aliases[head])
            expanded = " ".join(part for part in (head, alias_args, remaining) if part)
            remaining = " ".join(part for part in (alias_args, remaining) if part)
            count += 1
        return expanded

    def __contains__(self, name: object) -> bool:
        """Return True if *name* is an alias."""
        return name in self._aliases

    def __len__(self) -> int:
        """Return the number of aliases."""
        return len(self._aliases)
