"""Environment variables — the session's key-value configuration.

Every shell session carries a set of ``KEY=VALUE`` string pairs:
``USER``, ``HOME``, ``HOST``, ``PATH`` and whatever the user exports.
Command lines see them through ``$NAME`` / ``${NAME}`` expansion
(``sandsh.expansion``), which runs before alias resolution and parsing.

Key design properties:
    - **Strings only** — both keys and values are strings.
    - **Names are validated** — a name must start with a letter or
      underscore, followed by letters, digits or underscores.  This is
      the same shape the expander recognises, so every variable that
      can be set can also be expanded.
    - **Unset reads as empty** — ``get`` with no default returns ``""``
      for a missing key, which is what expansion wants.
"""

import re

VAR_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Environment:
    """A key-value store for environment variables."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Create an environment, optionally pre-populated.

        Args:
            initial: Starting variables (copied, not referenced).

        """
        self._vars: dict[str, str] = dict(initial) if initial else {}

    def get(self, key: str, default: str = "") -> str:
        """Return the value for *key*, or *default* if not set."""
        return self._vars.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Set *key* to *value* (creates or overwrites).

        Raises:
            ValueError: If *key* is not a valid variable name.

        """
        if not VAR_NAME.match(key):
            msg = (
                f"invalid variable name '{key}': must start with a letter or underscore,"
                " followed by letters, numbers, or underscores"
            )
            raise ValueError(msg)
        self._vars[key] = value

    def delete(self, key: str) -> None:
        """Remove *key*; removing a missing key is a no-op."""
        self._vars.pop(key, None)

    def __contains__(self, key: object) -> bool:
        """Return True if *key* is set."""
        return key in self._vars

    def items(self) -> list[tuple[str, str]]:
        """Return all (key, value) pairs, sorted by key."""
        return sorted(self._vars.items())

    def copy(self) -> "Environment":
        """Return an independent copy of this environment."""
        return Environment(initial=self._vars)

    def __len__(self) -> int:
        """Return the number of variables."""
        return len(self._vars)
