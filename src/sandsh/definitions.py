"""Command definitions — what a command *is*, separately from running it.

A command is described once, at boot, by a ``CommandDefinition``:

- its **flags** (``-l``, ``--long``, ``-n 5``),
- an **argument rule** (exactly / at least / at most N positionals),
- **path rules** saying which positionals are paths and how to resolve
  them,
- **permission rules** saying which permissions the acting user needs
  on those paths,
- and the **core logic**, an ``async`` function of an
  ``ExecutionContext`` returning a ``CommandResult``.

Every rule field defaults to an empty tuple (or None for the argument
rule), never to "absent", so the dispatch wrapper can run its four
checks unconditionally.  Definitions are frozen: once registered they
never change.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sandsh.filesystem import FileType, Permission

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext
    from sandsh.errors import ShellError
    from sandsh.output import StyleHint


@dataclass(frozen=True)
class CommandResult:
    """The outcome of running a command, a pipeline, or a whole line.

    Attributes:
        success: Whether it worked.
        output: Text produced (may be empty).
        error: Human-readable failure text, prefixed by the command name.
        failure: The typed error behind a failure, when there is one.
        style: How the output should be rendered, if not plain.

    """

    success: bool
    output: str = ""
    error: str | None = None
    failure: ShellError | None = None
    style: StyleHint | None = None

    @classmethod
    def ok(cls, output: str = "", style: StyleHint | None = None) -> CommandResult:
        """Build a successful result."""
        return cls(success=True, output=output, style=style)

    @classmethod
    def fail(cls, error: str, failure: ShellError | None = None) -> CommandResult:
        """Build a failed result."""
        return cls(success=False, error=error, failure=failure)

    @classmethod
    def from_error(cls, exc: ShellError) -> CommandResult:
        """Build a failed result carrying *exc* and its message."""
        return cls(success=False, error=str(exc), failure=exc)


@dataclass(frozen=True)
class FlagSpec:
    """One flag a command accepts.

    ``name`` is the key the core logic reads from ``ctx.flags``.  A flag
    matches its ``short`` form (``-l``), its ``long`` form (``--long``)
    or any of its ``aliases``.  With ``takes_value`` the next token is
    the flag's value instead of ``True``.
    """

    name: str
    short: str | None = None
    long: str | None = None
    aliases: tuple[str, ...] = ()
    takes_value: bool = False

    def matches(self, token: str) -> bool:
        """Return True if *token* spells this flag."""
        return token in (self.short, self.long) or token in self.aliases


@dataclass(frozen=True)
class ArgRule:
    """How many positional arguments a command accepts."""

    min: int | None = None
    max: int | None = None
    exact: int | None = None
    usage: str | None = None


@dataclass(frozen=True)
class PathRule:
    """Resolve positional argument ``arg_index`` as a path.

    Attributes:
        arg_index: Which positional (0-based).
        optional: Skip the rule when the argument is absent.
        allow_missing: A non-existent target is fine (``touch``).
        expected_type: Require a file or a directory.
        disallow_root: Reject a path resolving to ``/``.

    """

    arg_index: int
    optional: bool = False
    allow_missing: bool = False
    expected_type: FileType | None = None
    disallow_root: bool = False


@dataclass(frozen=True)
class PermissionRule:
    """Permissions the acting user needs on a resolved path argument."""

    path_arg_index: int
    permissions: tuple[Permission, ...]


type CoreLogic = Callable[[ExecutionContext], Awaitable[CommandResult]]


@dataclass(frozen=True)
class CommandDefinition:
    """Everything the executor needs to know about one command."""

    name: str
    core_logic: CoreLogic
    flags: tuple[FlagSpec, ...] = ()
    arg_rule: ArgRule | None = None
    path_rules: tuple[PathRule, ...] = ()
    permission_rules: tuple[PermissionRule, ...] = ()
    description: str = ""
    usage: str | None = None


class CommandRegistry:
    """Name → definition map, filled once at boot."""

    def __init__(self) -> None:
        """Create an empty registry."""
        self._definitions: dict[str, CommandDefinition] = {}

    def register(self, definition: CommandDefinition, *aliases: str) -> None:
        """Register *definition* under its name and any extra *aliases*.

        Raises:
            ValueError: If a name is already taken.

        """
        for name in (definition.name, *aliases):
            if name in self._definitions:
                msg = f"command '{name}' is already registered"
                raise ValueError(msg)
            self._definitions[name] = definition

    def get(self, name: str) -> CommandDefinition | None:
        """Return the definition registered as *name*, or None."""
        return self._definitions.get(name)

    def names(self) -> list[str]:
        """Return every registered name, sorted."""
        return sorted(self._definitions)

    def as_dict(self) -> dict[str, CommandDefinition]:
        """Return a copy of the name → definition map."""
        return dict(self._definitions)

    def __contains__(self, name: object) -> bool:
        """Return True if *name* is registered."""
        return name in self._definitions

    def __len__(self) -> int:
        """Return the number of registered names."""
        return len(self._definitions)
