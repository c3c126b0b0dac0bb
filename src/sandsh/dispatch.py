"""The validation-and-dispatch wrapper.

Every command definition is turned into a handler by ``wrap``.  The
handler runs the same checks for every command, always in this order:

1. **Flags** — split flags out of the raw arguments.
2. **Count** — check the number of positional arguments.
3. **Paths** — resolve the path arguments against the current
   directory.
4. **Permissions** — check the acting user's rights on those paths.

Only when all four pass is the command's core logic called, with an
``ExecutionContext`` holding everything it may need.  A failure at any
step returns a failed ``CommandResult`` right away: a bad argument count
never reaches a permission check, and a permission failure never runs
the command.

Nothing the core logic raises gets past the wrapper.  A ``ShellError``
keeps its type; anything else is reported as ``<command>: <message>``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sandsh.definitions import CommandDefinition, CommandResult, FlagSpec
from sandsh.errors import PathError, PermissionError, ShellError, UsageError

if TYPE_CHECKING:
    from sandsh.cancellation import CancellationToken
    from sandsh.executor import ExecutorSession
    from sandsh.filesystem import FileSystem, PathResolution
    from sandsh.output import OutputSink
    from sandsh.prompts import PromptService
    from sandsh.scripting import ScriptingContext

type FlagValue = bool | str | None


@dataclass(frozen=True)
class Invocation:
    """Per-segment inputs the pipeline runner hands to a handler."""

    session: ExecutorSession
    token: CancellationToken
    stdin: str | None = None
    scripting: ScriptingContext | None = None
    interactive: bool = True


@dataclass
class ExecutionContext:
    """What a command's core logic gets to work with.

    Attributes:
        args: Positional arguments (flags removed).
        flags: Flag name → ``True``/``False``, or the value for value flags.
        user: The acting username.
        validated_paths: Positional index → resolution, for path rules
            that applied.
        stdin: The previous pipeline segment's output, or None.
        token: Cancellation token of the enclosing job or line.
        scripting: The script cursor when running under ``run``.
        interactive: True when a human typed the line.
        session: The owning executor session.

    """

    args: list[str]
    flags: dict[str, FlagValue]
    user: str
    validated_paths: dict[int, PathResolution]
    stdin: str | None
    token: CancellationToken
    scripting: ScriptingContext | None
    interactive: bool
    session: ExecutorSession = field(repr=False)

    @property
    def fs(self) -> FileSystem:
        """Return the session's filesystem."""
        return self.session.fs

    @property
    def prompts(self) -> PromptService:
        """Return the session's prompt service."""
        return self.session.prompts

    @property
    def output(self) -> OutputSink:
        """Return the session's output sink."""
        return self.session.output

    @property
    def cwd(self) -> str:
        """Return the session's current directory."""
        return self.session.cwd

    def path(self, index: int) -> PathResolution | None:
        """Return the resolution for positional *index*, if one was made."""
        return self.validated_paths.get(index)


type CommandHandler = Callable[[Sequence[str], Invocation], Awaitable[CommandResult]]


def parse_flags(
    command: str,
    args: Sequence[str],
    specs: Sequence[FlagSpec],
) -> tuple[dict[str, FlagValue], list[str]]:
    """Split *args* into flags and positional arguments.

    Unknown dash-prefixed tokens (``-5``, ``-``) stay positional, and
    ``--`` ends flag parsing.  Combined short flags such as ``-rf`` are
    expanded when every letter is a known flag.

    Raises:
        UsageError: If a value flag is the last token.

    """
    flags: dict[str, FlagValue] = {
        spec.name: (None if spec.takes_value else False) for spec in specs
    }
    positional: list[str] = []
    by_short = {spec.short: spec for spec in specs if spec.short}

    i = 0
    while i < len(args):
        token = args[i]
        i += 1
        if token == "--":
            positional.extend(args[i:])
            break
        spec = next((s for s in specs if s.matches(token)), None)
        if spec is not None:
            if spec.takes_value:
                if i >= len(args):
                    msg = f"{command}: option '{token}' requires a value"
                    raise UsageError(msg)
                flags[spec.name] = args[i]
                i += 1
            else:
                flags[spec.name] = True
            continue
        letters = [f"-{ch}" for ch in token[1:]] if token.startswith("-") else []
        if (
            len(letters) > 1
            and not token.startswith("--")
            and all(letter in by_short and not by_short[letter].takes_value for letter in letters)
        ):
            for letter in letters:
                flags[by_short[letter].name] = True
            continue
        positional.append(token)
    return flags, positional


def _check_count(definition: CommandDefinition, count: int) -> None:
    rule = definition.arg_rule
    if rule is None:
        return
    name = definition.name
    usage = rule.usage or definition.usage
    if rule.exact is not None and count != rule.exact:
        msg = f"{name}: expected exactly {rule.exact} argument(s) but got {count}"
        raise UsageError(msg, usage=usage)
    if rule.min is not None and count < rule.min:
        msg = f"{name}: expected at least {rule.min} argument(s) but got {count}"
        raise UsageError(msg, usage=usage)
    if rule.max is not None and count > rule.max:
        msg = f"{name}: expected at most {rule.max} argument(s) but got {count}"
        raise UsageError(msg, usage=usage)


def _resolve_paths(
    definition: CommandDefinition,
    positional: list[str],
    invocation: Invocation,
    user: str,
) -> dict[int, PathResolution]:
    session = invocation.session
    resolved: dict[int, PathResolution] = {}
    for rule in definition.path_rules:
        if rule.arg_index >= len(positional):
            if rule.optional:
                continue
            msg = f"{definition.name}: missing expected path argument at index {rule.arg_index}"
            raise PathError(msg)
        result = session.fs.resolve_path(
            definition.name,
            positional[rule.arg_index],
            cwd=session.cwd,
            user=user,
            allow_missing=rule.allow_missing,
            expected_type=rule.expected_type,
            disallow_root=rule.disallow_root,
        )
        if result.error is not None:
            raise PathError(result.error)
        resolved[rule.arg_index] = result
    return resolved


def _check_permissions(
    definition: CommandDefinition,
    positional: list[str],
    resolved: dict[int, PathResolution],
    invocation: Invocation,
    user: str,
) -> None:
    fs = invocation.session.fs
    for rule in definition.permission_rules:
        resolution = resolved.get(rule.path_arg_index)
        if resolution is None or resolution.node is None:
            continue
        for permission in rule.permissions:
            if not fs.has_permission(resolution.node, user, permission):
                arg = positional[rule.path_arg_index]
                msg = f"{definition.name}: '{arg}': permission denied"
                raise PermissionError(msg)


def _prefixed(name: str, message: str) -> str:
    return message if message.startswith(f"{name}:") else f"{name}: {message}"


def wrap(definition: CommandDefinition) -> CommandHandler:
    """Return the uniform handler for *definition*."""

    async def handler(args: Sequence[str], invocation: Invocation) -> CommandResult:
        user = invocation.session.current_user
        try:
            flags, positional = parse_flags(definition.name, args, definition.flags)
            _check_count(definition, len(positional))
            resolved = _resolve_paths(definition, positional, invocation, user)
            _check_permissions(definition, positional, resolved, invocation, user)
        except ShellError as exc:
            return CommandResult.from_error(exc)

        ctx = ExecutionContext(
            args=positional,
            flags=flags,
            user=user,
            validated_paths=resolved,
            stdin=invocation.stdin,
            token=invocation.token,
            scripting=invocation.scripting,
            interactive=invocation.interactive,
            session=invocation.session,
        )
        try:
            return await definition.core_logic(ctx)
        except ShellError as exc:
            return CommandResult.fail(_prefixed(definition.name, str(exc)), exc)
        except Exception as exc:  # noqa: BLE001
            message = _prefixed(definition.name, str(exc) or type(exc).__name__)
            return CommandResult.fail(message, ShellError(message))

    handler.__name__ = f"handle_{definition.name}"
    return handler
