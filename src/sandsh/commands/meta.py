"""Meta commands: help, clear, log."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.definitions import ArgRule, CommandDefinition, CommandResult, FlagSpec
from sandsh.errors import ShellError
from sandsh.logging import LogLevel

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext


async def _help(ctx: ExecutionContext) -> CommandResult:
    commands = ctx.session.get_registered_commands()
    if ctx.args:
        name = ctx.args[0]
        definition = commands.get(name)
        if definition is None:
            msg = f"help: no such command '{name}'"
            raise ShellError(msg)
        lines = [definition.usage or f"Usage: {definition.name}", "", definition.description]
        if name != definition.name:
            lines.append(f"(alias of '{definition.name}')")
        return CommandResult.ok("\n".join(lines).rstrip())

    width = max(len(name) for name in commands)
    lines = ["Available commands:"]
    lines.extend(
        f"  {name:<{width}}  {definition.description}"
        for name, definition in sorted(commands.items())
    )
    return CommandResult.ok("\n".join(lines))


async def _clear(ctx: ExecutionContext) -> CommandResult:
    ctx.output.clear()
    return CommandResult.ok()


async def _log(ctx: ExecutionContext) -> CommandResult:
    level = ctx.flags["level"]
    min_level = LogLevel.parse(level) if isinstance(level, str) else None
    source = ctx.flags["source"]
    entries = ctx.session.logger.filter(
        min_level=min_level,
        source=source if isinstance(source, str) else None,
    )
    if not entries:
        return CommandResult.ok("No log entries.")
    return CommandResult.ok("\n".join(str(entry) for entry in entries))


COMMANDS = (
    CommandDefinition(
        name="help",
        core_logic=_help,
        arg_rule=ArgRule(max=1),
        description="List commands, or show one command's usage.",
        usage="Usage: help [command]",
    ),
    CommandDefinition(
        name="clear",
        core_logic=_clear,
        arg_rule=ArgRule(exact=0),
        description="Clear the terminal.",
        usage="Usage: clear",
    ),
    CommandDefinition(
        name="log",
        core_logic=_log,
        flags=(
            FlagSpec("level", short="-l", long="--level", takes_value=True),
            FlagSpec("source", short="-s", long="--source", takes_value=True),
        ),
        arg_rule=ArgRule(exact=0),
        description="Show the session log.",
        usage="Usage: log [-l LEVEL] [-s SOURCE]",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
