"""Session-state commands: export/set, unset, env, alias, unalias, history."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.definitions import ArgRule, CommandDefinition, CommandResult, FlagSpec
from sandsh.errors import ShellError, UsageError

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext


def _split_assignment(command: str, arg: str, usage: str) -> tuple[str, str]:
    name, sep, value = arg.partition("=")
    if not sep or not name:
        msg = f"{command}: invalid assignment '{arg}'"
        raise UsageError(msg, usage=usage)
    return name, value


def _env_listing(ctx: ExecutionContext) -> str:
    return "\n".join(f"{key}={value}" for key, value in ctx.session.env.items())


async def _export(ctx: ExecutionContext) -> CommandResult:
    if not ctx.args:
        return CommandResult.ok(_env_listing(ctx))
    env = ctx.session.env
    for arg in ctx.args:
        name, value = _split_assignment("export", arg, "Usage: export NAME=VALUE")
        env.set(name, value)
    return CommandResult.ok()


async def _unset(ctx: ExecutionContext) -> CommandResult:
    for name in ctx.args:
        ctx.session.env.delete(name)
    return CommandResult.ok()


async def _env(ctx: ExecutionContext) -> CommandResult:
    return CommandResult.ok(_env_listing(ctx))


async def _alias(ctx: ExecutionContext) -> CommandResult:
    aliases = ctx.session.aliases
    if not ctx.args:
        return CommandResult.ok("\n".join(f"alias {n}='{v}'" for n, v in aliases.items()))
    shown: list[str] = []
    for arg in ctx.args:
        if "=" not in arg:
            value = aliases.get(arg)
            if value is None:
                msg = f"alias: {arg}: not found"
                raise ShellError(msg)
            shown.append(f"alias {arg}='{value}'")
            continue
        name, value = _split_assignment("alias", arg, "Usage: alias [NAME[=VALUE]...]")
        aliases.set(name, value)
    return CommandResult.ok("\n".join(shown))


async def _unalias(ctx: ExecutionContext) -> CommandResult:
    missing = [name for name in ctx.args if not ctx.session.aliases.remove(name)]
    if missing:
        msg = f"unalias: {', '.join(missing)}: not found"
        raise ShellError(msg)
    return CommandResult.ok()


async def _history(ctx: ExecutionContext) -> CommandResult:
    history = ctx.session.history
    if ctx.flags["clear"]:
        history.clear()
        return CommandResult.ok()
    return CommandResult.ok(
        "\n".join(f"{number:>5}  {line}" for number, line in enumerate(history.entries(), 1))
    )


COMMANDS = (
    CommandDefinition(
        name="export",
        core_logic=_export,
        description="Set environment variables (or list them).",
        usage="Usage: export [NAME=VALUE...]",
    ),
    CommandDefinition(
        name="unset",
        core_logic=_unset,
        arg_rule=ArgRule(min=1),
        description="Remove environment variables.",
        usage="Usage: unset <NAME...>",
    ),
    CommandDefinition(
        name="env",
        core_logic=_env,
        arg_rule=ArgRule(exact=0),
        description="List environment variables.",
        usage="Usage: env",
    ),
    CommandDefinition(
        name="alias",
        core_logic=_alias,
        description="Define or show aliases.",
        usage="Usage: alias [NAME[=VALUE]...]",
    ),
    CommandDefinition(
        name="unalias",
        core_logic=_unalias,
        arg_rule=ArgRule(min=1),
        description="Remove aliases.",
        usage="Usage: unalias <NAME...>",
    ),
    CommandDefinition(
        name="history",
        core_logic=_history,
        flags=(FlagSpec("clear", short="-c", long="--clear"),),
        arg_rule=ArgRule(exact=0),
        description="Show (or clear) the command history.",
        usage="Usage: history [-c]",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {"export": ("set",)}
