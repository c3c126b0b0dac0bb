"""Job commands: ps/jobs, kill, delay."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from sandsh.definitions import ArgRule, CommandDefinition, CommandResult
from sandsh.errors import OperationCancelledError, UsageError

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext


async def _ps(ctx: ExecutionContext) -> CommandResult:
    jobs = ctx.session.list_jobs()
    if not jobs:
        return CommandResult.ok("No background jobs.")
    return CommandResult.ok("\n".join(str(job) for job in jobs))


async def _kill(ctx: ExecutionContext) -> CommandResult:
    text = ctx.args[0].removeprefix("%")
    if not text.isdigit():
        msg = f"kill: invalid job id '{ctx.args[0]}'"
        raise UsageError(msg, usage="Usage: kill <job_id>")
    result = ctx.session.kill_job(int(text))
    if not result.success:
        return CommandResult.fail(f"kill: {result.error}", result.failure)
    return result


async def _delay(ctx: ExecutionContext) -> CommandResult:
    text = ctx.args[0]
    if not text.isdigit():
        msg = f"delay: invalid delay time '{text}': must be a non-negative integer"
        raise UsageError(msg, usage="Usage: delay <milliseconds>")
    if ctx.token.cancelled:
        msg = "delay: operation already cancelled"
        raise OperationCancelledError(msg)
    try:
        async with asyncio.timeout(int(text) / 1000):
            reason = await ctx.token.wait()
    except TimeoutError:
        return CommandResult.ok()
    raise OperationCancelledError(f"delay: {reason}")


COMMANDS = (
    CommandDefinition(
        name="ps",
        core_logic=_ps,
        arg_rule=ArgRule(exact=0),
        description="List background jobs.",
        usage="Usage: ps",
    ),
    CommandDefinition(
        name="kill",
        core_logic=_kill,
        arg_rule=ArgRule(exact=1),
        description="Terminate a background job.",
        usage="Usage: kill <job_id>",
    ),
    CommandDefinition(
        name="delay",
        core_logic=_delay,
        arg_rule=ArgRule(exact=1),
        description="Wait for the given number of milliseconds.",
        usage="Usage: delay <milliseconds>",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {"ps": ("jobs",)}
