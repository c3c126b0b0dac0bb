"""Script commands: run and check_fail.

``run deploy.sh a b`` plays ``deploy.sh`` line by line through
``ExecutorSession.run_script``: ``$1``/``$2`` become ``a``/``b``, and
any prompt a line raises is answered by the script's following line.

``check_fail "<command>"`` inverts a command's outcome, for test
scripts that check error paths.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.definitions import ArgRule, CommandDefinition, CommandResult, PathRule, PermissionRule
from sandsh.errors import ShellError
from sandsh.filesystem import FileType, Permission

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext

SCRIPT_SUFFIX = ".sh"


async def _run(ctx: ExecutionContext) -> CommandResult:
    path, *args = ctx.args
    if not path.endswith(SCRIPT_SUFFIX):
        msg = f"run: '{path}' is not a shell script ({SCRIPT_SUFFIX})"
        raise ShellError(msg)
    resolution = ctx.path(0)
    if resolution is None or resolution.node is None:
        msg = f"run: '{path}': No such file or directory"
        raise ShellError(msg)

    result = await ctx.session.run_script(
        resolution.node.content, args=args, name=path, token=ctx.token
    )
    if not result.success:
        return CommandResult.fail(f"run: {result.error}", result.failure)
    return result


async def _check_fail(ctx: ExecutionContext) -> CommandResult:
    command = ctx.args[0].strip()
    if not command:
        msg = "check_fail: command string argument cannot be empty"
        raise ShellError(msg)
    result = await ctx.session.run_line(
        command,
        interactive=False,
        scripting=ctx.scripting,
        suppress_output=True,
        token=ctx.token,
    )
    if result.success:
        msg = f"check_fail: command <{command}> unexpectedly succeeded"
        raise ShellError(msg)
    return CommandResult.ok(
        f"check_fail: command <{command}> failed as expected ({result.error or 'N/A'})"
    )


COMMANDS = (
    CommandDefinition(
        name="run",
        core_logic=_run,
        arg_rule=ArgRule(min=1),
        path_rules=(PathRule(0, expected_type=FileType.FILE),),
        permission_rules=(PermissionRule(0, (Permission.READ, Permission.EXECUTE)),),
        description="Run a shell script, answering prompts from its own lines.",
        usage="Usage: run <script.sh> [args...]",
    ),
    CommandDefinition(
        name="check_fail",
        core_logic=_check_fail,
        arg_rule=ArgRule(exact=1),
        description="Succeed only if the quoted command fails.",
        usage='Usage: check_fail "<command>"',
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
