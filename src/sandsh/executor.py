"""The executor session — one running shell and everything it owns.

A session holds all the mutable state of a shell: the job table, the
prompt service, the output sink, the environment, aliases, history,
the stack of logged-in users and the current directory.  Nothing lives
in module globals, so two sessions (or two tests) never see each
other's jobs or prompts.

Entry points:

- ``run_line`` — run one command line.  Used by the terminal, by the
  script runner and by commands such as ``check_fail``.
- ``handle_input`` — what a terminal calls with each line the human
  types.  If a prompt is waiting, the line answers it; otherwise the
  line starts a new foreground command.
- ``run_script`` — run a script line by line with a scripting context,
  so prompts consume script lines instead of waiting for a human.

A line is processed as: variable expansion → alias resolution → glob
expansion → parsing → the pipelines in order.  ``&`` sends the pipeline
before it to the background; ``&&`` and ``||`` make the next pipeline
depend on the previous one's success; after ``;`` a failure stops the
rest of the line.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sandsh.aliases import MAX_ALIAS_EXPANSIONS, AliasTable
from sandsh.cancellation import CancellationToken, Flow
from sandsh.definitions import CommandDefinition, CommandRegistry, CommandResult
from sandsh.dispatch import CommandHandler, wrap
from sandsh.env import Environment
from sandsh.errors import AliasLoopError, OperationCancelledError, ParseError, ShellError
from sandsh.expansion import expand_globs, expand_script_args, expand_variables
from sandsh.history import History
from sandsh.jobs import Job, JobController
from sandsh.logging import Logger, LogLevel
from sandsh.output import OutputSink, StyleHint
from sandsh.parser import Pipeline, parse
from sandsh.pipeline import PipelineRunner
from sandsh.prompts import PromptService
from sandsh.scripting import ScriptingContext, strip_inline_comment
from sandsh.users import ROOT_USER

if TYPE_CHECKING:
    from sandsh.filesystem import FileSystem
    from sandsh.users import UserManager

MAX_SCRIPT_DEPTH = 16


@dataclass(frozen=True)
class SessionConfig:
    """Tunables for one session (filled from the boot image)."""

    hostname: str = "sandbox"
    max_script_steps: int = 10_000
    max_alias_expansions: int = MAX_ALIAS_EXPANSIONS
    history_limit: int = 500


@dataclass
class _Login:
    user: str
    cwd: str


class ExecutorSession:
    """One shell session: state plus the ways to run commands in it."""

    def __init__(
        self,
        fs: FileSystem,
        users: UserManager,
        *,
        config: SessionConfig | None = None,
        env: dict[str, str] | None = None,
        aliases: dict[str, str] | None = None,
        user: str = ROOT_USER,
        cwd: str = "/",
    ) -> None:
        """Create a session over *fs* and *users*.

        No commands are registered yet; see
        ``sandsh.commands.register_builtins``.
        """
        self.fs = fs
        self.users = users
        self.config = config or SessionConfig()
        self.logger = Logger()
        self.output = OutputSink()
        self.prompts = PromptService(self.output, self.logger)
        self.jobs = JobController(self.output, self.logger)
        self.env = Environment(env)
        self.aliases = AliasTable(aliases, max_expansions=self.config.max_alias_expansions)
        self.history = History(limit=self.config.history_limit)
        self.registry = CommandRegistry()
        self._handlers: dict[str, CommandHandler] = {}
        self._logins: list[_Login] = [_Login(user=user, cwd=cwd)]
        self._runner = PipelineRunner(self)
        self._foreground: asyncio.Task[CommandResult] | None = None
        self._script_depth = 0

    # -- registry ---------------------------------------------------------

    def register(self, definition: CommandDefinition, *aliases: str) -> None:
        """Register *definition* (and *aliases*) and wrap its handler."""
        self.registry.register(definition, *aliases)
        handler = wrap(definition)
        for name in (definition.name, *aliases):
            self._handlers[name] = handler

    def handler_for(self, name: str) -> CommandHandler | None:
        """Return the wrapped handler for command *name*, or None."""
        return self._handlers.get(name)

    def get_registered_commands(self) -> dict[str, CommandDefinition]:
        """Return name → definition for every registered command."""
        return self.registry.as_dict()

    # -- identity and location --------------------------------------------

    @property
    def current_user(self) -> str:
        """Return the acting username."""
        return self._logins[-1].user

    @property
    def cwd(self) -> str:
        """Return the current working directory."""
        return self._logins[-1].cwd

    @cwd.setter
    def cwd(self, path: str) -> None:
        self._logins[-1].cwd = path
        self.env.set("PWD", path)

    @property
    def login_depth(self) -> int:
        """Return how many ``su`` sessions are stacked on the first login."""
        return len(self._logins) - 1

    def push_user(self, username: str, cwd: str) -> None:
        """Switch to *username* (``su``), remembering the current login."""
        self._logins.append(_Login(user=username, cwd=cwd))
        self.env.set("USER", username)
        self.env.set("PWD", cwd)

    def pop_user(self) -> str:
        """Return to the previous login (``logout``).

        Raises:
            ShellError: If this is the first login.

        """
        if len(self._logins) == 1:
            msg = "no previous login to return to"
            raise ShellError(msg)
        left = self._logins.pop()
        self.env.set("USER", self.current_user)
        self.env.set("PWD", self.cwd)
        return left.user

    def prompt_string(self) -> str:
        """Return the shell prompt, e.g. ``alice@sandbox:/home/alice$ ``."""
        return f"{self.current_user}@{self.config.hostname}:{self.cwd}$ "

    # -- jobs -------------------------------------------------------------

    def list_jobs(self) -> list[Job]:
        """Return the live background jobs."""
        return self.jobs.list()

    def kill_job(self, job_id: int) -> CommandResult:
        """Cancel background job *job_id*."""
        return self.jobs.kill(job_id)

    # -- running lines ----------------------------------------------------

    async def run_line(
        self,
        raw: str,
        *,
        interactive: bool = True,
        scripting: ScriptingContext | None = None,
        suppress_output: bool = False,
        token: CancellationToken | None = None,
    ) -> CommandResult:
        """Run one command line and return the last pipeline's result.

        Args:
            raw: The line as typed.
            interactive: True when a human typed it (echoed and recorded
                in history).
            scripting: The script cursor when running inside a script.
            suppress_output: Show nothing on the sink (``check_fail``).
            token: Cancellation token; a fresh one when omitted.

        """
        line = raw.strip()
        if not line:
            return CommandResult.ok()
        if interactive:
            self.output.append(f"{self.prompt_string()}{line}", StyleHint.COMMAND)
            self.history.add(line)
        token = token if token is not None else CancellationToken()

        try:
            expanded = expand_variables(line, self.env)
            expanded = self.aliases.resolve(expanded)
            expanded = expand_globs(expanded, self.fs, self.cwd, self.current_user)
            entries = parse(expanded)
        except (AliasLoopError, ParseError) as exc:
            if not suppress_output:
                self.output.append(str(exc), StyleHint.ERROR)
            self._log_failure(line, str(exc))
            return CommandResult.from_error(exc)

        result = CommandResult.ok()
        ran_previous = False
        for index, entry in enumerate(entries):
            if index:
                previous = entries[index - 1].operator
                if previous == "&&" and not result.success:
                    ran_previous = False
                    continue
                if previous == "||" and result.success:
                    ran_previous = False
                    continue
                if previous == ";" and ran_previous and not result.success:
                    break

            pipeline = entry.pipeline
            if entry.operator == "&":
                result = self._spawn(pipeline, suppress_output=suppress_output)
            else:
                result = await self._runner.run(
                    pipeline,
                    token=token,
                    scripting=scripting,
                    interactive=interactive,
                    suppress_output=suppress_output,
                )
                if not result.success:
                    self._log_failure(line, result.error or "")
            ran_previous = True
            if scripting is not None and scripting.waiting_for_input:
                break
        return result

    def _spawn(self, pipeline: Pipeline, *, suppress_output: bool) -> CommandResult:
        pipeline.is_background = True

        async def run_job(job: Job) -> CommandResult:
            return await self._runner.run(pipeline, token=job.token, interactive=False)

        job = self.jobs.spawn(str(pipeline), run_job)
        pipeline.job_id = job.job_id
        notice = f"[{job.job_id}] started as job {job.job_id}"
        if not suppress_output:
            self.output.append(notice, StyleHint.INFO)
        return CommandResult.ok(notice)

    def _log_failure(self, line: str, message: str) -> None:
        self.logger.log(
            LogLevel.WARNING,
            f"'{line}' failed: {message}",
            source="executor",
            user=self.current_user,
        )

    # -- terminal input ---------------------------------------------------

    async def handle_input(self, line: str) -> CommandResult | None:
        """Feed one typed line to the session.

        The line answers a pending prompt if there is one; otherwise it
        starts a new foreground command.

        Returns:
            The foreground command's result once it finishes, or None
            while it is suspended waiting for a prompt answer.

        """
        if self.prompts.has_pending:
            self.prompts.submit(line)
        elif self._foreground is not None and not self._foreground.done():
            self.output.append("A command is still running.", StyleHint.WARNING)
            return CommandResult.fail("A command is still running.")
        else:
            self._foreground = asyncio.get_running_loop().create_task(self.run_line(line))
        return await self._wait_foreground()

    async def _wait_foreground(self) -> CommandResult | None:
        task = self._foreground
        if task is None:
            return None
        waiter = asyncio.get_running_loop().create_task(self.prompts.wait_for_prompt())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if not task.done():
            return None
        self._foreground = None
        return task.result()

    @property
    def busy(self) -> bool:
        """Return True while a foreground command is still running."""
        return self._foreground is not None and not self._foreground.done()

    async def shutdown(self) -> None:
        """Kill live jobs and decline any pending prompt, then wait for every task."""
        self.prompts.cancel_pending()
        for job in self.jobs.list():
            self.jobs.kill(job.job_id)
        if self._foreground is not None:
            await asyncio.gather(self._foreground, return_exceptions=True)
            self._foreground = None
        await self.jobs.wait_all()

    # -- scripts ----------------------------------------------------------

    async def run_script(
        self,
        text: str,
        *,
        args: Sequence[str] = (),
        name: str = "<script>",
        token: CancellationToken | None = None,
    ) -> CommandResult:
        """Run *text* line by line, answering prompts from the script.

        Stops at the first failing line, when a sub-loop is left
        waiting for input, when *token* is cancelled, or after
        ``config.max_script_steps`` lines.
        """
        if self._script_depth >= MAX_SCRIPT_DEPTH:
            msg = f"maximum script nesting depth ({MAX_SCRIPT_DEPTH}) exceeded"
            return CommandResult.fail(msg, ShellError(msg))

        lines = text.splitlines()
        ctx = ScriptingContext(lines=lines)
        token = token if token is not None else CancellationToken()
        steps = 0
        pc = 0
        self._script_depth += 1
        try:
            while pc < len(lines):
                if token.check() is Flow.CANCELLED:
                    return CommandResult.from_error(
                        OperationCancelledError(token.reason or "cancelled")
                    )
                ctx.seek(pc)
                raw = lines[pc]
                line = strip_inline_comment(raw).strip()
                if line and not line.startswith("#"):
                    if steps >= self.config.max_script_steps:
                        msg = (
                            f"Script '{name}' stopped: exceeded "
                            f"{self.config.max_script_steps} steps"
                        )
                        self.output.append(msg, StyleHint.ERROR)
                        return CommandResult.fail(msg, ShellError(msg))
                    steps += 1
                    line = expand_script_args(line, args)
                    result = await self.run_line(
                        line, interactive=False, scripting=ctx, token=token
                    )
                    if not result.success:
                        msg = f"Script '{name}' error on line {pc + 1}: {raw.strip()}"
                        self.output.append(msg, StyleHint.ERROR)
                        self.logger.log(
                            LogLevel.WARNING, msg, source="script", user=self.current_user
                        )
                        return CommandResult.fail(msg, result.failure)
                    if ctx.waiting_for_input:
                        break
                pc = ctx.current_line_index + 1
        finally:
            self._script_depth -= 1
        return CommandResult.ok()
