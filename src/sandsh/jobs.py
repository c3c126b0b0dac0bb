"""Job control — background pipelines and how to stop them.

``sleep 60 &`` in a real shell forks a process and records a *job* for
it.  Here there are no processes: a background pipeline is an asyncio
task on the session's event loop, and the job is the shell-level
record that wraps it.

Key ideas:
    - **Job numbers are small and never reused** — ``[1]``, ``[2]``,
      ... from ``itertools.count``, for the whole life of the session,
      even after earlier jobs finish or are killed.
    - **Spawning does not wait** — ``spawn`` schedules the task and
      returns at once; the job's output is never shown inline, only a
      completion notice when it ends.
    - **Killing is cooperative** — ``kill`` flips the job's
      ``CancellationToken`` and drops the job from the table
      *immediately*.  The task stops at its next checkpoint; until then
      it is still unwinding but no longer listed, and a second ``kill``
      reports "not found".

The table is plain session state with a single writer at a time (the
event loop), so there are no locks.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from itertools import count

from sandsh.cancellation import CancellationToken
from sandsh.definitions import CommandResult
from sandsh.errors import JobNotFoundError
from sandsh.logging import Logger, LogLevel
from sandsh.output import OutputSink, StyleHint

KILL_REASON = "Killed by user command."


@dataclass
class Job:
    """A background pipeline tracked by the shell.

    Attributes:
        job_id: Small human-friendly job number ([1], [2], ...).
        command: The command text, for listings.
        token: Cancellation handle shared with the running task.
        task: The asyncio task running the pipeline.

    """

    job_id: int
    command: str
    token: CancellationToken = field(default_factory=CancellationToken)
    task: asyncio.Task[CommandResult] | None = field(default=None, repr=False)

    def __str__(self) -> str:
        """Format as ``[id] running command``."""
        return f"[{self.job_id}] running {self.command}"


type JobRunner = Callable[[Job], Awaitable[CommandResult]]


class JobController:
    """Spawn, list and kill background jobs for one session."""

    def __init__(self, output: OutputSink, logger: Logger | None = None) -> None:
        """Create an empty job table reporting to *output* and *logger*."""
        self._output = output
        self._logger = logger if logger is not None else Logger()
        self._jobs: dict[int, Job] = {}
        self._tasks: set[asyncio.Task[CommandResult]] = set()
        self._counter = count(start=1)

    def spawn(self, command: str, runner: JobRunner) -> Job:
        """Register a job and schedule *runner* without waiting for it.

        Must be called from inside the running event loop.

        Args:
            command: Text shown by ``jobs``/``ps``.
            runner: Called with the new job; runs the pipeline.

        Returns:
            The newly created job (already in the table).

        """
        job = Job(job_id=next(self._counter), command=command)
        self._jobs[job.job_id] = job
        task = asyncio.get_running_loop().create_task(self._run(job, runner))
        job.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._logger.log(LogLevel.INFO, f"job {job.job_id} started: {command}", source="jobs")
        return job

    async def _run(self, job: Job, runner: JobRunner) -> CommandResult:
        try:
            result = await runner(job)
        finally:
            self._jobs.pop(job.job_id, None)

        if result.success:
            self._output.append(f"[Job {job.job_id} finished]", StyleHint.INFO, background=True)
            self._logger.log(LogLevel.INFO, f"job {job.job_id} finished", source="jobs")
        else:
            message = result.error or "unknown error"
            self._output.append(
                f"[Job {job.job_id} finished with error: {message}]",
                StyleHint.ERROR,
                background=True,
            )
            detail = str(result.failure) if result.failure is not None else message
            self._logger.log(LogLevel.ERROR, f"job {job.job_id}: {detail}", source="jobs")
        return result

    def kill(self, job_id: int) -> CommandResult:
        """Cancel job *job_id* and remove it from the table at once."""
        job = self._jobs.pop(job_id, None)
        if job is None:
            return CommandResult.from_error(JobNotFoundError(job_id))
        job.token.cancel(KILL_REASON)
        self._logger.log(LogLevel.INFO, f"job {job_id} killed", source="jobs")
        return CommandResult.ok(f"Signal sent to terminate job {job_id}.")

    def get(self, job_id: int) -> Job | None:
        """Return a live job by its id, or None."""
        return self._jobs.get(job_id)

    def list(self) -> list[Job]:
        """Return a snapshot of the live jobs, sorted by id."""
        return sorted(self._jobs.values(), key=lambda job: job.job_id)

    async def wait_all(self) -> None:
        """Wait until every spawned task (killed ones included) has ended."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        """Return the number of live jobs."""
        return len(self._jobs)
