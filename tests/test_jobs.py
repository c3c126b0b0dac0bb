"""Tests for background jobs.

A background pipeline runs as an asyncio task wrapped in a ``Job``.
Job numbers start at 1 and are never reused.  ``kill`` flips the job's
cancellation token and removes it from the table at once.
"""

import asyncio

import pytest

from sandsh.bootloader import Bootloader
from sandsh.definitions import CommandResult
from sandsh.errors import JobNotFoundError
from sandsh.executor import ExecutorSession
from sandsh.jobs import KILL_REASON, Job, JobController
from sandsh.logging import Logger, LogLevel
from sandsh.output import OutputSink


def _booted() -> ExecutorSession:
    """Boot a default session (root in /home/root)."""
    return Bootloader().boot()


async def _succeed(_job: Job) -> CommandResult:
    return CommandResult.ok("done")


async def _fail(_job: Job) -> CommandResult:
    return CommandResult.fail("boom")


async def _wait_for_kill(job: Job) -> CommandResult:
    reason = await job.token.wait()
    return CommandResult.fail(reason)


class TestJobController:
    """Verify the job table."""

    @pytest.mark.asyncio
    async def test_ids_increase_and_are_not_reused(self) -> None:
        """Ids keep counting up after earlier jobs end."""
        controller = JobController(OutputSink())
        first = controller.spawn("a", _succeed)
        second = controller.spawn("b", _succeed)
        await controller.wait_all()
        third = controller.spawn("c", _succeed)
        await controller.wait_all()
        assert [first.job_id, second.job_id, third.job_id] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_spawn_does_not_wait(self) -> None:
        """A spawned job is listed before it has run."""
        controller = JobController(OutputSink())
        job = controller.spawn("a", _succeed)
        assert controller.list() == [job]
        assert str(job) == "[1] running a"
        await controller.wait_all()
        assert len(controller) == 0

    @pytest.mark.asyncio
    async def test_finished_notice(self) -> None:
        """A successful job announces itself in the background style."""
        output = OutputSink()
        controller = JobController(output)
        controller.spawn("a", _succeed)
        await controller.wait_all()
        assert output.texts == ["[Job 1 finished]"]
        assert output.lines[0].background

    @pytest.mark.asyncio
    async def test_error_notice_and_log(self) -> None:
        """A failed job reports its error and logs it."""
        output = OutputSink()
        logger = Logger()
        controller = JobController(output, logger)
        controller.spawn("a", _fail)
        await controller.wait_all()
        assert output.texts == ["[Job 1 finished with error: boom]"]
        errors = logger.filter(min_level=LogLevel.ERROR, source="jobs")
        assert [e.message for e in errors] == ["job 1: boom"]

    @pytest.mark.asyncio
    async def test_kill(self) -> None:
        """Killing removes the job at once and cancels its token."""
        output = OutputSink()
        controller = JobController(output)
        job = controller.spawn("wait", _wait_for_kill)
        result = controller.kill(job.job_id)
        assert result.output == "Signal sent to terminate job 1."
        assert controller.list() == []
        assert job.token.reason == KILL_REASON
        await controller.wait_all()
        assert output.texts == [f"[Job 1 finished with error: {KILL_REASON}]"]

    @pytest.mark.asyncio
    async def test_kill_twice_not_found(self) -> None:
        """A second kill of the same id is a not-found failure."""
        controller = JobController(OutputSink())
        job = controller.spawn("wait", _wait_for_kill)
        controller.kill(job.job_id)
        result = controller.kill(job.job_id)
        assert not result.success
        assert isinstance(result.failure, JobNotFoundError)
        assert result.error == "job 1 not found"
        await controller.wait_all()

    @pytest.mark.asyncio
    async def test_kill_finished_not_found(self) -> None:
        """A finished job can no longer be killed."""
        controller = JobController(OutputSink())
        job = controller.spawn("a", _succeed)
        await controller.wait_all()
        assert not controller.kill(job.job_id).success
        assert controller.get(job.job_id) is None


class TestBackgroundLines:
    """Verify ``&`` through the session."""

    @pytest.mark.asyncio
    async def test_start_then_kill(self) -> None:
        """``delay 10000 &`` returns at once; ``kill 1`` removes it."""
        session = _booted()
        started = await session.run_line("delay 10000 &", interactive=False)
        assert started.success
        assert started.output == "[1] started as job 1"
        assert [job.job_id for job in session.list_jobs()] == [1]

        killed = await session.run_line("kill 1", interactive=False)
        assert killed.success
        assert killed.output == "Signal sent to terminate job 1."
        assert session.list_jobs() == []
        await session.jobs.wait_all()

    @pytest.mark.asyncio
    async def test_killed_delay_finishes_with_error(self) -> None:
        """A killed ``delay`` ends its job with an error notice."""
        session = _booted()
        await session.run_line("delay 10000 &", interactive=False)
        await asyncio.sleep(0)
        session.kill_job(1)
        await session.jobs.wait_all()
        notice = session.output.texts[-1]
        assert notice.startswith("[Job 1 finished with error:")
        assert KILL_REASON in notice

    @pytest.mark.asyncio
    async def test_background_output_not_inline(self) -> None:
        """Only the start and finish notices reach the sink."""
        session = _booted()
        await session.run_line("echo hi &", interactive=False)
        await session.jobs.wait_all()
        assert session.output.texts == ["[1] started as job 1", "[Job 1 finished]"]

    @pytest.mark.asyncio
    async def test_background_failure_logged(self) -> None:
        """A background pipeline error is logged in full, never shown inline."""
        session = _booted()
        await session.run_line("cat /missing &", interactive=False)
        await session.jobs.wait_all()
        assert not any(t.startswith("pipeline error") for t in session.output.texts)
        assert session.output.texts[-1].startswith("[Job 1 finished with error: cat:")
        logged = session.logger.filter(source="jobs", min_level=LogLevel.ERROR)
        assert "pipeline error in 'cat'" in logged[0].message

    @pytest.mark.asyncio
    async def test_ps_lists_jobs(self) -> None:
        """``ps`` (and ``jobs``) list live jobs."""
        session = _booted()
        empty = await session.run_line("ps", interactive=False)
        assert empty.output == "No background jobs."
        await session.run_line("delay 10000 &", interactive=False)
        listing = await session.run_line("jobs", interactive=False)
        assert listing.output == "[1] running delay 10000"
        session.kill_job(1)
        await session.jobs.wait_all()

    @pytest.mark.asyncio
    async def test_kill_errors(self) -> None:
        """Bad or unknown ids fail with a kill-prefixed message."""
        session = _booted()
        missing = await session.run_line("kill 7", interactive=False)
        assert missing.error == "kill: job 7 not found"
        invalid = await session.run_line("kill abc", interactive=False)
        assert (invalid.error or "").startswith("kill: invalid job id 'abc'")

    @pytest.mark.asyncio
    async def test_kill_percent_form(self) -> None:
        """``kill %1`` is accepted."""
        session = _booted()
        await session.run_line("delay 10000 &", interactive=False)
        result = await session.run_line("kill %1", interactive=False)
        assert result.success
        await session.jobs.wait_all()

    @pytest.mark.asyncio
    async def test_ids_never_reused_across_lines(self) -> None:
        """Job ids keep counting after earlier jobs finish."""
        session = _booted()
        await session.run_line("echo a &", interactive=False)
        await session.jobs.wait_all()
        result = await session.run_line("echo b &", interactive=False)
        assert result.output == "[2] started as job 2"
        await session.jobs.wait_all()


class TestShutdown:
    """Verify that shutting down stops live jobs."""

    @pytest.mark.asyncio
    async def test_long_delay_is_killed(self) -> None:
        """A long ``delay`` job does not hold up shutdown."""
        session = _booted()
        await session.run_line("delay 100000 &", interactive=False)
        await asyncio.wait_for(session.shutdown(), timeout=1)
        assert session.list_jobs() == []
        notice = session.output.texts[-1]
        assert notice.startswith("[Job 1 finished with error:")
        assert KILL_REASON in notice


class TestKilledWhilePrompting:
    """Verify that a killed job gives up the prompt it was waiting on."""

    @pytest.mark.asyncio
    async def test_adventure_job(self) -> None:
        """The next typed line runs as a command, not as a game move."""
        session = _booted()
        await session.run_line("adventure &", interactive=False)
        await asyncio.wait_for(session.prompts.wait_for_prompt(), timeout=1)
        assert session.prompts.has_pending

        session.kill_job(1)
        await session.jobs.wait_all()
        assert not session.prompts.has_pending
        notice = session.output.texts[-1]
        assert notice == f"[Job 1 finished with error: adventure: {KILL_REASON}]"

        result = await session.handle_input("echo hi")
        assert result is not None
        assert result.output == "hi"

    @pytest.mark.asyncio
    async def test_rm_confirmation_job(self) -> None:
        """A killed ``rm -r`` leaves its directory and no pending prompt."""
        session = _booted()
        await session.run_line("mkdir -p /tmp/d/e", interactive=False)
        await session.run_line("rm -r /tmp/d &", interactive=False)
        await asyncio.wait_for(session.prompts.wait_for_prompt(), timeout=1)

        session.kill_job(1)
        await session.jobs.wait_all()
        assert not session.prompts.has_pending
        assert session.fs.get_node("/tmp/d") is not None
