"""The pipeline runner — segments in order, then redirection.

``cat notes.txt | grep todo | sort > todo.txt`` runs like this:

1. ``cat`` runs with no input; its output becomes ``grep``'s stdin.
2. ``grep`` runs; its output becomes ``sort``'s stdin.
3. ``sort`` runs; its output is the pipeline's output.
4. Only now, with every segment successful, is the output written to
   ``todo.txt``.  Nothing is shown on the terminal.

Segments never run in parallel.  The first failing segment stops the
pipeline, later segments are never called, and the failure is reported
as ``pipeline error in '<command>': <message>``.

The runner checks the cancellation token before every segment and
again before writing a redirection target, so a killed background job
stops at the next of those points.

If a segment hands control to a sub-loop that ran out of script lines
(``ScriptingContext.waiting_for_input``), the runner returns a neutral
success at once: that sub-loop owns the rest of the script.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.cancellation import CancellationToken, Flow
from sandsh.definitions import CommandResult
from sandsh.dispatch import Invocation
from sandsh.errors import (
    CommandNotFoundError,
    OperationCancelledError,
    PermissionError,
    PipelineSegmentError,
    RedirectionError,
)
from sandsh.filesystem import FileType, Permission, split_path
from sandsh.output import StyleHint
from sandsh.parser import Pipeline, Redirection, RedirectMode

if TYPE_CHECKING:
    from sandsh.executor import ExecutorSession
    from sandsh.scripting import ScriptingContext


def append_content(old: str, new: str) -> str:
    """Join *old* and *new* with exactly one newline between them.

    The separator is added only when both are non-empty and *old* does
    not already end in a newline.
    """
    if old and new and not old.endswith("\n"):
        return f"{old}\n{new}"
    return old + new


def _cancelled(token: CancellationToken) -> CommandResult:
    return CommandResult.from_error(OperationCancelledError(token.reason or "cancelled"))


class PipelineRunner:
    """Run ``Pipeline`` objects against one session."""

    def __init__(self, session: ExecutorSession) -> None:
        """Create a runner for *session*."""
        self._session = session

    async def run(
        self,
        pipeline: Pipeline,
        *,
        token: CancellationToken,
        scripting: ScriptingContext | None = None,
        interactive: bool = True,
        suppress_output: bool = False,
    ) -> CommandResult:
        """Run *pipeline* to completion and return its result.

        Foreground output and errors go to the session's sink unless
        *suppress_output* is set; a background pipeline
        (``pipeline.is_background``) never writes inline.
        """
        result = await self._execute(pipeline, token, scripting, interactive)
        quiet = suppress_output or pipeline.is_background
        if quiet:
            return result
        output = self._session.output
        if not result.success:
            text = str(result.failure) if result.failure is not None else result.error
            output.append(text or "unknown error", StyleHint.ERROR)
        elif result.output:
            output.append(result.output, result.style or StyleHint.NORMAL)
        return result

    async def _execute(
        self,
        pipeline: Pipeline,
        token: CancellationToken,
        scripting: ScriptingContext | None,
        interactive: bool,
    ) -> CommandResult:
        session = self._session
        first = pipeline.segments[0].command if pipeline.segments else "redirect"
        last = pipeline.segments[-1].command if pipeline.segments else "redirect"

        stdin: str | None = None
        if pipeline.input_file is not None:
            try:
                stdin = self._read_input(first, pipeline.input_file)
            except RedirectionError as exc:
                return CommandResult.from_error(exc)

        result = CommandResult.ok()
        for segment in pipeline.segments:
            if token.check() is Flow.CANCELLED:
                return _cancelled(token)

            handler = session.handler_for(segment.command)
            if handler is None:
                error = CommandNotFoundError(segment.command)
                return CommandResult.fail(
                    str(error), PipelineSegmentError(segment.command, str(error))
                )

            invocation = Invocation(
                session=session,
                token=token,
                stdin=stdin,
                scripting=scripting,
                interactive=interactive,
            )
            result = await handler(segment.args, invocation)

            if scripting is not None and scripting.waiting_for_input:
                return CommandResult.ok()
            if not result.success:
                message = result.error or "unknown error"
                return CommandResult.fail(message, PipelineSegmentError(segment.command, message))
            stdin = result.output

        if pipeline.redirection is None:
            return result

        if token.check() is Flow.CANCELLED:
            return _cancelled(token)
        try:
            self._redirect(last, pipeline.redirection, result.output)
        except RedirectionError as exc:
            return CommandResult.from_error(exc)
        return CommandResult.ok()

    def _read_input(self, command: str, target: str) -> str:
        session = self._session
        user = session.current_user
        resolution = session.fs.resolve_path(
            command, target, cwd=session.cwd, user=user, expected_type=FileType.FILE
        )
        if resolution.error is not None or resolution.node is None:
            raise RedirectionError(resolution.error or f"{command}: cannot read '{target}'")
        if not session.fs.has_permission(resolution.node, user, Permission.READ):
            msg = f"{command}: no read permission on '{target}'"
            raise RedirectionError(msg)
        return resolution.node.content

    def _redirect(self, command: str, redirection: Redirection, output: str) -> None:
        """Write *output* to the redirection target.

        Raises:
            RedirectionError: For a directory target, a missing
                permission, or a path that cannot be created.

        """
        session = self._session
        fs = session.fs
        user = session.current_user
        target = redirection.target

        resolution = fs.resolve_path(
            command,
            target,
            cwd=session.cwd,
            user=user,
            allow_missing=True,
            disallow_root=True,
        )
        if resolution.error is not None:
            raise RedirectionError(resolution.error)

        node = resolution.node
        path = resolution.resolved_path
        if node is not None:
            if node.is_dir:
                msg = f"{command}: '{target}' is a directory"
                raise RedirectionError(msg)
            if not fs.has_permission(node, user, Permission.WRITE):
                msg = f"{command}: no write permission on '{target}'"
                raise RedirectionError(msg)
        else:
            parent_path, _ = split_path(path)
            parent = fs.get_node(parent_path, user=user)
            if parent is None:
                try:
                    fs.create_parent_directories(path, user=user)
                except (PermissionError, NotADirectoryError) as exc:
                    msg = f"{command}: {exc}"
                    raise RedirectionError(msg) from exc
            elif not parent.is_dir:
                msg = f"{command}: '{parent_path}' is not a directory"
                raise RedirectionError(msg)
            elif not fs.has_permission(parent, user, Permission.WRITE):
                msg = f"{command}: no create permission in '{parent_path}'"
                raise RedirectionError(msg)

        if redirection.mode is RedirectMode.APPEND and node is not None:
            content = append_content(node.content, output)
        else:
            content = output
        try:
            fs.create_or_update_file(path, content, owner=user)
        except (FileNotFoundError, IsADirectoryError) as exc:
            msg = f"{command}: {exc}"
            raise RedirectionError(msg) from exc
