"""Prompt service — one way to ask a question, two ways to answer it.

Commands that need a decision (``rm -r`` asking for confirmation, ``su``
asking for a password) call ``request_decision``.  Which backend answers
depends only on whether a scripting context is present:

**Scripted backend** — the answer is the script's next usable line
(``ScriptingContext.next_answer``).  It is an ``async def`` with no
``await`` on its path, so the coroutine finishes without ever yielding
to the event loop: the command continues on the same call stack, just
as if the answer had been typed instantly.  The question and the
"typed" answer are echoed to the sink, so a script transcript reads
like an interactive session.

**Interactive backend** — the service stores a pending ``Future`` and
the command awaits it.  The terminal keeps reading lines; while a
prompt is pending, ``ExecutorSession.handle_input`` sends the next line
to ``submit`` instead of running it.  Only one prompt may be pending at
a time; a second request gets ``BUSY`` at once instead of queueing.

A confirmation counts only if the answer is ``YES`` (any case).  A
script that runs out of lines produces ``EXHAUSTED``, which callers
treat exactly like "no".  So does a pending prompt whose command is
cancelled (a killed background job): the prompt is withdrawn and the
next typed line runs as a command again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from sandsh.logging import Logger, LogLevel
from sandsh.output import OutputSink, StyleHint

if TYPE_CHECKING:
    from sandsh.cancellation import CancellationToken
    from sandsh.scripting import ScriptingContext

CONFIRM_TOKEN = "YES"
CONFIRM_HINT = f"Type {CONFIRM_TOKEN} to confirm, anything else to cancel."
EXHAUSTED_MESSAGE = "Script ended while awaiting input."
BUSY_MESSAGE = "Another prompt is already active."


class PromptKind(StrEnum):
    """What sort of answer a prompt wants."""

    CONFIRM = "confirm"
    TEXT = "text"
    PASSWORD = "password"


class OutcomeStatus(StrEnum):
    """How a prompt was resolved."""

    CONFIRMED = "confirmed"
    DECLINED = "declined"
    ANSWERED = "answered"
    EXHAUSTED = "exhausted"
    BUSY = "busy"


@dataclass(frozen=True)
class PromptRequest:
    """A question for the user.

    Attributes:
        kind: Confirmation, free text, or password.
        message_lines: Lines shown before asking.
        prompt: The text shown right before the answer.

    """

    kind: PromptKind
    message_lines: tuple[str, ...] = ()
    prompt: str = "> "


@dataclass(frozen=True)
class Outcome:
    """The resolution of a ``PromptRequest``."""

    status: OutcomeStatus
    answer: str | None = None

    @property
    def accepted(self) -> bool:
        """Return True for a confirmed or answered prompt."""
        return self.status in (OutcomeStatus.CONFIRMED, OutcomeStatus.ANSWERED)


@dataclass
class _Pending:
    request: PromptRequest
    future: asyncio.Future[Outcome] = field(repr=False)


def _resolve(request: PromptRequest, answer: str) -> Outcome:
    if request.kind is PromptKind.CONFIRM:
        if answer.strip().upper() == CONFIRM_TOKEN:
            return Outcome(OutcomeStatus.CONFIRMED, answer)
        return Outcome(OutcomeStatus.DECLINED, answer)
    return Outcome(OutcomeStatus.ANSWERED, answer)


def _shown(request: PromptRequest, answer: str) -> str:
    if request.kind is PromptKind.PASSWORD:
        return "*" * len(answer)
    return answer


class PromptService:
    """Issue prompts and route answers to them."""

    def __init__(self, output: OutputSink, logger: Logger | None = None) -> None:
        """Create a service writing to *output* and logging to *logger*."""
        self._output = output
        self._logger = logger if logger is not None else Logger()
        self._pending: _Pending | None = None
        self._prompt_event: asyncio.Event | None = None

    @property
    def has_pending(self) -> bool:
        """Return True while an interactive prompt waits for a line."""
        return self._pending is not None

    @property
    def pending_request(self) -> PromptRequest | None:
        """Return the request currently waiting, if any."""
        return self._pending.request if self._pending is not None else None

    async def request_decision(
        self,
        request: PromptRequest,
        scripting: ScriptingContext | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> Outcome:
        """Ask *request* and return how it was answered.

        An interactive prompt asked on behalf of *token* is withdrawn as
        ``EXHAUSTED`` as soon as the token is cancelled.
        """
        if scripting is not None and scripting.is_scripting:
            return await self._scripted(request, scripting)
        return await self._interactive(request, token)

    async def _scripted(self, request: PromptRequest, scripting: ScriptingContext) -> Outcome:
        self._show(request)
        answer = scripting.next_answer()
        if answer is None:
            self._output.append(EXHAUSTED_MESSAGE, StyleHint.WARNING)
            self._logger.log(LogLevel.DEBUG, "script exhausted at prompt", source="prompts")
            return Outcome(OutcomeStatus.EXHAUSTED)
        self._output.append(f"{request.prompt}{_shown(request, answer)}")
        outcome = _resolve(request, answer)
        self._logger.log(
            LogLevel.DEBUG,
            f"scripted {request.kind} prompt resolved as {outcome.status}",
            source="prompts",
        )
        return outcome

    async def _interactive(
        self, request: PromptRequest, token: CancellationToken | None
    ) -> Outcome:
        if token is not None and token.cancelled:
            return Outcome(OutcomeStatus.EXHAUSTED)
        if self._pending is not None:
            self._output.append(BUSY_MESSAGE, StyleHint.WARNING)
            return Outcome(OutcomeStatus.BUSY)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Outcome] = loop.create_future()
        self._pending = _Pending(request=request, future=future)
        self._show(request)
        if self._prompt_event is not None:
            self._prompt_event.set()
        watcher = None
        if token is not None:
            watcher = loop.create_task(token.wait())
            watcher.add_done_callback(lambda _: self._withdraw(future))
        try:
            return await future
        finally:
            if watcher is not None:
                watcher.cancel()
            if self._pending is not None and self._pending.future is future:
                self._pending = None

    def _withdraw(self, future: asyncio.Future[Outcome]) -> None:
        if future.done():
            return
        if self._pending is not None and self._pending.future is future:
            self._pending = None
        self._logger.log(LogLevel.DEBUG, "prompt withdrawn: command cancelled", source="prompts")
        future.set_result(Outcome(OutcomeStatus.EXHAUSTED))

    async def wait_for_prompt(self) -> None:
        """Return once an interactive prompt is pending."""
        if self._pending is not None:
            return
        event = self._prompt_event = asyncio.Event()
        try:
            await event.wait()
        finally:
            if self._prompt_event is event:
                self._prompt_event = None

    def submit(self, line: str) -> bool:
        """Answer the pending prompt with *line*.

        Returns:
            False when no prompt is pending (the line was not used).

        """
        pending = self._pending
        if pending is None or pending.future.done():
            return False
        self._output.append(
            f"{pending.request.prompt}{_shown(pending.request, line)}", StyleHint.COMMAND
        )
        self._pending = None
        pending.future.set_result(_resolve(pending.request, line))
        return True

    def cancel_pending(self) -> bool:
        """Resolve a pending prompt as EXHAUSTED (shutdown, Ctrl-C)."""
        pending = self._pending
        if pending is None or pending.future.done():
            return False
        self._pending = None
        pending.future.set_result(Outcome(OutcomeStatus.EXHAUSTED))
        return True

    def _show(self, request: PromptRequest) -> None:
        for line in request.message_lines:
            self._output.append(line, StyleHint.INFO)
        if request.kind is PromptKind.CONFIRM:
            self._output.append(CONFIRM_HINT, StyleHint.INFO)

    # -- convenience wrappers ---------------------------------------------

    async def confirm(
        self,
        lines: list[str] | tuple[str, ...],
        scripting: ScriptingContext | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> bool:
        """Ask for a YES confirmation; return True only if given."""
        request = PromptRequest(PromptKind.CONFIRM, tuple(lines))
        outcome = await self.request_decision(request, scripting, token=token)
        return outcome.status is OutcomeStatus.CONFIRMED

    async def ask(
        self,
        message: str,
        scripting: ScriptingContext | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> str | None:
        """Ask for a line of text; None when declined, exhausted or busy."""
        request = PromptRequest(PromptKind.TEXT, (), prompt=message)
        outcome = await self.request_decision(request, scripting, token=token)
        return outcome.answer if outcome.accepted else None

    async def ask_password(
        self,
        message: str = "Password: ",
        scripting: ScriptingContext | None = None,
        *,
        token: CancellationToken | None = None,
    ) -> str | None:
        """Ask for a password; the answer is masked in the transcript."""
        request = PromptRequest(PromptKind.PASSWORD, (), prompt=message)
        outcome = await self.request_decision(request, scripting, token=token)
        return outcome.answer if outcome.accepted else None
