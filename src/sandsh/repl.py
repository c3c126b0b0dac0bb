"""Interactive REPL (Read-Eval-Print Loop) for sandsh.

The REPL is the terminal interface that brings the shell to life.  It
boots a session via the bootloader and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the line to ``session.handle_input()``.
    3. **Print** — sink lines are printed as they arrive.
    4. **Loop** — repeat until ``exit`` or end of input.

The session is asynchronous, so the loop runs inside ``asyncio.run``
and reads lines with ``input()`` in the default executor: background
jobs keep running on the event loop while the REPL waits for a key
press, and their completion notices appear as soon as they finish.

While a command waits for an answer (``rm -r`` confirmation, ``su``
password), the REPL shows that question's own prompt and the next line
typed answers it instead of starting a new command.  Passwords are
read without echo.

The helper functions (``build_prompt``, ``format_boot_log``,
``render_line``) are pure and testable.  The ``run()`` function is the
I/O entrypoint.
"""

import asyncio
import getpass
import readline
from collections.abc import Callable
from pathlib import Path

from sandsh.bootloader import Bootloader
from sandsh.completer import Completer
from sandsh.executor import ExecutorSession
from sandsh.output import OutputLine, StyleHint
from sandsh.prompts import PromptKind

EXIT_COMMANDS = frozenset({"exit", "quit"})

_BANNER_WIDTH = 38
_STYLE_PREFIX = {
    StyleHint.ERROR: "\033[31m",
    StyleHint.WARNING: "\033[33m",
    StyleHint.SUCCESS: "\033[32m",
    StyleHint.INFO: "\033[36m",
}
_RESET = "\033[0m"


def format_boot_log(boot_log: list[str]) -> str:
    """Format the boot log into a displayable banner string.

    Args:
        boot_log: List of boot messages from the bootloader.

    Returns:
        A formatted string suitable for printing to the console.

    """
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n            sandsh\n     A sandboxed simulated shell\n  {border}\n\n"
    body = "\n".join(f"  {msg}" for msg in boot_log)
    footer = "\nSession ready. Type 'help' for commands, 'exit' to quit.\n"
    return header + body + footer


def build_prompt(session: ExecutorSession) -> str:
    """Build the prompt: the question's own prompt while one waits, else the shell's.

    Args:
        session: The running session.

    Returns:
        A prompt string like ``root@sandbox:/home/root$ ``.

    """
    request = session.prompts.pending_request
    if request is not None:
        return request.prompt
    return session.prompt_string()


def render_line(line: OutputLine, *, color: bool = True) -> str | None:
    """Return the terminal text for a sink line, or None to skip it.

    Echoed command lines are skipped: the terminal already shows what
    the user typed.
    """
    if line.style is StyleHint.COMMAND:
        return None
    prefix = _STYLE_PREFIX.get(line.style) if color else None
    return f"{prefix}{line.text}{_RESET}" if prefix else line.text


def _reader(session: ExecutorSession) -> Callable[[str], str]:
    request = session.prompts.pending_request
    if request is not None and request.kind is PromptKind.PASSWORD:
        return getpass.getpass
    return input


async def _loop(session: ExecutorSession) -> None:
    loop = asyncio.get_running_loop()

    def printer(line: OutputLine) -> None:
        text = render_line(line)
        if text is not None:
            print(text)  # noqa: T201

    session.output.subscribe(printer)
    try:
        while True:
            try:
                line = await loop.run_in_executor(None, _reader(session), build_prompt(session))
            except EOFError:
                # Ctrl+D — graceful exit
                print()  # noqa: T201
                break
            if line.strip() in EXIT_COMMANDS and not session.prompts.has_pending:
                break
            await session.handle_input(line)
    finally:
        await session.shutdown()
        session.output.unsubscribe(printer)


def run(image_path: Path | None = None) -> None:
    """Boot a session and run the interactive REPL.

    This is the main entrypoint.  It handles:
    - The boot chain (image → filesystem → accounts → session).
    - The read-eval-print loop.
    - Graceful handling of Ctrl+C and Ctrl+D.
    - Waiting for background jobs on exit.
    """
    bootloader = Bootloader(image_path=image_path)
    session = bootloader.boot()

    # Wire up tab completion via readline.
    completer = Completer(session)
    readline.set_completer(completer.complete)
    readline.set_completer_delims(" \t|;&")
    readline.parse_and_bind("tab: complete")

    print(format_boot_log(bootloader.boot_log))  # noqa: T201

    try:
        asyncio.run(_loop(session))
    except KeyboardInterrupt:
        # Ctrl+C — graceful exit
        print("\nInterrupted.")  # noqa: T201
    finally:
        print("Session closed.")  # noqa: T201
