"""The output sink — the only way text reaches a human or a transcript.

Commands return their output in a ``CommandResult``; the pipeline runner
decides whether that output is shown, redirected into a file, or
suppressed (background jobs).  Whatever *is* shown goes through
``OutputSink.append``.  Prompts, job notices and error lines use the
same channel, so a scripted run and an interactive run of the same
commands produce the same transcript.

Surfaces subscribe to the sink: the REPL prints each line as it
arrives, the web app drains the buffered lines after every request.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum


class StyleHint(StrEnum):
    """How a surface should render a line (colour, emphasis)."""

    NORMAL = "normal"
    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"
    COMMAND = "command"


@dataclass(frozen=True)
class OutputLine:
    """One chunk of text written to the sink."""

    text: str
    style: StyleHint = StyleHint.NORMAL
    background: bool = False


type Subscriber = Callable[[OutputLine], None]


class OutputSink:
    """Buffered, subscribable output channel."""

    def __init__(self) -> None:
        """Create an empty sink with no subscribers."""
        self._lines: list[OutputLine] = []
        self._subscribers: list[Subscriber] = []

    def append(
        self,
        text: str,
        style: StyleHint = StyleHint.NORMAL,
        *,
        background: bool = False,
    ) -> None:
        """Record *text* and forward it to every subscriber."""
        line = OutputLine(text=text, style=style, background=background)
        self._lines.append(line)
        for subscriber in self._subscribers:
            subscriber(line)

    def subscribe(self, callback: Subscriber) -> None:
        """Call *callback* for every line appended from now on."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        """Stop forwarding lines to *callback*."""
        self._subscribers.remove(callback)

    @property
    def lines(self) -> list[OutputLine]:
        """Return every buffered line, oldest first."""
        return list(self._lines)

    @property
    def texts(self) -> list[str]:
        """Return the text of every buffered line."""
        return [line.text for line in self._lines]

    def drain(self) -> list[OutputLine]:
        """Return the buffered lines and empty the buffer."""
        lines, self._lines = self._lines, []
        return lines

    def clear(self) -> None:
        """Drop buffered lines (``clear`` command)."""
        self._lines.clear()
