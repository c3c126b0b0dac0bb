"""Scripting context — letting a script answer its own prompts.

When a human runs ``rm -r docs`` the shell asks "are you sure?" and
waits.  A script cannot wait for a human, so instead the *next line of
the script* is the answer::

    rm -r docs
    YES
    echo done

The script runner owns a ``ScriptingContext`` and points
``current_line_index`` at the line it is executing.  When a prompt
needs an answer it calls ``next_answer``, which scans forward from the
line after the cursor, skips blanks and ``#`` comments, moves the
cursor onto the line it took, and returns it.  The runner resumes at
``current_line_index + 1``, so a line used as an answer is never also
run as a command.

The cursor only ever moves forward.  Once the script is exhausted every
further request gets None, which prompts turn into a decline.

``waiting_for_input`` is set by sub-loops (the adventure game) that ran
out of script lines while still wanting more; the pipeline and script
runners stop as soon as they see it.
"""

from dataclasses import dataclass, field


def is_skippable(line: str) -> bool:
    """Return True for blank lines and ``#`` comment lines."""
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def strip_inline_comment(line: str) -> str:
    """Drop a ``#`` comment that starts outside quotes.

    The ``#`` must begin the line or follow whitespace, so ``a#b`` and
    ``echo "#1"`` are left alone.
    """
    quote: str | None = None
    previous = " "
    for index, char in enumerate(line):
        if quote is not None:
            if char == quote and previous != "\\":
                quote = None
        elif char in "\"'" and previous != "\\":
            quote = char
        elif char == "#" and previous.isspace():
            return line[:index].rstrip()
        previous = char
    return line


@dataclass
class ScriptingContext:
    """The cursor of a running script."""

    lines: list[str] = field(default_factory=list)
    current_line_index: int = 0
    waiting_for_input: bool = False

    @property
    def is_scripting(self) -> bool:
        """Always True; present so callers can test any context uniformly."""
        return True

    @property
    def exhausted(self) -> bool:
        """Return True when no usable line remains after the cursor."""
        return all(is_skippable(line) for line in self.lines[self.current_line_index + 1 :])

    def next_answer(self) -> str | None:
        """Consume and return the next usable line, or None when exhausted."""
        for index in range(self.current_line_index + 1, len(self.lines)):
            line = self.lines[index]
            if is_skippable(line):
                continue
            self.current_line_index = index
            return line.strip()
        return None

    def seek(self, index: int) -> None:
        """Move the cursor to *index*.

        Raises:
            ValueError: If that would move the cursor backwards.

        """
        if index < self.current_line_index:
            msg = f"cannot move script cursor back from {self.current_line_index} to {index}"
            raise ValueError(msg)
        self.current_line_index = index
