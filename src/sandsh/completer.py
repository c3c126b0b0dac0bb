"""Context-aware tab completer for the sandsh REPL.

The completer separates **what to complete** (pure logic, fully
testable) from **how to wire it** (readline integration in the REPL).

The ``complete(text, state)`` method is the readline callback.  It
delegates to ``completions(text, line)`` which analyses the input
context and returns a list of candidate strings.
"""

from __future__ import annotations

import readline
from typing import TYPE_CHECKING

from sandsh.filesystem import SEPARATOR, Permission

if TYPE_CHECKING:
    from sandsh.executor import ExecutorSession

# Commands whose arguments are filesystem paths.
_PATH_COMMANDS: frozenset[str] = frozenset(
    ["ls", "cat", "rm", "mkdir", "touch", "cd", "chmod", "grep", "wc", "head", "tail", "sort"]
)

# Characters that end the current command segment.
_SEGMENT_BREAKS = ("|", ";", "&")


class Completer:
    """Context-aware tab completer for one session."""

    def __init__(self, session: ExecutorSession) -> None:
        """Create a completer attached to a session.

        Args:
            session: The session whose commands, files, variables and
                jobs are used to generate completion candidates.

        """
        self._session = session

    def complete(self, text: str, state: int) -> str | None:
        """Readline callback — return the *state*-th candidate for *text*.

        Args:
            text: The partial word being completed.
            state: Index into the candidate list (0, 1, 2, …).

        Returns:
            The candidate at *state*, or ``None`` when exhausted.

        """
        line = readline.get_line_buffer()
        candidates = self.completions(text, line)
        if state < len(candidates):
            return candidates[state]
        return None

    def completions(self, text: str, line: str) -> list[str]:
        """Return completion candidates based on context.

        Only the segment after the last ``|``, ``;`` or ``&`` counts, so
        ``cat notes.txt | gr`` completes a command name.

        Args:
            text: The partial word under the cursor.
            line: The full input line so far.

        Returns:
            Sorted list of matching candidates.

        """
        segment = line
        for brk in _SEGMENT_BREAKS:
            segment = segment.rsplit(brk, 1)[-1]
        words = segment.lstrip().split()

        # No words yet, or still typing the first word → command completion
        if not words or (len(words) == 1 and not segment.endswith(" ")):
            return self._complete_commands(text)

        return self._complete_argument(words[0], text)

    # -- private completers ------------------------------------------------

    def _complete_argument(self, cmd: str, text: str) -> list[str]:  # noqa: PLR0911
        """Dispatch argument completion based on the command and context."""
        if text.startswith("$"):
            return self._complete_dollar_vars(text)
        if cmd == "help":
            return self._complete_commands(text)
        if cmd == "unset":
            return self._complete_env_vars(text)
        if cmd == "unalias":
            aliases = self._session.aliases.items()
            return sorted(name for name, _ in aliases if name.startswith(text))
        if cmd == "kill":
            ids = (str(job.job_id) for job in self._session.list_jobs())
            return [job_id for job_id in ids if job_id.startswith(text)]
        if cmd == "run":
            return [p for p in self._complete_paths(text) if p.endswith((".sh", SEPARATOR))]
        if text.startswith(SEPARATOR) or cmd in _PATH_COMMANDS:
            return self._complete_paths(text)
        return []

    def _complete_commands(self, text: str) -> list[str]:
        """Complete command names from the session's registry."""
        return [cmd for cmd in self._session.registry.names() if cmd.startswith(text)]

    def _complete_paths(self, text: str) -> list[str]:
        """Complete filesystem paths.

        Split the partial path into a directory and a name prefix, list
        the directory (relative paths against the current directory),
        and filter by prefix.  Directories get a trailing ``/`` suffix.
        """
        session = self._session
        last_slash = text.rfind(SEPARATOR)
        directory = text[: last_slash + 1]
        prefix = text[last_slash + 1 :]

        fs = session.fs
        node = fs.get_node(
            fs.absolute_path(directory or ".", session.cwd), user=session.current_user
        )
        if node is None or not node.is_dir:
            return []
        if not fs.has_permission(node, session.current_user, Permission.READ):
            return []

        candidates: list[str] = []
        for name, child in node.children.items():
            if name.startswith(prefix) and (prefix.startswith(".") or not name.startswith(".")):
                full = f"{directory}{name}"
                if child.is_dir:
                    full += SEPARATOR
                candidates.append(full)
        return sorted(candidates)

    def _complete_env_vars(self, text: str) -> list[str]:
        """Complete environment variable names (without $ prefix)."""
        return sorted(key for key, _val in self._session.env.items() if key.startswith(text))

    def _complete_dollar_vars(self, text: str) -> list[str]:
        """Complete $VAR references with the dollar prefix."""
        prefix = text[1:]  # strip leading $
        names = (key for key, _val in self._session.env.items())
        return sorted(f"${key}" for key in names if key.startswith(prefix))
