"""Error taxonomy for the command executor.

Every failure the executor can report has a named type here.  Command
handlers never let these escape to the caller: the dispatch wrapper and
the pipeline runner catch them and turn them into failed
``CommandResult`` values.  The types still matter, because tests and
callers can ask *why* something failed without parsing message text.

The hierarchy is deliberately flat:

- **ShellError** — the common base.
- **UsageError** — wrong number or shape of arguments.
- **PathError** — a path argument did not resolve.
- **PermissionError** — the acting user lacks a required permission.
- **CommandNotFoundError** — no command with that name is registered.
- **PipelineSegmentError** — wraps the first failing segment's error.
- **RedirectionError** — ``>``/``>>``/``<`` could not be applied.
- **AliasLoopError** — alias expansion did not terminate.
- **JobNotFoundError** — ``kill`` of an id that is not in the job table.
- **ParseError** — malformed command-line syntax.
- **OperationCancelledError** — a cancellation token was observed.

A script running out of lines while a prompt waits is *not* an error;
see ``OutcomeStatus.EXHAUSTED`` in ``sandsh.prompts``.
"""


class ShellError(Exception):
    """Base class for every error the executor reports."""


class UsageError(ShellError):
    """Raised when a command receives the wrong number of arguments."""

    def __init__(self, message: str, *, usage: str | None = None) -> None:
        """Create a usage error, optionally carrying the usage string."""
        self.usage = usage
        text = f"{message}\n{usage}" if usage else message
        super().__init__(text)


class PathError(ShellError):
    """Raised when a path argument is missing or does not resolve."""


# Shadows the builtin on purpose: this is the *simulated* OS's notion of
# EACCES, and code inside the package always means this one.
class PermissionError(ShellError):  # noqa: A001
    """Raised when the acting user lacks a permission on a node."""


class CommandNotFoundError(ShellError):
    """Raised when a segment names a command nobody registered."""

    def __init__(self, name: str) -> None:
        """Create the error for the unknown command *name*."""
        self.name = name
        super().__init__(f"{name}: command not found")


class PipelineSegmentError(ShellError):
    """The first failing segment of a pipeline, with its command name."""

    def __init__(self, command: str, message: str) -> None:
        """Wrap *message* as the failure of segment *command*."""
        self.command = command
        self.message = message
        super().__init__(f"pipeline error in '{command}': {message}")


class RedirectionError(ShellError):
    """Raised when output or input redirection cannot be performed."""


class AliasLoopError(ShellError):
    """Raised when alias expansion exceeds the expansion limit."""

    def __init__(self, token: str) -> None:
        """Create the error naming the alias that started the loop."""
        self.token = token
        super().__init__(f"alias loop detected for '{token}'")


class JobNotFoundError(ShellError):
    """Raised when a job id is not (or no longer) in the job table."""

    def __init__(self, job_id: int) -> None:
        """Create the error for the missing *job_id*."""
        self.job_id = job_id
        super().__init__(f"job {job_id} not found")


class ParseError(ShellError):
    """Raised by the lexer or parser for malformed syntax."""


class OperationCancelledError(ShellError):
    """Raised (or carried) when a cancellation token has been triggered."""
