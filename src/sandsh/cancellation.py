"""Cooperative cancellation for jobs and long-running commands.

Killing a background job cannot interrupt it mid-instruction: the
executor is single-threaded and nothing is preempted.  Instead each job
carries a ``CancellationToken``.  ``kill`` flips the token, and the
running code notices at its next checkpoint:

- the pipeline runner, before each segment and before redirection
  writes;
- the script runner, before each line;
- commands that wait (``delay``), by racing their timer against
  ``token.wait()``.

``check()`` returns a tagged ``Flow`` value rather than raising, so
callers branch on it like any other result.
"""

import asyncio
from enum import StrEnum


class Flow(StrEnum):
    """Whether work guarded by a token may continue."""

    CONTINUE = "continue"
    CANCELLED = "cancelled"


class CancellationToken:
    """A one-shot, cooperative cancel flag with an awaitable event."""

    def __init__(self) -> None:
        """Create an untriggered token."""
        self._reason: str | None = None
        self._event: asyncio.Event | None = None

    @property
    def cancelled(self) -> bool:
        """Return True once ``cancel`` has been called."""
        return self._reason is not None

    @property
    def reason(self) -> str | None:
        """Return the reason passed to ``cancel``, if any."""
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Trigger the token; later calls keep the first reason."""
        if self._reason is not None:
            return
        self._reason = reason
        if self._event is not None:
            self._event.set()

    def check(self) -> Flow:
        """Return ``Flow.CANCELLED`` once triggered, else ``Flow.CONTINUE``."""
        return Flow.CANCELLED if self.cancelled else Flow.CONTINUE

    async def wait(self) -> str:
        """Suspend until the token is triggered; return the reason."""
        # Created lazily so tokens can be built outside a running loop.
        if self._event is None:
            self._event = asyncio.Event()
            if self._reason is not None:
                self._event.set()
        await self._event.wait()
        return self._reason or "cancelled"
