"""Flask application factory for the sandsh web UI.

The ``create_app`` function boots a session and returns a Flask app
with three endpoints:

- ``GET /`` — render the terminal HTML page with the boot log.
- ``POST /api/execute`` — feed one line to the session and return JSON.
- ``GET /api/jobs`` — list the background jobs still running.

Flask views are synchronous while the session is asyncio-based, so the
app owns a private event loop running in a daemon thread.  Each request
hands a coroutine to that loop and waits for its result; background
jobs keep running on the loop between requests.  Views never touch the
session directly: reads go through the loop as well, so the loop thread
stays the only one using it.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

from flask import Flask, Response, jsonify, render_template, request

from sandsh.bootloader import Bootloader

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from sandsh.executor import ExecutorSession

_HTTP_BAD_REQUEST = 400
_REQUEST_TIMEOUT = 30.0


class _LoopThread:
    """An event loop running forever in a daemon thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self._thread.start()

    def call[T](self, coro: Coroutine[Any, Any, T]) -> T:
        """Run *coro* on the loop and block until it finishes."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(_REQUEST_TIMEOUT)


def create_app(session: ExecutorSession | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        session: The session to serve.  A fresh one is booted when
            omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    boot_log = ""
    if session is None:
        bootloader = Bootloader()
        session = bootloader.boot()
        boot_log = "\n".join(bootloader.boot_log)
    runner = _LoopThread()

    async def execute_line(line: str) -> dict[str, Any]:
        result = await session.handle_input(line)
        pending = session.prompts.pending_request
        return {
            "output": [
                {"text": out.text, "style": str(out.style), "background": out.background}
                for out in session.output.drain()
            ],
            "success": result.success if result is not None else True,
            "prompt": pending.prompt if pending is not None else None,
            "ps1": session.prompt_string(),
        }

    async def poll_jobs() -> dict[str, Any]:
        return {
            "jobs": [{"id": job.job_id, "command": job.command} for job in session.list_jobs()],
            "output": [line.text for line in session.output.drain()],
        }

    async def ps1() -> str:
        return session.prompt_string()

    app = Flask(__name__)

    @app.route("/")
    def index() -> str:  # pyright: ignore[reportUnusedFunction]
        """Render the terminal HTML page."""
        return render_template("index.html", boot_log=boot_log, prompt=runner.call(ps1()))

    @app.route("/api/execute", methods=["POST"])
    def execute() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Execute a line and return JSON output.

        Expects JSON body: ``{"command": "..."}``.  While a command is
        waiting for an answer, the next line is that answer.

        Returns:
            JSON with ``output`` (sink lines), ``success``, ``prompt``
            (the pending question's prompt or null) and the shell
            ``ps1`` to show next.

        """
        data = request.get_json(silent=True)
        if data is None or "command" not in data:
            return jsonify({"error": "Missing 'command' field"}), _HTTP_BAD_REQUEST

        command = str(data["command"])
        return jsonify(runner.call(execute_line(command)))

    @app.route("/api/jobs")
    def jobs() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return running background jobs and any output they produced.

        Returns:
            JSON with ``jobs`` (id and command) and ``output`` fields.

        """
        return jsonify(runner.call(poll_jobs()))

    return app


def main() -> None:
    """Run the web UI development server.

    This is the ``sandsh-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080, use_reloader=False)
