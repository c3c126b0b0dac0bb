"""Browser-based web UI for sandsh.

This package provides a Flask application that exposes a sandsh
session through a web browser.

The ``create_app`` factory in ``app.py`` boots a session and serves
three endpoints:

- ``GET /`` — HTML terminal page.
- ``POST /api/execute`` — run a line (or answer a prompt) and return JSON.
- ``GET /api/jobs`` — running background jobs and their late output.
"""
