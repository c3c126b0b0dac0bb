"""Builtin commands.

Each submodule declares its commands as ``CommandDefinition`` records in
a ``COMMANDS`` tuple, plus an ``ALIASES`` map for commands reachable
under a second name (``set`` for ``export``, ``jobs`` for ``ps``).
``register_builtins`` loads them all into a session at boot.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.commands import accounts, adventure, environment, files, jobs, meta, scripts, text

if TYPE_CHECKING:
    from sandsh.executor import ExecutorSession

MODULES = (files, text, environment, accounts, jobs, scripts, meta, adventure)


def register_builtins(session: ExecutorSession) -> None:
    """Register every builtin command with *session*."""
    for module in MODULES:
        for definition in module.COMMANDS:
            session.register(definition, *module.ALIASES.get(definition.name, ()))
