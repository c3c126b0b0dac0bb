"""Tests for the tab-completion engine.

The Completer's logic is pure (no I/O): it looks at the input line and
returns candidate strings, so it is testable without readline.
"""

from unittest.mock import patch

import pytest

from sandsh.bootloader import Bootloader
from sandsh.completer import Completer
from sandsh.executor import ExecutorSession


def _booted() -> ExecutorSession:
    """Boot a session with a few files under /tmp."""
    session = Bootloader().boot()
    fs = session.fs
    fs.create_or_update_file("/tmp/a.txt", "", owner="root")
    fs.create_or_update_file("/tmp/s.sh", "echo hi", owner="root")
    fs.create_or_update_file("/tmp/.h", "", owner="root")
    fs.make_directory("/tmp/sub", owner="root")
    return session


class TestCommandCompletion:
    """Verify completion of command names."""

    def test_empty_line_returns_all_commands(self) -> None:
        """An empty line offers every command."""
        session = _booted()
        assert Completer(session).completions("", "") == session.registry.names()

    def test_prefix(self) -> None:
        """A partial first word narrows the list."""
        assert Completer(_booted()).completions("ec", "ec") == ["echo"]

    def test_after_pipe(self) -> None:
        """After ``|`` a new command starts."""
        completer = Completer(_booted())
        assert completer.completions("gre", "cat a.txt | gre") == ["grep"]

    def test_help_argument(self) -> None:
        """``help`` completes command names."""
        assert Completer(_booted()).completions("al", "help al") == ["alias"]


class TestPathCompletion:
    """Verify filesystem path completion."""

    def test_absolute_directory(self) -> None:
        """Directories get a trailing slash; dot-files are hidden."""
        completer = Completer(_booted())
        assert completer.completions("/tmp/", "cat /tmp/") == [
            "/tmp/a.txt",
            "/tmp/s.sh",
            "/tmp/sub/",
        ]

    def test_dot_prefix_shows_hidden(self) -> None:
        """A ``.`` prefix asks for dot-files."""
        assert Completer(_booted()).completions("/tmp/.", "ls /tmp/.") == ["/tmp/.h"]

    def test_relative_to_cwd(self) -> None:
        """Relative paths complete against the current directory."""
        session = _booted()
        session.cwd = "/tmp"
        assert Completer(session).completions("a", "cat a") == ["a.txt"]

    def test_run_offers_scripts_and_directories(self) -> None:
        """``run`` only offers ``.sh`` files and directories."""
        completer = Completer(_booted())
        assert completer.completions("/tmp/", "run /tmp/") == ["/tmp/s.sh", "/tmp/sub/"]

    def test_unreadable_directory(self) -> None:
        """Nothing is offered from a directory the user cannot read."""
        session = _booted()
        private = session.fs.make_directory("/tmp/private", owner="root")
        private.mode = 0o700
        session.fs.create_or_update_file("/tmp/private/k", "", owner="root")
        session.users.create_user("alice")
        session.push_user("alice", "/tmp")
        assert Completer(session).completions("/tmp/private/", "ls /tmp/private/") == []

    def test_other_commands_get_nothing(self) -> None:
        """Plain words after ``echo`` are not completed."""
        assert Completer(_booted()).completions("x", "echo x") == []


class TestSessionCompletion:
    """Verify completion from variables, aliases and jobs."""

    def test_dollar_variables(self) -> None:
        """``$HO`` completes to variable references."""
        assert Completer(_booted()).completions("$HO", "echo $HO") == ["$HOME", "$HOST"]

    def test_unset(self) -> None:
        """``unset`` completes bare variable names."""
        assert Completer(_booted()).completions("HO", "unset HO") == ["HOME", "HOST"]

    def test_unalias(self) -> None:
        """``unalias`` completes alias names."""
        assert Completer(_booted()).completions("l", "unalias l") == ["la", "ll"]

    @pytest.mark.asyncio
    async def test_kill(self) -> None:
        """``kill`` completes live job ids."""
        session = _booted()
        await session.run_line("delay 10000 &", interactive=False)
        assert Completer(session).completions("", "kill ") == ["1"]
        session.kill_job(1)
        await session.jobs.wait_all()
        assert Completer(session).completions("", "kill ") == []


class TestReadlineCallback:
    """Verify the readline ``complete`` protocol."""

    def test_states(self) -> None:
        """Each state returns the next candidate, then None."""
        completer = Completer(_booted())
        with patch("sandsh.completer.readline.get_line_buffer", return_value="ec"):
            assert completer.complete("ec", 0) == "echo"
            assert completer.complete("ec", 1) is None
