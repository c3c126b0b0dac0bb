"""Tests for the builtin commands.

Each command is run through ``run_line`` so the wrapper's checks (flags,
argument count, paths, permissions) apply exactly as they do at the
prompt.
"""

import pytest

from sandsh.bootloader import Bootloader
from sandsh.commands import MODULES
from sandsh.executor import ExecutorSession


def _booted() -> ExecutorSession:
    """Boot a default session (root in /home/root)."""
    return Bootloader().boot()


def _with_files() -> ExecutorSession:
    session = _booted()
    session.fs.create_or_update_file("/tmp/a.txt", "alpha", owner="root")
    session.fs.create_or_update_file("/tmp/.hidden", "", owner="root")
    session.fs.make_directory("/tmp/sub", owner="root")
    session.fs.create_or_update_file("/tmp/sub/x.txt", "x", owner="root")
    session.fs.create_or_update_file("/tmp/notes.txt", "todo one\ndone\nTODO two", owner="root")
    return session


def _as(session: ExecutorSession, username: str) -> None:
    if not session.users.exists(username):
        session.users.create_user(username)
    session.push_user(username, "/tmp")


async def _run(session: ExecutorSession, line: str) -> tuple[bool, str]:
    result = await session.run_line(line, interactive=False)
    return result.success, result.output if result.success else (result.error or "")


class TestBuiltinTable:
    """Verify every module declares its commands the same way."""

    def test_every_command_documented(self) -> None:
        """Each builtin has a description and a usage line."""
        for module in MODULES:
            for definition in module.COMMANDS:
                assert definition.description
                assert (definition.usage or "").startswith(f"Usage: {definition.name}")


class TestLs:
    """Verify ``ls``."""

    @pytest.mark.asyncio
    async def test_directory(self) -> None:
        """Directories get a slash; dot-files are hidden."""
        assert await _run(_with_files(), "ls /tmp") == (True, "a.txt\nnotes.txt\nsub/")

    @pytest.mark.asyncio
    async def test_all(self) -> None:
        """``-a`` shows dot-files."""
        ok, output = await _run(_with_files(), "ls -a /tmp")
        assert ok
        assert output.splitlines()[0] == ".hidden"

    @pytest.mark.asyncio
    async def test_long(self) -> None:
        """``-l`` shows mode and owner."""
        ok, output = await _run(_with_files(), "ls -l /tmp/a.txt")
        assert ok
        assert output.startswith("-rw-r--r-- root")
        assert output.endswith("/tmp/a.txt")

    @pytest.mark.asyncio
    async def test_several_targets(self) -> None:
        """Files come first, then each directory under a header."""
        ok, output = await _run(_with_files(), "ls /tmp/a.txt /tmp/sub")
        assert ok
        assert output == "/tmp/a.txt\n\n/tmp/sub:\nx.txt"

    @pytest.mark.asyncio
    async def test_missing(self) -> None:
        """A missing path names both the argument and its resolution."""
        session = _with_files()
        session.cwd = "/tmp"
        assert await _run(session, "ls nope") == (
            False,
            "ls: 'nope' (resolved to '/tmp/nope'): No such file or directory",
        )


class TestFileCommands:
    """Verify touch, mkdir, rm, cat and chmod."""

    @pytest.mark.asyncio
    async def test_touch_creates(self) -> None:
        """``touch`` creates an empty file owned by the user."""
        session = _with_files()
        _as(session, "alice")
        assert (await _run(session, "touch new.txt"))[0]
        node = session.fs.get_node("/tmp/new.txt")
        assert node is not None
        assert node.owner == "alice"
        assert node.content == ""

    @pytest.mark.asyncio
    async def test_touch_missing_parent(self) -> None:
        """``touch`` never creates directories."""
        ok, error = await _run(_with_files(), "touch /tmp/no/x")
        assert not ok
        assert error == "touch: cannot touch '/tmp/no/x': No such file or directory"

    @pytest.mark.asyncio
    async def test_mkdir(self) -> None:
        """``mkdir`` refuses existing paths unless ``-p`` is given."""
        session = _with_files()
        assert (await _run(session, "mkdir /tmp/d"))[0]
        assert await _run(session, "mkdir /tmp/d") == (
            False,
            "mkdir: cannot create directory '/tmp/d': File exists",
        )
        assert (await _run(session, "mkdir -p /tmp/d"))[0]
        assert (await _run(session, "mkdir -p /tmp/x/y/z"))[0]
        assert session.fs.get_node("/tmp/x/y/z") is not None
        assert await _run(session, "mkdir /tmp/q/r") == (
            False,
            "mkdir: cannot create directory '/tmp/q/r': No such file or directory",
        )

    @pytest.mark.asyncio
    async def test_rm_file(self) -> None:
        """A file is removed without a prompt."""
        session = _with_files()
        assert (await _run(session, "rm /tmp/a.txt"))[0]
        assert session.fs.get_node("/tmp/a.txt") is None

    @pytest.mark.asyncio
    async def test_rm_directory_needs_recursive(self) -> None:
        """Directories need ``-r``."""
        assert await _run(_with_files(), "rm /tmp/sub") == (
            False,
            "rm: cannot remove '/tmp/sub': Is a directory",
        )

    @pytest.mark.asyncio
    async def test_rm_force(self) -> None:
        """``-rf`` skips the prompt and ignores missing paths."""
        session = _with_files()
        assert (await _run(session, "rm -rf /tmp/sub /tmp/none"))[0]
        assert session.fs.get_node("/tmp/sub") is None

    @pytest.mark.asyncio
    async def test_rm_root(self) -> None:
        """``/`` is never removed."""
        ok, error = await _run(_with_files(), "rm -rf /")
        assert not ok
        assert error == "rm: '/' (resolved to root) is not a valid target"

    @pytest.mark.asyncio
    async def test_cat_directory(self) -> None:
        """``cat`` only reads files."""
        assert await _run(_with_files(), "cat /tmp") == (False, "cat: '/tmp' is not a file")

    @pytest.mark.asyncio
    async def test_cat_permission(self) -> None:
        """A 600 file cannot be read by another user."""
        session = _with_files()
        assert (await _run(session, "chmod 600 /tmp/a.txt"))[0]
        _as(session, "alice")
        assert await _run(session, "cat /tmp/a.txt") == (
            False,
            "cat: '/tmp/a.txt': permission denied",
        )

    @pytest.mark.asyncio
    async def test_chmod(self) -> None:
        """``chmod`` sets octal modes; only the owner or root may."""
        session = _with_files()
        assert (await _run(session, "chmod 750 /tmp/a.txt"))[0]
        node = session.fs.get_node("/tmp/a.txt")
        assert node is not None
        assert node.mode == 0o750
        ok, error = await _run(session, "chmod 9x9 /tmp/a.txt")
        assert not ok
        assert error.startswith("chmod: invalid mode: '9x9'")
        _as(session, "alice")
        assert await _run(session, "chmod 777 /tmp/a.txt") == (
            False,
            "chmod: changing permissions of '/tmp/a.txt': Operation not permitted",
        )

    @pytest.mark.asyncio
    async def test_argument_count(self) -> None:
        """Wrong argument counts report the usage line."""
        ok, error = await _run(_booted(), "pwd extra")
        assert not ok
        assert error == "pwd: expected exactly 0 argument(s) but got 1\nUsage: pwd"


class TestTextCommands:
    """Verify echo and the filters."""

    @pytest.mark.asyncio
    async def test_grep_flags(self) -> None:
        """``-i``, ``-v`` and ``-n`` behave like grep's."""
        session = _with_files()
        assert await _run(session, "grep todo /tmp/notes.txt") == (True, "todo one")
        assert await _run(session, "grep -i todo /tmp/notes.txt") == (True, "todo one\nTODO two")
        assert await _run(session, "grep -v -i todo /tmp/notes.txt") == (True, "done")
        assert await _run(session, "grep -n done /tmp/notes.txt") == (True, "2:done")

    @pytest.mark.asyncio
    async def test_grep_piped(self) -> None:
        """Without files, grep filters its input."""
        session = _with_files()
        assert await _run(session, "cat /tmp/notes.txt | grep TODO") == (True, "TODO two")

    @pytest.mark.asyncio
    async def test_grep_bad_pattern(self) -> None:
        """An invalid regular expression is a usage error."""
        ok, error = await _run(_with_files(), "grep '(' /tmp/notes.txt")
        assert not ok
        assert error.startswith("grep: invalid pattern '('")

    @pytest.mark.asyncio
    async def test_wc(self) -> None:
        """``wc`` counts lines, words and characters."""
        session = _with_files()
        assert await _run(session, "wc /tmp/notes.txt") == (True, "3 5 22 /tmp/notes.txt")
        assert await _run(session, "echo a b | wc -l") == (True, "1")

    @pytest.mark.asyncio
    async def test_head_tail(self) -> None:
        """``-n`` picks how many lines to keep."""
        session = _with_files()
        assert await _run(session, "head -n 2 /tmp/notes.txt") == (True, "todo one\ndone")
        assert await _run(session, "tail -n 1 /tmp/notes.txt") == (True, "TODO two")
        assert await _run(session, "head -n x /tmp/notes.txt") == (
            False,
            "head: invalid number of lines: 'x'",
        )

    @pytest.mark.asyncio
    async def test_sort(self) -> None:
        """``sort`` orders lines; ``-r`` reverses."""
        session = _booted()
        session.fs.create_or_update_file("/tmp/n.txt", "b\nc\na", owner="root")
        assert await _run(session, "sort /tmp/n.txt") == (True, "a\nb\nc")
        assert await _run(session, "sort -r /tmp/n.txt") == (True, "c\nb\na")


class TestEnvironmentCommands:
    """Verify export/set, unset, env, alias, unalias and history."""

    @pytest.mark.asyncio
    async def test_export_and_unset(self) -> None:
        """Variables can be set (also via ``set``) and removed."""
        session = _booted()
        assert (await _run(session, "export A=1 B=2"))[0]
        assert (await _run(session, "set C=3"))[0]
        _, listing = await _run(session, "env")
        assert {"A=1", "B=2", "C=3"} <= set(listing.splitlines())
        await _run(session, "unset A")
        assert "A" not in session.env

    @pytest.mark.asyncio
    async def test_export_invalid(self) -> None:
        """An argument without ``=`` is rejected."""
        ok, error = await _run(_booted(), "export oops")
        assert not ok
        assert error.startswith("export: invalid assignment 'oops'")

    @pytest.mark.asyncio
    async def test_alias_listing(self) -> None:
        """``alias`` lists or shows aliases."""
        session = _booted()
        assert await _run(session, "alias") == (True, "alias la='ls -a'\nalias ll='ls -l'")
        assert await _run(session, "alias ll") == (True, "alias ll='ls -l'")
        assert await _run(session, "alias nope") == (False, "alias: nope: not found")

    @pytest.mark.asyncio
    async def test_unalias(self) -> None:
        """``unalias`` removes aliases and reports unknown ones."""
        session = _booted()
        assert (await _run(session, "unalias ll"))[0]
        assert "ll" not in session.aliases
        assert await _run(session, "unalias zz") == (False, "unalias: zz: not found")

    @pytest.mark.asyncio
    async def test_history(self) -> None:
        """``history`` numbers typed lines; ``-c`` clears them."""
        session = _booted()
        await session.run_line("echo a")
        result = await session.run_line("history")
        assert result.output == "    1  echo a\n    2  history"
        await session.run_line("history -c")
        assert len(session.history) == 0


class TestMetaCommands:
    """Verify help, clear and log."""

    @pytest.mark.asyncio
    async def test_help_lists_commands(self) -> None:
        """``help`` lists every command with its description."""
        ok, output = await _run(_booted(), "help")
        assert ok
        lines = output.splitlines()
        assert lines[0] == "Available commands:"
        assert any(line.split()[0] == "echo" for line in lines[1:])

    @pytest.mark.asyncio
    async def test_help_for_alias(self) -> None:
        """``help jobs`` shows ps's usage and says it is an alias."""
        ok, output = await _run(_booted(), "help jobs")
        assert ok
        assert output.startswith("Usage: ps")
        assert output.endswith("(alias of 'ps')")

    @pytest.mark.asyncio
    async def test_help_unknown(self) -> None:
        """Unknown names are reported."""
        assert await _run(_booted(), "help nope") == (False, "help: no such command 'nope'")

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        """``clear`` empties the sink."""
        session = _booted()
        await session.run_line("echo a", interactive=False)
        await session.run_line("clear", interactive=False)
        assert session.output.lines == []

    @pytest.mark.asyncio
    async def test_log(self) -> None:
        """``log`` filters by source and level."""
        session = _booted()
        assert await _run(session, "log") == (True, "No log entries.")
        await session.run_line("madeupcmd", interactive=False)
        ok, output = await _run(session, "log -s executor -l warning")
        assert ok
        assert output.startswith("[WARNING] executor: 'madeupcmd' failed")
        ok, error = await _run(session, "log -l bogus")
        assert not ok
        assert error == "log: unknown log level 'bogus'"


class TestAccountCommands:
    """Verify whoami, su, useradd and groups."""

    @pytest.mark.asyncio
    async def test_whoami(self) -> None:
        """``whoami`` names the acting user."""
        session = _booted()
        assert await _run(session, "whoami") == (True, "root")
        _as(session, "alice")
        assert await _run(session, "whoami") == (True, "alice")

    @pytest.mark.asyncio
    async def test_su_unknown(self) -> None:
        """Unknown users are reported."""
        assert await _run(_booted(), "su ghost") == (False, "su: user 'ghost' does not exist")

    @pytest.mark.asyncio
    async def test_su_wrong_password(self) -> None:
        """A wrong password is an authentication failure."""
        session = _booted()
        session.users.create_user("alice", "pw")
        _as(session, "bob")
        assert await _run(session, "su alice nope") == (False, "su: Authentication failure")
        assert session.current_user == "bob"

    @pytest.mark.asyncio
    async def test_useradd_root_only(self) -> None:
        """Only root may add users."""
        session = _booted()
        _as(session, "bob")
        assert await _run(session, "useradd carol") == (False, "useradd: only root can add users")

    @pytest.mark.asyncio
    async def test_useradd_existing(self) -> None:
        """An existing name is refused."""
        assert await _run(_booted(), "useradd root") == (
            False,
            "useradd: user 'root' already exists",
        )

    @pytest.mark.asyncio
    async def test_useradd_mismatch(self) -> None:
        """Different passwords leave no account behind."""
        session = _booted()
        result = await session.run_script("useradd carol\none\ntwo")
        assert not result.success
        assert not session.users.exists("carol")
        assert any("useradd: passwords do not match" in t for t in session.output.texts)

    @pytest.mark.asyncio
    async def test_useradd_creates_home(self) -> None:
        """A new user gets a home directory."""
        session = _booted()
        await session.run_script("useradd carol\npw\npw")
        assert session.users.exists("carol")
        assert session.fs.get_node("/home/carol") is not None

    @pytest.mark.asyncio
    async def test_groups(self) -> None:
        """``groups`` lists a user's groups."""
        session = _booted()
        expected = " ".join(session.users.groups_for("root"))
        assert await _run(session, "groups") == (True, expected)
        assert await _run(session, "groups ghost") == (
            False,
            "groups: user 'ghost' does not exist",
        )


class TestDelay:
    """Verify ``delay``."""

    @pytest.mark.asyncio
    async def test_short_delay(self) -> None:
        """A zero delay succeeds at once."""
        assert await _run(_booted(), "delay 0") == (True, "")

    @pytest.mark.asyncio
    async def test_invalid_delay(self) -> None:
        """Only non-negative integers are accepted."""
        ok, error = await _run(_booted(), "delay soon")
        assert not ok
        assert error.startswith("delay: invalid delay time 'soon'")
