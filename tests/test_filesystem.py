"""Tests for the in-memory filesystem.

Covers path normalisation, resolution results (which never raise),
Unix-style permission checks and the mutating helpers.
"""

import pytest

from sandsh.errors import PermissionError as ShellPermissionError
from sandsh.filesystem import FileSystem, FileType, Permission, mode_to_string, split_path
from sandsh.users import UserManager


def _fs() -> tuple[FileSystem, UserManager]:
    """Create a filesystem with users alice and bob."""
    users = UserManager()
    users.create_user("alice")
    users.create_user("bob")
    fs = FileSystem(users)
    fs.make_directory("/d", owner="root")
    fs.create_or_update_file("/d/f.txt", "hello", owner="root")
    return fs, users


class TestPaths:
    """Verify path helpers."""

    def test_absolute_path_folds_dots(self) -> None:
        """``.`` and ``..`` are folded against the base."""
        assert FileSystem.absolute_path("../x/./y", "/a/b") == "/a/x/y"
        assert FileSystem.absolute_path("/..") == "/"
        assert FileSystem.absolute_path("", "/a") == "/a"

    def test_split_path(self) -> None:
        """Paths split into parent and name."""
        assert split_path("/foo/bar/baz.txt") == ("/foo/bar", "baz.txt")
        assert split_path("/hello.txt") == ("/", "hello.txt")
        assert split_path("/") == ("/", "")

    def test_mode_to_string(self) -> None:
        """Modes render like ``ls -l``."""
        fs, _ = _fs()
        assert mode_to_string(fs.get_node("/d")) == "drwxr-xr-x"  # type: ignore[arg-type]
        assert mode_to_string(fs.get_node("/d/f.txt")) == "-rw-r--r--"  # type: ignore[arg-type]


class TestResolvePath:
    """Verify resolution outcomes."""

    def test_relative_to_cwd(self) -> None:
        """A relative path is joined onto the current directory."""
        fs, _ = _fs()
        result = fs.resolve_path("cat", "f.txt", cwd="/d", user="root")
        assert result.ok
        assert result.resolved_path == "/d/f.txt"
        assert result.node is not None
        assert result.node.content == "hello"

    def test_missing(self) -> None:
        """A missing target is an error naming the command."""
        fs, _ = _fs()
        result = fs.resolve_path("ls", "nope", cwd="/", user="root")
        assert result.error == "ls: 'nope' (resolved to '/nope'): No such file or directory"
        assert result.missing

    def test_allow_missing(self) -> None:
        """With ``allow_missing`` a missing target is a partial success."""
        fs, _ = _fs()
        result = fs.resolve_path("touch", "new.txt", cwd="/d", user="root", allow_missing=True)
        assert result.ok
        assert result.node is None
        assert result.resolved_path == "/d/new.txt"

    def test_expected_type(self) -> None:
        """A directory where a file is wanted is an error."""
        fs, _ = _fs()
        result = fs.resolve_path("cat", "/d", cwd="/", user="root", expected_type=FileType.FILE)
        assert result.error == "cat: '/d' is not a file"

    def test_disallow_root(self) -> None:
        """``disallow_root`` rejects ``/``."""
        fs, _ = _fs()
        result = fs.resolve_path("rm", "/", cwd="/", user="root", disallow_root=True)
        assert result.error == "rm: '/' (resolved to root) is not a valid target"

    def test_traversal_needs_execute(self) -> None:
        """Walking through a directory needs execute permission on it."""
        fs, _ = _fs()
        secret = fs.make_directory("/secret", owner="root")
        secret.mode = 0o700
        fs.create_or_update_file("/secret/x", "", owner="root")
        result = fs.resolve_path("cat", "/secret/x", cwd="/", user="alice")
        assert result.error is not None
        assert "permission denied while traversing '/secret'" in result.error


class TestPermissions:
    """Verify owner/group/other checks."""

    def test_root_bypasses(self) -> None:
        """Root holds every permission."""
        fs, _ = _fs()
        node = fs.get_node("/d/f.txt")
        node.mode = 0o000  # type: ignore[union-attr]
        assert fs.has_permission(node, "root", Permission.WRITE)

    def test_owner_group_other(self) -> None:
        """The first matching class decides."""
        fs, users = _fs()
        node = fs.create_or_update_file("/d/a.txt", "", owner="alice")
        node.mode = 0o640
        users.add_to_group("bob", "alice")
        assert fs.has_permission(node, "alice", Permission.WRITE)
        assert fs.has_permission(node, "bob", Permission.READ)
        assert not fs.has_permission(node, "bob", Permission.WRITE)
        users.create_user("carol")
        assert not fs.has_permission(node, "carol", Permission.READ)

    def test_missing_node(self) -> None:
        """No node means no permission (except for root)."""
        fs, _ = _fs()
        assert not fs.has_permission(None, "alice", Permission.READ)


class TestMutation:
    """Verify the mutating helpers."""

    def test_create_parent_directories(self) -> None:
        """Missing parents are created as directories."""
        fs, _ = _fs()
        parent = fs.create_parent_directories("/a/b/c.txt", user="root")
        assert parent.is_dir
        assert fs.get_node("/a/b") is parent

    def test_parent_through_file(self) -> None:
        """A file in the way raises NotADirectoryError."""
        fs, _ = _fs()
        with pytest.raises(NotADirectoryError):
            fs.create_parent_directories("/d/f.txt/x/y", user="root")

    def test_parent_needs_write(self) -> None:
        """Creating a directory needs write permission on its parent."""
        fs, _ = _fs()
        with pytest.raises(ShellPermissionError, match="permission denied"):
            fs.create_parent_directories("/new/x.txt", user="alice")

    def test_create_or_update(self) -> None:
        """Writing replaces content; the owner is set on creation."""
        fs, _ = _fs()
        node = fs.create_or_update_file("/d/n.txt", "1", owner="alice")
        assert node.owner == "alice"
        fs.create_or_update_file("/d/n.txt", "2", owner="root")
        assert node.content == "2"
        assert node.owner == "alice"

    def test_write_errors(self) -> None:
        """Writing to a directory or under a missing parent fails."""
        fs, _ = _fs()
        with pytest.raises(IsADirectoryError):
            fs.create_or_update_file("/d", "", owner="root")
        with pytest.raises(FileNotFoundError):
            fs.create_or_update_file("/nope/x", "", owner="root")

    def test_make_directory_exists(self) -> None:
        """An existing entry blocks ``make_directory``."""
        fs, _ = _fs()
        with pytest.raises(FileExistsError):
            fs.make_directory("/d", owner="root")

    def test_remove(self) -> None:
        """Removal unlinks recursively; root and missing paths fail."""
        fs, _ = _fs()
        fs.remove("/d")
        assert fs.get_node("/d/f.txt") is None
        with pytest.raises(OSError, match="root"):
            fs.remove("/")
        with pytest.raises(FileNotFoundError):
            fs.remove("/d")

    def test_ensure_home(self) -> None:
        """Home directories are created owned by their user."""
        fs, _ = _fs()
        assert fs.ensure_home("alice") == "/home/alice"
        node = fs.get_node("/home/alice")
        assert node is not None
        assert node.owner == "alice"
        assert node.group == "alice"

    def test_directory_size(self) -> None:
        """A directory's size is the sum of its files."""
        fs, _ = _fs()
        fs.create_or_update_file("/d/g.txt", "abc", owner="root")
        assert fs.get_node("/d").size == len("hello") + 3  # type: ignore[union-attr]
