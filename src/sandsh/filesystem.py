"""In-memory virtual filesystem with Unix-style owners and modes.

Models just enough of a Unix filesystem for a shell to be interesting:

- **FileNode**: a file or directory.  Files hold text ``content``;
  directories hold ``children`` keyed by name.  Every node has an
  ``owner``, a ``group`` and a ``mode`` (``0o754`` style octal bits).

- **Path resolution**: ``/foo/bar/baz.txt`` is walked component by
  component from the root.  Relative paths are joined onto the
  caller's current directory first, and ``.``/``..`` are folded away.
  Walking *through* a directory requires execute permission on it.

- **Permissions**: owner, group and other each get ``rwx`` bits.  The
  first matching class wins (owner, then any group the user belongs to,
  then other), and ``root`` bypasses everything.

``resolve_path`` never raises: it returns a ``PathResolution`` that the
dispatch wrapper inspects, because "missing but allowed" is a normal
outcome for commands like ``touch`` and for redirection targets.  The
mutating helpers raise the builtin ``FileNotFoundError`` /
``NotADirectoryError`` / ``IsADirectoryError`` family, plus the
simulated ``PermissionError`` from ``sandsh.errors``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from sandsh.errors import PermissionError
from sandsh.users import ROOT_USER

if TYPE_CHECKING:
    from sandsh.users import UserManager

ROOT_PATH = "/"
SEPARATOR = "/"
DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755


class FileType(StrEnum):
    """The kind of object a node represents."""

    FILE = "file"
    DIRECTORY = "directory"


class Permission(StrEnum):
    """A single permission bit, named the way commands declare them."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"

    @property
    def bit(self) -> int:
        """Return the octal bit for this permission (r=4, w=2, x=1)."""
        return {"read": 4, "write": 2, "execute": 1}[self.value]


def _now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class FileNode:
    """A file or directory in the tree."""

    name: str
    file_type: FileType
    owner: str
    group: str
    mode: int
    content: str = ""
    children: dict[str, FileNode] = field(default_factory=dict)
    mtime: str = field(default_factory=_now)

    @property
    def is_dir(self) -> bool:
        """Return True for directories."""
        return self.file_type is FileType.DIRECTORY

    @property
    def size(self) -> int:
        """Return content length for files, recursive size for directories."""
        if not self.is_dir:
            return len(self.content)
        return sum(child.size for child in self.children.values())

    def touch(self) -> None:
        """Update the modification time to now."""
        self.mtime = _now()


@dataclass(frozen=True)
class PathResolution:
    """Outcome of resolving a path argument.

    Attributes:
        node: The node found, or None.
        resolved_path: The absolute, normalised path.
        error: Human-readable failure, or None on success.
        missing: True when the *only* problem is that the target does
            not exist (parents resolved fine).

    """

    node: FileNode | None
    resolved_path: str
    error: str | None = None
    missing: bool = False

    @property
    def ok(self) -> bool:
        """Return True when resolution produced no error."""
        return self.error is None


def split_path(path: str) -> tuple[str, str]:
    """Split an absolute path into (parent_path, child_name).

    Examples::

        "/foo/bar/baz.txt" → ("/foo/bar", "baz.txt")
        "/hello.txt"       → ("/", "hello.txt")
        "/"                → ("/", "")

    """
    if path == ROOT_PATH:
        return (ROOT_PATH, "")
    path = path.rstrip(SEPARATOR)
    last_slash = path.rfind(SEPARATOR)
    if last_slash == 0:
        return (ROOT_PATH, path[1:])
    return (path[:last_slash], path[last_slash + 1 :])


def mode_to_string(node: FileNode) -> str:
    """Format a node's mode like ``ls -l`` does (``drwxr-xr-x``)."""
    chars = ["d" if node.is_dir else "-"]
    for shift in (6, 3, 0):
        bits = (node.mode >> shift) & 7
        chars.append("r" if bits & 4 else "-")
        chars.append("w" if bits & 2 else "-")
        chars.append("x" if bits & 1 else "-")
    return "".join(chars)


class FileSystem:
    """An in-memory tree rooted at ``/``."""

    def __init__(self, users: UserManager) -> None:
        """Create a filesystem with an empty, world-traversable root."""
        self._users = users
        self._root = FileNode(
            name="",
            file_type=FileType.DIRECTORY,
            owner=ROOT_USER,
            group=ROOT_USER,
            mode=DEFAULT_DIR_MODE,
        )

    @property
    def root(self) -> FileNode:
        """Return the root directory node."""
        return self._root

    # -- paths ------------------------------------------------------------

    @staticmethod
    def absolute_path(target: str, base: str = ROOT_PATH) -> str:
        """Join *target* onto *base* and fold ``.`` and ``..`` away."""
        if not target:
            target = "."
        segments: list[str] = [] if target.startswith(SEPARATOR) else base.split(SEPARATOR)
        resolved: list[str] = []
        for segment in [*segments, *target.split(SEPARATOR)]:
            if segment in ("", "."):
                continue
            if segment == "..":
                if resolved:
                    resolved.pop()
            else:
                resolved.append(segment)
        return SEPARATOR + SEPARATOR.join(resolved)

    def get_node(self, path: str, *, user: str | None = None) -> FileNode | None:
        """Return the node at absolute *path*, or None.

        When *user* is given, every directory walked through must grant
        that user execute permission.
        """
        current = self._root
        for segment in [s for s in path.split(SEPARATOR) if s]:
            if user is not None and not self.has_permission(current, user, Permission.EXECUTE):
                return None
            if not current.is_dir:
                return None
            child = current.children.get(segment)
            if child is None:
                return None
            current = child
        return current

    def resolve_path(
        self,
        command: str,
        path: str,
        *,
        cwd: str,
        user: str,
        allow_missing: bool = False,
        expected_type: FileType | None = None,
        disallow_root: bool = False,
    ) -> PathResolution:
        """Resolve a command's path argument against *cwd*.

        Args:
            command: Name used to prefix error messages.
            path: The argument as typed.
            cwd: The current working directory.
            user: The acting user (for traversal checks).
            allow_missing: Treat a missing target as success.
            expected_type: Require the node to be a file or a directory.
            disallow_root: Reject paths resolving to ``/``.

        """
        resolved = self.absolute_path(path, cwd)
        if disallow_root and resolved == ROOT_PATH:
            return PathResolution(
                node=None,
                resolved_path=resolved,
                error=f"{command}: '{path}' (resolved to root) is not a valid target",
            )

        current = self._root
        found = True
        walked = ROOT_PATH
        for segment in [s for s in resolved.split(SEPARATOR) if s]:
            if not self.has_permission(current, user, Permission.EXECUTE):
                return PathResolution(
                    node=None,
                    resolved_path=resolved,
                    error=(
                        f"{command}: cannot access '{resolved}': "
                        f"permission denied while traversing '{walked}'"
                    ),
                )
            child = current.children.get(segment) if current.is_dir else None
            if child is None:
                found = False
                break
            current = child
            walked = self.absolute_path(segment, walked)

        if not found:
            parent = self.get_node(split_path(resolved)[0], user=user)
            parent_ok = parent is not None and parent.is_dir
            if allow_missing:
                return PathResolution(node=None, resolved_path=resolved, missing=True)
            return PathResolution(
                node=None,
                resolved_path=resolved,
                error=f"{command}: '{path}' (resolved to '{resolved}'): No such file or directory",
                missing=parent_ok,
            )

        if expected_type is not None and current.file_type is not expected_type:
            return PathResolution(
                node=current,
                resolved_path=resolved,
                error=f"{command}: '{path}' is not a {expected_type}",
            )
        return PathResolution(node=current, resolved_path=resolved)

    # -- permissions ------------------------------------------------------

    def has_permission(self, node: FileNode | None, user: str, permission: Permission) -> bool:
        """Return True if *user* holds *permission* on *node*."""
        if user == ROOT_USER:
            return True
        if node is None:
            return False
        if node.owner == user:
            bits = (node.mode >> 6) & 7
        elif node.group in self._users.groups_for(user):
            bits = (node.mode >> 3) & 7
        else:
            bits = node.mode & 7
        return bool(bits & permission.bit)

    # -- mutation ---------------------------------------------------------

    def create_parent_directories(self, path: str, *, user: str) -> FileNode:
        """Make sure every directory above *path* exists.

        Returns:
            The (possibly new) parent directory of *path*.

        Raises:
            NotADirectoryError: If a path component is a file.
            PermissionError: If *user* may not create a missing directory.

        """
        parent_path, _ = split_path(path)
        current = self._root
        walked = ROOT_PATH
        for segment in [s for s in parent_path.split(SEPARATOR) if s]:
            child = current.children.get(segment)
            if child is None:
                if not self.has_permission(current, user, Permission.WRITE):
                    msg = f"cannot create directory '{segment}' in '{walked}': permission denied"
                    raise PermissionError(msg)
                child = self._new_node(segment, FileType.DIRECTORY, owner=user)
                current.children[segment] = child
                current.touch()
            elif not child.is_dir:
                msg = f"path component '{self.absolute_path(segment, walked)}' is not a directory"
                raise NotADirectoryError(msg)
            current = child
            walked = self.absolute_path(segment, walked)
        return current

    def create_or_update_file(self, path: str, content: str, *, owner: str) -> FileNode:
        """Write *content* to *path*, creating the file if needed.

        Raises:
            FileNotFoundError: If the parent directory does not exist.
            IsADirectoryError: If *path* names a directory.

        """
        parent_path, name = split_path(path)
        parent = self.get_node(parent_path)
        if parent is None or not parent.is_dir:
            msg = f"parent directory not found: {parent_path}"
            raise FileNotFoundError(msg)
        node = parent.children.get(name)
        if node is None:
            node = self._new_node(name, FileType.FILE, owner=owner)
            parent.children[name] = node
        elif node.is_dir:
            msg = f"is a directory: {path}"
            raise IsADirectoryError(msg)
        node.content = content
        node.touch()
        parent.touch()
        return node

    def make_directory(self, path: str, *, owner: str) -> FileNode:
        """Create a single directory at *path*.

        Raises:
            FileExistsError: If something already lives there.
            FileNotFoundError: If the parent does not exist.

        """
        parent_path, name = split_path(path)
        parent = self.get_node(parent_path)
        if parent is None or not parent.is_dir:
            msg = f"parent directory not found: {parent_path}"
            raise FileNotFoundError(msg)
        if name in parent.children:
            msg = f"already exists: {path}"
            raise FileExistsError(msg)
        node = self._new_node(name, FileType.DIRECTORY, owner=owner)
        parent.children[name] = node
        parent.touch()
        return node

    def remove(self, path: str) -> None:
        """Unlink the node at *path* (recursively for directories).

        Raises:
            OSError: For the root directory.
            FileNotFoundError: If nothing lives at *path*.

        """
        if path == ROOT_PATH:
            msg = "cannot remove root directory"
            raise OSError(msg)
        parent_path, name = split_path(path)
        parent = self.get_node(parent_path)
        if parent is None or name not in parent.children:
            msg = f"path not found: {path}"
            raise FileNotFoundError(msg)
        del parent.children[name]
        parent.touch()

    def ensure_home(self, username: str) -> str:
        """Create ``/home/<username>`` owned by that user if missing.

        Returns:
            The home directory path.

        """
        home = f"/home/{username}"
        if self.get_node("/home") is None:
            self.make_directory("/home", owner=ROOT_USER)
        if self.get_node(home) is None:
            self.make_directory(home, owner=username)
        return home

    def _new_node(self, name: str, file_type: FileType, *, owner: str) -> FileNode:
        user = self._users.get(owner)
        group = user.primary_group if user is not None else owner
        mode = DEFAULT_DIR_MODE if file_type is FileType.DIRECTORY else DEFAULT_FILE_MODE
        return FileNode(name=name, file_type=file_type, owner=owner, group=group, mode=mode)
