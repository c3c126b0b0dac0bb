"""Small helpers shared by the builtin commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.errors import PathError, PermissionError
from sandsh.filesystem import FileType, Permission

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext
    from sandsh.filesystem import FileNode, PathResolution


def resolve(
    ctx: ExecutionContext,
    command: str,
    path: str,
    *,
    expected_type: FileType | None = None,
    allow_missing: bool = False,
    disallow_root: bool = False,
) -> PathResolution:
    """Resolve an extra path argument the way the wrapper does.

    Commands declare a path rule for their first path; further paths
    (``cat a b c``, globs) are resolved here with the same messages.

    Raises:
        PathError: If resolution fails.

    """
    result = ctx.fs.resolve_path(
        command,
        path,
        cwd=ctx.cwd,
        user=ctx.user,
        allow_missing=allow_missing,
        expected_type=expected_type,
        disallow_root=disallow_root,
    )
    if result.error is not None:
        raise PathError(result.error)
    return result


def require(
    ctx: ExecutionContext,
    command: str,
    node: FileNode,
    label: str,
    *permissions: Permission,
) -> None:
    """Raise ``PermissionError`` unless *ctx.user* holds every permission.

    Raises:
        PermissionError: Naming *label* and *command*.

    """
    for permission in permissions:
        if not ctx.fs.has_permission(node, ctx.user, permission):
            msg = f"{command}: '{label}': permission denied"
            raise PermissionError(msg)


def read_file(ctx: ExecutionContext, command: str, path: str) -> str:
    """Return the content of file *path* after a read-permission check."""
    node = resolve(ctx, command, path, expected_type=FileType.FILE).node
    if node is None:
        msg = f"{command}: '{path}': No such file or directory"
        raise PathError(msg)
    require(ctx, command, node, path, Permission.READ)
    return node.content


def input_text(ctx: ExecutionContext, command: str, paths: list[str]) -> str:
    """Return the text a filter command works on: files, else stdin."""
    if not paths:
        return ctx.stdin or ""
    return "\n".join(read_file(ctx, command, path).removesuffix("\n") for path in paths)


def parse_count(command: str, value: str | bool | None, default: int) -> int:
    """Parse a ``-n`` style count.

    Raises:
        ValueError: If *value* is not a non-negative integer.

    """
    if value is None or isinstance(value, bool):
        return default
    if not value.isdigit():
        msg = f"{command}: invalid number of lines: '{value}'"
        raise ValueError(msg)
    return int(value)
