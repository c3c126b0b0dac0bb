"""File commands: ls, cat, touch, mkdir, rm, cd, pwd, chmod."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sandsh.cancellation import Flow
from sandsh.commands._helpers import read_file, require, resolve
from sandsh.definitions import (
    ArgRule,
    CommandDefinition,
    CommandResult,
    FlagSpec,
    PathRule,
    PermissionRule,
)
from sandsh.errors import OperationCancelledError, PathError, PermissionError, UsageError
from sandsh.filesystem import FileType, Permission, mode_to_string, split_path
from sandsh.pipeline import append_content
from sandsh.users import ROOT_USER

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext
    from sandsh.filesystem import FileNode

_MODE = re.compile(r"^[0-7]{3}$")


def _check_token(ctx: ExecutionContext) -> None:
    if ctx.token.check() is Flow.CANCELLED:
        raise OperationCancelledError(ctx.token.reason or "cancelled")


def _long_line(name: str, node: FileNode) -> str:
    return (
        f"{mode_to_string(node)} {node.owner:<8} {node.group:<8} "
        f"{node.size:>6} {node.mtime[:16].replace('T', ' ')} {name}"
    )


def _list_directory(ctx: ExecutionContext, node: FileNode) -> list[str]:
    show_all = bool(ctx.flags["all"])
    names = sorted(n for n in node.children if show_all or not n.startswith("."))
    if ctx.flags["long"]:
        return [_long_line(n, node.children[n]) for n in names]
    return [f"{n}/" if node.children[n].is_dir else n for n in names]


async def _ls(ctx: ExecutionContext) -> CommandResult:
    targets = ctx.args or ["."]
    files: list[str] = []
    directories: list[tuple[str, FileNode]] = []
    for index, target in enumerate(targets):
        resolution = ctx.path(index) or resolve(ctx, "ls", target)
        node = resolution.node
        if node is None:
            msg = f"ls: cannot access '{target}': No such file or directory"
            raise PathError(msg)
        require(ctx, "ls", node, target, Permission.READ)
        if node.is_dir:
            directories.append((target, node))
        else:
            files.append(_long_line(target, node) if ctx.flags["long"] else target)

    # Files first as one block, then one block per directory.
    blocks = ["\n".join(files)] if files else []
    for target, node in directories:
        body = "\n".join(_list_directory(ctx, node))
        blocks.append(f"{target}:\n{body}" if len(targets) > 1 else body)
    return CommandResult.ok("\n\n".join(b for b in blocks if b))


async def _cat(ctx: ExecutionContext) -> CommandResult:
    if not ctx.args:
        return CommandResult.ok(ctx.stdin or "")
    content = ""
    for path in ctx.args:
        content = append_content(content, read_file(ctx, "cat", path))
    return CommandResult.ok(content)


async def _touch(ctx: ExecutionContext) -> CommandResult:
    for index, target in enumerate(ctx.args):
        _check_token(ctx)
        resolution = ctx.path(index) or resolve(
            ctx, "touch", target, allow_missing=True, disallow_root=True
        )
        if resolution.node is not None:
            require(ctx, "touch", resolution.node, target, Permission.WRITE)
            resolution.node.touch()
            continue
        parent_path, _ = split_path(resolution.resolved_path)
        parent = ctx.fs.get_node(parent_path, user=ctx.user)
        if parent is None or not parent.is_dir:
            msg = f"touch: cannot touch '{target}': No such file or directory"
            raise PathError(msg)
        require(ctx, "touch", parent, parent_path, Permission.WRITE)
        ctx.fs.create_or_update_file(resolution.resolved_path, "", owner=ctx.user)
    return CommandResult.ok()


async def _mkdir(ctx: ExecutionContext) -> CommandResult:
    parents = bool(ctx.flags["parents"])
    for target in ctx.args:
        _check_token(ctx)
        resolution = resolve(ctx, "mkdir", target, allow_missing=True, disallow_root=True)
        if resolution.node is not None:
            if parents and resolution.node.is_dir:
                continue
            msg = f"mkdir: cannot create directory '{target}': File exists"
            raise PathError(msg)
        path = resolution.resolved_path
        parent_path, _ = split_path(path)
        parent = ctx.fs.get_node(parent_path, user=ctx.user)
        if parent is None:
            if not parents:
                msg = f"mkdir: cannot create directory '{target}': No such file or directory"
                raise PathError(msg)
            parent = ctx.fs.create_parent_directories(path, user=ctx.user)
        if not parent.is_dir:
            msg = f"mkdir: cannot create directory '{target}': Not a directory"
            raise PathError(msg)
        require(ctx, "mkdir", parent, parent_path, Permission.WRITE)
        ctx.fs.make_directory(path, owner=ctx.user)
    return CommandResult.ok()


async def _rm(ctx: ExecutionContext) -> CommandResult:
    recursive = bool(ctx.flags["recursive"])
    force = bool(ctx.flags["force"])
    messages: list[str] = []
    for target in ctx.args:
        resolution = resolve(ctx, "rm", target, allow_missing=force, disallow_root=True)
        node = resolution.node
        if node is None:
            continue
        if node.is_dir and not recursive:
            msg = f"rm: cannot remove '{target}': Is a directory"
            raise PathError(msg)

        parent_path, _ = split_path(resolution.resolved_path)
        parent = ctx.fs.get_node(parent_path)
        if parent is not None:
            require(ctx, "rm", parent, parent_path, Permission.WRITE)

        if node.is_dir and node.children and not force:
            confirmed = await ctx.prompts.confirm(
                [f"Remove directory '{target}' and all of its contents?"],
                ctx.scripting,
                token=ctx.token,
            )
            if not confirmed:
                messages.append(f"rm: removal of '{target}' cancelled.")
                continue

        _check_token(ctx)
        ctx.fs.remove(resolution.resolved_path)
    return CommandResult.ok("\n".join(messages))


async def _cd(ctx: ExecutionContext) -> CommandResult:
    resolution = ctx.path(0)
    if resolution is None:
        home = ctx.session.env.get("HOME", "/") or "/"
        resolution = resolve(ctx, "cd", home, expected_type=FileType.DIRECTORY)
        if resolution.node is not None:
            require(ctx, "cd", resolution.node, home, Permission.EXECUTE)
    ctx.session.cwd = resolution.resolved_path
    return CommandResult.ok()


async def _pwd(ctx: ExecutionContext) -> CommandResult:
    return CommandResult.ok(ctx.cwd)


async def _chmod(ctx: ExecutionContext) -> CommandResult:
    mode_text, target = ctx.args
    if not _MODE.match(mode_text):
        msg = f"chmod: invalid mode: '{mode_text}'"
        raise UsageError(msg, usage="Usage: chmod <mode> <path>  (e.g. chmod 755 script.sh)")
    resolution = ctx.path(1)
    node = resolution.node if resolution is not None else None
    if node is None:
        msg = f"chmod: cannot access '{target}': No such file or directory"
        raise PathError(msg)
    if ctx.user not in (ROOT_USER, node.owner):
        msg = f"chmod: changing permissions of '{target}': Operation not permitted"
        raise PermissionError(msg)
    _check_token(ctx)
    node.mode = int(mode_text, 8)
    node.touch()
    return CommandResult.ok()


COMMANDS = (
    CommandDefinition(
        name="ls",
        core_logic=_ls,
        flags=(
            FlagSpec("long", short="-l", long="--long"),
            FlagSpec("all", short="-a", long="--all"),
        ),
        path_rules=(PathRule(0, optional=True),),
        permission_rules=(PermissionRule(0, (Permission.READ,)),),
        description="List directory contents.",
        usage="Usage: ls [-l] [-a] [path...]",
    ),
    CommandDefinition(
        name="cat",
        core_logic=_cat,
        path_rules=(PathRule(0, optional=True, expected_type=FileType.FILE),),
        permission_rules=(PermissionRule(0, (Permission.READ,)),),
        description="Print files, or pass piped input through.",
        usage="Usage: cat [file...]",
    ),
    CommandDefinition(
        name="touch",
        core_logic=_touch,
        arg_rule=ArgRule(min=1),
        path_rules=(PathRule(0, allow_missing=True, disallow_root=True),),
        description="Create empty files or update their timestamps.",
        usage="Usage: touch <file...>",
    ),
    CommandDefinition(
        name="mkdir",
        core_logic=_mkdir,
        flags=(FlagSpec("parents", short="-p", long="--parents"),),
        arg_rule=ArgRule(min=1),
        description="Create directories.",
        usage="Usage: mkdir [-p] <directory...>",
    ),
    CommandDefinition(
        name="rm",
        core_logic=_rm,
        flags=(
            FlagSpec("recursive", short="-r", long="--recursive", aliases=("-R",)),
            FlagSpec("force", short="-f", long="--force"),
        ),
        arg_rule=ArgRule(min=1),
        description="Remove files or directories.",
        usage="Usage: rm [-r] [-f] <path...>",
    ),
    CommandDefinition(
        name="cd",
        core_logic=_cd,
        arg_rule=ArgRule(max=1),
        path_rules=(PathRule(0, optional=True, expected_type=FileType.DIRECTORY),),
        permission_rules=(PermissionRule(0, (Permission.EXECUTE,)),),
        description="Change the current directory.",
        usage="Usage: cd [directory]",
    ),
    CommandDefinition(
        name="pwd",
        core_logic=_pwd,
        arg_rule=ArgRule(exact=0),
        description="Print the current directory.",
        usage="Usage: pwd",
    ),
    CommandDefinition(
        name="chmod",
        core_logic=_chmod,
        arg_rule=ArgRule(exact=2),
        path_rules=(PathRule(1),),
        description="Change a file's mode bits.",
        usage="Usage: chmod <mode> <path>",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
