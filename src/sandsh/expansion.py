"""Text expansion applied to a raw command line before parsing.

Three rewrites happen, in this order:

1. **Script arguments** (only inside ``run``): ``$1`` .. ``$N`` become
   the script's positional arguments, ``$@`` all of them joined by
   spaces, ``$#`` their count.
2. **Variables**: ``$NAME`` and ``${NAME}`` become the variable's value,
   or nothing when unset.  This is a single left-to-right pass, so a
   value that itself contains ``$OTHER`` is *not* expanded again.
3. **Globs**: for file commands, an unquoted argument containing ``*``,
   ``?`` or ``[...]`` is replaced by the sorted names it matches.  A
   pattern with no match is left as typed (like bash without
   ``nullglob``), so the command reports the missing file itself.

Alias resolution sits between steps 2 and 3 and lives in
``sandsh.aliases``.
"""

from __future__ import annotations

import fnmatch
import re
from typing import TYPE_CHECKING

from sandsh.errors import ParseError
from sandsh.filesystem import SEPARATOR, Permission
from sandsh.parser import Lexer, TokenType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sandsh.env import Environment
    from sandsh.filesystem import FileSystem

_VARIABLE = re.compile(r"\$(?:\{([A-Za-z_][A-Za-z0-9_]*)\}|([A-Za-z_][A-Za-z0-9_]*))")
_SCRIPT_ARG = re.compile(r"\$(\d+|@|#)")
_GLOB_CHARS = frozenset("*?[")

GLOB_COMMANDS = frozenset({"ls", "rm", "cat", "chmod"})

_BREAKS = frozenset(
    {
        TokenType.PIPE,
        TokenType.SEMICOLON,
        TokenType.BACKGROUND,
        TokenType.AND,
        TokenType.OR,
    }
)


def expand_variables(line: str, env: Environment) -> str:
    """Replace ``$NAME`` / ``${NAME}`` with values from *env*."""

    def _lookup(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        return env.get(name)

    return _VARIABLE.sub(_lookup, line)


def expand_script_args(line: str, args: Sequence[str]) -> str:
    """Replace ``$1``..``$N``, ``$@`` and ``$#`` with script arguments.

    ``$0`` is not supported and, like an index past the end, expands
    to nothing.
    """

    def _lookup(match: re.Match[str]) -> str:
        key = match.group(1)
        if key == "@":
            return " ".join(args)
        if key == "#":
            return str(len(args))
        index = int(key)
        return args[index - 1] if 0 < index <= len(args) else ""

    return _SCRIPT_ARG.sub(_lookup, line)


def _quote(name: str) -> str:
    if any(ch.isspace() for ch in name) or any(ch in "\"'<>|&;" for ch in name):
        escaped = name.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return name


def _match_pattern(pattern: str, fs: FileSystem, cwd: str, user: str) -> list[str]:
    """Return the sorted names matching *pattern* (empty if none)."""
    directory, _, name_pattern = pattern.rpartition(SEPARATOR)
    if any(ch in _GLOB_CHARS for ch in directory):
        return []
    if pattern.startswith(SEPARATOR) and not directory:
        directory = SEPARATOR

    node = fs.get_node(fs.absolute_path(directory or ".", cwd), user=user)
    if node is None or not node.is_dir:
        return []
    if not fs.has_permission(node, user, Permission.READ):
        return []

    names = sorted(
        name
        for name in node.children
        if fnmatch.fnmatchcase(name, name_pattern)
        and (name_pattern.startswith(".") or not name.startswith("."))
    )
    if not directory:
        return names
    prefix = directory if directory.endswith(SEPARATOR) else directory + SEPARATOR
    return [prefix + name for name in names]


def expand_globs(line: str, fs: FileSystem, cwd: str, user: str) -> str:
    """Expand glob arguments of file commands in *line*.

    Quoted and backslash-escaped words are never expanded.  A line that
    does not tokenize is returned unchanged; the parser reports the
    syntax error right after.
    """
    try:
        tokens = Lexer(line).tokenize()
    except ParseError:
        return line

    replacements: list[tuple[int, int, str]] = []
    command: str | None = None
    for token in tokens:
        if token.type in _BREAKS:
            command = None
            continue
        if token.type not in (TokenType.WORD, TokenType.STRING_DQ, TokenType.STRING_SQ):
            continue
        if command is None:
            command = token.value
            continue
        if command not in GLOB_COMMANDS or token.type is not TokenType.WORD:
            continue
        raw = line[token.position : token.end]
        if "\\" in raw or not any(ch in _GLOB_CHARS for ch in raw):
            continue
        matches = _match_pattern(token.value, fs, cwd, user)
        if matches:
            replacement = " ".join(_quote(m) for m in matches)
            replacements.append((token.position, token.end, replacement))

    # Splice from the right so earlier offsets stay valid.
    for start, end, text in reversed(replacements):
        line = line[:start] + text + line[end:]
    return line
