"""Text commands: echo and the pipeline filters grep, wc, head, tail, sort.

Filters read their files when given paths and their piped input
otherwise, so ``cat notes.txt | grep todo`` and ``grep todo notes.txt``
print the same lines.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from sandsh.commands._helpers import input_text, parse_count
from sandsh.definitions import ArgRule, CommandDefinition, CommandResult, FlagSpec, PathRule
from sandsh.errors import UsageError
from sandsh.filesystem import FileType

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext

DEFAULT_LINES = 10


async def _echo(ctx: ExecutionContext) -> CommandResult:
    return CommandResult.ok(" ".join(ctx.args))


async def _grep(ctx: ExecutionContext) -> CommandResult:
    pattern, *paths = ctx.args
    flags = re.IGNORECASE if ctx.flags["ignore_case"] else 0
    try:
        regex = re.compile(pattern, flags)
    except re.error as exc:
        msg = f"grep: invalid pattern '{pattern}': {exc}"
        raise UsageError(msg) from exc

    invert = bool(ctx.flags["invert"])
    numbered = bool(ctx.flags["line_number"])
    matched: list[str] = []
    for number, line in enumerate(input_text(ctx, "grep", paths).splitlines(), start=1):
        if bool(regex.search(line)) != invert:
            matched.append(f"{number}:{line}" if numbered else line)
    return CommandResult.ok("\n".join(matched))


async def _wc(ctx: ExecutionContext) -> CommandResult:
    text = input_text(ctx, "wc", ctx.args)
    lines = len(text.splitlines())
    if ctx.flags["lines"]:
        counts = f"{lines}"
    else:
        counts = f"{lines} {len(text.split())} {len(text)}"
    if ctx.args:
        counts = f"{counts} {' '.join(ctx.args)}"
    return CommandResult.ok(counts)


async def _head(ctx: ExecutionContext) -> CommandResult:
    count = parse_count("head", ctx.flags["lines"], DEFAULT_LINES)
    lines = input_text(ctx, "head", ctx.args).splitlines()
    return CommandResult.ok("\n".join(lines[:count]))


async def _tail(ctx: ExecutionContext) -> CommandResult:
    count = parse_count("tail", ctx.flags["lines"], DEFAULT_LINES)
    lines = input_text(ctx, "tail", ctx.args).splitlines()
    return CommandResult.ok("\n".join(lines[-count:] if count else []))


async def _sort(ctx: ExecutionContext) -> CommandResult:
    lines = input_text(ctx, "sort", ctx.args).splitlines()
    return CommandResult.ok("\n".join(sorted(lines, reverse=bool(ctx.flags["reverse"]))))


_FIRST_FILE = (PathRule(0, optional=True, expected_type=FileType.FILE),)

COMMANDS = (
    CommandDefinition(
        name="echo",
        core_logic=_echo,
        description="Print the arguments.",
        usage="Usage: echo [text...]",
    ),
    CommandDefinition(
        name="grep",
        core_logic=_grep,
        flags=(
            FlagSpec("ignore_case", short="-i", long="--ignore-case"),
            FlagSpec("invert", short="-v", long="--invert-match"),
            FlagSpec("line_number", short="-n", long="--line-number"),
        ),
        arg_rule=ArgRule(min=1),
        path_rules=(PathRule(1, optional=True, expected_type=FileType.FILE),),
        description="Print lines matching a regular expression.",
        usage="Usage: grep [-i] [-v] [-n] <pattern> [file...]",
    ),
    CommandDefinition(
        name="wc",
        core_logic=_wc,
        flags=(FlagSpec("lines", short="-l", long="--lines"),),
        path_rules=_FIRST_FILE,
        description="Count lines, words and characters.",
        usage="Usage: wc [-l] [file...]",
    ),
    CommandDefinition(
        name="head",
        core_logic=_head,
        flags=(FlagSpec("lines", short="-n", long="--lines", takes_value=True),),
        path_rules=_FIRST_FILE,
        description="Print the first lines of the input.",
        usage="Usage: head [-n N] [file...]",
    ),
    CommandDefinition(
        name="tail",
        core_logic=_tail,
        flags=(FlagSpec("lines", short="-n", long="--lines", takes_value=True),),
        path_rules=_FIRST_FILE,
        description="Print the last lines of the input.",
        usage="Usage: tail [-n N] [file...]",
    ),
    CommandDefinition(
        name="sort",
        core_logic=_sort,
        flags=(FlagSpec("reverse", short="-r", long="--reverse"),),
        path_rules=_FIRST_FILE,
        description="Sort lines of the input.",
        usage="Usage: sort [-r] [file...]",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
