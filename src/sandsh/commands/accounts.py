"""Account commands: whoami, su, logout, useradd, groups.

``su`` and ``useradd`` ask for passwords through the prompt service, so
inside a script the password is simply the script's next line::

    useradd alice
    secret
    secret
    su alice
    secret
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sandsh.definitions import ArgRule, CommandDefinition, CommandResult
from sandsh.errors import PermissionError, ShellError
from sandsh.users import ROOT_USER

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext


async def _whoami(ctx: ExecutionContext) -> CommandResult:
    return CommandResult.ok(ctx.user)


async def _su(ctx: ExecutionContext) -> CommandResult:
    target = ctx.args[0] if ctx.args else ROOT_USER
    users = ctx.session.users
    account = users.get(target)
    if account is None:
        msg = f"su: user '{target}' does not exist"
        raise ShellError(msg)

    if account.has_password and ctx.user != ROOT_USER:
        password = ctx.args[1] if len(ctx.args) > 1 else None
        if password is None:
            password = await ctx.prompts.ask_password(
                "Password: ", ctx.scripting, token=ctx.token
            )
            if password is None:
                msg = "su: authentication cancelled"
                raise ShellError(msg)
        if not users.check_password(target, password):
            msg = "su: Authentication failure"
            raise PermissionError(msg)

    home = f"/home/{target}"
    cwd = home if ctx.fs.get_node(home) is not None else "/"
    ctx.session.push_user(target, cwd)
    return CommandResult.ok(f"Switched to user: {target}")


async def _logout(ctx: ExecutionContext) -> CommandResult:
    if ctx.session.login_depth == 0:
        msg = "logout: not in a nested session (use su first)"
        raise ShellError(msg)
    left = ctx.session.pop_user()
    return CommandResult.ok(f"Logged out of {left}. Now user: {ctx.session.current_user}")


async def _useradd(ctx: ExecutionContext) -> CommandResult:
    username = ctx.args[0]
    if ctx.user != ROOT_USER:
        msg = "useradd: only root can add users"
        raise PermissionError(msg)
    users = ctx.session.users
    if users.exists(username):
        msg = f"useradd: user '{username}' already exists"
        raise ShellError(msg)

    password = await ctx.prompts.ask_password(
        "New password: ", ctx.scripting, token=ctx.token
    )
    if password is None:
        msg = "useradd: user creation cancelled"
        raise ShellError(msg)
    confirmation = await ctx.prompts.ask_password(
        "Confirm password: ", ctx.scripting, token=ctx.token
    )
    if confirmation is None:
        msg = "useradd: user creation cancelled"
        raise ShellError(msg)
    if password != confirmation:
        msg = "useradd: passwords do not match"
        raise ShellError(msg)

    users.create_user(username, password or None)
    ctx.fs.ensure_home(username)
    return CommandResult.ok(f"User '{username}' created.")


async def _groups(ctx: ExecutionContext) -> CommandResult:
    username = ctx.args[0] if ctx.args else ctx.user
    if not ctx.session.users.exists(username):
        msg = f"groups: user '{username}' does not exist"
        raise ShellError(msg)
    return CommandResult.ok(" ".join(ctx.session.users.groups_for(username)))


COMMANDS = (
    CommandDefinition(
        name="whoami",
        core_logic=_whoami,
        arg_rule=ArgRule(exact=0),
        description="Print the current user.",
        usage="Usage: whoami",
    ),
    CommandDefinition(
        name="su",
        core_logic=_su,
        arg_rule=ArgRule(max=2),
        description="Switch to another user.",
        usage="Usage: su [username] [password]",
    ),
    CommandDefinition(
        name="logout",
        core_logic=_logout,
        arg_rule=ArgRule(exact=0),
        description="Return to the previous user after su.",
        usage="Usage: logout",
    ),
    CommandDefinition(
        name="useradd",
        core_logic=_useradd,
        arg_rule=ArgRule(exact=1),
        description="Create a user (asks for a password twice).",
        usage="Usage: useradd <username>",
    ),
    CommandDefinition(
        name="groups",
        core_logic=_groups,
        arg_rule=ArgRule(max=1),
        description="List the groups a user belongs to.",
        usage="Usage: groups [username]",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
