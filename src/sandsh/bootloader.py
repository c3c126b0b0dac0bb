"""Bootloader — from a boot image to a ready shell session.

A session needs quite a lot in place before the first prompt: a
filesystem with home directories, user accounts, the default
environment and aliases, and every builtin command registered.  The
bootloader does that in a fixed chain of stages:

    IMAGE → FILESYSTEM → ACCOUNTS → SESSION → USERSPACE

1. **IMAGE** — read the boot image: a JSON file when a path is given,
   otherwise the built-in defaults.  Keys missing from the file fall
   back to the defaults, so a boot image only lists what it changes.
2. **FILESYSTEM** — lay out ``/``, ``/home``, ``/tmp`` and ``/etc``.
3. **ACCOUNTS** — create the image's users, their groups and homes.
4. **SESSION** — build the ``ExecutorSession`` and register builtins.
5. **USERSPACE** — log in as the default user; ready for input.

Each stage appends to ``boot_log``, which the REPL prints on start-up.

A boot image looks like this (every key optional)::

    {
      "hostname": "sandbox",
      "version": "1.0.0",
      "default_user": "guest",
      "users": [{"name": "guest", "password": null, "groups": ["staff"]}],
      "env": {"EDITOR": "nano"},
      "aliases": {"ll": "ls -l"},
      "max_script_steps": 10000,
      "max_alias_expansions": 10
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from sandsh.aliases import MAX_ALIAS_EXPANSIONS
from sandsh.commands import register_builtins
from sandsh.executor import ExecutorSession, SessionConfig
from sandsh.filesystem import FileSystem
from sandsh.users import ROOT_USER, UserManager

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_VERSION = "1.0.0"
DEFAULT_HOSTNAME = "sandbox"
DEFAULT_PATH = "/bin:/usr/bin"
DEFAULT_ALIASES = {"ll": "ls -l", "la": "ls -a"}
_STANDARD_DIRS = ("/home", "/tmp", "/etc")


class BootError(RuntimeError):
    """Raise when the boot chain cannot continue.

    Examples: unreadable or corrupt image file, unknown default user.
    """


class BootStage(StrEnum):
    """The phase of the boot chain, in order."""

    IMAGE = "image"
    FILESYSTEM = "filesystem"
    ACCOUNTS = "accounts"
    SESSION = "session"
    USERSPACE = "userspace"


@dataclass(frozen=True)
class UserSpec:
    """A user the boot image asks for."""

    name: str
    password: str | None = None
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class BootImage:
    """Everything configurable about a session.

    Attributes:
        hostname: Shown in the prompt.
        version: Reported in the boot log.
        default_user: Who is logged in after boot.
        users: Accounts to create (root always exists).
        env: Extra environment variables.
        aliases: Initial alias table.
        max_script_steps: Lines a single script may execute.
        max_alias_expansions: Alias substitutions before a loop error.

    """

    hostname: str = DEFAULT_HOSTNAME
    version: str = DEFAULT_VERSION
    default_user: str = ROOT_USER
    users: tuple[UserSpec, ...] = ()
    env: dict[str, str] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    max_script_steps: int = 10_000
    max_alias_expansions: int = MAX_ALIAS_EXPANSIONS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BootImage:
        """Build an image from decoded JSON, defaulting missing keys.

        Raises:
            BootError: If a value has the wrong shape.

        """
        defaults = cls()
        try:
            users = tuple(
                UserSpec(
                    name=str(entry["name"]),
                    password=entry.get("password"),
                    groups=tuple(entry.get("groups", ())),
                )
                for entry in data.get("users", ())
            )
            return cls(
                hostname=str(data.get("hostname", defaults.hostname)),
                version=str(data.get("version", defaults.version)),
                default_user=str(data.get("default_user", defaults.default_user)),
                users=users,
                env={str(k): str(v) for k, v in data.get("env", {}).items()},
                aliases={str(k): str(v) for k, v in data.get("aliases", defaults.aliases).items()},
                max_script_steps=int(data.get("max_script_steps", defaults.max_script_steps)),
                max_alias_expansions=int(
                    data.get("max_alias_expansions", defaults.max_alias_expansions)
                ),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            msg = f"Invalid boot image: {e}"
            raise BootError(msg) from e

    def to_config(self) -> SessionConfig:
        """Return the session tunables this image describes."""
        return SessionConfig(
            hostname=self.hostname,
            max_script_steps=self.max_script_steps,
            max_alias_expansions=self.max_alias_expansions,
        )


class Bootloader:
    """Build a ready ``ExecutorSession``.

    Usage::

        session = Bootloader().boot()
        await session.run_line("echo hello")

    """

    def __init__(self, *, image_path: Path | None = None, image: BootImage | None = None) -> None:
        """Create a bootloader.

        Args:
            image_path: JSON boot image to read.  Ignored when *image*
                is given.
            image: An already-built image (handy in tests).

        """
        self._image_path = image_path
        self._image = image
        self._stage: BootStage = BootStage.IMAGE
        self._boot_log: list[str] = []
        self._session: ExecutorSession | None = None

    @property
    def stage(self) -> BootStage:
        """Return the current boot stage."""
        return self._stage

    @property
    def boot_log(self) -> list[str]:
        """Return the accumulated boot log messages."""
        return list(self._boot_log)

    @property
    def session(self) -> ExecutorSession | None:
        """Return the booted session, or None before ``boot`` completes."""
        return self._session

    def boot(self) -> ExecutorSession:
        """Run the full boot chain and return the session.

        Raises:
            BootError: If the image cannot be loaded or is inconsistent.

        """
        # Stage 1: boot image
        self._stage = BootStage.IMAGE
        image = self._load_image()
        self._boot_log.append(f"[BOOT] Loading boot image v{image.version} ... OK")

        # Stage 2: filesystem
        self._stage = BootStage.FILESYSTEM
        users = UserManager()
        fs = FileSystem(users)
        for path in _STANDARD_DIRS:
            node = fs.make_directory(path, owner=ROOT_USER)
            if path == "/tmp":
                node.mode = 0o777
        self._boot_log.append("[FS] Mounted / with " + ", ".join(_STANDARD_DIRS) + " ... OK")

        # Stage 3: accounts
        self._stage = BootStage.ACCOUNTS
        fs.ensure_home(ROOT_USER)
        for spec in image.users:
            try:
                users.create_user(spec.name, spec.password)
                for group in spec.groups:
                    if not users.group_exists(group):
                        users.create_group(group)
                    users.add_to_group(spec.name, group)
            except (KeyError, ValueError) as e:
                msg = f"Cannot create user '{spec.name}': {e}"
                raise BootError(msg) from e
            fs.ensure_home(spec.name)
        if not users.exists(image.default_user):
            msg = f"Default user '{image.default_user}' does not exist"
            raise BootError(msg)
        self._boot_log.append(f"[USERS] {len(users.list_users())} account(s) ready ... OK")

        # Stage 4: session
        self._stage = BootStage.SESSION
        home = f"/home/{image.default_user}"
        env = {
            "USER": image.default_user,
            "HOME": home,
            "HOST": image.hostname,
            "PATH": DEFAULT_PATH,
            "PWD": home,
            **image.env,
        }
        session = ExecutorSession(
            fs,
            users,
            config=image.to_config(),
            env=env,
            aliases=image.aliases,
            user=image.default_user,
            cwd=home,
        )
        register_builtins(session)
        self._boot_log.append(
            f"[SHELL] {len(session.get_registered_commands())} commands registered ... OK"
        )

        # Stage 5: userspace
        self._stage = BootStage.USERSPACE
        self._boot_log.append(f"[LOGIN] {image.default_user}@{image.hostname} ... OK")
        self._session = session
        return session

    def _load_image(self) -> BootImage:
        """Return the image to boot from.

        Raises:
            BootError: If the image file is given but cannot be read.

        """
        if self._image is not None:
            return self._image
        if self._image_path is None:
            return BootImage()
        try:
            data = json.loads(self._image_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            msg = f"Cannot load boot image: {e}"
            raise BootError(msg) from e
        if not isinstance(data, dict):
            msg = "Cannot load boot image: top level must be a JSON object"
            raise BootError(msg)
        return BootImage.from_dict(data)
