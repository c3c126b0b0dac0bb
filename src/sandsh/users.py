"""Users and groups — who is acting, and what they belong to.

Every command runs *as* somebody.  The filesystem checks permissions
against that identity, redirection creates files owned by it, and
``su``/``logout`` change it.  This module provides the identities:

**User** — a username, a numeric ``uid``, an optional password hash
    and a primary group.  Usernames are what the filesystem stores as
    owners, just like the names ``ls -l`` prints.

**UserManager** — the registry (think ``/etc/passwd`` plus
    ``/etc/group``).  It always contains ``root`` (uid 0), who bypasses
    every permission check, and gives each new user a primary group of
    the same name.

Passwords are stored as SHA-256 hex digests; a user created without a
password logs in without a prompt.
"""

import hashlib
from dataclasses import dataclass, field
from itertools import count

ROOT_UID = 0
ROOT_USER = "root"


def _hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


@dataclass(frozen=True)
class User:
    """An identity in the system."""

    uid: int
    username: str
    password_hash: str | None = None

    @property
    def primary_group(self) -> str:
        """Return the user's primary group (named after the user)."""
        return self.username

    @property
    def has_password(self) -> bool:
        """Return True if logging in as this user needs a password."""
        return self.password_hash is not None

    def __repr__(self) -> str:
        """Return a readable representation without the hash."""
        return f"User(uid={self.uid}, username={self.username!r})"


@dataclass
class Group:
    """A named set of usernames."""

    name: str
    members: set[str] = field(default_factory=set)


class UserManager:
    """Registry of users and groups.

    Auto-creates root (uid=0) and the ``root`` group on initialisation.
    New users get sequential uids starting from 1000.
    """

    def __init__(self) -> None:
        """Create a manager with only the root user."""
        self._uid_counter = count(start=1000)
        self._users: dict[str, User] = {}
        self._groups: dict[str, Group] = {}

        self._users[ROOT_USER] = User(uid=ROOT_UID, username=ROOT_USER)
        self._groups[ROOT_USER] = Group(name=ROOT_USER, members={ROOT_USER})

    def create_user(self, username: str, password: str | None = None) -> User:
        """Create a new user (and its primary group).

        Args:
            username: The new login name.
            password: Plain-text password, or None for no password.

        Raises:
            ValueError: If the name is invalid or already taken.

        """
        if not username or not username.replace("_", "").replace("-", "").isalnum():
            msg = f"invalid username '{username}'"
            raise ValueError(msg)
        if username in self._users:
            msg = f"user '{username}' already exists"
            raise ValueError(msg)

        user = User(
            uid=next(self._uid_counter),
            username=username,
            password_hash=_hash_password(password) if password else None,
        )
        self._users[username] = user
        self._groups.setdefault(username, Group(name=username)).members.add(username)
        return user

    def get(self, username: str) -> User | None:
        """Look up a user by name."""
        return self._users.get(username)

    def exists(self, username: str) -> bool:
        """Return True if *username* is registered."""
        return username in self._users

    def list_users(self) -> list[User]:
        """Return all users, sorted by uid."""
        return sorted(self._users.values(), key=lambda u: u.uid)

    def check_password(self, username: str, password: str | None) -> bool:
        """Return True if *password* is correct for *username*.

        A user without a password accepts any attempt (including None).
        """
        user = self._users.get(username)
        if user is None:
            return False
        if user.password_hash is None:
            return True
        return password is not None and _hash_password(password) == user.password_hash

    def set_password(self, username: str, password: str | None) -> None:
        """Replace the password of an existing user.

        Raises:
            KeyError: If the user does not exist.

        """
        user = self._users[username]
        self._users[username] = User(
            uid=user.uid,
            username=user.username,
            password_hash=_hash_password(password) if password else None,
        )

    # -- groups -----------------------------------------------------------

    def create_group(self, name: str) -> Group:
        """Create an empty group.

        Raises:
            ValueError: If the group already exists.

        """
        if name in self._groups:
            msg = f"group '{name}' already exists"
            raise ValueError(msg)
        group = Group(name=name)
        self._groups[name] = group
        return group

    def add_to_group(self, username: str, group: str) -> None:
        """Add *username* to *group*.

        Raises:
            KeyError: If either the user or the group does not exist.

        """
        if username not in self._users:
            raise KeyError(username)
        self._groups[group].members.add(username)

    def group_exists(self, name: str) -> bool:
        """Return True if group *name* exists."""
        return name in self._groups

    def groups_for(self, username: str) -> list[str]:
        """Return the sorted names of every group *username* belongs to."""
        return sorted(g.name for g in self._groups.values() if username in g.members)
