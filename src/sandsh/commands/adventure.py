"""The ``adventure`` command — a tiny text adventure running as a sub-loop.

The game is the one command that keeps reading input after it starts:
every turn it needs the player's next command.  Interactively that is a
``TEXT`` prompt through the prompt service.  Inside a script the game
reads the script's following lines directly from the
``ScriptingContext``, so a script can play a whole game::

    adventure
    go north
    take key
    go south
    go east
    drop key

If the script runs out while the game still wants input, the context is
marked ``waiting_for_input``; the pipeline and script runners stop
there instead of running the remaining lines a second time.

Game files are JSON with ``title``, ``startingRoomId``, ``rooms``
(name, description, exits), ``items`` (name, description, location,
``canTake``) and an optional ``winCondition`` of type ``itemInRoom``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sandsh.cancellation import Flow
from sandsh.definitions import ArgRule, CommandDefinition, CommandResult, PathRule, PermissionRule
from sandsh.errors import OperationCancelledError, ShellError
from sandsh.filesystem import FileType, Permission
from sandsh.output import StyleHint

if TYPE_CHECKING:
    from sandsh.dispatch import ExecutionContext

PLAYER = "player"
END_OF_SCRIPT = "> [end of script]"

DIRECTIONS = {
    "n": "north",
    "s": "south",
    "e": "east",
    "w": "west",
    "u": "up",
    "d": "down",
}

DEFAULT_GAME: dict[str, Any] = {
    "title": "The Lost Key",
    "startingRoomId": "west_of_house",
    "winCondition": {"type": "itemInRoom", "itemId": "key", "roomId": "front_door"},
    "winMessage": "With a satisfying click, you unlock the door. You have won!",
    "rooms": {
        "west_of_house": {
            "name": "West of House",
            "description": "You are standing in an open field west of a white house.",
            "exits": {"north": "north_of_house", "south": "south_of_house", "east": "front_door"},
        },
        "north_of_house": {
            "name": "North of House",
            "description": "You are in a forest. Something glints on the ground.",
            "exits": {"south": "west_of_house"},
        },
        "south_of_house": {
            "name": "South of House",
            "description": "You are in a garden full of flowers.",
            "exits": {"north": "west_of_house"},
        },
        "front_door": {
            "name": "Front Door",
            "description": "A boarded front door with a large, rusty lock.",
            "exits": {"west": "west_of_house"},
        },
    },
    "items": {
        "key": {
            "name": "rusty key",
            "description": "An old, rusty key. It might fit the front door.",
            "location": "north_of_house",
            "canTake": True,
        },
        "lantern": {
            "name": "brass lantern",
            "description": "An old brass lantern, currently unlit.",
            "location": "north_of_house",
            "canTake": True,
        },
        "mailbox": {
            "name": "small mailbox",
            "description": "A small, standard-issue mailbox.",
            "location": "west_of_house",
            "canTake": False,
        },
    },
}


@dataclass
class Room:
    """A location in the game."""

    room_id: str
    name: str
    description: str
    exits: dict[str, str] = field(default_factory=dict)


@dataclass
class Item:
    """A thing in a room or in the player's inventory."""

    item_id: str
    name: str
    description: str
    location: str
    can_take: bool = True

    def matches(self, words: str) -> bool:
        """Return True if *words* names this item (id or any name word)."""
        return words == self.item_id or words == self.name or words in self.name.split()


class AdventureGame:
    """Game state and the verb handlers."""

    def __init__(self, data: dict[str, Any]) -> None:
        """Build a game from decoded JSON *data*.

        Raises:
            ValueError: If rooms or the starting room are missing.

        """
        rooms = data.get("rooms")
        start = data.get("startingRoomId")
        if not isinstance(rooms, dict) or not rooms or start not in rooms:
            msg = "invalid adventure format: needs 'rooms' and a valid 'startingRoomId'"
            raise ValueError(msg)
        self.title: str = data.get("title", "Adventure")
        self.rooms = {
            room_id: Room(
                room_id=room_id,
                name=room.get("name", room_id),
                description=room.get("description", ""),
                exits=dict(room.get("exits", {})),
            )
            for room_id, room in rooms.items()
        }
        self.items = {
            item_id: Item(
                item_id=item_id,
                name=item.get("name", item_id),
                description=item.get("description", ""),
                location=item.get("location", ""),
                can_take=bool(item.get("canTake", True)),
            )
            for item_id, item in data.get("items", {}).items()
        }
        self.win_condition: dict[str, str] | None = data.get("winCondition")
        self.win_message: str = data.get("winMessage", "You have won!")
        self.location: str = start
        self.finished = False
        self.won = False

    # -- queries ----------------------------------------------------------

    def _items_at(self, location: str) -> list[Item]:
        return [item for item in self.items.values() if item.location == location]

    def _find(self, words: str, location: str) -> Item | None:
        return next((i for i in self._items_at(location) if i.matches(words)), None)

    def describe_room(self) -> list[str]:
        """Return the lines shown on entering or looking at a room."""
        room = self.rooms[self.location]
        lines = [room.name, room.description]
        here = self._items_at(self.location)
        if here:
            lines.append("You see here: " + ", ".join(item.name for item in here) + ".")
        if room.exits:
            lines.append("Exits: " + ", ".join(sorted(room.exits)) + ".")
        return lines

    def start(self) -> list[str]:
        """Return the opening lines."""
        return [f"*** {self.title} ***", *self.describe_room()]

    # -- turns ------------------------------------------------------------

    def process(self, command: str) -> list[str]:
        """Apply one player command and return the lines to show."""
        words = command.strip().lower().split()
        if not words:
            return []
        verb, target = words[0], " ".join(words[1:])
        if verb in DIRECTIONS or verb in DIRECTIONS.values():
            verb, target = "go", DIRECTIONS.get(verb, verb)

        match verb:
            case "look" | "l" | "examine" | "x":
                lines = self._look(target)
            case "go" | "walk":
                lines = self._go(target)
            case "take" | "get" | "grab":
                lines = self._take(target)
            case "drop":
                lines = self._drop(target)
            case "inventory" | "inv" | "i":
                lines = self._inventory()
            case "help":
                lines = ["Verbs: look, go <direction>, take, drop, inventory, quit."]
            case "quit" | "exit":
                self.finished = True
                return ["You leave the adventure."]
            case _:
                lines = [f"I don't know how to '{verb}'."]
        return lines + self._check_win()

    def _look(self, target: str) -> list[str]:
        if not target:
            return self.describe_room()
        item = self._find(target, PLAYER) or self._find(target, self.location)
        if item is None:
            return [f"You don't see any {target} here."]
        return [item.description]

    def _go(self, direction: str) -> list[str]:
        room = self.rooms[self.location]
        destination = room.exits.get(direction)
        if destination is None or destination not in self.rooms:
            return ["You can't go that way."]
        self.location = destination
        return self.describe_room()

    def _take(self, target: str) -> list[str]:
        item = self._find(target, self.location)
        if item is None:
            return [f"You don't see any {target} here."]
        if not item.can_take:
            return [f"You can't take the {item.name}."]
        item.location = PLAYER
        return [f"You take the {item.name}."]

    def _drop(self, target: str) -> list[str]:
        item = self._find(target, PLAYER)
        if item is None:
            return [f"You don't have any {target}."]
        item.location = self.location
        return [f"You drop the {item.name}."]

    def _inventory(self) -> list[str]:
        carried = self._items_at(PLAYER)
        if not carried:
            return ["You are empty-handed."]
        return ["You are carrying: " + ", ".join(item.name for item in carried) + "."]

    def _check_win(self) -> list[str]:
        condition = self.win_condition
        if not condition or condition.get("type") != "itemInRoom":
            return []
        item = self.items.get(condition.get("itemId", ""))
        if item is not None and item.location == condition.get("roomId"):
            self.finished = True
            self.won = True
            return [self.win_message]
        return []


def _load(ctx: ExecutionContext) -> dict[str, Any]:
    if not ctx.args:
        return DEFAULT_GAME
    path = ctx.args[0]
    resolution = ctx.path(0)
    if resolution is None or resolution.node is None:
        msg = f"adventure: file not found at '{path}'"
        raise ShellError(msg)
    try:
        data = json.loads(resolution.node.content)
    except json.JSONDecodeError as exc:
        msg = f"adventure: error parsing adventure file '{path}': {exc}"
        raise ShellError(msg) from exc
    if not isinstance(data, dict):
        msg = f"adventure: invalid adventure file format in '{path}'"
        raise ShellError(msg)
    data.setdefault("title", path)
    return data


async def _next_command(ctx: ExecutionContext) -> str | None:
    scripting = ctx.scripting
    if scripting is not None and scripting.is_scripting:
        answer = scripting.next_answer()
        if answer is None:
            ctx.output.append(END_OF_SCRIPT, StyleHint.INFO)
            scripting.waiting_for_input = True
            return None
        ctx.output.append(f"> {answer}", StyleHint.INFO)
        return answer
    return await ctx.prompts.ask("> ", token=ctx.token)


async def _adventure(ctx: ExecutionContext) -> CommandResult:
    try:
        game = AdventureGame(_load(ctx))
    except ValueError as exc:
        msg = f"adventure: {exc}"
        raise ShellError(msg) from exc

    def show(lines: list[str]) -> None:
        for line in lines:
            ctx.output.append(line, StyleHint.INFO)

    show(game.start())
    while not game.finished:
        command = await _next_command(ctx)
        if ctx.token.check() is Flow.CANCELLED:
            msg = f"adventure: {ctx.token.reason}"
            raise OperationCancelledError(msg)
        if command is None:
            break
        show(game.process(command))
    return CommandResult.ok()


COMMANDS = (
    CommandDefinition(
        name="adventure",
        core_logic=_adventure,
        arg_rule=ArgRule(max=1),
        path_rules=(PathRule(0, optional=True, expected_type=FileType.FILE),),
        permission_rules=(PermissionRule(0, (Permission.READ,)),),
        description="Play a text adventure (default game or a JSON file).",
        usage="Usage: adventure [game.json]",
    ),
)

ALIASES: dict[str, tuple[str, ...]] = {}
