"""Command grammar: ``<group>-<verb> <arg1> <arg2> ...``.

Parsing never touches game state. Argument helpers raise
``MalformedCommand`` so each engine can answer ``info-malformed`` and
drop just that one command.
"""

from __future__ import annotations

from dataclasses import dataclass

from dotsboxes.core.grid import Grid, GridPoint, MalformedCommand
from dotsboxes.core.board import orientation_name

__all__ = [
    "AUTHORIZED_GROUPS",
    "PROTOCOL_VERSION",
    "Command",
    "MalformedCommand",
    "compatible",
    "parse_int",
    "parse_line",
    "parse_orientation",
    "format_command",
]

PROTOCOL_VERSION = (2, 0)

# Groups a host refuses until the peer has completed the version handshake.
AUTHORIZED_GROUPS = frozenset({"player", "game", "request"})


def compatible(major: int, minor: int = 0) -> bool:
    """Versions are compatible iff their major components match."""
    return major == PROTOCOL_VERSION[0]


@dataclass(frozen=True)
class Command:
    """One parsed protocol line."""

    group: str
    verb: str
    args: tuple[str, ...]
    raw: str

    @property
    def name(self) -> str:
        return f"{self.group}-{self.verb}"

    def arg(self, index: int, what: str) -> str:
        """Positional argument, or MalformedCommand naming what is missing."""
        try:
            return self.args[index]
        except IndexError:
            raise MalformedCommand(f"Missing {what}!") from None

    def rest(self, start: int) -> str:
        """Free text from argument ``start`` to end of line, spacing intact."""
        parts = self.raw.split(" ", start + 1)
        return parts[start + 1] if len(parts) > start + 1 else ""

    def int_arg(self, index: int, what: str) -> int:
        return parse_int(self.arg(index, what), what)


def parse_line(line: str) -> Command:
    """Split a raw line into group, verb and arguments.

    Raises MalformedCommand when the first word has no hyphen.
    """
    line = line.rstrip("\r\n")
    words = line.split(" ")
    group, sep, verb = words[0].partition("-")
    if not sep:
        raise MalformedCommand(f"{words[0]} was not followed by a hyphen!")
    return Command(group=group, verb=verb, args=tuple(words[1:]), raw=line)


def parse_int(text: str, what: str = "number") -> int:
    try:
        return int(text)
    except ValueError:
        raise MalformedCommand(f"Could not parse {what}!") from None


def parse_orientation(text: str) -> bool:
    """``"ver"`` -> True, ``"hor"`` -> False."""
    if text == "ver":
        return True
    if text == "hor":
        return False
    raise MalformedCommand("Could not parse line direction!")


def format_command(name: str, *args: object) -> str:
    return " ".join([name, *(str(a) for a in args)])


# ----------------------------------------------------------------------
# Outgoing commands
# ----------------------------------------------------------------------

def info_version(version: tuple[int, int] = PROTOCOL_VERSION) -> str:
    return format_command("info-version", version[0], version[1])


def info_warn(text: str) -> str:
    return format_command("info-warn", text)


def info_malformed(reason: str = "") -> str:
    return format_command("info-malformed", reason) if reason else "info-malformed"


def network_assign(player_id: int) -> str:
    return format_command("network-assign", player_id)


def network_chat(player_id: int, text: str) -> str:
    return format_command("network-chat", player_id, text)


def player_add(player_id: int, name: str) -> str:
    return format_command("player-add", player_id, name)


def player_rename(player_id: int, name: str) -> str:
    return format_command("player-rename", player_id, name)


def player_color(player_id: int, rgb: int) -> str:
    return format_command("player-color", player_id, rgb)


def player_remove(player_id: int) -> str:
    return format_command("player-remove", player_id)


def player_line(owner: int, vertical: bool, point: GridPoint) -> str:
    return format_command("player-line", owner, orientation_name(vertical), point)


def player_box(owner: int, point: GridPoint) -> str:
    return format_command("player-box", owner, point)


def grid_size(grid: Grid) -> str:
    return format_command("grid-size", grid)


def game_play(player_id: int, point: GridPoint, vertical: bool) -> str:
    return format_command("game-play", player_id, point, orientation_name(vertical))


def game_current(player_id: int) -> str:
    return format_command("game-current", player_id)


def request_deny(reason: str) -> str:
    return format_command("request-deny", reason)


def unknown(group: str) -> str:
    return f"unknown-{group}"
