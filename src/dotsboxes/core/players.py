"""Player registry: identities, scores, colors and disconnect flags.

Id meanings:
     0  the host playing as a player
    >0  a remote player
    -1  a queued client (connected, not yet joined)
    -2  a spectator
    -3  system notices in chat (never a registry key)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "HOST_ID",
    "QUEUED_ID",
    "SPECTATOR_ID",
    "SYSTEM_ID",
    "Player",
    "PlayerRegistry",
    "pack_rgb",
    "unpack_rgb",
]

HOST_ID = 0
QUEUED_ID = -1
SPECTATOR_ID = -2
SYSTEM_ID = -3

DISCONNECTED_NAME = "Disconnected"


def pack_rgb(red: int, green: int, blue: int) -> int:
    """Pack an opaque color into a signed 32-bit ARGB integer."""
    value = (0xFF << 24) | ((red & 0xFF) << 16) | ((green & 0xFF) << 8) | (blue & 0xFF)
    return value - (1 << 32) if value >= (1 << 31) else value


def unpack_rgb(value: int) -> tuple[int, int, int]:
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


@dataclass
class Player:
    name: str
    color: int | None = None
    score: int = 0
    disconnected: bool = False
    link: Any = None

    def disconnect(self) -> None:
        """Keep the slot and score, drop the identity."""
        self.disconnected = True
        self.name = DISCONNECTED_NAME

    def __str__(self) -> str:
        return self.name


@dataclass
class PlayerRegistry:
    """Mapping of player id to Player, plus the forward-only id counter."""

    players: dict[int, Player] = field(default_factory=dict)
    next_id: int = 1

    def __contains__(self, player_id: int) -> bool:
        return player_id in self.players

    def __len__(self) -> int:
        return len(self.players)

    def __iter__(self) -> Iterator[tuple[int, Player]]:
        return iter(sorted(self.players.items()))

    def get(self, player_id: int) -> Player | None:
        return self.players.get(player_id)

    def add(self, player_id: int, name: str, link: Any = None) -> Player:
        player = Player(name=name, link=link)
        self.players[player_id] = player
        if player_id >= self.next_id:
            self.next_id = player_id + 1
        return player

    def allocate_id(self) -> int:
        """Hand out the next unused positive id; the counter never goes back."""
        while True:
            player_id = self.next_id
            self.next_id += 1
            if player_id not in self.players:
                return player_id

    def remove(self, player_id: int) -> Player | None:
        return self.players.pop(player_id, None)

    def is_eligible(self, player_id: int) -> bool:
        """True if the id may hold the turn."""
        if player_id < HOST_ID:
            return False
        player = self.players.get(player_id)
        return player is not None and not player.disconnected

    def total_score(self) -> int:
        return sum(p.score for p in self.players.values())

    def purge_disconnected(self) -> list[int]:
        gone = [pid for pid, p in self.players.items() if p.disconnected]
        for pid in gone:
            del self.players[pid]
        return gone

    def reset_scores(self) -> None:
        for player in self.players.values():
            player.score = 0

    def scores(self) -> dict[int, int]:
        return {pid: p.score for pid, p in sorted(self.players.items())}
