"""Engine base: the pieces the host and replica engines share.

Class hierarchy:
    Engine (ABC)
    ├── HostEngine - authoritative; validates, applies, rebroadcasts
    └── ReplicaEngine - applies host broadcasts verbatim

An engine is driven from exactly one thread (the service actor); it
never blocks, and it only talks to the network through ``Link.send``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from dotsboxes.core.grid import GridPoint
from dotsboxes.core.players import HOST_ID, QUEUED_ID, SPECTATOR_ID
from dotsboxes.core.sanitizer import sanitize_name, sanitize_text
from dotsboxes.core.session import GameSession

logger = logging.getLogger(__name__)


class Link(ABC):
    """One end of a line-oriented connection, as seen by an engine.

    ``client_id`` and ``validated`` are owned by the engine; the
    transport only moves lines. Once ``closed`` is set the engine
    ignores anything still queued from the peer.
    """

    client_id: int = QUEUED_ID
    validated: bool = False
    closed: bool = False

    @abstractmethod
    def send(self, line: str) -> None:
        """Queue one line for delivery. Must not block."""

    @abstractmethod
    def close(self) -> None:
        """Close the connection. Idempotent."""

    @property
    def label(self) -> str:
        return f"client {id(self):x}"


def _noop(*_args) -> None:
    pass


@dataclass
class Hooks:
    """Callbacks the UI layer registers to hear about state changes."""

    on_refresh: Callable[[], None] = _noop
    on_chat: Callable[[str], None] = _noop
    on_status: Callable[[str], None] = _noop
    on_warning: Callable[[str], None] = _noop
    on_closed: Callable[[], None] = _noop


class Engine(ABC):
    """Common state and UI-facing API for both sides of the protocol."""

    is_host: bool = False

    def __init__(self, session: GameSession, hooks: Hooks | None = None) -> None:
        self.session = session
        self.hooks = hooks or Hooks()
        self.client_id: int = QUEUED_ID

    # ------------------------------------------------------------------
    # Display helpers
    # ------------------------------------------------------------------

    def peer_name(self, player_id: int) -> str:
        """How a given id is shown in logs and chat."""
        if player_id == self.client_id:
            return "You"
        if player_id == SPECTATOR_ID:
            return "Spectator"
        if player_id == QUEUED_ID or player_id not in self.session.players:
            return "Queued Client"
        return self.session.player_name(player_id)

    def status_text(self) -> str:
        return self.session.status_text(self.is_host)

    def refresh(self) -> None:
        self.hooks.on_status(self.status_text())
        self.hooks.on_refresh()

    def _chat(self, text: str) -> None:
        self.hooks.on_chat(text)

    # ------------------------------------------------------------------
    # UI entry points
    # ------------------------------------------------------------------

    @abstractmethod
    def on_move_attempt(self, point: GridPoint, vertical: bool) -> None:
        """The local user picked a line."""

    @abstractmethod
    def on_rename_request(self, name: str) -> None:
        """The local user wants a new display name."""

    @abstractmethod
    def on_color_change_request(self, rgb: int) -> None:
        """The local user picked a new color (packed ARGB)."""

    @abstractmethod
    def send_chat(self, text: str) -> None:
        """The local user typed a chat message."""

    def _local_move_check(self) -> str | None:
        """Reason the local user cannot move now, or None."""
        if not self.session.started:
            return "Game hasn't started yet."
        if self.session.finished:
            return "The game is over!"
        if self.client_id != self.session.current_player:
            return "It's not your turn."
        return None

    @staticmethod
    def _clean_name(name: str) -> str:
        return sanitize_name(name)

    @staticmethod
    def _clean_text(text: str) -> str:
        # Only the first line of a multi-line message is sent.
        return sanitize_text(text.split("\n", 1)[0])


def sender_id(link: Link | None) -> int:
    return HOST_ID if link is None else link.client_id
