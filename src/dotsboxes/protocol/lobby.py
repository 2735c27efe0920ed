"""SessionManager: who is connected, and in which role.

Owns the join queue and the spectator pool, hands out player ids, and
produces the full-state sync a newcomer needs before it can follow the
broadcast stream. Only the host uses it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from dotsboxes.core.players import HOST_ID, QUEUED_ID, SPECTATOR_ID
from dotsboxes.core.session import GameSession, ValidationResult
from dotsboxes.protocol import commands as cmd
from dotsboxes.protocol.base import Link

logger = logging.getLogger(__name__)


class SessionManager:
    """Queue, spectators, id assignment and admission rules."""

    def __init__(
        self,
        session: GameSession,
        max_players: int = 0,
        on_population: Callable[[int], None] | None = None,
    ) -> None:
        self.session = session
        self.max_players = max_players
        self.queue: list[Link] = []
        self.spectators: list[Link] = []
        self._on_population = on_population

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def send(self, link: Link, line: str) -> None:
        logger.debug("--> %s: %s", link.label, line)
        link.send(line)

    def send_all(self, link: Link, lines: list[str]) -> None:
        for line in lines:
            self.send(link, line)

    def recipients(self) -> Iterator[Link]:
        """Every connected party that follows the broadcast stream."""
        for player_id, player in self.session.players:
            if player_id > HOST_ID and player.link is not None and not player.disconnected:
                yield player.link
        yield from list(self.spectators)

    def broadcast(self, line: str) -> None:
        for link in self.recipients():
            self.send(link, line)

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def is_full(self) -> bool:
        return self.max_players != 0 and len(self.session.players) >= self.max_players

    def assign(self, link: Link, player_id: int) -> None:
        link.client_id = player_id
        self.send(link, cmd.network_assign(player_id))

    def connect(self, link: Link) -> None:
        """A new connection waits in the queue until it asks for a role."""
        if link not in self.queue:
            self.queue.append(link)
        self.assign(link, QUEUED_ID)
        self.send(link, cmd.info_version())

    def forget(self, link: Link) -> None:
        """Drop a queued client or spectator."""
        if link in self.queue:
            self.queue.remove(link)
        if link in self.spectators:
            self.spectators.remove(link)

    def add_player(self, link: Link) -> int:
        player_id = self.session.players.allocate_id()
        self.assign(link, player_id)
        player = self.session.players.add(player_id, f"Client {player_id}", link)
        self.broadcast(cmd.player_add(player_id, player.name))
        logger.info("Client joined as player %d", player_id)
        self._population_changed()
        return player_id

    def remove_player(self, player_id: int) -> None:
        self.session.remove_player(player_id)
        self._population_changed()

    def backfill(self) -> list[int]:
        """Move spectators, oldest first, into open player slots."""
        added = []
        while self.spectators and not self.is_full():
            link = self.spectators.pop(0)
            added.append(self.add_player(link))
        return added

    def _population_changed(self) -> None:
        if self._on_population is not None:
            self._on_population(len(self.session.players))

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_join(self, link: Link) -> tuple[ValidationResult, str | None]:
        """Whether a queued client may join; the second item is the
        machine-readable companion command sent with a refusal."""
        if link not in self.queue:
            return ValidationResult(False, "Already joined."), None
        if self.session.started:
            return ValidationResult(
                False, "Server is in the middle of a game, feel free to spectate."
            ), "network-busy"
        if self.is_full():
            return ValidationResult(
                False,
                f"Server full! ({len(self.session.players)}/{self.max_players} players)"
                " - feel free to spectate",
            ), "network-full"
        return ValidationResult(True), None

    def check_spectate(self, link: Link) -> ValidationResult:
        if link not in self.queue:
            return ValidationResult(False, "Already joined.")
        if not (self.session.started or self.is_full()):
            return ValidationResult(
                False,
                "There isn't a game running right now, feel free to join the lobby!",
            )
        return ValidationResult(True)

    def join(self, link: Link) -> int:
        self.send_all(link, self.lobby_lines())
        self.queue.remove(link)
        return self.add_player(link)

    def spectate(self, link: Link) -> None:
        self.assign(link, SPECTATOR_ID)
        self.send_all(link, self.lobby_lines())
        self.send_all(link, self.replay_lines())
        self.queue.remove(link)
        self.spectators.append(link)
        logger.info("Client is now spectating (%d spectators)", len(self.spectators))

    # ------------------------------------------------------------------
    # Full-state sync
    # ------------------------------------------------------------------

    def lobby_lines(self) -> list[str]:
        """Players, grid size and a clean board."""
        lines = []
        for player_id, player in self.session.players:
            lines.append(cmd.player_add(player_id, player.name))
            if player.color is not None:
                lines.append(cmd.player_color(player_id, player.color))
        lines.append(cmd.grid_size(self.session.grid))
        lines.append("grid-reset")
        return lines

    def replay_lines(self) -> list[str]:
        """Everything a late spectator needs to catch up with a running game.

        Every claimed line is reported before any box, so a replica never
        sees a box whose sides it does not know about yet.
        """
        session = self.session
        lines = []
        if session.started:
            lines.append("game-start")
        for player_id, player in session.players:
            if player.disconnected:
                lines.append(cmd.player_remove(player_id))
        for owner, vertical, point in session.board.claimed_lines():
            lines.append(cmd.player_line(owner, vertical, point))
        for owner, point in session.board.claimed_boxes():
            lines.append(cmd.player_box(owner, point))
        lines.append(cmd.game_current(session.current_player))
        return lines
