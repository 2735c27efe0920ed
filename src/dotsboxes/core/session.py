"""GameSession: the aggregate a host owns and a replica mirrors.

Both sides run the same rules code. The host validates a move with
``check_move`` before applying it; a replica applies whatever the host
broadcast through ``apply_move`` and the ``set_*`` helpers directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dotsboxes.core.board import Board, MoveResult
from dotsboxes.core.grid import Grid, GridPoint
from dotsboxes.core.players import HOST_ID, Player, PlayerRegistry
from dotsboxes.core.turns import NO_GAME, Outcome, TurnScheduler

__all__ = ["GameSession", "ValidationResult"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """Result of checking an action against the game rules."""

    legal: bool
    reason: str | None = None


class GameSession:
    """Grid, board, players and turn state for one process."""

    def __init__(self, grid: Grid | None = None) -> None:
        self.grid = grid if grid is not None else Grid()
        self.board = Board(self.grid)
        self.players = PlayerRegistry()
        self.turns = TurnScheduler(self.players)
        self.started: bool = False
        self.finished: bool = False
        self.outcome: Outcome | None = None
        self.turn_number: int = 0

    @property
    def current_player(self) -> int:
        return self.turns.current

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> list[int]:
        """Return to the lobby. Returns the ids purged as disconnected."""
        self.started = False
        self.finished = False
        self.outcome = None
        self.turn_number = 0
        self.turns.clear()
        purged = self.players.purge_disconnected()
        self.players.reset_scores()
        self.board.reset()
        return purged

    def restart(self) -> None:
        """Start a fresh game (also used for the first start)."""
        self.stop()
        self.started = True
        self.turns.begin()
        logger.info("Game started on a %s grid with %d players", self.grid, len(self.players))

    def resize(self, width: int, height: int) -> None:
        self.grid.resize(width, height)
        self.board.reconcile()

    def reset_board(self) -> None:
        self.board.reset()
        self.players.reset_scores()

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def remove_player(self, player_id: int) -> Player | None:
        """Drop a player in the lobby, or mark them disconnected mid-game."""
        player = self.players.get(player_id)
        if player is None:
            return None
        if not self.started:
            return self.players.remove(player_id)
        player.disconnect()
        if player_id == self.turns.current and any(
            self.players.is_eligible(pid) for pid, _ in self.players
        ):
            self.turns.advance()
        return player

    def player_name(self, player_id: int) -> str:
        player = self.players.get(player_id)
        return str(player) if player is not None else f"Player {player_id}"

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def check_move(self, player_id: int) -> ValidationResult:
        """Rules that decide whether ``player_id`` may move right now."""
        if not self.started:
            return ValidationResult(False, "The game hasn't started yet!")
        if player_id < HOST_ID or player_id not in self.players:
            return ValidationResult(False, "You aren't part of this game!")
        if self.finished:
            return ValidationResult(False, "The game is over!")
        if player_id != self.turns.current:
            return ValidationResult(False, "Not your turn!")
        return ValidationResult(True)

    def apply_move(self, player_id: int, point: GridPoint, vertical: bool) -> MoveResult:
        """Place a line, credit completed boxes, then pass or keep the turn."""
        if self.finished:
            return MoveResult(False, reason="The game is over!")
        player = self.players.get(player_id)
        if player is None:
            return MoveResult(False, reason=f"Unknown player {player_id}.")
        result = self.board.apply_move(player_id, point, vertical)
        if not result.accepted:
            return result

        self.turn_number += 1
        player.score += result.boxes_claimed
        if self.players.total_score() >= self.grid.max_spaces:
            self.finished = True
            self.outcome = self.turns.evaluate()
            logger.info("Game finished: %s", self.result_text())
        else:
            self.turns.after_move(result.boxes_claimed)
        return result

    # ------------------------------------------------------------------
    # Replica helpers (no rule checks)
    # ------------------------------------------------------------------

    def set_line(self, owner: int, vertical: bool, point: GridPoint) -> bool:
        if owner not in self.players:
            return False
        return self.board.claim_line(point, vertical, owner)

    def set_box(self, owner: int, point: GridPoint) -> bool:
        player = self.players.get(owner)
        if player is None or not self.board.claim_box(point, owner):
            return False
        player.score += 1
        if self.started and self.players.total_score() >= self.grid.max_spaces:
            self.finished = True
            self.outcome = self.turns.evaluate()
        return True

    def set_current(self, player_id: int) -> None:
        self.turns.current = player_id

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def result_text(self) -> str:
        if self.outcome is None:
            return ""
        if self.outcome.tie:
            return "Tie!"
        return f"{self.player_name(self.outcome.winners[0])} wins!"

    def status_text(self, is_host: bool) -> str:
        if self.started:
            if self.finished:
                return self.result_text()
            return f"Your move, {self.player_name(self.turns.current)}"
        if is_host:
            return "Waiting for players... press start when ready."
        return "Waiting for host to start the game..."

    def snapshot(self) -> dict:
        """Serializable view of the session, for telemetry and debugging."""
        return {
            "grid": str(self.grid),
            "started": self.started,
            "finished": self.finished,
            "current_player": self.turns.current,
            "turn_number": self.turn_number,
            "scores": self.players.scores(),
            "lines": [
                [owner, "ver" if vertical else "hor", str(point)]
                for owner, vertical, point in self.board.claimed_lines()
            ],
            "boxes": [[owner, str(point)] for owner, point in self.board.claimed_boxes()],
        }

    def __repr__(self) -> str:
        state = "lobby" if not self.started else ("finished" if self.finished else "running")
        current = "-" if self.turns.current == NO_GAME else self.turns.current
        return f"GameSession({self.grid}, {state}, current={current})"
