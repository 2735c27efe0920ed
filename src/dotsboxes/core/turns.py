"""Turn scheduling and end-of-game evaluation."""

from __future__ import annotations

from dataclasses import dataclass

from dotsboxes.core.players import HOST_ID, PlayerRegistry

__all__ = ["NO_GAME", "Outcome", "TurnScheduler"]

NO_GAME = -1


@dataclass(frozen=True)
class Outcome:
    """Final standings of a completed game."""

    winners: tuple[int, ...]
    high_score: int

    @property
    def tie(self) -> bool:
        return len(self.winners) > 1


class TurnScheduler:
    """Tracks whose move it is.

    The turn passes in increasing id order, wrapping back to the host
    (id 0) once the candidate reaches the registry's id counter, and
    skips ids that no longer exist or belong to disconnected players.
    """

    def __init__(self, registry: PlayerRegistry) -> None:
        self._registry = registry
        self.current: int = NO_GAME

    def begin(self) -> None:
        self.current = HOST_ID
        if not self._registry.is_eligible(self.current):
            self.advance()

    def clear(self) -> None:
        self.current = NO_GAME

    def advance(self) -> int:
        """Move the turn to the next eligible player and return its id."""
        candidate = self.current
        # One full lap over [0, next_id) is enough to find anyone eligible.
        for _ in range(self._registry.next_id + 1):
            candidate += 1
            if candidate >= self._registry.next_id:
                candidate = HOST_ID
            if self._registry.is_eligible(candidate):
                self.current = candidate
                return candidate
        raise RuntimeError("No eligible player to take the turn")

    def after_move(self, boxes_claimed: int) -> int:
        """Scoring keeps the turn; a move that claims nothing passes it."""
        if boxes_claimed == 0:
            self.advance()
        return self.current

    def evaluate(self) -> Outcome:
        """Highest score among connected players; every match is a winner."""
        connected = [
            (pid, p.score) for pid, p in self._registry if not p.disconnected
        ]
        high = max((score for _, score in connected), default=0)
        winners = tuple(pid for pid, score in connected if score == high)
        return Outcome(winners=winners, high_score=high)
