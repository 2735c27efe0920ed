"""Board state: line and box ownership keyed by grid position.

Each ``Dot`` is a plain record. It owns the line to its right, the line
below it, and the box whose top-left corner it is. A field is ``None``
when the dot cannot own that piece (last column / last row), otherwise
it holds the owner id, or ``UNCLAIMED``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from dotsboxes.core.grid import Grid, GridPoint

__all__ = ["Board", "Dot", "MoveResult", "UNCLAIMED", "orientation_name"]

UNCLAIMED = -1


def orientation_name(vertical: bool) -> str:
    return "ver" if vertical else "hor"


@dataclass
class Dot:
    right: int | None = None
    down: int | None = None
    box: int | None = None

    @classmethod
    def at(cls, point: GridPoint, grid: Grid) -> Dot:
        has_right = point.x < grid.width - 1
        has_down = point.y < grid.height - 1
        return cls(
            right=UNCLAIMED if has_right else None,
            down=UNCLAIMED if has_down else None,
            box=UNCLAIMED if has_right and has_down else None,
        )

    def line(self, vertical: bool) -> int | None:
        return self.down if vertical else self.right

    def reset(self) -> None:
        if self.right is not None:
            self.right = UNCLAIMED
        if self.down is not None:
            self.down = UNCLAIMED
        if self.box is not None:
            self.box = UNCLAIMED


@dataclass(frozen=True)
class MoveResult:
    """Outcome of a single line placement."""

    accepted: bool
    boxes: tuple[GridPoint, ...] = ()
    reason: str | None = None

    @property
    def boxes_claimed(self) -> int:
        return len(self.boxes)


class Board:
    """Owns the Dot mapping for one grid."""

    def __init__(self, grid: Grid) -> None:
        self.grid = grid
        self._dots: dict[GridPoint, Dot] = {}
        self.reconcile()

    # ------------------------------------------------------------------
    # Lattice maintenance
    # ------------------------------------------------------------------

    def reconcile(self) -> None:
        """Sync the Dot mapping with the current grid dimensions.

        Points that fell outside the grid are dropped, new points are
        added. A surviving dot keeps its ownership, except that pieces it
        can no longer own (it became an edge dot) disappear, and pieces it
        gained start unclaimed.
        """
        for point in [p for p in self._dots if not self.grid.contains(p)]:
            del self._dots[point]
        for point in self.grid.all_points():
            fresh = Dot.at(point, self.grid)
            dot = self._dots.get(point)
            if dot is None:
                self._dots[point] = fresh
                continue
            if fresh.right is None:
                dot.right = None
            elif dot.right is None:
                dot.right = UNCLAIMED
            if fresh.down is None:
                dot.down = None
            elif dot.down is None:
                dot.down = UNCLAIMED
            if fresh.box is None:
                dot.box = None
            elif dot.box is None:
                dot.box = UNCLAIMED

    def reset(self) -> None:
        """Clear every line and box owner."""
        for dot in self._dots.values():
            dot.reset()

    def __contains__(self, point: GridPoint) -> bool:
        return point in self._dots

    def dot(self, point: GridPoint) -> Dot:
        return self._dots[point]

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def line_owner(self, point: GridPoint, vertical: bool) -> int | None:
        dot = self._dots.get(point)
        return None if dot is None else dot.line(vertical)

    def box_owner(self, point: GridPoint) -> int | None:
        dot = self._dots.get(point)
        return None if dot is None else dot.box

    def claim_line(self, point: GridPoint, vertical: bool, owner: int) -> bool:
        """Claim a line. False if it does not exist or is already owned."""
        dot = self._dots.get(point)
        if dot is None or dot.line(vertical) != UNCLAIMED:
            return False
        if vertical:
            dot.down = owner
        else:
            dot.right = owner
        return True

    def claim_box(self, point: GridPoint, owner: int) -> bool:
        """Claim a box. False if it does not exist or is already owned."""
        dot = self._dots.get(point)
        if dot is None or dot.box != UNCLAIMED:
            return False
        dot.box = owner
        return True

    def box_closed(self, point: GridPoint) -> bool:
        """True if the box at ``point`` exists and all 4 sides are owned."""
        dot = self._dots.get(point)
        if dot is None or dot.box is None:
            return False
        closing_right = self._dots[point.right()].down
        closing_down = self._dots[point.down()].right
        return all(
            side is not None and side >= 0
            for side in (dot.right, dot.down, closing_right, closing_down)
        )

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def apply_move(self, owner: int, point: GridPoint, vertical: bool) -> MoveResult:
        """Draw a line and claim any box it completes.

        A line borders at most two boxes: the one rooted at ``point`` and
        the one rooted at its left (vertical) or upper (horizontal)
        neighbour. Both are checked and both go to ``owner``.
        """
        if not self.grid.contains(point):
            return MoveResult(False, reason="Point is outside the grid.")
        if self.line_owner(point, vertical) is None:
            return MoveResult(False, reason="There is no line there.")
        if not self.claim_line(point, vertical, owner):
            return MoveResult(False, reason="Line already taken.")

        neighbour = point.left() if vertical else point.up()
        claimed = []
        for candidate in (neighbour, point):
            if self.box_closed(candidate) and self.claim_box(candidate, owner):
                claimed.append(candidate)
        return MoveResult(True, boxes=tuple(claimed))

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def claimed_lines(self) -> Iterator[tuple[int, bool, GridPoint]]:
        """Yield (owner, vertical, point) for every owned line, column-major."""
        for point in self.grid.all_points():
            dot = self._dots[point]
            if dot.right is not None and dot.right >= 0:
                yield dot.right, False, point
            if dot.down is not None and dot.down >= 0:
                yield dot.down, True, point

    def claimed_boxes(self) -> Iterator[tuple[int, GridPoint]]:
        """Yield (owner, point) for every owned box, column-major."""
        for point in self.grid.all_points():
            box = self._dots[point].box
            if box is not None and box >= 0:
                yield box, point
