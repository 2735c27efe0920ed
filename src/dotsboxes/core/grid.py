"""Grid geometry for a rectangular lattice of dots.

``GridPoint`` is an immutable (x, y) pair; ``Grid`` holds the lattice
dimensions. Neither does any bounds checking on its own: callers ask
``Grid.contains`` before touching the board.
"""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["Grid", "GridPoint", "MalformedCommand"]


class MalformedCommand(ValueError):
    """Raised when a protocol argument cannot be parsed."""


@dataclass(frozen=True)
class GridPoint:
    """A coordinate pair on the dot lattice."""

    x: int
    y: int

    def left(self) -> GridPoint:
        return GridPoint(self.x - 1, self.y)

    def right(self) -> GridPoint:
        return GridPoint(self.x + 1, self.y)

    def up(self) -> GridPoint:
        return GridPoint(self.x, self.y - 1)

    def down(self) -> GridPoint:
        return GridPoint(self.x, self.y + 1)

    def __str__(self) -> str:
        return f"{self.x},{self.y}"

    @classmethod
    def parse(cls, text: str) -> GridPoint:
        """Parse ``"x,y"``. Raises MalformedCommand on anything else."""
        x, sep, y = text.partition(",")
        if not sep:
            raise MalformedCommand(f"Could not parse GridPoint: {text!r}")
        try:
            return cls(int(x), int(y))
        except ValueError:
            raise MalformedCommand(f"Could not parse GridPoint: {text!r}") from None


@dataclass
class Grid:
    """Lattice dimensions, counted in dots."""

    width: int = 0
    height: int = 0
    max_spaces: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.resize(self.width, self.height)

    def contains(self, point: GridPoint) -> bool:
        return 0 <= point.x < self.width and 0 <= point.y < self.height

    def all_points(self) -> list[GridPoint]:
        """Every lattice point, column-major (x outer, y inner).

        The order is stable; full-state replay depends on it.
        """
        return [
            GridPoint(x, y)
            for x in range(self.width)
            for y in range(self.height)
        ]

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.max_spaces = max(0, width - 1) * max(0, height - 1)

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def parse(cls, text: str) -> Grid:
        """Parse ``"WxH"``. Raises MalformedCommand on anything else."""
        w, sep, h = text.partition("x")
        if not sep:
            raise MalformedCommand(f"Could not parse grid dimensions: {text!r}")
        try:
            width, height = int(w), int(h)
        except ValueError:
            raise MalformedCommand(
                f"Could not parse grid dimensions: {text!r}"
            ) from None
        if width < 2 or height < 2:
            raise MalformedCommand(f"Grid must be at least 2x2, got {text!r}")
        return cls(width, height)
