from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterator, List, Optional

from dreamdecor.errors import OutOfBoundsError, SaveValidationError, TileEmptyError, TileOccupiedError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class Tile:
    """One grid cell. ``(x, y)`` is the tile identity and never changes."""

    x: int
    y: int
    occupant: Optional[str] = None
    rotation: int = 0
    stacked: Optional[str] = None
    stacked_rotation: int = 0

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("x", "y") and name in self.__dict__:
            raise AttributeError("Tile coordinates are immutable")
        super().__setattr__(name, value)

    @property
    def is_empty(self) -> bool:
        return self.occupant is None

    def copy(self) -> "Tile":
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "occupant": self.occupant,
            "rotation": self.rotation,
            "stacked": self.stacked,
            "stacked_rotation": self.stacked_rotation,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Tile":
        rotation = int(data.get("rotation") or 0)
        stacked_rotation = int(data.get("stacked_rotation") or 0)
        if not 0 <= rotation <= 3 or not 0 <= stacked_rotation <= 3:
            raise SaveValidationError("Tile rotation must be within [0, 3]")
        occupant = data.get("occupant")
        stacked = data.get("stacked")
        if occupant is None and stacked is not None:
            raise SaveValidationError("A stacked item requires an occupant below it")
        return Tile(
            x=int(data["x"]),
            y=int(data["y"]),
            occupant=occupant,
            rotation=rotation,
            stacked=stacked,
            stacked_rotation=stacked_rotation,
        )


class GridStore:
    """Owns the N x N tile array and applies placement mutations.

    Mutations touch exactly one tile and never adjust the budget; the
    caller pairs them with :class:`~dreamdecor.economy.EconomyLedger`.
    """

    def __init__(self, size: int) -> None:
        if size <= 0:
            raise ValidationError("Grid size must be positive")
        self._size = int(size)
        # tiles[y][x]
        self._tiles: List[List[Tile]] = [[Tile(x=x, y=y) for x in range(self._size)] for y in range(self._size)]
        logger.debug("Initialized %dx%d grid", self._size, self._size)

    @property
    def size(self) -> int:
        return self._size

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self._size and 0 <= y < self._size

    def tile(self, x: int, y: int) -> Tile:
        if not self.in_bounds(x, y):
            raise OutOfBoundsError(x, y, self._size)
        return self._tiles[y][x]

    def tiles(self) -> Iterator[Tile]:
        """Iterate tiles row by row."""
        for row in self._tiles:
            yield from row

    # ---------------------- Mutations ----------------------
    def check_placeable(self, x: int, y: int) -> Tile:
        tile = self.tile(x, y)
        if not tile.is_empty:
            raise TileOccupiedError(f"Tile ({x}, {y}) already holds '{tile.occupant}'.")
        return tile

    def place(self, x: int, y: int, furniture_id: str) -> None:
        tile = self.check_placeable(x, y)
        tile.occupant = furniture_id
        tile.rotation = 0
        logger.debug("Placed %s at (%d, %d)", furniture_id, x, y)

    def stack(self, x: int, y: int, furniture_id: str) -> None:
        """Put a small item on top of the tile's occupant."""
        tile = self.tile(x, y)
        if tile.is_empty:
            raise TileEmptyError(f"Tile ({x}, {y}) has nothing to stack on.")
        if tile.stacked is not None:
            raise TileOccupiedError(f"Tile ({x}, {y}) already carries '{tile.stacked}'.")
        tile.stacked = furniture_id
        tile.stacked_rotation = 0
        logger.debug("Stacked %s on %s at (%d, %d)", furniture_id, tile.occupant, x, y)

    def remove(self, x: int, y: int) -> str:
        """Remove the top-most item of a tile and return its id."""
        tile = self.tile(x, y)
        if tile.stacked is not None:
            removed = tile.stacked
            tile.stacked = None
            tile.stacked_rotation = 0
        elif tile.occupant is not None:
            removed = tile.occupant
            tile.occupant = None
            tile.rotation = 0
        else:
            raise TileEmptyError(f"Tile ({x}, {y}) is empty; nothing to remove.")
        logger.debug("Removed %s from (%d, %d)", removed, x, y)
        return removed

    def rotate(self, x: int, y: int, stacked: bool = False) -> int:
        """Rotate the occupant (or the stacked item) a quarter turn and return the new rotation."""
        tile = self.tile(x, y)
        if stacked:
            if tile.stacked is None:
                raise TileEmptyError(f"Tile ({x}, {y}) carries no stacked item to rotate.")
            tile.stacked_rotation = (tile.stacked_rotation + 1) % 4
            return tile.stacked_rotation
        if tile.is_empty:
            raise TileEmptyError(f"Tile ({x}, {y}) is empty; nothing to rotate.")
        tile.rotation = (tile.rotation + 1) % 4
        return tile.rotation

    # ---------------------- Serialization ----------------------
    def to_rows(self) -> List[List[Dict[str, Any]]]:
        return [[tile.to_dict() for tile in row] for row in self._tiles]

    @classmethod
    def from_rows(cls, rows: List[List[Dict[str, Any]]]) -> "GridStore":
        size = len(rows)
        if size == 0 or any(len(row) != size for row in rows):
            raise SaveValidationError("Saved grid must be a non-empty square")
        store = cls(size)
        for y, row in enumerate(rows):
            for x, data in enumerate(row):
                tile = Tile.from_dict(data)
                if (tile.x, tile.y) != (x, y):
                    raise SaveValidationError(f"Tile at row {y}, column {x} has coordinates ({tile.x}, {tile.y})")
                store._tiles[y][x] = tile
        return store

    def copy(self) -> "GridStore":
        return GridStore.from_rows(self.to_rows())
