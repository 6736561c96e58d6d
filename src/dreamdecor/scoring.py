from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping

from dreamdecor.catalog import FurnitureCatalog
from dreamdecor.grid import GridStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreSnapshot:
    """Aggregate derived from grid contents. Replaced wholesale every tick."""

    total_style: int = 0
    total_comfort: int = 0
    counts: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    def count_of(self, furniture_id: str) -> int:
        return self.counts.get(furniture_id, 0)


class ScoreEngine:
    def __init__(self, catalog: FurnitureCatalog) -> None:
        self._catalog = catalog

    def recompute(self, grid: GridStore) -> ScoreSnapshot:
        """Sum style/comfort and tally counts over every placed item.

        Rotation and position do not affect the result.
        """
        total_style = 0
        total_comfort = 0
        counts: Dict[str, int] = {}
        for tile in grid.tiles():
            for furniture_id in (tile.occupant, tile.stacked):
                if furniture_id is None:
                    continue
                definition = self._catalog.lookup(furniture_id)
                total_style += definition.style
                total_comfort += definition.comfort
                counts[furniture_id] = counts.get(furniture_id, 0) + 1
        snapshot = ScoreSnapshot(
            total_style=total_style,
            total_comfort=total_comfort,
            counts=MappingProxyType(counts),
        )
        logger.debug("Score recomputed: style=%d comfort=%d items=%d", total_style, total_comfort, sum(counts.values()))
        return snapshot
