from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dreamdecor.catalog import FurnitureCatalog
from dreamdecor.economy import EconomyLedger
from dreamdecor.errors import SaveValidationError, UnknownFurnitureError
from dreamdecor.events import EventBus
from dreamdecor.goals.models import Goal
from dreamdecor.grid import GridStore
from dreamdecor.scoring import ScoreSnapshot

logger = logging.getLogger(__name__)

DEFAULT_TOOL = "seating"


@dataclass(frozen=True)
class SessionToken:
    """Identifies one started session; results tagged with an older token are stale."""

    key: str
    identity: Optional[str]

    @classmethod
    def issue(cls, identity: Optional[str]) -> "SessionToken":
        return cls(key=uuid.uuid4().hex, identity=identity)

    def __str__(self) -> str:
        return f"#{self.key[:8]}({self.identity or 'guest'})"


@dataclass
class SessionState:
    """Everything that is persisted and restored for one player."""

    grid: GridStore
    ledger: EconomyLedger
    score: ScoreSnapshot = field(default_factory=ScoreSnapshot)
    active_goal: Optional[Goal] = None
    phase: int = 1
    selected_tool: str = DEFAULT_TOOL

    def __post_init__(self) -> None:
        if self.phase < 1:
            raise SaveValidationError("phase must be >= 1")

    @classmethod
    def new_game(cls, grid_size: int, initial_budget: int, event_bus: Optional[EventBus] = None) -> "SessionState":
        state = cls(grid=GridStore(grid_size), ledger=EconomyLedger(initial_budget, event_bus=event_bus))
        logger.debug("New session state: grid=%d budget=%d", grid_size, initial_budget)
        return state

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "budget": self.ledger.budget,
            "selected_tool": self.selected_tool,
            "goal": self.active_goal.to_dict() if self.active_goal is not None else None,
            "grid": self.grid.to_rows(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        event_bus: Optional[EventBus] = None,
        catalog: Optional[FurnitureCatalog] = None,
    ) -> "SessionState":
        """Rebuild a session verbatim; with a catalog, every stored id is checked."""
        try:
            grid = GridStore.from_rows(data["grid"])
            budget = int(data["budget"])
            phase = int(data.get("phase", 1))
        except (KeyError, TypeError, ValueError) as exc:
            raise SaveValidationError(f"Invalid session data: {exc}") from exc
        if budget < 0:
            raise SaveValidationError("Saved budget cannot be negative")
        goal_data = data.get("goal")
        goal = Goal.from_dict(goal_data) if isinstance(goal_data, dict) else None
        selected_tool = str(data.get("selected_tool") or DEFAULT_TOOL)

        if catalog is not None:
            for tile in grid.tiles():
                for furniture_id in (tile.occupant, tile.stacked):
                    if furniture_id is None:
                        continue
                    if furniture_id not in catalog:
                        raise SaveValidationError(f"Saved grid references unknown furniture '{furniture_id}'")
                    if catalog.lookup(furniture_id).is_eraser:
                        raise SaveValidationError(f"Saved grid holds the eraser '{furniture_id}' as furniture")
            if selected_tool not in catalog:
                logger.warning("Saved tool '%s' is unknown; falling back to %s", selected_tool, DEFAULT_TOOL)
                selected_tool = DEFAULT_TOOL
            if goal is not None and goal.target_furniture is not None:
                try:
                    catalog.lookup(goal.target_furniture)
                except UnknownFurnitureError as exc:
                    raise SaveValidationError(str(exc)) from exc

        return cls(
            grid=grid,
            ledger=EconomyLedger(budget, event_bus=event_bus),
            active_goal=goal,
            phase=phase,
            selected_tool=selected_tool,
        )
