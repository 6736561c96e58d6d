from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from dreamdecor.config import ProgressionConfig
from dreamdecor.errors import GenerationError
from dreamdecor.rng import RNG

from .models import Goal, GoalContext, GoalMetric

logger = logging.getLogger(__name__)


@runtime_checkable
class GoalGenerator(Protocol):
    """Produces the next design goal for a session.

    Implementations may block (they run on an executor worker) and may raise
    or return None on failure.
    """

    def generate_goal(self, context: GoalContext) -> Optional[Goal]:
        ...


@dataclass(frozen=True)
class CountTarget:
    furniture_id: str
    label: str
    count: int


COUNT_TARGETS: List[CountTarget] = [
    CountTarget("seating", "modern sofas", 2),
    CountTarget("large_table", "dining table", 1),
    CountTarget("electronics", "entertainment system", 1),
    CountTarget("bookshelf", "bookshelves", 2),
    CountTarget("window", "windows", 3),
    CountTarget("wall", "wall segments", 4),
    CountTarget("decor", "plant arrangements", 3),
]


class LocalGoalGenerator:
    """Offline goal templates.

    Picks a goal kind uniformly from the weighted candidate list built from
    :class:`ProgressionConfig`, then scales target and reward by the
    progression multiplier of the current phase.
    """

    def __init__(
        self,
        progression: Optional[ProgressionConfig] = None,
        rng: Optional[RNG] = None,
        targets: Optional[List[CountTarget]] = None,
    ) -> None:
        self._progression = progression or ProgressionConfig()
        self._rng = rng or RNG()
        self._targets = list(targets if targets is not None else COUNT_TARGETS)
        self._kinds: List[GoalMetric] = (
            [GoalMetric.FURNITURE_COUNT] * self._progression.count_goal_weight
            + [GoalMetric.STYLE_TOTAL] * self._progression.style_goal_weight
        )
        if not self._targets:
            self._kinds = [k for k in self._kinds if k is not GoalMetric.FURNITURE_COUNT]
        if not self._kinds:
            raise GenerationError("No goal kinds available with the given configuration")

    def generate_goal(self, context: GoalContext) -> Goal:
        multiplier = self._progression.multiplier(context.phase)
        goal_id = f"goal_{self._rng.token_hex()}"
        kind = self._rng.choice(self._kinds)

        if kind is GoalMetric.FURNITURE_COUNT:
            target = self._rng.choice(self._targets)
            goal = Goal(
                goal_id=goal_id,
                title="Design Specialist",
                description=f"Add at least {target.count} {target.label} to your layout.",
                metric=GoalMetric.FURNITURE_COUNT,
                target_value=target.count,
                target_furniture=target.furniture_id,
                reward=self._progression.count_reward * multiplier,
            )
        else:
            target_style = context.total_style + self._progression.style_step * multiplier
            goal = Goal(
                goal_id=goal_id,
                title="Style Architect",
                description=f"Raise the room's style score to {target_style}.",
                metric=GoalMetric.STYLE_TOTAL,
                target_value=target_style,
                reward=self._progression.style_reward * multiplier,
            )
        logger.debug("Generated local goal %s (phase=%d multiplier=%d)", goal.goal_id, context.phase, multiplier)
        return goal


class FallbackGoalGenerator:
    """Try a primary generator and fall back to a secondary one on failure."""

    def __init__(self, primary: GoalGenerator, fallback: GoalGenerator) -> None:
        self._primary = primary
        self._fallback = fallback

    def generate_goal(self, context: GoalContext) -> Optional[Goal]:
        try:
            goal = self._primary.generate_goal(context)
        except GenerationError as exc:
            logger.warning("Primary goal generator failed (%s); using fallback", exc)
            goal = None
        if goal is None:
            return self._fallback.generate_goal(context)
        return goal
