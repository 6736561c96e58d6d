from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from dreamdecor.errors import SaveValidationError


class GoalMetric(str, Enum):
    STYLE_TOTAL = "style_total"
    FURNITURE_COUNT = "furniture_count"


class GoalStatus(str, Enum):
    ABSENT = "absent"
    GENERATING = "generating"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Goal:
    """A single design objective with a budget reward.

    Immutable except for completion, which produces a new instance via
    :meth:`mark_completed` and never reverts.
    """

    description: str
    metric: GoalMetric
    target_value: int
    reward: int
    target_furniture: Optional[str] = None
    completed: bool = False
    title: str = ""
    goal_id: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.metric, GoalMetric):
            object.__setattr__(self, "metric", GoalMetric(self.metric))
        if self.reward < 0:
            raise SaveValidationError("Goal reward cannot be negative")
        if self.metric is GoalMetric.FURNITURE_COUNT and not self.target_furniture:
            raise SaveValidationError("furniture_count goals need a target furniture id")

    def mark_completed(self) -> "Goal":
        return replace(self, completed=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "title": self.title,
            "description": self.description,
            "metric": self.metric.value,
            "target_value": self.target_value,
            "target_furniture": self.target_furniture,
            "reward": self.reward,
            "completed": self.completed,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Goal":
        try:
            return Goal(
                description=str(data["description"]),
                metric=GoalMetric(data["metric"]),
                target_value=int(data["target_value"]),
                reward=int(data["reward"]),
                target_furniture=data.get("target_furniture"),
                completed=bool(data.get("completed", False)),
                title=str(data.get("title", "")),
                goal_id=str(data.get("goal_id", "")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SaveValidationError(f"Invalid goal data: {exc}") from exc


@dataclass(frozen=True)
class GoalContext:
    """Session summary handed to goal and snippet generators."""

    phase: int
    budget: int
    total_style: int
    counts: Mapping[str, int] = field(default_factory=dict)
