"""Design goals: models, generators and the tracking state machine.

The HTTP generator lives in :mod:`dreamdecor.goals.remote` and is imported
explicitly by hosts that configure a text service.
"""
from .models import Goal, GoalContext, GoalMetric, GoalStatus
from .generators import COUNT_TARGETS, CountTarget, FallbackGoalGenerator, GoalGenerator, LocalGoalGenerator
from .engine import GoalEngine

__all__ = [
    "Goal",
    "GoalContext",
    "GoalMetric",
    "GoalStatus",
    "GoalGenerator",
    "CountTarget",
    "COUNT_TARGETS",
    "LocalGoalGenerator",
    "FallbackGoalGenerator",
    "GoalEngine",
]
