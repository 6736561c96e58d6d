import pytest

from dreamdecor.config import ProgressionConfig
from dreamdecor.errors import CatalogError, GenerationError, SaveValidationError
from dreamdecor.goals import COUNT_TARGETS, FallbackGoalGenerator, Goal, GoalContext, GoalMetric, LocalGoalGenerator
from dreamdecor.rng import RNG


def context(phase=1, style=0):
    return GoalContext(phase=phase, budget=1000, total_style=style, counts={})


@pytest.mark.parametrize(
    "phase, expected",
    [(1, 1), (2, 1), (3, 1), (4, 2), (5, 2), (9, 4)],
)
def test_progression_multiplier(phase, expected):
    assert ProgressionConfig().multiplier(phase) == expected


def test_progression_validation():
    with pytest.raises(CatalogError):
        ProgressionConfig(divisor=0)
    with pytest.raises(CatalogError):
        ProgressionConfig(count_goal_weight=0, style_goal_weight=0)


def test_count_goal_template():
    gen = LocalGoalGenerator(ProgressionConfig(count_goal_weight=1, style_goal_weight=0), RNG(seed=3))
    goal = gen.generate_goal(context(phase=4))
    assert goal.metric is GoalMetric.FURNITURE_COUNT
    target = next(t for t in COUNT_TARGETS if t.furniture_id == goal.target_furniture)
    assert goal.target_value == target.count
    assert goal.reward == 250 * 2
    assert goal.title == "Design Specialist"
    assert goal.goal_id.startswith("goal_")
    assert not goal.completed


def test_style_goal_template():
    gen = LocalGoalGenerator(ProgressionConfig(count_goal_weight=0, style_goal_weight=1), RNG(seed=3))
    goal = gen.generate_goal(context(phase=1, style=42))
    assert goal.metric is GoalMetric.STYLE_TOTAL
    assert goal.target_value == 42 + 80
    assert goal.reward == 350
    assert goal.target_furniture is None


def test_same_seed_same_goals():
    a = LocalGoalGenerator(rng=RNG(seed=11))
    b = LocalGoalGenerator(rng=RNG(seed=11))
    assert [a.generate_goal(context()).to_dict() for _ in range(5)] == [
        b.generate_goal(context()).to_dict() for _ in range(5)
    ]


def test_both_kinds_are_produced():
    gen = LocalGoalGenerator(rng=RNG(seed=5))
    kinds = {gen.generate_goal(context()).metric for _ in range(60)}
    assert kinds == {GoalMetric.FURNITURE_COUNT, GoalMetric.STYLE_TOTAL}


def test_no_targets_means_style_only():
    gen = LocalGoalGenerator(targets=[], rng=RNG(seed=4))
    assert {gen.generate_goal(context()).metric for _ in range(20)} == {GoalMetric.STYLE_TOTAL}
    with pytest.raises(GenerationError):
        LocalGoalGenerator(ProgressionConfig(count_goal_weight=1, style_goal_weight=0), targets=[])


class Failing:
    def generate_goal(self, ctx):
        raise GenerationError("offline")


class Empty:
    def generate_goal(self, ctx):
        return None


@pytest.mark.parametrize("primary", [Failing(), Empty()])
def test_fallback_generator(primary):
    gen = FallbackGoalGenerator(primary, LocalGoalGenerator(rng=RNG(seed=1)))
    goal = gen.generate_goal(context())
    assert isinstance(goal, Goal)


def test_goal_round_trip_and_validation():
    goal = LocalGoalGenerator(rng=RNG(seed=2)).generate_goal(context())
    assert Goal.from_dict(goal.to_dict()) == goal
    with pytest.raises(SaveValidationError):
        Goal(description="x", metric=GoalMetric.FURNITURE_COUNT, target_value=1, reward=10)
    with pytest.raises(SaveValidationError):
        Goal.from_dict({"description": "x"})
