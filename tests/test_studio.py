import random

import pytest

from dreamdecor.config import EngineConfig
from dreamdecor.errors import (
    DecorValidationError,
    GoalNotClaimableError,
    InsufficientFundsError,
    InvalidOperationError,
    NoSaveError,
    NoSessionError,
    OutOfBoundsError,
    PersistenceError,
    PlacementRuleError,
    TileEmptyError,
    TileOccupiedError,
    UnknownFurnitureError,
)
from dreamdecor.events import EventBus, FurniturePlaced, SaveFailed, SessionEnded, SessionStarted
from dreamdecor.goals import Goal, GoalMetric, GoalStatus
from dreamdecor.news import LocalSnippetGenerator
from dreamdecor.persistence import MemoryStore
from dreamdecor.rng import RNG
from dreamdecor.studio import AUTOSAVE_TASK, TICK_TASK, Studio


def two_sofas_goal():
    return Goal(
        description="Add two sofas",
        metric=GoalMetric.FURNITURE_COUNT,
        target_value=2,
        target_furniture="sofa",
        reward=250,
    )


class StaticGenerator:
    def __init__(self, goal=None, error=None):
        self.goal = goal
        self.error = error
        self.calls = 0

    def generate_goal(self, context):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.goal


class BrokenStore(MemoryStore):
    def __init__(self, error):
        super().__init__()
        self.error = error

    def save(self, identity, snapshot):
        raise self.error


def config(**overrides):
    values = dict(grid_size=2, initial_budget=1000, news_probability=0.0)
    values.update(overrides)
    return EngineConfig(**values)


@pytest.fixture()
def make_studio(small_catalog, inline_executor):
    def _make(**kwargs):
        kwargs.setdefault("config", config())
        kwargs.setdefault("store", MemoryStore())
        kwargs.setdefault("executor", inline_executor)
        return Studio(small_catalog, **kwargs)

    return _make


def stocked_value(studio):
    total = 0
    for tile in studio.view().tiles:
        for furniture_id in (tile.occupant, tile.stacked):
            if furniture_id is not None:
                total += studio.catalog.lookup(furniture_id).cost
    return total


# ---------------------- Session lifecycle ----------------------
def test_actions_require_active_session(make_studio):
    studio = make_studio()
    view = studio.view()
    assert not view.active
    assert view.tiles == ()
    with pytest.raises(NoSessionError):
        studio.place(0, 0, "sofa")
    with pytest.raises(NoSessionError):
        studio.tick()
    with pytest.raises(NoSessionError):
        studio.retry_goal()


def test_new_game_schedules_tasks(make_studio):
    studio = make_studio()
    studio.new_game()
    assert studio.clock.has_task(TICK_TASK)
    # guests have nowhere to save
    assert not studio.clock.has_task(AUTOSAVE_TASK)
    studio.set_identity("u1")
    studio.new_game()
    assert studio.clock.has_task(AUTOSAVE_TASK)


def test_end_session_cancels_everything(make_studio):
    bus = EventBus()
    ended = []
    bus.subscribe(SessionEnded, ended.append)
    studio = make_studio(event_bus=bus)
    studio.set_identity("u1")
    studio.new_game()
    studio.end_session()
    assert studio.clock.tasks == []
    assert not studio.view().active
    assert [e.identity for e in ended] == ["u1"]
    studio.end_session()
    assert len(ended) == 1


def test_identity_change_ends_session(make_studio):
    studio = make_studio()
    studio.set_identity("u1")
    studio.new_game()
    studio.set_identity("u2")
    assert not studio.active
    assert studio.identity == "u2"


# ---------------------- Placement scenarios ----------------------
def test_place_debits_and_scores(make_studio):
    studio = make_studio()
    studio.new_game()
    assert studio.place(0, 0, "sofa") == 800
    score = studio.tick()
    assert score.total_style == 30
    assert studio.view().score.total_style == 30


def test_place_on_occupied_tile_keeps_budget(make_studio):
    studio = make_studio()
    studio.new_game()
    studio.place(0, 0, "sofa")
    with pytest.raises(TileOccupiedError):
        studio.place(0, 0, "sofa")
    assert studio.view().budget == 800


def test_place_without_funds_changes_nothing(make_studio):
    studio = make_studio(config=config(initial_budget=100))
    studio.new_game()
    with pytest.raises(InsufficientFundsError):
        studio.place(0, 0, "piano")
    view = studio.view()
    assert view.budget == 100
    assert all(t.is_empty for t in view.tiles)


def test_place_out_of_bounds_and_unknown(make_studio):
    studio = make_studio()
    studio.new_game()
    with pytest.raises(OutOfBoundsError):
        studio.place(5, 0, "sofa")
    with pytest.raises(UnknownFurnitureError):
        studio.place(0, 0, "spaceship")
    with pytest.raises(PlacementRuleError):
        studio.place(0, 0, "none")
    assert studio.view().budget == 1000


def test_place_then_remove_restores_tile_and_budget(make_studio):
    studio = make_studio()
    studio.new_game()
    studio.place(1, 1, "piano")
    studio.rotate(1, 1)
    assert studio.remove(1, 1) == 500
    view = studio.view()
    assert view.budget == 1000
    tile = next(t for t in view.tiles if (t.x, t.y) == (1, 1))
    assert tile.occupant is None and tile.rotation == 0
    with pytest.raises(TileEmptyError):
        studio.remove(1, 1)


def test_budget_never_negative_over_random_actions(make_studio):
    studio = make_studio(config=config(grid_size=3, initial_budget=700))
    studio.new_game()
    rng = random.Random(1234)
    for _ in range(300):
        x, y = rng.randrange(3), rng.randrange(3)
        try:
            if rng.random() < 0.6:
                studio.place(x, y, rng.choice(["sofa", "piano", "shelf", "seating"]))
            elif rng.random() < 0.5:
                studio.stack(x, y, "vase")
            else:
                studio.remove(x, y)
        except DecorValidationError:
            pass
        budget = studio.view().budget
        assert budget >= 0
        assert budget + stocked_value(studio) == 700


def test_stacking_rules(make_studio):
    studio = make_studio()
    studio.new_game()
    studio.place(0, 0, "shelf")
    studio.place(1, 0, "sofa")
    assert studio.stack(0, 0, "vase") == 650
    with pytest.raises(TileOccupiedError):
        studio.stack(0, 0, "vase")
    with pytest.raises(PlacementRuleError):
        studio.stack(1, 0, "vase")
    with pytest.raises(PlacementRuleError):
        studio.stack(0, 0, "sofa")
    with pytest.raises(TileEmptyError):
        studio.stack(1, 1, "vase")
    assert studio.view().budget == 650
    score = studio.tick()
    assert score.count_of("vase") == 1
    assert score.total_style == 10 + 30 + 5
    # the top item comes off first
    assert studio.remove(0, 0) == 50


def test_apply_tool(make_studio):
    studio = make_studio()
    studio.new_game()
    studio.place(0, 0, "shelf")
    studio.select_tool("vase")
    studio.apply_tool(0, 0)
    studio.apply_tool(1, 1)
    view = studio.view()
    tiles = {(t.x, t.y): t for t in view.tiles}
    assert tiles[(0, 0)].stacked == "vase"
    assert tiles[(1, 1)].occupant == "vase"
    assert view.selected_tool == "vase"

    studio.select_tool("none")
    studio.apply_tool(0, 0)
    assert studio.view().budget == 1000 - 100 - 50
    with pytest.raises(UnknownFurnitureError):
        studio.select_tool("jetpack")


def test_hover_and_rotate(make_studio):
    studio = make_studio()
    studio.new_game()
    with pytest.raises(InvalidOperationError):
        studio.rotate_hovered()
    studio.place(0, 1, "sofa")
    studio.hover((0, 1))
    assert studio.rotate_hovered() == 1
    assert studio.view().hovered == (0, 1)
    with pytest.raises(OutOfBoundsError):
        studio.hover((9, 9))
    studio.hover(None)
    assert studio.view().hovered is None


def test_view_tiles_are_copies(make_studio):
    studio = make_studio()
    studio.new_game()
    tile = studio.view().tiles[0]
    tile.occupant = "sofa"
    assert studio.view().tiles[0].occupant is None


def test_placement_events(make_studio):
    bus = EventBus()
    placed = []
    bus.subscribe(FurniturePlaced, placed.append)
    studio = make_studio(event_bus=bus)
    studio.new_game()
    studio.place(0, 0, "shelf")
    studio.stack(0, 0, "vase")
    assert [(e.furniture_id, e.stacked) for e in placed] == [("shelf", False), ("vase", True)]


# ---------------------- Goals ----------------------
def test_goal_completion_and_claim(make_studio):
    studio = make_studio(config=config(goal_delay=0.0), goal_generator=StaticGenerator(two_sofas_goal()))
    studio.new_game()
    studio.place(0, 0, "sofa")
    studio.tick()
    view = studio.view()
    assert view.goal_status is GoalStatus.PENDING
    studio.tick()
    assert not studio.view().goal.completed
    with pytest.raises(GoalNotClaimableError):
        studio.claim_goal()

    studio.place(1, 0, "sofa")
    studio.tick()
    view = studio.view()
    assert view.goal.completed
    assert view.goal_status is GoalStatus.COMPLETED
    assert studio.state.active_goal.completed

    assert studio.claim_goal() == 250
    view = studio.view()
    assert view.budget == 1000 - 400 + 250
    assert view.phase == 2
    assert view.goal is None
    assert studio.state.active_goal is None
    with pytest.raises(GoalNotClaimableError):
        studio.claim_goal()


def test_goal_requested_after_delay(make_studio):
    gen = StaticGenerator(two_sofas_goal())
    studio = make_studio(config=config(goal_delay=2.0), goal_generator=gen)
    studio.new_game()
    studio.tick()
    assert gen.calls == 0
    assert studio.view().goal_status is GoalStatus.ABSENT
    studio.tick()
    assert gen.calls == 1
    assert studio.view().goal_status is GoalStatus.PENDING


def test_direct_ticks_with_default_settings_start_a_goal(small_catalog, inline_executor):
    studio = Studio.create(config=EngineConfig(grid_size=2), catalog=small_catalog, executor=inline_executor)
    studio.new_game()
    assert studio.clock.now == 0.0
    for _ in range(3):
        studio.tick()
    assert studio.clock.now == 0.0
    assert studio.view().goal_status is not GoalStatus.ABSENT
    assert studio.view().goal is not None


def test_goal_delay_restarts_after_claim(make_studio):
    gen = StaticGenerator(two_sofas_goal())
    studio = make_studio(config=config(goal_delay=2.0), goal_generator=gen)
    studio.new_game()
    studio.place(0, 0, "sofa")
    studio.place(1, 0, "sofa")
    studio.advance(2.0)
    studio.tick()
    assert studio.view().goal_status is GoalStatus.COMPLETED
    studio.claim_goal()
    studio.tick()
    assert gen.calls == 1
    studio.tick()
    assert gen.calls == 2


def test_without_generator_goal_stays_absent(make_studio):
    studio = make_studio(config=config(goal_delay=0.0))
    studio.new_game()
    studio.advance(3.0)
    assert studio.view().goal_status is GoalStatus.ABSENT


def test_failed_generation_is_visible_and_retryable(make_studio):
    gen = StaticGenerator(error=RuntimeError("text service down"))
    studio = make_studio(config=config(goal_delay=0.0), goal_generator=gen)
    studio.new_game()
    studio.place(0, 0, "sofa")
    studio.tick()
    view = studio.view()
    assert view.goal_status is GoalStatus.FAILED
    assert "text service down" in view.goal_error

    # ticks keep running and do not hammer the generator
    studio.tick()
    assert studio.view().score.total_style == 30
    assert gen.calls == 1

    gen.error = None
    gen.goal = two_sofas_goal()
    studio.retry_goal()
    assert studio.view().goal_status is GoalStatus.PENDING
    with pytest.raises(InvalidOperationError):
        studio.retry_goal()


def test_dismissed_error_requests_again(make_studio):
    gen = StaticGenerator(error=RuntimeError("nope"))
    studio = make_studio(config=config(goal_delay=0.0), goal_generator=gen)
    studio.new_game()
    studio.tick()
    gen.error = None
    gen.goal = two_sofas_goal()
    studio.dismiss_goal_error()
    assert studio.view().goal_status is GoalStatus.ABSENT
    studio.tick()
    assert studio.view().goal_status is GoalStatus.PENDING


def test_stale_generation_never_reaches_new_session(make_studio, manual_executor):
    gen = StaticGenerator(two_sofas_goal())
    studio = make_studio(config=config(goal_delay=0.0), goal_generator=gen, executor=manual_executor)
    studio.new_game()
    studio.tick()
    assert studio.view().goal_status is GoalStatus.GENERATING

    studio.new_game()
    manual_executor.run_all()
    assert gen.calls == 0
    assert studio.view().goal is None

    studio.tick()
    manual_executor.run_all()
    studio.tick()
    assert studio.view().goal_status is GoalStatus.PENDING


# ---------------------- News ----------------------
def test_news_feed_is_capped(make_studio):
    studio = make_studio(
        config=config(news_probability=1.0),
        snippet_generator=LocalSnippetGenerator(RNG(seed=3)),
        rng=RNG(seed=3),
    )
    studio.new_game()
    for _ in range(15):
        studio.tick()
    assert len(studio.view().news) == 11


def test_no_news_when_probability_zero(make_studio):
    studio = make_studio(snippet_generator=LocalSnippetGenerator(RNG(seed=3)))
    studio.new_game()
    for _ in range(20):
        studio.tick()
    assert studio.view().news == ()


def test_stale_snippets_are_dropped(make_studio, manual_executor):
    studio = make_studio(
        config=config(news_probability=1.0),
        snippet_generator=LocalSnippetGenerator(RNG(seed=3)),
        executor=manual_executor,
    )
    studio.new_game()
    studio.tick()
    studio.new_game()
    manual_executor.run_all()
    assert studio.view().news == ()


# ---------------------- Persistence ----------------------
def test_save_and_continue_reproduces_session(make_studio):
    store = MemoryStore()
    studio = make_studio(store=store, config=config(goal_delay=0.0), goal_generator=StaticGenerator(two_sofas_goal()))
    studio.set_identity("u1")
    studio.new_game()
    studio.place(0, 0, "shelf")
    studio.stack(0, 0, "vase")
    studio.place(1, 1, "sofa")
    studio.rotate(1, 1)
    studio.select_tool("piano")
    studio.tick()
    before = studio.view()
    studio.save()

    fresh = make_studio(store=store)
    fresh.set_identity("u1")
    assert fresh.has_saved_progress()
    fresh.continue_game()
    after = fresh.view()
    assert after.tiles == before.tiles
    assert after.budget == before.budget
    assert after.phase == before.phase
    assert after.goal == before.goal
    assert after.goal_status is GoalStatus.PENDING
    assert after.selected_tool == "piano"
    assert after.score == before.score


def test_continue_without_save(make_studio):
    store = MemoryStore()
    studio = make_studio(store=store)
    studio.set_identity("u2")
    assert not studio.has_saved_progress()
    assert store.load("u2") is None
    with pytest.raises(NoSaveError):
        studio.continue_game()
    assert not studio.active


def test_session_started_events(make_studio):
    bus = EventBus()
    started = []
    bus.subscribe(SessionStarted, started.append)
    studio = make_studio(event_bus=bus)
    studio.set_identity("u1")
    studio.new_game()
    studio.save()
    studio.continue_game()
    assert [e.restored for e in started] == [False, True]


def test_autosave_runs_on_schedule(make_studio):
    store = MemoryStore()
    studio = make_studio(store=store)
    studio.set_identity("u1")
    studio.new_game()
    studio.place(0, 0, "sofa")
    studio.advance(4.9)
    assert not store.exists("u1")
    studio.advance(0.1)
    assert store.load("u1").session["budget"] == 800
    assert studio.view().last_saved_at is not None


@pytest.mark.parametrize("error", [PersistenceError("disk full"), OSError("read-only file system")])
def test_autosave_failure_keeps_simulation_running(make_studio, error):
    bus = EventBus()
    failures = []
    bus.subscribe(SaveFailed, failures.append)
    studio = make_studio(store=BrokenStore(error), event_bus=bus)
    studio.set_identity("u1")
    studio.new_game()
    studio.advance(5.0)
    assert studio.view().last_save_error is not None
    assert len(failures) == 1

    studio.place(0, 0, "sofa")
    studio.advance(1.0)
    assert studio.view().score.total_style == 30
    assert studio.clock.has_task(AUTOSAVE_TASK)


def test_explicit_save_errors(make_studio):
    studio = make_studio()
    studio.new_game()
    with pytest.raises(InvalidOperationError):
        studio.save()

    broken = make_studio(store=BrokenStore(OSError("no space")))
    broken.set_identity("u1")
    broken.new_game()
    with pytest.raises(PersistenceError):
        broken.save()


def test_delete_saved_progress(make_studio):
    store = MemoryStore()
    studio = make_studio(store=store)
    studio.set_identity("u1")
    studio.new_game()
    studio.save()
    studio.delete_saved_progress()
    assert not studio.has_saved_progress()


# ---------------------- Factory ----------------------
def test_create_uses_bundled_catalog_and_local_generators(inline_executor):
    studio = Studio.create(
        config=EngineConfig(goal_delay=0.0, news_probability=1.0),
        rng=RNG(seed=7),
        executor=inline_executor,
    )
    studio.new_game()
    studio.place(3, 3, "seating")
    studio.tick()
    view = studio.view()
    assert view.grid_size == 15
    assert view.goal is not None
    assert len(view.news) == 1
