from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dreamdecor.catalog import FurnitureCatalog
from dreamdecor.clock import SimulationClock
from dreamdecor.config import EngineConfig
from dreamdecor.errors import (
    InvalidOperationError,
    NoSaveError,
    NoSessionError,
    PersistenceError,
    PlacementRuleError,
    TileEmptyError,
    TileOccupiedError,
)
from dreamdecor.events import (
    EventBus,
    FurniturePlaced,
    FurnitureRemoved,
    GameSaved,
    SaveFailed,
    SessionEnded,
    SessionStarted,
    SnippetPublished,
)
from dreamdecor.goals import (
    FallbackGoalGenerator,
    Goal,
    GoalContext,
    GoalEngine,
    GoalGenerator,
    GoalStatus,
    LocalGoalGenerator,
)
from dreamdecor.grid import Tile
from dreamdecor.news import FallbackSnippetGenerator, LocalSnippetGenerator, NewsFeed, Snippet, SnippetGenerator
from dreamdecor.persistence import PersistenceStore, SaveSnapshot
from dreamdecor.rng import RNG
from dreamdecor.scoring import ScoreEngine, ScoreSnapshot
from dreamdecor.session import SessionState, SessionToken

logger = logging.getLogger(__name__)

TICK_TASK = "tick"
AUTOSAVE_TASK = "autosave"


@dataclass(frozen=True)
class StudioView:
    """Read-only state handed to the renderer each frame."""

    active: bool
    identity: Optional[str]
    grid_size: int
    tiles: Tuple[Tile, ...]
    budget: int
    score: ScoreSnapshot
    phase: int
    goal: Optional[Goal]
    goal_status: GoalStatus
    goal_error: Optional[str]
    news: Tuple[Snippet, ...]
    hovered: Optional[Tuple[int, int]]
    selected_tool: Optional[str]
    last_saved_at: Optional[str]
    last_save_error: Optional[str]


class Studio:
    """Runs one decoration session for the current player identity.

    Player intents are validated synchronously and raise
    :class:`~dreamdecor.errors.DecorValidationError` subclasses without
    touching state. Ticks and autosaves run from the :class:`SimulationClock`;
    failures of generators or the store are logged and surfaced in the view
    but never stop the clock.

    Usage:
        studio = Studio.create(store=FileStore())
        studio.set_identity("player@example.com")
        studio.new_game()
        studio.place(0, 0, "seating")
        studio.advance(1.0)       # one tick
        studio.view().score.total_style
    """

    def __init__(
        self,
        catalog: FurnitureCatalog,
        config: Optional[EngineConfig] = None,
        store: Optional[PersistenceStore] = None,
        goal_generator: Optional[GoalGenerator] = None,
        snippet_generator: Optional[SnippetGenerator] = None,
        rng: Optional[RNG] = None,
        executor: Optional[Executor] = None,
        event_bus: Optional[EventBus] = None,
        clock: Optional[SimulationClock] = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or EngineConfig()
        self.events = event_bus or EventBus()
        self.clock = clock or SimulationClock()
        self.lock = threading.RLock()
        self._store = store
        self._rng = rng or RNG()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="dreamdecor-gen")
        self._scoring = ScoreEngine(catalog)
        self._goals = GoalEngine(goal_generator, self._executor, self.events)
        self._snippet_generator = snippet_generator
        self._pending_snippets: List[Tuple[SessionToken, "Future[Optional[Snippet]]"]] = []
        self._news = NewsFeed(self.config.news_capacity)

        self._identity: Optional[str] = None
        self._state: Optional[SessionState] = None
        self._token: Optional[SessionToken] = None
        self._hovered: Optional[Tuple[int, int]] = None
        self._goal_absent_for: Optional[float] = None
        self._last_saved_at: Optional[str] = None
        self._last_save_error: Optional[str] = None

    @classmethod
    def create(
        cls,
        config: Optional[EngineConfig] = None,
        store: Optional[PersistenceStore] = None,
        catalog: Optional[FurnitureCatalog] = None,
        rng: Optional[RNG] = None,
        executor: Optional[Executor] = None,
        event_bus: Optional[EventBus] = None,
    ) -> "Studio":
        """Build a studio with the bundled catalog and local generators.

        When ``config.remote`` is enabled the HTTP text service is tried first
        and the local templates are used as fallback.
        """
        config = config or EngineConfig()
        catalog = catalog or FurnitureCatalog.from_yaml()
        rng = rng or RNG()
        goal_generator: GoalGenerator = LocalGoalGenerator(config.progression, rng)
        snippet_generator: SnippetGenerator = LocalSnippetGenerator(rng)
        if config.remote.enabled and config.remote.endpoint:
            from dreamdecor.goals.remote import RemoteTextGenerator

            remote = RemoteTextGenerator(config.remote, catalog_ids=set(catalog.ids()))
            goal_generator = FallbackGoalGenerator(remote, goal_generator)
            snippet_generator = FallbackSnippetGenerator(remote, snippet_generator)
            logger.info("Using remote text service at %s", config.remote.endpoint)
        return cls(
            catalog,
            config=config,
            store=store,
            goal_generator=goal_generator,
            snippet_generator=snippet_generator,
            rng=rng,
            executor=executor,
            event_bus=event_bus,
        )

    # ---------------------- Identity & lifecycle ----------------------
    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def active(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> SessionState:
        return self._require()

    @property
    def goal_status(self) -> GoalStatus:
        return self._goals.status

    def set_identity(self, identity: Optional[str]) -> None:
        """Bind a new player identity; any running session is ended first."""
        with self.lock:
            if identity == self._identity:
                return
            if self.active:
                self.end_session()
            self._identity = identity
            logger.info("Identity changed to %s", identity or "<none>")

    def has_saved_progress(self) -> bool:
        if self._identity is None or self._store is None:
            return False
        try:
            return self._store.exists(self._identity)
        except Exception:
            logger.exception("Could not query saved progress for %s", self._identity)
            return False

    def new_game(self) -> SessionState:
        with self.lock:
            if self.active:
                self.end_session()
            state = SessionState.new_game(self.config.grid_size, self.config.initial_budget, event_bus=self.events)
            self._begin(state, restored=False)
            return state

    def continue_game(self) -> SessionState:
        """Restore the saved session of the current identity verbatim."""
        with self.lock:
            if self._identity is None or self._store is None:
                raise NoSaveError("Continuing a game requires an identity and a persistence store.")
            snapshot = self._store.load(self._identity)
            if snapshot is None:
                raise NoSaveError(f"No saved progress for {self._identity}.")
            state = SessionState.from_dict(snapshot.session, event_bus=self.events, catalog=self.catalog)
            if self.active:
                self.end_session()
            self._last_saved_at = snapshot.saved_at
            self._begin(state, restored=True)
            return state

    def end_session(self) -> None:
        """Cancel periodic work and drop in-flight generation for the current session."""
        with self.lock:
            if self._state is None:
                return
            self.clock.cancel_all()
            self._goals.cancel()
            for _, future in self._pending_snippets:
                future.cancel()
            self._pending_snippets.clear()
            self._state = None
            self._token = None
            self._hovered = None
            self._goal_absent_for = None
            logger.info("Session ended for %s", self._identity or "guest")
            self.events.emit(SessionEnded(identity=self._identity))

    def shutdown(self) -> None:
        self.end_session()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    def _begin(self, state: SessionState, restored: bool) -> None:
        self._state = state
        self._token = SessionToken.issue(self._identity)
        self._goals.restore(state.active_goal)
        self._news.clear()
        self._hovered = None
        self._last_save_error = None
        if not restored:
            self._last_saved_at = None
        state.score = self._scoring.recompute(state.grid)
        self._goal_absent_for = None
        self._sync_goal()

        self.clock.schedule(TICK_TASK, self.config.tick_interval, self.tick)
        if self._identity is not None and self._store is not None:
            self.clock.schedule(AUTOSAVE_TASK, self.config.autosave_interval, self.autosave)
        logger.info(
            "Session %s started (%s, budget=%d, phase=%d)",
            self._token,
            "restored" if restored else "new",
            state.ledger.budget,
            state.phase,
        )
        self.events.emit(SessionStarted(identity=self._identity, restored=restored))

    def _require(self) -> SessionState:
        if self._state is None:
            raise NoSessionError("No active session; start a new game or continue one.")
        return self._state

    def _require_token(self) -> SessionToken:
        if self._token is None:
            raise NoSessionError("No active session; start a new game or continue one.")
        return self._token

    # ---------------------- Clock ----------------------
    def advance(self, elapsed: float) -> int:
        """Advance the simulation clock; used by tests and the realtime driver."""
        with self.lock:
            return self.clock.advance(elapsed)

    def tick(self) -> ScoreSnapshot:
        """One engine step: score, goal harvest/evaluation/request, news roll."""
        with self.lock:
            state = self._require()
            token = self._require_token()

            state.score = self._scoring.recompute(state.grid)

            self._goals.poll(token)
            self._goals.evaluate(state.score)
            self._sync_goal()
            # goal delay accrues per tick, independent of the scheduling clock
            if self._goal_absent_for is not None:
                self._goal_absent_for += self.config.tick_interval
            if self._goal_due():
                if self._goals.request(self._context(state), token):
                    self._goals.poll(token)
                    self._sync_goal()

            self._harvest_snippets(token)
            if self._snippet_generator is not None and self._rng.chance(self.config.news_probability):
                future = self._executor.submit(self._snippet_generator.generate_snippet, self._context(state))
                self._pending_snippets.append((token, future))
                self._harvest_snippets(token)
            return state.score

    def _goal_due(self) -> bool:
        if self._goals.status is not GoalStatus.ABSENT or not self._goals.has_generator:
            return False
        absent_for = self._goal_absent_for
        return absent_for is not None and absent_for >= self.config.goal_delay

    def _sync_goal(self) -> None:
        state = self._state
        if state is not None:
            state.active_goal = self._goals.goal
        if self._goals.status is GoalStatus.ABSENT:
            if self._goal_absent_for is None:
                self._goal_absent_for = 0.0
        else:
            self._goal_absent_for = None

    def _context(self, state: SessionState) -> GoalContext:
        return GoalContext(
            phase=state.phase,
            budget=state.ledger.budget,
            total_style=state.score.total_style,
            counts=dict(state.score.counts),
        )

    def _harvest_snippets(self, token: SessionToken) -> None:
        still_pending = []
        for requested_by, future in self._pending_snippets:
            if not future.done():
                still_pending.append((requested_by, future))
                continue
            if requested_by != token:
                logger.debug("Discarding stale snippet from session %s", requested_by)
                continue
            exc = future.exception()
            if exc is not None:
                logger.warning("Snippet generation failed: %s", exc)
                continue
            snippet = future.result()
            if snippet is None:
                continue
            self._news.append(snippet)
            self.events.emit(SnippetPublished(text=snippet.text, category=snippet.category))
        self._pending_snippets = still_pending

    # ---------------------- Player intents ----------------------
    def place(self, x: int, y: int, furniture_id: str) -> int:
        """Buy ``furniture_id`` and put it on an empty tile. Returns the new budget."""
        with self.lock:
            state = self._require()
            definition = self.catalog.lookup(furniture_id)
            if definition.is_eraser:
                raise PlacementRuleError("The eraser cannot be placed; remove the item instead.")
            state.grid.check_placeable(x, y)
            state.ledger.try_debit(definition.cost, reason="place")
            state.grid.place(x, y, furniture_id)
            logger.debug("Player placed %s at (%d, %d) for %d", furniture_id, x, y, definition.cost)
            self.events.emit(FurniturePlaced(x=x, y=y, furniture_id=furniture_id))
            return state.ledger.budget

    def stack(self, x: int, y: int, furniture_id: str) -> int:
        """Buy a small item and stand it on the surface occupying (x, y)."""
        with self.lock:
            state = self._require()
            definition = self.catalog.lookup(furniture_id)
            if not definition.can_stack:
                raise PlacementRuleError(f"'{definition.name}' cannot be stacked on other furniture.")
            tile = state.grid.tile(x, y)
            if tile.occupant is None:
                raise TileEmptyError(f"Tile ({x}, {y}) has nothing to stack on.")
            base = self.catalog.lookup(tile.occupant)
            if not base.can_carry_stack:
                raise PlacementRuleError(f"'{base.name}' cannot carry other items.")
            if tile.stacked is not None:
                raise TileOccupiedError(f"Tile ({x}, {y}) already carries '{tile.stacked}'.")
            state.ledger.try_debit(definition.cost, reason="place")
            state.grid.stack(x, y, furniture_id)
            self.events.emit(FurniturePlaced(x=x, y=y, furniture_id=furniture_id, stacked=True))
            return state.ledger.budget

    def remove(self, x: int, y: int) -> int:
        """Remove the top item of a tile and refund its full cost. Returns the refund."""
        with self.lock:
            state = self._require()
            removed = state.grid.remove(x, y)
            refund = self.catalog.refund_of(removed)
            state.ledger.credit(refund, reason="refund")
            self.events.emit(FurnitureRemoved(x=x, y=y, furniture_id=removed, refund=refund))
            return refund

    def rotate(self, x: int, y: int, stacked: bool = False) -> int:
        with self.lock:
            return self._require().grid.rotate(x, y, stacked=stacked)

    def select_tool(self, furniture_id: str) -> None:
        with self.lock:
            state = self._require()
            self.catalog.lookup(furniture_id)
            state.selected_tool = furniture_id

    def apply_tool(self, x: int, y: int) -> int:
        """Click on a tile with the selected tool.

        The eraser removes; a stackable item clicked on a surface is stacked;
        anything else is placed. Returns the budget afterwards.
        """
        with self.lock:
            state = self._require()
            definition = self.catalog.lookup(state.selected_tool)
            if definition.is_eraser:
                self.remove(x, y)
                return state.ledger.budget
            tile = state.grid.tile(x, y)
            if definition.can_stack and tile.occupant is not None:
                if self.catalog.lookup(tile.occupant).can_carry_stack:
                    return self.stack(x, y, definition.id)
            return self.place(x, y, definition.id)

    def hover(self, position: Optional[Tuple[int, int]]) -> None:
        with self.lock:
            state = self._require()
            if position is not None:
                state.grid.tile(*position)
            self._hovered = position

    def rotate_hovered(self) -> int:
        with self.lock:
            if self._hovered is None:
                raise InvalidOperationError("No tile is hovered.")
            x, y = self._hovered
            return self.rotate(x, y)

    # ---------------------- Goals ----------------------
    def claim_goal(self) -> int:
        with self.lock:
            state = self._require()
            reward = self._goals.claim(state)
            self._sync_goal()
            return reward

    def retry_goal(self) -> None:
        with self.lock:
            state = self._require()
            token = self._require_token()
            self._goals.retry(self._context(state), token)
            self._goals.poll(token)
            self._sync_goal()

    def dismiss_goal_error(self) -> None:
        with self.lock:
            self._require()
            self._goals.dismiss_error()
            self._sync_goal()

    # ---------------------- Persistence ----------------------
    def save(self) -> SaveSnapshot:
        """Write the session for the current identity. Raises PersistenceError on failure."""
        with self.lock:
            state = self._require()
            if self._identity is None or self._store is None:
                raise InvalidOperationError("Saving requires an identity and a persistence store.")
            snapshot = SaveSnapshot(identity=self._identity, session=state.to_dict())
            try:
                self._store.save(self._identity, snapshot)
            except PersistenceError:
                raise
            except Exception as exc:
                raise PersistenceError(f"Store failed to save: {exc}") from exc
            self._last_saved_at = snapshot.saved_at
            self._last_save_error = None
            self.events.emit(GameSaved(identity=self._identity, saved_at=snapshot.saved_at))
            return snapshot

    def autosave(self) -> bool:
        """Scheduled save; failures are recorded and logged, never raised."""
        with self.lock:
            if self._state is None or self._identity is None or self._store is None:
                return False
            try:
                self.save()
            except PersistenceError as exc:
                self._last_save_error = str(exc)
                logger.warning("Autosave for %s failed: %s", self._identity, exc)
                self.events.emit(SaveFailed(identity=self._identity, message=str(exc)))
                return False
            logger.debug("Autosaved progress for %s", self._identity)
            return True

    def delete_saved_progress(self) -> None:
        with self.lock:
            if self._identity is None or self._store is None:
                raise InvalidOperationError("Deleting progress requires an identity and a persistence store.")
            self._store.delete(self._identity)

    # ---------------------- Renderer contract ----------------------
    def view(self) -> StudioView:
        with self.lock:
            state = self._state
            if state is None:
                return StudioView(
                    active=False,
                    identity=self._identity,
                    grid_size=self.config.grid_size,
                    tiles=(),
                    budget=0,
                    score=ScoreSnapshot(),
                    phase=0,
                    goal=None,
                    goal_status=GoalStatus.ABSENT,
                    goal_error=None,
                    news=(),
                    hovered=None,
                    selected_tool=None,
                    last_saved_at=self._last_saved_at,
                    last_save_error=self._last_save_error,
                )
            return StudioView(
                active=True,
                identity=self._identity,
                grid_size=state.grid.size,
                tiles=tuple(tile.copy() for tile in state.grid.tiles()),
                budget=state.ledger.budget,
                score=state.score,
                phase=state.phase,
                goal=self._goals.goal,
                goal_status=self._goals.status,
                goal_error=self._goals.error,
                news=tuple(self._news.items()),
                hovered=self._hovered,
                selected_tool=state.selected_tool,
                last_saved_at=self._last_saved_at,
                last_save_error=self._last_save_error,
            )
