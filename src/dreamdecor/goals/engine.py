from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from dreamdecor.errors import GoalNotClaimableError, InvalidOperationError
from dreamdecor.events import EventBus, GoalClaimed, GoalCompleted, GoalGenerated, GoalGenerationFailed
from dreamdecor.scoring import ScoreSnapshot

from .generators import GoalGenerator
from .models import Goal, GoalContext, GoalMetric, GoalStatus

if TYPE_CHECKING:
    from dreamdecor.session import SessionState, SessionToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PendingRequest:
    token: "SessionToken"
    future: "Future[Optional[Goal]]"


class GoalEngine:
    """Generates, tracks and resolves the single active design goal.

    Lifecycle: absent -> generating -> pending -> completed -> (claim) -> absent.
    A failed generation parks the engine in ``failed`` until :meth:`retry`
    or :meth:`dismiss_error` is called.

    Generation runs on an executor; the finished result is applied only by
    :meth:`poll` and only when it was requested under the same session token.
    """

    def __init__(
        self,
        generator: Optional[GoalGenerator],
        executor: Executor,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._generator = generator
        self._executor = executor
        self._events = event_bus or EventBus()
        self._goal: Optional[Goal] = None
        self._status = GoalStatus.ABSENT
        self._error: Optional[str] = None
        self._pending: Optional[_PendingRequest] = None

    # ---------------------- Read-only state ----------------------
    @property
    def goal(self) -> Optional[Goal]:
        return self._goal

    @property
    def status(self) -> GoalStatus:
        return self._status

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def has_generator(self) -> bool:
        return self._generator is not None

    # ---------------------- Generation ----------------------
    def request(self, context: GoalContext, token: "SessionToken") -> bool:
        """Start generating a goal if none is active or in flight.

        Returns True when a request was submitted.
        """
        if self._status is not GoalStatus.ABSENT or self._generator is None:
            return False
        self._submit(context, token)
        return True

    def retry(self, context: GoalContext, token: "SessionToken") -> None:
        if self._status is not GoalStatus.FAILED:
            raise InvalidOperationError(f"Nothing to retry; goal status is '{self._status.value}'")
        logger.info("Retrying goal generation")
        self._error = None
        self._submit(context, token)

    def dismiss_error(self) -> None:
        if self._status is GoalStatus.FAILED:
            self._error = None
            self._status = GoalStatus.ABSENT

    def _submit(self, context: GoalContext, token: "SessionToken") -> None:
        generator = self._generator
        if generator is None:
            raise InvalidOperationError("No goal generator is configured")
        future = self._executor.submit(generator.generate_goal, context)
        self._pending = _PendingRequest(token=token, future=future)
        self._status = GoalStatus.GENERATING
        logger.debug("Goal generation submitted for session %s", token)

    def poll(self, token: "SessionToken") -> bool:
        """Apply a finished generation result. Returns True if the state changed."""
        pending = self._pending
        if pending is None or not pending.future.done():
            return False
        self._pending = None

        if pending.token != token:
            # Requested by another session; never applied here
            logger.info("Discarding stale goal result from session %s", pending.token)
            if self._status is GoalStatus.GENERATING:
                self._status = GoalStatus.ABSENT
            return True

        exc = pending.future.exception()
        goal = None if exc is not None else pending.future.result()
        if goal is None:
            message = str(exc) if exc is not None else "Goal generator returned no goal"
            self._fail(message, exc)
            return True

        self._goal = goal
        self._status = GoalStatus.PENDING
        self._error = None
        logger.info("New goal: %s (reward=%d)", goal.description, goal.reward)
        self._events.emit(GoalGenerated(description=goal.description, reward=goal.reward))
        return True

    def _fail(self, message: str, exc: Optional[BaseException]) -> None:
        self._status = GoalStatus.FAILED
        self._error = message
        if exc is not None:
            logger.warning("Goal generation failed: %s", message, exc_info=exc)
        else:
            logger.warning("Goal generation failed: %s", message)
        self._events.emit(GoalGenerationFailed(message=message))

    # ---------------------- Tracking ----------------------
    def evaluate(self, score: ScoreSnapshot) -> bool:
        """Mark the pending goal completed when its metric is met.

        Returns True only on the tick where completion happens.
        """
        goal = self._goal
        if goal is None or self._status is not GoalStatus.PENDING:
            return False

        if goal.metric is GoalMetric.STYLE_TOTAL:
            met = score.total_style >= goal.target_value
        else:
            met = score.count_of(goal.target_furniture or "") >= goal.target_value
        if not met:
            return False

        self._goal = goal.mark_completed()
        self._status = GoalStatus.COMPLETED
        logger.info("Goal completed: %s", goal.description)
        self._events.emit(GoalCompleted(description=goal.description, reward=goal.reward))
        return True

    def claim(self, state: "SessionState") -> int:
        """Credit the reward, advance the phase and delete the goal."""
        goal = self._goal
        if goal is None or not goal.completed:
            raise GoalNotClaimableError("There is no completed goal to claim.")
        state.ledger.credit(goal.reward, reason="goal_reward")
        state.phase += 1
        self._goal = None
        self._status = GoalStatus.ABSENT
        logger.info("Goal reward claimed: +%d, phase is now %d", goal.reward, state.phase)
        self._events.emit(GoalClaimed(reward=goal.reward, new_phase=state.phase))
        return goal.reward

    # ---------------------- Session lifecycle ----------------------
    def restore(self, goal: Optional[Goal]) -> None:
        """Install a goal loaded from a save (or clear it)."""
        self.cancel()
        self._goal = goal
        self._error = None
        if goal is None:
            self._status = GoalStatus.ABSENT
        else:
            self._status = GoalStatus.COMPLETED if goal.completed else GoalStatus.PENDING

    def cancel(self) -> None:
        """Forget any in-flight request; its result will never be applied."""
        if self._pending is not None:
            self._pending.future.cancel()
            self._pending = None
            logger.debug("In-flight goal generation cancelled")
        if self._status is GoalStatus.GENERATING:
            self._status = GoalStatus.ABSENT
