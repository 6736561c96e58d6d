import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventBus:
    """Simple thread-safe in-process event bus for studio events.

    Subscribers are keyed by event class; events are emitted by instance.
    Delivery is synchronous so tests observe events deterministically.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[Type[Any], List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            self._subscribers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]

    def unsubscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    self._subscribers.pop(event_type, None)

    def emit(self, event: Any) -> None:
        with self._lock:
            for event_type, handlers in list(self._subscribers.items()):
                if isinstance(event, event_type):
                    for h in list(handlers):
                        try:
                            h(event)
                        except Exception:
                            # subscriber errors are logged, never propagated
                            logger.exception("Error in event subscriber for %s", type(event).__name__)


@dataclass(frozen=True)
class BudgetChanged:
    old_amount: int
    new_amount: int
    delta: int
    reason: str  # e.g., "place", "refund", "goal_reward"


@dataclass(frozen=True)
class FurniturePlaced:
    x: int
    y: int
    furniture_id: str
    stacked: bool = False


@dataclass(frozen=True)
class FurnitureRemoved:
    x: int
    y: int
    furniture_id: str
    refund: int


@dataclass(frozen=True)
class GoalGenerated:
    description: str
    reward: int


@dataclass(frozen=True)
class GoalCompleted:
    description: str
    reward: int


@dataclass(frozen=True)
class GoalClaimed:
    reward: int
    new_phase: int


@dataclass(frozen=True)
class GoalGenerationFailed:
    message: str


@dataclass(frozen=True)
class SnippetPublished:
    text: str
    category: str


@dataclass(frozen=True)
class SessionStarted:
    identity: Optional[str]
    restored: bool


@dataclass(frozen=True)
class SessionEnded:
    identity: Optional[str]


@dataclass(frozen=True)
class GameSaved:
    identity: str
    saved_at: str


@dataclass(frozen=True)
class SaveFailed:
    identity: str
    message: str
