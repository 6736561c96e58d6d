"""Scheduling for the simulation.

:class:`SimulationClock` owns periodic tasks and fires them as simulated
time advances. It does not sleep or start threads itself, so tests and
deterministic runs call :meth:`SimulationClock.advance` directly while a
live host wraps it in a :class:`RealtimeDriver`.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, ContextManager, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    name: str
    period: float
    action: Callable[[], None]
    next_due: float
    runs: int = 0
    cancelled: bool = field(default=False, repr=False)


class SimulationClock:
    def __init__(self) -> None:
        self._now = 0.0
        self._tasks: Dict[str, PeriodicTask] = {}

    @property
    def now(self) -> float:
        return self._now

    @property
    def tasks(self) -> List[PeriodicTask]:
        return list(self._tasks.values())

    def has_task(self, name: str) -> bool:
        return name in self._tasks

    def schedule(self, name: str, period: float, action: Callable[[], None]) -> PeriodicTask:
        """Run ``action`` every ``period`` seconds, first one period from now.

        Scheduling a name that already exists replaces the old task.
        """
        if period <= 0:
            raise ValueError("period must be positive")
        self.cancel(name)
        task = PeriodicTask(name=name, period=float(period), action=action, next_due=self._now + period)
        self._tasks[name] = task
        logger.debug("Scheduled task '%s' every %.2fs", name, period)
        return task

    def cancel(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is not None:
            task.cancelled = True
            logger.debug("Cancelled task '%s' after %d runs", name, task.runs)

    def cancel_all(self) -> None:
        for name in list(self._tasks):
            self.cancel(name)

    def advance(self, elapsed: float) -> int:
        """Move simulated time forward and fire every task that became due.

        A task whose period fits several times into ``elapsed`` fires that many
        times. Returns the number of actions run.
        """
        if elapsed < 0:
            raise ValueError("elapsed time cannot be negative")
        target = self._now + elapsed
        fired = 0
        while True:
            due = [t for t in self._tasks.values() if t.next_due <= target]
            if not due:
                break
            # Earliest first; dict order breaks ties in scheduling order
            task = min(due, key=lambda t: t.next_due)
            self._now = task.next_due
            task.next_due += task.period
            task.runs += 1
            fired += 1
            try:
                task.action()
            except Exception:
                logger.exception("Scheduled task '%s' failed", task.name)
        self._now = target
        return fired


class RealtimeDriver:
    """Advance a SimulationClock with wall-clock time on a daemon thread.

    ``lock`` is held while the clock advances so actions from other threads
    (player input) never interleave with a tick.
    """

    def __init__(
        self,
        clock: SimulationClock,
        lock: Optional[ContextManager] = None,
        resolution: float = 0.05,
    ) -> None:
        if resolution <= 0:
            raise ValueError("resolution must be positive")
        self._clock = clock
        self._lock = lock if lock is not None else threading.RLock()
        self._resolution = resolution
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.debug("RealtimeDriver.start() called while already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="dreamdecor-clock", daemon=True)
        self._thread.start()
        logger.info("Realtime clock started (resolution=%.3fs)", self._resolution)

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        logger.info("Realtime clock stopped at t=%.2fs", self._clock.now)

    def _run(self) -> None:
        last = time.monotonic()
        while not self._stop.wait(self._resolution):
            now = time.monotonic()
            elapsed = now - last
            last = now
            with self._lock:
                self._clock.advance(elapsed)
