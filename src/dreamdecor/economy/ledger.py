import logging
from typing import Optional

from dreamdecor.errors import InsufficientFundsError, ValidationError
from dreamdecor.events import BudgetChanged, EventBus

logger = logging.getLogger(__name__)


class EconomyLedger:
    """Tracks the decoration budget.

    The budget never drops below zero: a debit that cannot be covered is
    rejected before it takes effect. Emits BudgetChanged on every change
    when an EventBus is provided.
    """

    def __init__(self, budget: int = 0, event_bus: Optional[EventBus] = None) -> None:
        if budget < 0:
            raise ValidationError("Initial budget cannot be negative")
        self._budget = int(budget)
        self._event_bus = event_bus

    @property
    def budget(self) -> int:
        return self._budget

    def can_afford(self, amount: int) -> bool:
        if amount < 0:
            return False
        return self._budget >= amount

    def try_debit(self, amount: int, reason: str = "purchase") -> int:
        """Reduce the budget by ``amount`` or raise InsufficientFundsError leaving it untouched."""
        if amount < 0:
            raise ValidationError("Amount to debit cannot be negative")
        if not self.can_afford(amount):
            raise InsufficientFundsError(
                f"Cannot spend ${amount}; only ${self._budget} available."
            )
        old = self._budget
        self._budget = old - amount
        logger.debug("Debited %d (reason=%s); old=%d new=%d", amount, reason, old, self._budget)
        self._emit(old, reason)
        return self._budget

    def credit(self, amount: int, reason: str = "refund") -> int:
        if amount < 0:
            raise ValidationError("Amount to credit cannot be negative")
        old = self._budget
        self._budget = old + amount
        logger.debug("Credited %d (reason=%s); old=%d new=%d", amount, reason, old, self._budget)
        self._emit(old, reason)
        return self._budget

    def _emit(self, old: int, reason: str) -> None:
        if self._event_bus is not None and old != self._budget:
            self._event_bus.emit(
                BudgetChanged(old_amount=old, new_amount=self._budget, delta=self._budget - old, reason=reason)
            )
