from .ledger import EconomyLedger

__all__ = ["EconomyLedger"]
