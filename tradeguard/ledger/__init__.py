"""Position ledger."""
from .models import Side, PositionStatus, Position, Portfolio, PerformanceStats, TradingParams
from .ledger import PositionLedger, LedgerListener

__all__ = [
    "Side",
    "PositionStatus",
    "Position",
    "Portfolio",
    "PerformanceStats",
    "TradingParams",
    "PositionLedger",
    "LedgerListener",
]
