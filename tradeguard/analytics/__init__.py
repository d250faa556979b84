"""Portfolio analytics."""
from .metrics import (
    value_at_risk,
    sharpe,
    sortino,
    calmar,
    max_drawdown,
    win_rate,
    profit_factor,
    RISK_FREE_RATE,
)

__all__ = [
    "value_at_risk",
    "sharpe",
    "sortino",
    "calmar",
    "max_drawdown",
    "win_rate",
    "profit_factor",
    "RISK_FREE_RATE",
]
