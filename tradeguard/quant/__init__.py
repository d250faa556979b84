"""Technical indicators."""
from .indicators import (
    momentum,
    z_score,
    rsi,
    volatility,
    trend,
    breakout_levels,
    support,
    resistance,
    volume_trend,
    correlation,
    simple_returns,
)

__all__ = [
    "momentum",
    "z_score",
    "rsi",
    "volatility",
    "trend",
    "breakout_levels",
    "support",
    "resistance",
    "volume_trend",
    "correlation",
    "simple_returns",
]
