"""Rule-based strategies and the evaluator that dispatches them by name."""
from .base import (
    StrategyName,
    Signal,
    OrderAction,
    Order,
    MarketView,
    BaseRule,
    UnknownStrategyError,
)
from .registry import REGISTRY, make_rule, StrategyEvaluator

__all__ = [
    "StrategyName",
    "Signal",
    "OrderAction",
    "Order",
    "MarketView",
    "BaseRule",
    "UnknownStrategyError",
    "REGISTRY",
    "make_rule",
    "StrategyEvaluator",
]
