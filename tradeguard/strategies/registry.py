"""Strategy registry and evaluator.

`StrategyEvaluator.evaluate(asset, strategy_name, signal)` maps a signal to a
proposed `Order` (OPEN or CLOSE) or None. It never touches the ledger itself.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from .base import BaseRule, MarketView, Order, OrderAction, Signal, StrategyName
from .rules import BreakoutRule, MeanReversionRule, MomentumRule, ScalpingRule, SwingRule
from ..ledger.ledger import PositionLedger
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

REGISTRY: dict[StrategyName, Callable[[], BaseRule]] = {
    StrategyName.MOMENTUM: MomentumRule,
    StrategyName.MEAN_REVERSION: MeanReversionRule,
    StrategyName.BREAKOUT: BreakoutRule,
    StrategyName.SCALPING: ScalpingRule,
    StrategyName.SWING: SwingRule,
}


def make_rule(name: StrategyName | str) -> BaseRule:
    """Create the rule for a strategy name.

    Raises:
        UnknownStrategyError: If the name is not a known strategy.
    """
    return REGISTRY[StrategyName.parse(name)]()


class StrategyEvaluator:
    def __init__(self, ledger: PositionLedger, sizer: Callable[[str], float]):
        self.ledger = ledger
        self.sizer = sizer

    def evaluate(self, asset: str, strategy_name: StrategyName | str, signal: Signal | str) -> Optional[Order]:
        """Proposed order for `asset`, or None when nothing should happen.

        Raises:
            UnknownStrategyError: If `strategy_name` is not a known strategy.
        """
        rule = make_rule(strategy_name)
        signal = Signal.parse(signal)
        cache = self.ledger.cache
        snap = cache.get_snapshot(asset)
        if snap is None:
            return None

        view = MarketView(
            asset=asset,
            snapshot=snap,
            prices=cache.prices(asset),
            volumes=cache.volumes(asset),
            position=self.ledger.get_position(asset),
            tick_size=self.ledger.params.tick_size(asset),
        )
        side = rule.entry(view, signal)
        if side is not None:
            size = self.sizer(asset) * rule.size_factor
            return Order(OrderAction.OPEN, asset, rule.name, f"{rule.name.value} {signal.value}", side, size)

        if view.position is not None:
            if self.ledger.should_close(asset):
                return Order(OrderAction.CLOSE, asset, rule.name, "stop_loss/take_profit")
            reason = rule.extra_exit(view)
            if reason:
                return Order(OrderAction.CLOSE, asset, rule.name, reason)
        return None
