"""The five named trading rules."""
from __future__ import annotations

from typing import Optional

from .base import BaseRule, MarketView, Signal, StrategyName
from ..ledger.models import Side
from ..quant import indicators as ind


class MomentumRule(BaseRule):
    name = StrategyName.MOMENTUM
    threshold = 0.7
    volume_threshold = 0.6

    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        mom = ind.momentum(view.prices)
        vol = ind.volume_trend(view.volumes)
        if signal is Signal.BUY and mom > self.threshold and vol > self.volume_threshold:
            return Side.LONG
        if signal is Signal.SELL and mom < -self.threshold and vol > self.volume_threshold:
            return Side.SHORT
        return None


class MeanReversionRule(BaseRule):
    name = StrategyName.MEAN_REVERSION
    entry_z = 2.0
    exit_z = 0.5

    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        z = ind.z_score(view.prices)
        rsi = ind.rsi(view.prices)
        if signal is Signal.BUY and z < -self.entry_z and rsi < 30:
            return Side.LONG
        if signal is Signal.SELL and z > self.entry_z and rsi > 70:
            return Side.SHORT
        return None

    def extra_exit(self, view: MarketView) -> Optional[str]:
        z = ind.z_score(view.prices)
        if abs(z) < self.exit_z:
            return f"mean_reverted (z={z:.2f})"
        return None


class BreakoutRule(BaseRule):
    """Breaks of the channel formed by the 20 samples before the latest one."""
    name = StrategyName.BREAKOUT

    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        prior = view.prices[:-1]
        if prior.size < ind.WINDOW:
            return None
        upper, lower = ind.breakout_levels(prior)
        if signal is Signal.BUY and view.price > upper:
            return Side.LONG
        if signal is Signal.SELL and view.price < lower:
            return Side.SHORT
        return None


class ScalpingRule(BaseRule):
    name = StrategyName.SCALPING
    size_factor = 0.5
    exit_move = 0.005

    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        if view.snapshot.spread >= view.tick_size * 2:
            return None
        if signal is Signal.BUY:
            return Side.LONG
        if signal is Signal.SELL:
            return Side.SHORT
        return None

    def extra_exit(self, view: MarketView) -> Optional[str]:
        pos = view.position
        if pos is None:
            return None
        move = abs(view.price - pos.entry_price) / pos.entry_price
        if move >= self.exit_move:
            return f"scalp_exit ({move:.2%} move)"
        return None


class SwingRule(BaseRule):
    name = StrategyName.SWING

    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        if view.prices.size < ind.WINDOW:
            return None
        direction = ind.trend(view.prices)
        if signal is Signal.BUY and direction > 0 and view.price > ind.support(view.prices):
            return Side.LONG
        if signal is Signal.SELL and direction < 0 and view.price < ind.resistance(view.prices):
            return Side.SHORT
        return None
