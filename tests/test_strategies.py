import numpy as np
import pytest

from tradeguard.ledger.models import Side
from tradeguard.strategies import (
    OrderAction,
    Signal,
    StrategyEvaluator,
    StrategyName,
    UnknownStrategyError,
    make_rule,
)
from tradeguard.strategies.rules import ScalpingRule
from tradeguard.utils.validation import ValidationError


@pytest.fixture
def evaluator(ledger):
    return StrategyEvaluator(ledger, sizer=lambda asset: 10.0)


def test_registry_covers_every_name():
    for name in StrategyName:
        assert make_rule(name).name is name
    assert make_rule("MOMENTUM").name is StrategyName.MOMENTUM


def test_unknown_strategy(evaluator, cache, feed):
    feed(cache, "BTC", [100.0])
    with pytest.raises(UnknownStrategyError) as exc:
        evaluator.evaluate("BTC", "arbitrage", "BUY")
    assert "arbitrage" in str(exc.value)


def test_invalid_signal(evaluator, cache, feed):
    feed(cache, "BTC", [100.0])
    with pytest.raises(ValidationError):
        evaluator.evaluate("BTC", "momentum", "MAYBE")


def test_no_data_means_no_order(evaluator):
    assert evaluator.evaluate("BTC", "momentum", "BUY") is None


class TestMomentum:
    def test_long_on_rising_mean(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 10 + [200.0] * 10)
        order = evaluator.evaluate("BTC", StrategyName.MOMENTUM, Signal.BUY)
        assert order.action is OrderAction.OPEN
        assert order.side is Side.LONG
        assert order.size == 10.0
        assert evaluator.evaluate("BTC", "momentum", "SELL") is None

    def test_short_on_falling_mean(self, evaluator, cache, feed):
        feed(cache, "BTC", [200.0] * 10 + [50.0] * 10)
        order = evaluator.evaluate("BTC", "momentum", "SELL")
        assert order.side is Side.SHORT

    def test_flat_before_twenty_samples(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 9 + [200.0] * 10)
        assert evaluator.evaluate("BTC", "momentum", "BUY") is None


class TestMeanReversion:
    def test_long_on_oversold_dip(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 19 + [80.0])
        order = evaluator.evaluate("BTC", "mean_reversion", "BUY")
        assert order.side is Side.LONG

    def test_exit_when_reverted(self, evaluator, ledger, cache, feed):
        feed(cache, "BTC", [100.0] * 19 + [80.0])
        ledger.open_position("BTC", "LONG", 10)
        feed(cache, "BTC", [84.0] * 20)
        order = evaluator.evaluate("BTC", "mean_reversion", "HOLD")
        assert order.action is OrderAction.CLOSE
        assert order.reason.startswith("mean_reverted")


class TestBreakout:
    def test_long_above_prior_channel(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 20 + [103.0])
        assert evaluator.evaluate("BTC", "breakout", "BUY").side is Side.LONG

    def test_short_below_prior_channel(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 20 + [97.0])
        assert evaluator.evaluate("BTC", "breakout", "SELL").side is Side.SHORT

    def test_inside_channel(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 20 + [101.0])
        assert evaluator.evaluate("BTC", "breakout", "BUY") is None

    def test_needs_a_full_prior_window(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0] * 19 + [103.0])
        assert evaluator.evaluate("BTC", "breakout", "BUY") is None


class TestScalping:
    def test_tight_spread_opens_half_size(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0], spread=0.01)
        order = evaluator.evaluate("BTC", "scalping", "BUY")
        assert order.side is Side.LONG
        assert order.size == pytest.approx(10.0 * ScalpingRule.size_factor)

    def test_wide_spread_is_skipped(self, evaluator, cache, feed):
        feed(cache, "BTC", [100.0], spread=1.0)
        assert evaluator.evaluate("BTC", "scalping", "BUY") is None

    def test_exit_after_small_move(self, evaluator, ledger, cache, feed):
        feed(cache, "BTC", [100.0])
        ledger.open_position("BTC", "LONG", 10)
        feed(cache, "BTC", [101.0])
        order = evaluator.evaluate("BTC", "scalping", "HOLD")
        assert order.action is OrderAction.CLOSE
        assert order.reason.startswith("scalp_exit")


class TestSwing:
    def test_long_in_uptrend(self, evaluator, cache, feed):
        feed(cache, "BTC", np.linspace(100, 119, 20))
        assert evaluator.evaluate("BTC", "swing", "BUY").side is Side.LONG

    def test_short_in_downtrend(self, evaluator, cache, feed):
        feed(cache, "BTC", np.linspace(119, 100, 20))
        assert evaluator.evaluate("BTC", "swing", "SELL").side is Side.SHORT

    def test_needs_twenty_samples(self, evaluator, cache, feed):
        feed(cache, "BTC", np.linspace(100, 118, 19))
        assert evaluator.evaluate("BTC", "swing", "BUY") is None


def test_breached_stop_proposes_close(evaluator, ledger, cache, feed):
    feed(cache, "BTC", [100.0])
    pos = ledger.open_position("BTC", "LONG", 10)
    pos.stop_loss = 1000.0
    order = evaluator.evaluate("BTC", "breakout", "HOLD")
    assert order.action is OrderAction.CLOSE
    assert order.reason == "stop_loss/take_profit"


def test_hold_without_position(evaluator, cache, feed):
    feed(cache, "BTC", [100.0] * 10 + [200.0] * 10)
    assert evaluator.evaluate("BTC", "momentum", "HOLD") is None
