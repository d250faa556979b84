"""Tests for the position ledger: fills, fees, rejections and stops."""
import pytest

from tradeguard.ledger.ledger import LedgerListener
from tradeguard.ledger.models import PositionStatus, Side
from tradeguard.utils.alerts import AlertLevel
from tradeguard.utils.validation import ValidationError


def _messages(alerts, level=None):
    return [a.message for a in alerts.get_active_alerts(level)]


def test_open_long_crosses_the_spread(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    pos = ledger.open_position("BTC", "LONG", 100)

    assert pos is not None
    assert pos.entry_price == 100.5
    assert pos.notional == pytest.approx(10050.0)
    assert pos.fees == pytest.approx(10.05)
    assert ledger.portfolio.cash == pytest.approx(89939.95)
    assert ledger.portfolio.margin_used == pytest.approx(10050.0)
    assert pos.stop_loss == pytest.approx(100.5 * 0.95)
    assert pos.take_profit == pytest.approx(100.5 * 1.10)


def test_immediate_close_round_trip(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", Side.LONG, 100)
    pos = ledger.close_position("BTC")

    assert pos.status is PositionStatus.CLOSED
    assert pos.exit_price == 99.5
    assert pos.pnl == pytest.approx(-109.95)
    assert ledger.portfolio.cash == pytest.approx(99880.0)
    assert ledger.portfolio.margin_used == 0.0
    assert ledger.get_position("BTC") is None
    assert ledger.closed_positions() == [pos]
    assert ledger.performance.total_trades == 1
    assert ledger.performance.losing_trades == 1
    assert ledger.performance.win_rate == 0.0


def test_short_position(ledger, cache, make_quote):
    cache.update_snapshot("ETH", make_quote(100.0))
    pos = ledger.open_position("ETH", "SHORT", 50)
    assert pos.entry_price == 99.5
    assert pos.stop_loss == pytest.approx(99.5 * 1.05)
    assert pos.take_profit == pytest.approx(99.5 * 0.90)

    cache.update_snapshot("ETH", make_quote(90.0))
    closed = ledger.close_position("ETH")
    assert closed.exit_price == 90.5
    exit_fee = 50 * 90.5 * 0.001
    assert closed.pnl == pytest.approx((99.5 - 90.5) * 50 - exit_fee)
    assert ledger.performance.winning_trades == 1


def test_position_size_limit_rejects(ledger, cache, make_quote, alerts):
    cache.update_snapshot("BTC", make_quote(100.0))
    assert ledger.open_position("BTC", "LONG", 10000) is None
    assert ledger.portfolio.cash == 100000.0
    assert ledger.get_position("BTC") is None
    assert any("exceeds" in m for m in _messages(alerts, AlertLevel.WARNING))


def test_insufficient_funds_rejects(make_ledger, cache, make_quote, alerts):
    ledger = make_ledger(max_position_size=1.0, leverage=10.0)
    cache.update_snapshot("BTC", {"price": 100.0, "bid": 99.0, "ask": 101.0, "volume": 1e9})
    # 995 * 100 fits the size limit, 995 * 101 does not fit the cash
    assert ledger.open_position("BTC", "LONG", 995) is None
    assert any("insufficient funds" in m for m in _messages(alerts, AlertLevel.WARNING))
    assert ledger.portfolio.cash == 100000.0


def test_duplicate_open_rejected(ledger, cache, make_quote, alerts):
    cache.update_snapshot("BTC", make_quote(100.0))
    first = ledger.open_position("BTC", "LONG", 10)
    assert ledger.open_position("BTC", "SHORT", 10) is None
    assert ledger.get_position("BTC") is first
    assert ledger.portfolio.margin_used == pytest.approx(first.notional)
    assert any("already has an open" in m for m in _messages(alerts, AlertLevel.WARNING))


def test_open_without_market_data(ledger, alerts):
    assert ledger.open_position("XRP", "LONG", 1) is None
    assert any("no market data" in m for m in _messages(alerts))


def test_close_without_position(ledger, alerts):
    assert ledger.close_position("BTC") is None
    assert any("no open position" in m for m in _messages(alerts, AlertLevel.WARNING))


def test_invalid_arguments(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    with pytest.raises(ValidationError):
        ledger.open_position("BTC", "LONG", 0)
    with pytest.raises(ValidationError):
        ledger.open_position("BTC", "UP", 1)


def test_cash_invariant_over_disjoint_assets(ledger, cache, make_quote):
    expected = 100000.0
    for asset, price in (("BTC", 100.0), ("ETH", 50.0), ("SOL", 20.0)):
        cache.update_snapshot(asset, make_quote(price))
        pos = ledger.open_position(asset, "LONG", 10)
        expected -= pos.notional + pos.notional * 0.001
    cache.update_snapshot("BTC", make_quote(104.0))
    cache.update_snapshot("ETH", make_quote(49.0))
    for asset in ("BTC", "ETH", "SOL"):
        pos = ledger.close_position(asset)
        exit_value = pos.size * pos.exit_price
        expected += exit_value - exit_value * 0.001
    assert ledger.portfolio.cash == pytest.approx(expected)
    assert ledger.portfolio.margin_used == 0.0


def test_should_close_long():
    from tradeguard.ledger.models import Position
    from datetime import datetime, timezone
    pos = Position("BTC", Side.LONG, 1, 100.0, datetime.now(timezone.utc), stop_loss=95.0, take_profit=110.0)
    assert pos.stop_breached(95.0)
    assert pos.stop_breached(110.0)
    assert not pos.stop_breached(100.0)
    short = Position("BTC", Side.SHORT, 1, 100.0, datetime.now(timezone.utc), stop_loss=105.0, take_profit=90.0)
    assert short.stop_breached(105.0)
    assert short.stop_breached(90.0)
    assert not short.stop_breached(100.0)


def test_price_update_triggers_stop_loss(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", "LONG", 10)
    assert not ledger.should_close("BTC")
    cache.update_snapshot("BTC", make_quote(90.0))
    assert ledger.get_position("BTC") is None
    closed = ledger.closed_positions()[-1]
    assert closed.close_reason == "stop_loss"


def test_price_update_triggers_take_profit_on_short(ledger, cache, make_quote):
    cache.update_snapshot("ETH", make_quote(100.0))
    ledger.open_position("ETH", "SHORT", 10)
    cache.update_snapshot("ETH", make_quote(85.0))
    assert ledger.get_position("ETH") is None
    assert ledger.closed_positions()[-1].close_reason == "take_profit"


def test_valuation_and_drawdown(make_ledger, cache, make_quote):
    ledger = make_ledger(stop_loss_percent=0.5)
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", "LONG", 100)
    assert ledger.valuation() == pytest.approx(89939.95 + 100 * 100.0)
    cache.update_snapshot("BTC", make_quote(80.0))
    assert ledger.valuation() == pytest.approx(89939.95 + 100 * 80.0)
    assert ledger.drawdown() == pytest.approx((100000.0 - ledger.valuation()) / 100000.0)


def test_maintenance_alerts_on_drawdown_without_liquidating(make_ledger, cache, make_quote, alerts):
    ledger = make_ledger(stop_loss_percent=0.5, max_drawdown=0.01)
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", "LONG", 100)
    cache.update_snapshot("BTC", make_quote(80.0))
    result = ledger.run_maintenance()
    assert result["closed"] == []
    assert ledger.get_position("BTC") is not None
    assert any("Maximum drawdown exceeded" in m for m in _messages(alerts, AlertLevel.CRITICAL))


def test_maintenance_closes_breached_positions(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    pos = ledger.open_position("BTC", "LONG", 10)
    pos.stop_loss = 200.0
    result = ledger.run_maintenance()
    assert result["closed"] == [pos.id]
    assert pos.close_reason == "stop_loss"


def test_listeners_and_gates(ledger, cache, make_quote):
    events = []

    class Recorder(LedgerListener):
        def on_position_opened(self, position):
            events.append(("open", position.asset))

        def on_position_closed(self, position):
            events.append(("close", position.asset))

    class Blocked:
        blocked = True
        findings = []

    ledger.subscribe(Recorder())
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", "LONG", 10)
    ledger.close_position("BTC")
    assert events == [("open", "BTC"), ("close", "BTC")]

    ledger.add_gate(lambda asset, side, size, price: Blocked())
    assert ledger.open_position("BTC", "LONG", 10) is None


def test_force_close_without_quote_uses_entry_price(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    pos = ledger.open_position("BTC", "LONG", 10)
    cache.clear()
    assert ledger.close_position("BTC") is None
    closed = ledger.close_position("BTC", reason="emergency", force=True)
    assert closed.exit_price == pos.entry_price


def test_get_stats(ledger, cache, make_quote):
    cache.update_snapshot("BTC", make_quote(100.0))
    ledger.open_position("BTC", "LONG", 10)
    stats = ledger.get_stats()
    assert stats["portfolio"]["margin_used"] == pytest.approx(1005.0)
    assert len(stats["positions"]) == 1
    assert stats["closed_trades"] == 0
