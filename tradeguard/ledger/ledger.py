"""Position ledger: owns open positions, cash and margin, executes opens and closes.

Entry crosses the spread (ask for LONG, bid for SHORT) and the exit crosses it
back, so every round trip pays the spread plus a fee on each leg. All mutations
run inside the shared critical section; listeners are called synchronously
inside it and alerts go out after it is released.
"""
from __future__ import annotations
from collections import deque
from dataclasses import asdict
from typing import Any, Callable, Deque, Dict, List, Optional

from .models import PerformanceStats, Portfolio, Position, PositionStatus, Side, TradingParams
from ..analytics.metrics import sharpe
from ..data.cache import MarketDataCache
from ..data.models import MarketSnapshot
from ..utils.alerts import AlertLevel
from ..utils.clock import Clock
from ..utils.logging import get_logger
from ..utils.sync import CriticalSection
from ..utils.validation import validate_positive

LOGGER = get_logger(__name__)

# (asset, side, size, entry_price) -> object with a `blocked` attribute, or None
PreTradeCheck = Callable[[str, Side, float, float], Any]


class LedgerListener:
    """Observer of ledger events. Override what you need."""

    def on_position_opened(self, position: Position) -> None:
        pass

    def on_position_closed(self, position: Position) -> None:
        pass

    def on_emergency_stop(self, reason: str, closed: List[Position]) -> None:
        pass


class PositionLedger:
    def __init__(
        self,
        params: Optional[TradingParams] = None,
        cache: Optional[MarketDataCache] = None,
        section: Optional[CriticalSection] = None,
        clock: Optional[Clock] = None,
    ):
        self.params = params if params is not None else TradingParams()
        if section is None:
            section = cache.section if cache is not None else CriticalSection(clock=clock)
        self.section = section
        self.clock = clock if clock is not None else self.section.clock
        self.cache = cache if cache is not None else MarketDataCache(self.params.history_capacity, section=self.section, clock=self.clock)
        self.portfolio = Portfolio(cash=self.params.initial_cash)
        self.performance = PerformanceStats()
        self._positions: Dict[str, Position] = {}
        self._closed: List[Position] = []
        self._trade_returns: List[float] = []
        self._value_history: Deque[float] = deque([self.portfolio.total_value], maxlen=self.params.history_capacity)
        self._listeners: List[LedgerListener] = []
        self._gates: List[PreTradeCheck] = []
        self.cache.subscribe(self._on_snapshot)

    # --- registration ---

    def subscribe(self, listener: LedgerListener) -> None:
        self._listeners.append(listener)

    def add_gate(self, check: PreTradeCheck) -> None:
        """Register a pre-trade check run before every open commits."""
        self._gates.append(check)

    # --- queries ---

    def get_position(self, asset: str) -> Optional[Position]:
        return self._positions.get(asset)

    def open_positions(self) -> Dict[str, Position]:
        return dict(self._positions)

    def closed_positions(self) -> List[Position]:
        return list(self._closed)

    def closed_pnls(self) -> List[float]:
        return [p.pnl for p in self._closed]

    def value_history(self) -> List[float]:
        return list(self._value_history)

    def current_price(self, asset: str, default: Optional[float] = None) -> Optional[float]:
        snap = self.cache.peek(asset)
        return snap.price if snap is not None else default

    def valuation(self) -> float:
        """cash + sum(size * current price) over open positions."""
        total = self.portfolio.cash
        for asset, pos in self._positions.items():
            total += pos.size * self.current_price(asset, pos.entry_price)
        return total

    def drawdown(self) -> float:
        """Fractional decline of the current valuation from its running peak."""
        peak = max(self.portfolio.peak_value, self.valuation())
        if peak <= 0:
            return 0.0
        return max(0.0, (peak - self.valuation()) / peak)

    def should_close(self, asset: str) -> bool:
        pos = self._positions.get(asset)
        if pos is None:
            return False
        price = self.current_price(asset)
        if price is None:
            return False
        return pos.stop_breached(price)

    # --- mutations ---

    def open_position(self, asset: str, side: Side | str, size: float,
                      strategy: Optional[str] = None) -> Optional[Position]:
        """Open a position at the touch. Returns None (and alerts) when rejected."""
        side = Side.parse(side)
        size = validate_positive(size, "size")
        ctx = {"asset": asset, "side": side.value, "size": size, "strategy": strategy}

        with self.section.hold():
            snap = self.cache.peek(asset)
            if snap is None:
                self.section.post(AlertLevel.WARNING, f"Open rejected: no market data for {asset}", ctx)
                return None
            if asset in self._positions:
                existing = self._positions[asset]
                self.section.post(
                    AlertLevel.WARNING,
                    f"Open rejected: {asset} already has an open {existing.side.value} position",
                    {**ctx, "position_id": existing.id},
                )
                return None
            if not self._within_limits(asset, size, snap, ctx):
                return None

            entry = snap.ask if side is Side.LONG else snap.bid
            notional = size * entry
            fee = notional * self.params.fee_rate
            if notional > self.portfolio.cash:
                self.section.post(
                    AlertLevel.WARNING,
                    f"Open rejected: insufficient funds for {asset} "
                    f"(notional {notional:.2f} > cash {self.portfolio.cash:.2f})",
                    {**ctx, "price": entry},
                )
                return None

            for check in self._gates:
                decision = check(asset, side, size, entry)
                if decision is not None and decision.blocked:
                    self.section.post(
                        AlertLevel.CRITICAL,
                        f"Open rejected: {asset} blocked by pre-trade risk check",
                        {**ctx, "price": entry, "findings": [f.to_dict() for f in decision.findings]},
                    )
                    return None

            sl_off = entry * self.params.stop_loss_percent
            tp_off = entry * self.params.take_profit_percent
            if side is Side.LONG:
                stop_loss, take_profit = entry - sl_off, entry + tp_off
            else:
                stop_loss, take_profit = entry + sl_off, entry - tp_off

            pos = Position(
                asset=asset,
                side=side,
                size=size,
                entry_price=entry,
                entry_time=self.clock.now(),
                stop_loss=stop_loss,
                take_profit=take_profit,
                fees=fee,
                strategy=strategy,
            )
            self.portfolio.cash -= notional + fee
            self._positions[asset] = pos
            self._sync_margin()
            self._refresh_valuation()

            LOGGER.info(
                f"Opened {side.value} {size} {asset} @ {entry} (fee {fee:.2f})",
                extra={"asset": asset, "side": side.value, "size": size, "price": entry,
                       "position_id": pos.id, "strategy": strategy},
            )
            for listener in list(self._listeners):
                self._call(listener.on_position_opened, pos)
            self.section.post(
                AlertLevel.INFO,
                f"Position opened: {side.value} {size} {asset} @ {entry:.4f}",
                {**ctx, "price": entry, "position_id": pos.id},
            )
            return pos

    def close_position(self, asset: str, reason: str = "manual", force: bool = False) -> Optional[Position]:
        """Close the open position on `asset` at the touch.

        With `force`, a missing quote falls back to the entry price instead of
        rejecting. Returns None when there is nothing to close.
        """
        with self.section.hold():
            pos = self._positions.get(asset)
            if pos is None:
                self.section.post(AlertLevel.WARNING, f"Close ignored: no open position for {asset}",
                                  {"asset": asset, "reason": reason})
                return None
            snap = self.cache.peek(asset)
            if snap is None:
                if not force:
                    self.section.post(AlertLevel.WARNING, f"Close rejected: no market data for {asset}",
                                      {"asset": asset, "reason": reason, "position_id": pos.id})
                    return None
                exit_price = pos.entry_price
            else:
                exit_price = snap.bid if pos.side is Side.LONG else snap.ask
            return self._settle(pos, exit_price, reason)

    def close_all(self, reason: str) -> List[Position]:
        """Force-close every open position, continuing past per-asset failures."""
        closed: List[Position] = []
        with self.section.hold():
            for asset in list(self._positions):
                try:
                    pos = self.close_position(asset, reason=reason, force=True)
                except Exception as e:
                    LOGGER.error(f"Forced close failed for {asset}: {e}", extra={"asset": asset}, exc_info=True)
                    continue
                if pos is not None:
                    closed.append(pos)
        return closed

    def notify_emergency_stop(self, reason: str, closed: List[Position]) -> None:
        with self.section.hold():
            for listener in list(self._listeners):
                self._call(listener.on_emergency_stop, reason, closed)

    def run_maintenance(self) -> Dict[str, Any]:
        """Close positions past their stops and check drawdown. Never liquidates."""
        with self.section.hold():
            closed = []
            for asset in list(self._positions):
                if self.should_close(asset):
                    pos = self.close_position(asset, reason=self._exit_reason(asset))
                    if pos is not None:
                        closed.append(pos)
            self._refresh_valuation()
            dd = self.drawdown()
            if dd > self.params.max_drawdown:
                self.section.post(
                    AlertLevel.CRITICAL,
                    f"Maximum drawdown exceeded: {dd:.2%} > {self.params.max_drawdown:.2%}",
                    {"drawdown": dd, "limit": self.params.max_drawdown},
                )
            return {"closed": [p.id for p in closed], "total_value": self.portfolio.total_value, "drawdown": dd}

    def get_stats(self) -> Dict[str, Any]:
        with self.section.hold():
            return {
                "portfolio": asdict(self.portfolio),
                "performance": asdict(self.performance),
                "positions": [p.to_dict() for p in self._positions.values()],
                "closed_trades": len(self._closed),
            }

    # --- internals ---

    def _within_limits(self, asset: str, size: float, snap: MarketSnapshot, ctx: Dict[str, Any]) -> bool:
        value = size * snap.price
        cash = self.portfolio.cash
        if value > cash * self.params.max_position_size:
            self.section.post(
                AlertLevel.WARNING,
                f"Open rejected: {asset} position value {value:.2f} exceeds "
                f"{self.params.max_position_size:.0%} of cash",
                {**ctx, "price": snap.price},
            )
            return False
        if self.portfolio.margin_used + value > cash * self.params.leverage:
            self.section.post(
                AlertLevel.WARNING,
                f"Open rejected: {asset} would exceed leverage {self.params.leverage}",
                {**ctx, "price": snap.price},
            )
            return False
        return True

    def _settle(self, pos: Position, exit_price: float, reason: str) -> Position:
        exit_value = pos.size * exit_price
        exit_fee = exit_value * self.params.fee_rate
        pnl = (exit_price - pos.entry_price) * pos.size * pos.side.sign - exit_fee

        self.portfolio.cash += exit_value - exit_fee
        pos.status = PositionStatus.CLOSED
        pos.exit_price = exit_price
        pos.exit_time = self.clock.now()
        pos.pnl = pnl
        pos.fees += exit_fee
        pos.close_reason = reason
        del self._positions[pos.asset]
        self._closed.append(pos)
        self._sync_margin()

        self.performance.record(pnl)
        self._trade_returns.append(pnl / pos.notional)
        self.performance.sharpe_ratio = sharpe(self._trade_returns)
        self._refresh_valuation()

        LOGGER.info(
            f"Closed {pos.side.value} {pos.size} {pos.asset} @ {exit_price} pnl={pnl:.2f} ({reason})",
            extra={"asset": pos.asset, "side": pos.side.value, "size": pos.size, "price": exit_price,
                   "position_id": pos.id, "reason": reason},
        )
        for listener in list(self._listeners):
            self._call(listener.on_position_closed, pos)
        self.section.post(
            AlertLevel.INFO,
            f"Position closed: {pos.asset} pnl {pnl:.2f} ({reason})",
            {"asset": pos.asset, "position_id": pos.id, "price": exit_price, "reason": reason, "pnl": pnl},
        )
        return pos

    def _sync_margin(self) -> None:
        self.portfolio.margin_used = sum(p.notional for p in self._positions.values())

    def _refresh_valuation(self) -> None:
        total = self.valuation()
        self.portfolio.total_value = total
        self.portfolio.peak_value = max(self.portfolio.peak_value, total)
        self._value_history.append(total)
        self.performance.max_drawdown = max(self.performance.max_drawdown, self.drawdown())

    def _exit_reason(self, asset: str) -> str:
        pos = self._positions[asset]
        price = self.current_price(asset, pos.entry_price)
        hit_stop = price <= pos.stop_loss if pos.side is Side.LONG else price >= pos.stop_loss
        return "stop_loss" if hit_stop else "take_profit"

    def _on_snapshot(self, asset: str, snap: MarketSnapshot) -> None:
        if asset in self._positions:
            self._refresh_valuation()
            if self.should_close(asset):
                self.close_position(asset, reason=self._exit_reason(asset))

    @staticmethod
    def _call(fn, *args) -> None:
        try:
            fn(*args)
        except Exception as e:
            LOGGER.error(f"Ledger listener {getattr(fn, '__qualname__', fn)} failed: {e}", exc_info=True)
