"""Risk Assessment Engine.

Recomputes the aggregate RiskState after every open and close and on a
periodic ticker, scores it, produces advisory recommendations and owns the
terminal emergency stop.

Risk score (0-100):
    min(40, drawdown * 200)
  + min(30, daily_loss_fraction * 300)
  + min(20, var_fraction * 200)
  + min(10, max_concentration * 40)

State machine: ACTIVE -> STOPPING -> STOPPED. There is no way back to ACTIVE.
"""
from __future__ import annotations
import itertools
from collections import deque
from typing import Any, Deque, Dict, FrozenSet, List, Optional

from .gate import PreTradeGate, aligned_correlation, liquidity_score
from .kill_switch import KillSwitch
from .models import (
    Breach,
    EngineState,
    LimitStatus,
    Recommendation,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RiskParams,
    RiskState,
    Severity,
    limit_status,
    pair_key,
)
from .sizing import position_size
from ..analytics.metrics import value_at_risk
from ..ledger.ledger import LedgerListener, PositionLedger
from ..ledger.models import Position
from ..quant.indicators import volatility
from ..utils.alerts import Alert, AlertLevel
from ..utils.logging import get_logger
from ..utils.scheduler import Ticker

LOGGER = get_logger(__name__)

RISK_KEYWORDS = ("risk", "drawdown", "loss", "exposure", "concentration", "correlation")
DEFAULT_HISTORY_SIZE = 1000

FACTOR_THRESHOLD = 0.8
DRAWDOWN_RECOMMENDATION_THRESHOLD = 0.7
DAILY_LOSS_RECOMMENDATION_THRESHOLD = 0.7
CONCENTRATION_RECOMMENDATION_THRESHOLD = 0.8


def assess_alert_risk(level: AlertLevel, message: str) -> str:
    """Impact of an alert: CRITICAL -> HIGH, ERROR -> MEDIUM, else LOW; risk keywords raise it."""
    if level is AlertLevel.CRITICAL:
        impact = "HIGH"
    elif level is AlertLevel.ERROR:
        impact = "MEDIUM"
    else:
        impact = "LOW"
    text = message.lower()
    if any(k in text for k in RISK_KEYWORDS):
        impact = "CRITICAL" if impact == "HIGH" else "HIGH"
    return impact


class RiskEngine(LedgerListener):
    def __init__(
        self,
        params: Optional[RiskParams] = None,
        ledger: Optional[PositionLedger] = None,
        kill_switch: Optional[KillSwitch] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        self.params = params if params is not None else RiskParams()
        self.ledger = ledger if ledger is not None else PositionLedger()
        self.section = self.ledger.section
        self.clock = self.ledger.clock
        self.kill_switch = kill_switch
        self.state = RiskState()
        self.engine_state = EngineState.ACTIVE
        self.history_size = history_size
        self.history: Dict[str, Deque[float]] = {
            "portfolio_values": deque(maxlen=history_size),
            "drawdowns": deque(maxlen=history_size),
            "daily_pnl": deque(maxlen=history_size),
            "var": deque(maxlen=history_size),
        }
        self._current_date = self.clock.today()
        self._last_recommendations: FrozenSet[str] = frozenset()
        self._ticker: Optional[Ticker] = None

        self.gate = PreTradeGate(self.params, self.ledger, halted=lambda: not self.is_active)
        self.ledger.add_gate(self.gate)
        self.ledger.subscribe(self)
        self.section.add_listener(self.on_alert)

    @property
    def is_active(self) -> bool:
        return self.engine_state is EngineState.ACTIVE

    @property
    def monitoring_active(self) -> bool:
        return self._ticker is not None and self._ticker.is_active

    # --- ledger events ---

    def on_position_opened(self, position: Position) -> None:
        self.update_risk_metrics()

    def on_position_closed(self, position: Position) -> None:
        self.update_risk_metrics()

    # --- continuous assessment ---

    def update_risk_metrics(self) -> RiskState:
        with self.section.hold():
            self._roll_day()
            ledger = self.ledger
            total = ledger.valuation()
            positions = ledger.open_positions()

            self.state.current_drawdown = ledger.drawdown()
            self.state.daily_pnl = self._daily_pnl()
            self.state.portfolio_var = value_at_risk(ledger.closed_pnls(), self.params.var_confidence)

            concentration: Dict[str, float] = {}
            liquidity: Dict[str, float] = {}
            for asset, pos in positions.items():
                value = pos.size * ledger.current_price(asset, pos.entry_price)
                concentration[asset] = value / total if total > 0 else 0.0
                snap = ledger.cache.peek(asset)
                liquidity[asset] = liquidity_score(snap.volume if snap else 0.0, value)
            correlations = {
                pair_key(a, b): aligned_correlation(ledger.cache, a, b)
                for a, b in itertools.combinations(sorted(positions), 2)
            }
            self.state.concentration_risk = concentration
            self.state.liquidity_risk = liquidity
            self.state.correlation_risk = correlations
            self.state.risk_score = self.calculate_risk_score()

            self.history["portfolio_values"].append(total)
            self.history["drawdowns"].append(self.state.current_drawdown)
            self.history["daily_pnl"].append(self.state.daily_pnl)
            self.history["var"].append(self.state.portfolio_var)
            return self.state

    def calculate_risk_score(self) -> float:
        s = self.state
        score = (
            min(40.0, s.current_drawdown * 200)
            + min(30.0, self.daily_loss_fraction() * 300)
            + min(20.0, self.var_fraction() * 200)
            + min(10.0, max(s.concentration_risk.values(), default=0.0) * 40)
        )
        return max(0.0, min(100.0, score))

    def daily_loss_fraction(self) -> float:
        total = self.ledger.portfolio.total_value
        if total <= 0:
            return 0.0
        return max(0.0, -self.state.daily_pnl) / total

    def var_fraction(self) -> float:
        total = self.ledger.portfolio.total_value
        if total <= 0:
            return 0.0
        return self.state.portfolio_var / total

    def perform_risk_assessment(self) -> RiskAssessment:
        with self.section.hold():
            self.update_risk_metrics()
            level = RiskLevel.from_score(self.state.risk_score)
            recommendations = self.generate_recommendations()
            assessment = RiskAssessment(
                timestamp=self.clock.now(),
                overall_risk=level,
                risk_score=self.state.risk_score,
                risk_factors=self.identify_risk_factors(),
                recommendations=recommendations,
                limits=self._limit_statuses(),
            )
            ctx = {"risk_score": assessment.risk_score, "overall_risk": level.value}
            if level is RiskLevel.CRITICAL:
                self.section.post(AlertLevel.CRITICAL, "Critical risk level detected", ctx)
            elif level is RiskLevel.HIGH:
                self.section.post(AlertLevel.WARNING, "High risk level detected", ctx)

            types = frozenset(r.type for r in recommendations)
            if types != self._last_recommendations:
                self._last_recommendations = types
                if types:
                    self.section.post(
                        AlertLevel.WARNING,
                        "Risk recommendations: " + ", ".join(sorted(types)),
                        {"recommendations": [r.message for r in recommendations]},
                    )
            return assessment

    def identify_risk_factors(self) -> List[RiskFactor]:
        p, s = self.params, self.state
        factors: List[RiskFactor] = []
        if s.current_drawdown > p.max_drawdown * FACTOR_THRESHOLD:
            factors.append(RiskFactor("DRAWDOWN", Severity.HIGH, s.current_drawdown, p.max_drawdown,
                                      f"Current drawdown {s.current_drawdown:.3f} near limit {p.max_drawdown}"))
        daily = self.daily_loss_fraction()
        if daily > p.max_daily_loss * FACTOR_THRESHOLD:
            factors.append(RiskFactor("DAILY_LOSS", Severity.HIGH, daily, p.max_daily_loss,
                                      f"Daily loss {daily:.3f} near limit {p.max_daily_loss}"))
        var = self.var_fraction()
        if var > p.var_limit * FACTOR_THRESHOLD:
            factors.append(RiskFactor("VAR", Severity.MEDIUM, var, p.var_limit,
                                      f"VaR {var:.3f} near limit {p.var_limit}"))
        crowded = [a for a, c in s.concentration_risk.items() if c > p.max_concentration * FACTOR_THRESHOLD]
        if crowded:
            factors.append(RiskFactor("CONCENTRATION", Severity.MEDIUM,
                                      max(s.concentration_risk[a] for a in crowded), p.max_concentration,
                                      f"{len(crowded)} assets near concentration limit"))
        return factors

    def generate_recommendations(self) -> List[Recommendation]:
        p, s = self.params, self.state
        recs: List[Recommendation] = []
        if s.current_drawdown > p.max_drawdown * DRAWDOWN_RECOMMENDATION_THRESHOLD:
            recs.append(Recommendation("REDUCE_EXPOSURE", Severity.HIGH,
                                       "Consider reducing position sizes to limit further drawdown",
                                       "reduce_position_sizes"))
        if self.daily_loss_fraction() > p.max_daily_loss * DAILY_LOSS_RECOMMENDATION_THRESHOLD:
            recs.append(Recommendation("STOP_TRADING", Severity.CRITICAL,
                                       "Daily loss limit approaching, consider stopping trading for today",
                                       "stop_trading"))
        if max(s.concentration_risk.values(), default=0.0) > p.max_concentration * CONCENTRATION_RECOMMENDATION_THRESHOLD:
            recs.append(Recommendation("DIVERSIFY", Severity.MEDIUM,
                                       "Reduce concentration in highly weighted assets", "diversify"))
        if any(abs(c) > p.correlation_limit for c in s.correlation_risk.values()):
            recs.append(Recommendation("HEDGE_CORRELATION", Severity.MEDIUM,
                                       "Consider hedging highly correlated positions", "hedge"))
        return recs

    def check_risk_limits(self) -> Dict[str, LimitStatus]:
        """Drawdown, daily loss and VaR against their limits; each breach is recorded."""
        with self.section.hold():
            self.update_risk_metrics()
            limits = self._limit_statuses()
            for name, status in limits.items():
                if status.breached:
                    message = f"{name} limit breached: {status.current:.4f} > {status.limit:.4f}"
                    self._record_breach(f"{name.upper()}_LIMIT", message, AlertLevel.CRITICAL.value,
                                        {"current": status.current, "limit": status.limit})
                    self.section.post(AlertLevel.WARNING, message, {"limit": name})
            return limits

    def _limit_statuses(self) -> Dict[str, LimitStatus]:
        return {
            "drawdown": limit_status(self.state.current_drawdown, self.params.max_drawdown),
            "daily_loss": limit_status(self.daily_loss_fraction(), self.params.max_daily_loss),
            "var": limit_status(self.var_fraction(), self.params.var_limit),
        }

    # --- breaches ---

    def on_alert(self, alert: Alert) -> None:
        """Record CRITICAL and ERROR alerts as breaches."""
        if alert.level not in (AlertLevel.CRITICAL, AlertLevel.ERROR):
            return
        with self.section.hold():
            self._record_breach("ALERT", alert.message, alert.level.value, dict(alert.context),
                                impact=assess_alert_risk(alert.level, alert.message))

    def _record_breach(self, kind: str, message: str, level: str, context: Dict[str, Any],
                       impact: Optional[str] = None) -> Breach:
        breach = Breach(
            timestamp=self.clock.now(),
            type=kind,
            message=message,
            level=level,
            impact=impact or assess_alert_risk(AlertLevel.parse(level), message),
            context=context,
        )
        self.state.breaches.append(breach)
        if len(self.state.breaches) > self.history_size:
            del self.state.breaches[: len(self.state.breaches) - self.history_size]
        return breach

    # --- sizing ---

    def calculate_position_size(self, asset: str) -> float:
        """Suggested units for a new entry on `asset` (0 without market data)."""
        price = self.ledger.current_price(asset)
        if price is None:
            return 0.0
        vol = volatility(self.ledger.cache.prices(asset))
        return position_size(self.ledger.portfolio.cash, price, vol, self.ledger.params)

    # --- monitoring ---

    def start_monitoring(self, interval_seconds: float = 30.0) -> Ticker:
        if not self.is_active:
            raise RuntimeError(f"Risk engine is {self.engine_state.value}; create a new one to resume")
        if self._ticker is None:
            self._ticker = Ticker(interval_seconds, self.tick, name="risk-monitor")
        self._ticker.start()
        return self._ticker

    def tick(self) -> None:
        """One monitoring pass: kill switch, assessment, limit check."""
        if not self.is_active:
            return
        if self.kill_switch is not None and self.kill_switch.is_active():
            self.emergency_stop("kill switch")
            return
        self.perform_risk_assessment()
        self.check_risk_limits()

    def emergency_stop(self, reason: str) -> List[Position]:
        """Force-close every position and halt monitoring. Irreversible."""
        with self.section.hold():
            if not self.is_active:
                LOGGER.warning(f"Emergency stop ignored ({reason}): engine is {self.engine_state.value}")
                return []
            self.engine_state = EngineState.STOPPING
        LOGGER.critical(f"EMERGENCY STOP: {reason}", extra={"reason": reason})

        # outside the lock so an in-flight tick can finish
        if self._ticker is not None:
            self._ticker.cancel(wait=True)

        with self.section.hold():
            closed = self.ledger.close_all(reason=f"emergency_stop: {reason}")
            self.engine_state = EngineState.STOPPED
            self.update_risk_metrics()
            self.ledger.notify_emergency_stop(reason, closed)
            remaining = len(self.ledger.open_positions())
            self.section.post(
                AlertLevel.CRITICAL,
                f"EMERGENCY STOP: {reason}",
                {"reason": reason, "closed_positions": [p.id for p in closed], "remaining": remaining},
            )
        return closed

    def shutdown(self) -> None:
        """Stop monitoring without liquidating."""
        with self.section.hold():
            if self.engine_state is EngineState.STOPPED:
                return
            self.engine_state = EngineState.STOPPING
        if self._ticker is not None:
            self._ticker.cancel(wait=True)
        with self.section.hold():
            self.engine_state = EngineState.STOPPED
        LOGGER.info("Risk engine shut down")

    # --- reporting ---

    def get_risk_report(self) -> Dict[str, Any]:
        assessment = self.perform_risk_assessment()
        with self.section.hold():
            return {
                "engine_state": self.engine_state.value,
                "current_state": self.state.to_dict(),
                "parameters": self.params.to_dict(),
                "assessment": assessment.to_dict(),
                "history": {k: list(v) for k, v in self.history.items()},
                "limits": {k: {"current": v.current, "limit": v.limit, "status": v.status}
                           for k, v in self._limit_statuses().items()},
            }

    # --- internals ---

    def _daily_pnl(self) -> float:
        today = self.clock.now().date()
        return sum(p.pnl for p in self.ledger.closed_positions()
                   if p.exit_time is not None and p.exit_time.date() == today)

    def _roll_day(self) -> None:
        today = self.clock.today()
        if today != self._current_date:
            LOGGER.info(f"New trading day {today}: resetting daily P&L (was {self.state.daily_pnl:.2f})")
            self._current_date = today
            self.state.daily_pnl = 0.0
